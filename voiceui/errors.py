"""异常定义"""

from typing import Any, List, Optional


class VoiceUIError(Exception):
    """所有异常的基类"""
    pass


class ConfigError(VoiceUIError):
    """配置缺失或非法"""
    pass


class ValidationError(VoiceUIError):
    """请求数据校验失败"""

    def __init__(self, message: str, details: Optional[List[Any]] = None):
        super().__init__(message)
        self.details = details or []


class UpstreamError(VoiceUIError):
    """转写 / 规划服务调用失败"""
    pass


class RateLimitedError(VoiceUIError):
    """超出限流窗口"""

    def __init__(self, decision):
        super().__init__("Rate limit exceeded")
        self.decision = decision
