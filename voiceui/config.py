"""全局配置：从环境变量（以及 .env）读取"""

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from dotenv import load_dotenv
from openai import AsyncOpenAI

from .errors import ConfigError

DEFAULT_PLAN_MODEL = "gpt-4o-mini"
DEFAULT_TRANSCRIBE_MODEL = "whisper-1"

# 各端点默认限流：次数 / 窗口毫秒
RATE_LIMITS: Dict[str, Dict[str, int]] = {
    "transcribe": {"limit": 60, "window_ms": 60 * 1000},
    "plan": {"limit": 60, "window_ms": 60 * 1000},
    "default": {"limit": 100, "window_ms": 15 * 60 * 1000},
}

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(debug: bool = False) -> None:
    """配置根 logger，仅在未配置时添加 handler"""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
    )


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() not in ("0", "false", "no", "off")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def _default_rate_limits() -> Dict[str, Dict[str, int]]:
    return {key: dict(value) for key, value in RATE_LIMITS.items()}


@dataclass
class Settings:
    """运行配置"""
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    plan_model: str = DEFAULT_PLAN_MODEL
    transcribe_model: str = DEFAULT_TRANSCRIBE_MODEL
    language: Optional[str] = None
    use_ai: bool = True
    exclusive: bool = False
    debug: bool = False
    development: bool = False  # 开发模式放行所有 Origin
    allowed_origins: List[str] = field(default_factory=lambda: ["http://localhost:3000", "https://localhost:3000"])
    rate_limits: Dict[str, Dict[str, int]] = field(default_factory=_default_rate_limits)

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        """读取环境变量；dotenv=True 时先加载 .env 文件"""
        if dotenv:
            load_dotenv()

        rate_limits = _default_rate_limits()
        for key, value in rate_limits.items():
            prefix = f"VOICEUI_RATE_{key.upper()}"
            value["limit"] = _env_int(f"{prefix}_LIMIT", value["limit"])
            value["window_ms"] = _env_int(f"{prefix}_WINDOW_MS", value["window_ms"])
            if value["limit"] <= 0 or value["window_ms"] <= 0:
                raise ConfigError(f"{prefix} limit and window must be positive")

        origins = [o.strip() for o in os.getenv("VOICEUI_ALLOWED_ORIGINS", "").split(",") if o.strip()]
        settings = cls(
            api_key=os.getenv("OPENAI_API_KEY") or None,
            base_url=os.getenv("OPENAI_BASE_URL") or None,
            plan_model=os.getenv("VOICEUI_PLAN_MODEL", DEFAULT_PLAN_MODEL),
            transcribe_model=os.getenv("VOICEUI_TRANSCRIBE_MODEL", DEFAULT_TRANSCRIBE_MODEL),
            language=os.getenv("VOICEUI_LANGUAGE") or None,
            use_ai=_env_bool("VOICEUI_USE_AI", True),
            exclusive=_env_bool("VOICEUI_EXCLUSIVE", False),
            debug=_env_bool("VOICEUI_DEBUG", False),
            development=_env_bool("VOICEUI_DEVELOPMENT", False),
            rate_limits=rate_limits,
        )
        if origins:
            settings.allowed_origins = origins
        return settings

    def rate_limit(self, key: str) -> Dict[str, int]:
        """取某端点的限流配置，未知端点用 default"""
        return self.rate_limits.get(key) or self.rate_limits["default"]

    def create_client(self) -> AsyncOpenAI:
        """构造 OpenAI 异步客户端"""
        if not self.api_key:
            raise ConfigError("OPENAI_API_KEY is not configured")
        return AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)
