"""数据模型定义"""

import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ActionKind(str, Enum):
    """语音命令可触发的动作种类（封闭集合）"""
    CLICK = "click"
    SHOW = "show"
    HIDE = "hide"
    TOGGLE = "toggle"
    FOCUS = "focus"
    SELECT = "select"
    TYPE = "type"
    SCROLL = "scroll"
    WAIT = "wait"
    RATE = "rate"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, name: Optional[str]) -> Optional["ActionKind"]:
        """大小写不敏感地解析动作名，未知返回 None"""
        try:
            return cls((name or "").strip().lower())
        except ValueError:
            return None


# AI 计划允许的步骤类型
PLAN_ACTIONS = frozenset({
    ActionKind.CLICK,
    ActionKind.TYPE,
    ActionKind.SELECT,
    ActionKind.FOCUS,
    ActionKind.SCROLL,
    ActionKind.WAIT,
    ActionKind.CUSTOM,
})

# data-voice-action 允许的动作
VOICE_ACTIONS = frozenset({
    ActionKind.CLICK,
    ActionKind.SHOW,
    ActionKind.HIDE,
    ActionKind.TOGGLE,
    ActionKind.SCROLL,
    ActionKind.SELECT,
    ActionKind.FOCUS,
    ActionKind.RATE,
})


@dataclass
class SurfaceElement:
    """单个可交互元素的快照（每次 discover 重新生成，不缓存）"""
    tag: str
    locator: str
    id: Optional[str] = None
    classes: List[str] = field(default_factory=list)
    role: Optional[str] = None
    aria_label: Optional[str] = None
    text: Optional[str] = None  # 截断到 100 字符
    input_type: Optional[str] = None
    placeholder: Optional[str] = None
    value: Optional[str] = None
    href: Optional[str] = None
    voice: Optional[str] = None  # data-voice：主意图短语
    voice_intents: Optional[str] = None  # data-voice-intents：逗号分隔的备选短语
    voice_action: Optional[str] = None  # data-voice-action

    def to_dict(self) -> Dict[str, Any]:
        """序列化为发送给 planner 的结构，省略空字段"""
        data = {
            "tagName": self.tag,
            "path": self.locator,
            "id": self.id,
            "className": " ".join(self.classes) or None,
            "role": self.role,
            "ariaLabel": self.aria_label,
            "textContent": self.text,
            "type": self.input_type,
            "placeholder": self.placeholder,
            "value": self.value,
            "href": self.href,
            "dataVoice": self.voice,
            "dataVoiceIntents": self.voice_intents,
            "dataVoiceAction": self.voice_action,
        }
        return {k: v for k, v in data.items() if v not in (None, "")}


@dataclass
class ActionStep:
    """计划中的一步"""
    kind: ActionKind
    target: str  # locator 字符串
    description: str
    value: Optional[str] = None  # 输入文本 / 选项值 / 等待毫秒数


@dataclass
class ActionPlan:
    """Planner 输出的多步计划，按数组顺序执行"""
    steps: List[ActionStep] = field(default_factory=list)
    confidence: float = 0.0
    reasoning: str = ""

    @classmethod
    def failed(cls, reasoning: str) -> "ActionPlan":
        """生成零置信度的占位计划"""
        return cls(steps=[], confidence=0.0, reasoning=reasoning)


@dataclass
class MatchResult:
    """确定性匹配的一个候选"""
    element: Any  # ElementHandle
    action: Optional[ActionKind]  # 声明了不支持的动作时为 None
    confidence: float
    matched_text: str
    voice: str = ""
    declared_action: str = ""  # data-voice-action 原值


@dataclass
class CommandOutcome:
    """一次语音命令的最终结果"""
    command: str
    result: str
    status: str  # success|error|pending
    processing_type: str  # static|ai|error
    plan: Optional[ActionPlan] = None
    rate_limit: Optional["RateLimitDecision"] = None  # 本次请求的限流判定
    timestamp: float = field(default_factory=time.time)

    @property
    def success(self) -> bool:
        return self.status == "success"


@dataclass
class RateLimitRecord:
    """单个客户端的计数窗口"""
    count: int
    reset_at: float


@dataclass
class RateLimitDecision:
    """限流判定结果"""
    allowed: bool
    limit: int
    remaining: int
    reset_at: float  # epoch 秒

    def retry_after(self, now: Optional[float] = None) -> int:
        """距离窗口重置的秒数（向上取整）"""
        now = time.time() if now is None else now
        return max(0, math.ceil(self.reset_at - now))

    def headers(self, now: Optional[float] = None) -> Dict[str, str]:
        """生成 X-RateLimit-* 响应头"""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(self.reset_at * 1000)),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after(now))
        return headers
