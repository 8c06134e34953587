"""Voice UI Agent 包

把语音命令（已转写的文本）解析为页面上的具体操作并执行：
- models: 数据模型
- locator: 定位模块（发现可见元素、生成 locator）
- matcher: 确定性意图匹配
- executor: 动作执行
- planner: 规划模块（LLM 生成多步计划）
- pipeline: AI 计划执行管线
- ratelimit: 限流
- session: 语音会话（路径分派）
"""

from .config import Settings, setup_logging
from .errors import ConfigError, RateLimitedError, UpstreamError, ValidationError, VoiceUIError
from .executor import ActionExecutor, pick_last
from .highlight import NullHighlighter, PageHighlighter
from .locator import Locator
from .matcher import IntentMatcher, normalize
from .memory import CommandHistory
from .models import (
    ActionKind,
    ActionPlan,
    ActionStep,
    CommandOutcome,
    MatchResult,
    RateLimitDecision,
    SurfaceElement,
)
from .pipeline import PlanPipeline
from .planner import Planner
from .ratelimit import RateLimiter, client_identifier
from .session import VoiceSession
from .transcriber import Transcriber

__all__ = [
    "ActionExecutor",
    "ActionKind",
    "ActionPlan",
    "ActionStep",
    "CommandHistory",
    "CommandOutcome",
    "ConfigError",
    "IntentMatcher",
    "Locator",
    "MatchResult",
    "NullHighlighter",
    "PageHighlighter",
    "PlanPipeline",
    "Planner",
    "RateLimitDecision",
    "RateLimitedError",
    "RateLimiter",
    "Settings",
    "SurfaceElement",
    "Transcriber",
    "UpstreamError",
    "ValidationError",
    "VoiceSession",
    "VoiceUIError",
    "client_identifier",
    "normalize",
    "pick_last",
    "setup_logging",
]
