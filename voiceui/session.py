"""语音会话：每条语音命令在确定性匹配和 AI 计划两条路径之间分派"""

import asyncio
import contextlib
import logging
from typing import Callable, Dict, List, Mapping, Optional

from playwright.async_api import Page

from .config import Settings
from .errors import RateLimitedError, UpstreamError, ValidationError
from .executor import ActionExecutor, RatingPolicy, pick_last
from .highlight import Highlighter, PageHighlighter
from .locator import Locator
from .matcher import IntentMatcher
from .memory import CommandHistory
from .models import ActionStep, CommandOutcome, RateLimitDecision
from .pipeline import PlanPipeline
from .planner import Planner
from .ratelimit import RateLimiter, client_identifier
from .transcriber import Transcriber
from .validation import cors_headers, validate_origin, validate_transcribe_request

logger = logging.getLogger(__name__)

OutcomeObserver = Callable[[CommandOutcome], None]


class VoiceSession:
    """
    单个页面（surface）上的语音会话。

    - AI 可用时优先走 PlanPipeline，否则走 IntentMatcher；
    - 调用外部服务前先过限流；
    - exclusive=True 时同一会话的命令串行执行，默认不加锁。
    """

    def __init__(
        self,
        page: Page,
        settings: Optional[Settings] = None,
        planner: Optional[Planner] = None,
        transcriber: Optional[Transcriber] = None,
        rate_limiter: Optional[RateLimiter] = None,
        highlighter: Optional[Highlighter] = None,
        rating_policy: RatingPolicy = pick_last,
        on_outcome: Optional[OutcomeObserver] = None,
        on_step: Optional[Callable[[ActionStep, bool], None]] = None,
    ):
        self.page = page
        self.settings = settings or Settings()
        self.planner = planner
        self.transcriber = transcriber
        self.rate_limiter = rate_limiter or RateLimiter()
        self.history = CommandHistory()
        self._observers: List[OutcomeObserver] = [self.history]
        if on_outcome:
            self._observers.append(on_outcome)

        self.locator = Locator(page)
        self.executor = ActionExecutor(
            page,
            highlighter=highlighter or PageHighlighter(),
            rating_policy=rating_policy,
        )
        self.matcher = IntentMatcher(page, self.executor)
        self.pipeline = (
            PlanPipeline(self.locator, planner, self.executor, on_step=on_step)
            if planner is not None
            else None
        )
        self._lock = asyncio.Lock() if self.settings.exclusive else None

    @classmethod
    def from_settings(cls, page: Page, settings: Settings, **kwargs) -> "VoiceSession":
        """按配置创建 OpenAI 客户端、planner 和 transcriber"""
        client = settings.create_client()
        return cls(
            page,
            settings=settings,
            planner=Planner(client, settings.plan_model),
            transcriber=Transcriber(client, settings.transcribe_model),
            **kwargs,
        )

    @property
    def use_ai(self) -> bool:
        return self.settings.use_ai and self.pipeline is not None

    async def handle_transcript(self, transcript: str, client_id: str = "local") -> CommandOutcome:
        """处理一条已转写的命令"""
        async with self._exclusive():
            return self._report(await self._handle_transcript(transcript, client_id))

    async def handle_audio(
        self,
        audio: bytes,
        filename: str = "recording.webm",
        content_type: str = "audio/webm",
        client_id: str = "local",
    ) -> CommandOutcome:
        """转写录音后按文本命令处理"""
        if self.transcriber is None:
            return self._report(CommandOutcome("", "Transcription is not configured", "error", "error"))

        decision: Optional[RateLimitDecision] = None
        try:
            decision = self._check_rate("transcribe", client_id)
            request = validate_transcribe_request(audio, filename, content_type, self.settings.language)
            transcript = await self.transcriber.transcribe(
                request.audio, request.filename, request.content_type, request.language
            )
        except RateLimitedError as e:
            return self._report(self._rate_limited("", e))
        except ValidationError as e:
            message = e.details[0]["msg"] if e.details else str(e)
            return self._report(CommandOutcome("", message, "error", "error", rate_limit=decision))
        except UpstreamError as e:
            return self._report(CommandOutcome("", str(e), "error", "error", rate_limit=decision))

        outcome = await self.handle_transcript(transcript, client_id)
        if outcome.rate_limit is None:
            outcome.rate_limit = decision
        return outcome

    def admit(self, headers: Mapping[str, str]) -> str:
        """
        HTTP 接入用：校验 Origin 并返回限流用的客户端标识。
        来源不在白名单时抛 ValidationError。
        """
        origin = _header(headers, "origin")
        if not validate_origin(origin, self.settings.allowed_origins, development=self.settings.development):
            logger.warning("❌ 拒绝来源 %s", origin)
            raise ValidationError("Origin not allowed")
        return client_identifier(headers)

    def response_headers(self, outcome: CommandOutcome, origin: Optional[str] = None) -> Dict[str, str]:
        """CORS 头加上本次请求的 X-RateLimit-* 头"""
        headers = cors_headers(origin, self.settings.allowed_origins)
        if outcome.rate_limit is not None:
            headers.update(outcome.rate_limit.headers())
        return headers

    async def _handle_transcript(self, transcript: str, client_id: str) -> CommandOutcome:
        if not transcript or not transcript.strip():
            return CommandOutcome(transcript or "", "Empty transcript", "error", "error")

        if not self.use_ai:
            return await self.matcher.resolve_and_execute(transcript)

        try:
            decision = self._check_rate("plan", client_id)
        except RateLimitedError as e:
            return self._rate_limited(transcript, e)

        outcome = await self.pipeline.run(transcript)
        outcome.rate_limit = decision
        if self.settings.debug and outcome.plan is not None:
            logger.debug("计划详情: %s", outcome.plan)
        return outcome

    def _check_rate(self, key: str, client_id: str) -> RateLimitDecision:
        config = self.settings.rate_limit(key)
        decision = self.rate_limiter.check(f"{key}:{client_id}", config["limit"], config["window_ms"])
        if not decision.allowed:
            logger.warning("❌ 限流 %s %s, %ds 后重置", key, client_id, decision.retry_after())
            raise RateLimitedError(decision)
        return decision

    @staticmethod
    def _rate_limited(transcript: str, error: RateLimitedError) -> CommandOutcome:
        result = f"Rate limit exceeded, retry after {error.decision.retry_after()}s"
        return CommandOutcome(transcript, result, "error", "error", rate_limit=error.decision)

    def _exclusive(self):
        if self._lock is None:
            return contextlib.nullcontext()
        return self._lock

    def _report(self, outcome: CommandOutcome) -> CommandOutcome:
        mark = "✓" if outcome.success else "❌"
        logger.info("%s [%s] \"%s\" → %s", mark, outcome.processing_type, outcome.command, outcome.result)
        for observer in self._observers:
            observer(outcome)
        return outcome


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None
