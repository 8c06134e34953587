"""确定性意图匹配：把转写文本与元素声明的 data-voice 短语做包含匹配"""

import logging
import re
from typing import Callable, List, Optional

from playwright.async_api import Page

from .executor import ActionExecutor
from .models import VOICE_ACTIONS, ActionKind, CommandOutcome, MatchResult

logger = logging.getLogger(__name__)

VOICE_SELECTOR = "[data-voice]"

READ_VOICE_JS = """
el => ({
    voice: el.getAttribute('data-voice'),
    intents: el.getAttribute('data-voice-intents'),
    action: el.getAttribute('data-voice-action'),
})
"""

NO_MATCH_RESULT = "No matching element found"

_PUNCT_RE = re.compile(r"[^\w\s]")
_SPACE_RE = re.compile(r"\s+")


def normalize(text: str) -> str:
    """小写、去标点、合并空白并去首尾空白"""
    text = _PUNCT_RE.sub("", (text or "").lower())
    return _SPACE_RE.sub(" ", text).strip()


def candidate_phrases(voice: str, intents: Optional[str]) -> List[str]:
    """主短语在前，其后是逗号分隔的备选短语"""
    phrases = [voice]
    if intents:
        phrases.extend(p.strip() for p in intents.split(",") if p.strip())
    return phrases


def match_phrase(normalized_transcript: str, phrases: List[str]) -> Optional[str]:
    """返回第一个被转写文本包含的短语（原文），没有则 None"""
    for phrase in phrases:
        normalized = normalize(phrase)
        if normalized and normalized in normalized_transcript:
            return phrase
    return None


class IntentMatcher:
    """
    确定性匹配路径：不依赖网络，也没有可调阈值，
    要么找到字面包含匹配，要么失败。
    """

    def __init__(
        self,
        page: Page,
        executor: ActionExecutor,
        on_outcome: Optional[Callable[[CommandOutcome], None]] = None,
    ):
        self.page = page
        self.executor = executor
        self.on_outcome = on_outcome

    async def find_candidates(self, transcript: str) -> List[MatchResult]:
        """直接查询当前页面，按置信度降序返回所有候选"""
        normalized_transcript = normalize(transcript)
        if not normalized_transcript:
            return []

        matches: List[MatchResult] = []
        for element in await self.page.query_selector_all(VOICE_SELECTOR):
            attrs = await element.evaluate(READ_VOICE_JS)
            voice = attrs.get("voice")
            if not voice:
                continue

            phrase = match_phrase(normalized_transcript, candidate_phrases(voice, attrs.get("intents")))
            if phrase is None:
                continue

            declared = attrs.get("action") or ActionKind.CLICK.value
            action = ActionKind.parse(declared)
            if action not in VOICE_ACTIONS:
                logger.warning("⚠ 元素 \"%s\" 声明了不支持的动作 %r", voice, declared)
                action = None

            matches.append(MatchResult(
                element=element,
                action=action,
                confidence=len(normalize(phrase)) / len(normalized_transcript),
                matched_text=phrase,
                voice=voice,
                declared_action=declared,
            ))

        matches.sort(key=lambda m: m.confidence, reverse=True)
        return matches

    async def resolve_and_execute(self, transcript: str) -> CommandOutcome:
        """取最高分候选执行，返回结果；页面异常也转换成失败结果"""
        try:
            outcome = await self._resolve_and_execute(transcript)
        except Exception as e:
            logger.exception("❌ 确定性匹配失败")
            outcome = CommandOutcome(transcript, str(e) or "Static processing failed", "error", "error")
        return self._report(outcome)

    async def _resolve_and_execute(self, transcript: str) -> CommandOutcome:
        matches = await self.find_candidates(transcript)
        logger.debug("匹配候选: %s", [(m.voice, round(m.confidence, 3)) for m in matches])

        if not matches:
            logger.info("❌ 没有元素匹配: %s", transcript)
            return CommandOutcome(transcript, NO_MATCH_RESULT, "error", "static")

        best = matches[0]
        if best.action is None:
            return CommandOutcome(transcript, f"Failed to execute {best.declared_action}", "error", "static")

        success = await self.executor.apply(best.element, best.action)
        if success:
            result = f'Executed {best.action.value} on "{best.matched_text}"'
        else:
            result = f"Failed to execute {best.action.value}"
        return CommandOutcome(transcript, result, "success" if success else "error", "static")

    def _report(self, outcome: CommandOutcome) -> CommandOutcome:
        if self.on_outcome:
            self.on_outcome(outcome)
        return outcome
