"""高亮模块：执行动作前给目标元素一个短暂的视觉反馈"""

from typing import Any, Protocol

HIGHLIGHT_JS = """
(el, duration) => {
    const previous = el.style.outline;
    const previousOffset = el.style.outlineOffset;
    el.style.outline = '3px solid #3b82f6';
    el.style.outlineOffset = '2px';
    setTimeout(() => {
        el.style.outline = previous;
        el.style.outlineOffset = previousOffset;
    }, duration);
}
"""


class Highlighter(Protocol):
    async def highlight(self, element: Any, duration_ms: int) -> None:
        ...


class NullHighlighter:
    """不做任何高亮"""

    async def highlight(self, element: Any, duration_ms: int) -> None:
        return None


class PageHighlighter:
    """在页面内给元素加临时描边，到时自动恢复"""

    async def highlight(self, element: Any, duration_ms: int) -> None:
        await element.evaluate(HIGHLIGHT_JS, duration_ms)
