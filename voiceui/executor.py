"""执行模块：对单个元素执行一个动作，返回成功与否"""

import asyncio
import logging
import re
from typing import Any, Callable, Optional

from playwright.async_api import ElementHandle, Page

from .highlight import Highlighter, NullHighlighter
from .models import ActionKind, ActionStep

logger = logging.getLogger(__name__)

DEFAULT_WAIT_MS = 1000
HIGHLIGHT_MS = 2000
SCROLL_HIGHLIGHT_MS = 3000

_LEADING_INT_RE = re.compile(r"\s*([-+]?\d+)")

CLICK_JS = "el => { el.click(); return true; }"

# 优先点击容器内的按钮（页面自己的开关逻辑），没有时直接改 hidden 类 / display
SHOW_JS = """
el => {
    const button = el.querySelector('button');
    if (button && el.classList.contains('hidden')) {
        button.click();
    } else {
        el.classList.remove('hidden');
        el.style.display = '';
    }
    return true;
}
"""

HIDE_JS = """
el => {
    const button = el.querySelector('button');
    if (button && !el.classList.contains('hidden')) {
        button.click();
    } else {
        el.classList.add('hidden');
    }
    return true;
}
"""

TOGGLE_JS = """
el => {
    const button = el.querySelector('button');
    if (button) {
        button.click();
    } else if (el.classList.contains('hidden') || el.style.display === 'none') {
        el.classList.remove('hidden');
        el.style.display = '';
    } else {
        el.classList.add('hidden');
    }
    return true;
}
"""

FOCUS_JS = """
el => {
    const input = el.querySelector('input, textarea, select');
    (input || el).focus();
    return true;
}
"""

SELECT_FIRST_JS = """
el => {
    const select = el.tagName === 'SELECT' ? el : el.querySelector('select');
    if (!select) return false;
    const option = select.querySelector('option:not([value=""])');
    if (!option) return false;
    select.value = option.value;
    select.dispatchEvent(new Event('change', { bubbles: true }));
    return true;
}
"""

SELECT_VALUE_JS = """
(el, value) => {
    const select = el.tagName === 'SELECT' ? el : el.querySelector('select');
    if (!select) return false;
    select.value = value;
    select.dispatchEvent(new Event('change', { bubbles: true }));
    return select.value === value;
}
"""

TYPE_JS = """
(el, value) => {
    if (el.tagName === 'INPUT' || el.tagName === 'TEXTAREA') {
        el.value = value;
    } else if (el.isContentEditable) {
        el.textContent = value;
    } else {
        return false;
    }
    el.dispatchEvent(new Event('input', { bubbles: true }));
    el.dispatchEvent(new Event('change', { bubbles: true }));
    return true;
}
"""

SCROLL_JS = """
el => {
    el.scrollIntoView({ behavior: 'smooth', block: 'center' });
    return true;
}
"""

RATE_COUNT_JS = "el => el.querySelectorAll('button').length"

RATE_CLICK_JS = """
(el, index) => {
    const button = el.querySelectorAll('button')[index];
    if (!button) return false;
    button.click();
    return true;
}
"""

RatingPolicy = Callable[[int], int]


def pick_last(count: int) -> int:
    """评分控件默认策略：按升序排列的一组按钮，选最后一个（最高分）"""
    return count - 1


def parse_wait_ms(value: Optional[str]) -> int:
    """取开头的整数部分（"1500ms" → 1500，"2.5" → 2），没有数字时用默认值"""
    match = _LEADING_INT_RE.match(str(value)) if value is not None else None
    if match is None:
        return DEFAULT_WAIT_MS
    return max(0, int(match.group(1)))


class ActionExecutor:
    """
    执行模块：两条路径（确定性匹配 / AI 计划）共用。

    所有异常都在这里转换成 False，不会向外抛出。
    """

    def __init__(
        self,
        page: Page,
        highlighter: Optional[Highlighter] = None,
        rating_policy: RatingPolicy = pick_last,
    ):
        self.page = page
        self.highlighter = highlighter or NullHighlighter()
        self.rating_policy = rating_policy

    async def resolve(self, locator: str) -> Optional[ElementHandle]:
        """重新在当前页面上解析 locator，找不到或选择器非法返回 None"""
        try:
            return await self.page.query_selector(locator)
        except Exception as e:
            logger.warning("❌ locator 解析失败 %s: %s", locator, e)
            return None

    async def apply(self, element: Any, action: ActionKind, value: Optional[str] = None) -> bool:
        """对元素执行动作"""
        if element is None:
            logger.warning("❌ 元素不存在，无法执行 %s", action.value)
            return False

        await self._highlight(element, action)
        handler = getattr(self, _HANDLERS[action])
        try:
            ok = bool(await handler(element, value))
        except Exception as e:
            logger.warning("❌ %s 执行失败: %s", action.value, e)
            return False

        if ok:
            logger.info("✓ %s%s", action.value, f" = '{value}'" if value is not None else "")
        else:
            logger.warning("❌ %s 未生效", action.value)
        return ok

    async def apply_step(self, step: ActionStep) -> bool:
        """执行计划中的一步：先重新解析 target，再执行"""
        element = await self.resolve(step.target)
        if element is None:
            logger.warning("❌ 找不到元素 %s", step.target)
            return False
        if step.kind == ActionKind.CUSTOM:
            logger.info("自定义步骤: %s", step.description)
        return await self.apply(element, step.kind, step.value)

    async def _highlight(self, element: Any, action: ActionKind) -> None:
        duration = SCROLL_HIGHLIGHT_MS if action == ActionKind.SCROLL else HIGHLIGHT_MS
        try:
            await self.highlighter.highlight(element, duration)
        except Exception as e:
            logger.debug("高亮失败（忽略）: %s", e)

    async def _click(self, element, value):
        return await element.evaluate(CLICK_JS)

    async def _show(self, element, value):
        return await element.evaluate(SHOW_JS)

    async def _hide(self, element, value):
        return await element.evaluate(HIDE_JS)

    async def _toggle(self, element, value):
        return await element.evaluate(TOGGLE_JS)

    async def _focus(self, element, value):
        return await element.evaluate(FOCUS_JS)

    async def _select(self, element, value):
        # 没有给值（确定性路径）时选第一个非空选项
        if value is None:
            return await element.evaluate(SELECT_FIRST_JS)
        return await element.evaluate(SELECT_VALUE_JS, value)

    async def _type(self, element, value):
        return await element.evaluate(TYPE_JS, value or "")

    async def _scroll(self, element, value):
        return await element.evaluate(SCROLL_JS)

    async def _wait(self, element, value):
        wait_ms = parse_wait_ms(value)
        await asyncio.sleep(wait_ms / 1000)
        return True

    async def _rate(self, element, value):
        count = await element.evaluate(RATE_COUNT_JS)
        if not count:
            return False
        return await element.evaluate(RATE_CLICK_JS, self.rating_policy(count))

    async def _custom(self, element, value):
        return True


_HANDLERS = {
    ActionKind.CLICK: "_click",
    ActionKind.SHOW: "_show",
    ActionKind.HIDE: "_hide",
    ActionKind.TOGGLE: "_toggle",
    ActionKind.FOCUS: "_focus",
    ActionKind.SELECT: "_select",
    ActionKind.TYPE: "_type",
    ActionKind.SCROLL: "_scroll",
    ActionKind.WAIT: "_wait",
    ActionKind.RATE: "_rate",
    ActionKind.CUSTOM: "_custom",
}

_missing = set(ActionKind) - set(_HANDLERS)
if _missing:
    raise RuntimeError(f"No executor handler for: {sorted(a.value for a in _missing)}")
