"""定位模块：发现视口内的可交互元素，并为每个元素生成可重复解析的 locator"""

import logging
import re
from typing import Any, Dict, List, Optional

from playwright.async_api import Page

from .models import SurfaceElement

logger = logging.getLogger(__name__)

INTERACTIVE_SELECTOR = (
    'button, input, textarea, select, a, '
    '[role="button"], [tabindex], '
    '[data-voice], [contenteditable], '
    '.clickable, .interactive'
)

# 结构化路径的最大段数
MAX_PATH_SEGMENTS = 3

SAFE_CLASS_RE = re.compile(r"^[a-zA-Z_-][a-zA-Z0-9_-]*$")
SAFE_ID_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_-]*$")


def in_viewport(rect: Dict[str, float], viewport: Dict[str, float]) -> bool:
    """元素包围盒非零且完全落在视口内"""
    return (
        rect.get("width", 0) > 0
        and rect.get("height", 0) > 0
        and rect.get("top", -1) >= 0
        and rect.get("left", -1) >= 0
        and rect.get("bottom", 0) <= viewport.get("height", 0)
        and rect.get("right", 0) <= viewport.get("width", 0)
    )


def _quote(value: str) -> str:
    """CSS 属性值转义（双引号包裹）"""
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _id_selector(element_id: str) -> str:
    if SAFE_ID_RE.match(element_id):
        return f"#{element_id}"
    return f"[id={_quote(element_id)}]"


def _path_segment(node: Dict[str, Any]) -> str:
    segment = node["tag"]
    safe = [c for c in node.get("classes") or [] if SAFE_CLASS_RE.match(c)]
    if safe:
        segment += f".{safe[0]}"
    if node.get("sameTagSiblings", 1) > 1:
        segment += f":nth-of-type({node['index']})"
    return segment


def derive_locator(raw: Dict[str, Any]) -> str:
    """
    按优先级生成 locator：
      1. 元素 id
      2. data-voice 属性
      3. 自下而上最多 3 段的 tag[.class][:nth-of-type(k)] 路径

    路径不保证全局唯一，只是尽力而为。
    """
    if raw.get("id"):
        return _id_selector(raw["id"])
    if raw.get("voice"):
        return f"[data-voice={_quote(raw['voice'])}]"

    path: List[str] = []
    # ancestry[0] 是元素自身，向上直到 body（不含）
    for node in raw.get("ancestry") or []:
        if node.get("id"):
            if SAFE_ID_RE.match(node["id"]):
                path.insert(0, f"{node['tag']}#{node['id']}")
            else:
                path.insert(0, f"{node['tag']}[id={_quote(node['id'])}]")
            break
        path.insert(0, _path_segment(node))
        if len(path) >= MAX_PATH_SEGMENTS:
            break
    return " ".join(path) or raw["tag"]


def _text(value: Any, limit: Optional[int] = None) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    if limit is not None:
        value = value[:limit]
    return value or None


def _raw_value(value: Any) -> Optional[str]:
    """输入框当前值原样保留（不去空白），只丢弃空值"""
    if value is None or value == "":
        return None
    return str(value)


def to_surface_element(raw: Dict[str, Any]) -> SurfaceElement:
    """把页面脚本返回的原始数据转成 SurfaceElement"""
    return SurfaceElement(
        tag=raw["tag"],
        locator=derive_locator(raw),
        id=_text(raw.get("id")),
        classes=list(raw.get("classes") or []),
        role=_text(raw.get("role")),
        aria_label=_text(raw.get("ariaLabel")),
        text=_text(raw.get("text"), 100),
        input_type=_text(raw.get("type")),
        placeholder=_text(raw.get("placeholder")),
        value=_raw_value(raw.get("value")),
        href=_text(raw.get("href")),
        voice=_text(raw.get("voice")),
        voice_intents=_text(raw.get("voiceIntents")),
        voice_action=_text(raw.get("voiceAction")),
    )


class Locator:
    """
    定位模块：只读地扫描当前页面。
    页面脚本只负责收集原始信息（包围盒、属性、祖先链），
    过滤与 locator 推导都在 Python 侧完成，不向页面写入任何标记。
    """

    def __init__(self, page: Page):
        self.page = page

    async def discover(self) -> List[SurfaceElement]:
        """返回视口内可交互元素的有序列表（文档顺序）"""
        js_code = """
        ({ selector, maxDepth }) => {
            const ancestry = (el) => {
                const chain = [];
                let current = el;
                while (current && current !== document.body && chain.length < maxDepth) {
                    const parent = current.parentElement;
                    const siblings = parent
                        ? Array.from(parent.children).filter(s => s.tagName === current.tagName)
                        : [current];
                    chain.push({
                        tag: current.tagName.toLowerCase(),
                        id: current.id || null,
                        classes: (typeof current.className === 'string' ? current.className : '')
                            .trim().split(/\\s+/).filter(Boolean),
                        sameTagSiblings: siblings.length,
                        index: siblings.indexOf(current) + 1,
                    });
                    current = parent;
                }
                return chain;
            };

            const elements = [];
            for (const el of document.querySelectorAll(selector)) {
                if (!(el instanceof HTMLElement)) continue;
                const rect = el.getBoundingClientRect();
                elements.push({
                    tag: el.tagName.toLowerCase(),
                    id: el.id || null,
                    classes: (typeof el.className === 'string' ? el.className : '')
                        .trim().split(/\\s+/).filter(Boolean),
                    role: el.getAttribute('role'),
                    ariaLabel: el.getAttribute('aria-label'),
                    text: (el.textContent || '').trim().slice(0, 100),
                    type: el.type || null,
                    placeholder: el.placeholder || null,
                    value: typeof el.value === 'string' ? el.value : null,
                    href: el.href || null,
                    voice: el.getAttribute('data-voice'),
                    voiceIntents: el.getAttribute('data-voice-intents'),
                    voiceAction: el.getAttribute('data-voice-action'),
                    rect: {
                        top: rect.top, left: rect.left, bottom: rect.bottom,
                        right: rect.right, width: rect.width, height: rect.height,
                    },
                    ancestry: ancestry(el),
                });
            }
            return {
                viewport: { width: window.innerWidth, height: window.innerHeight },
                elements,
            };
        }
        """

        result = await self.page.evaluate(
            js_code, {"selector": INTERACTIVE_SELECTOR, "maxDepth": MAX_PATH_SEGMENTS}
        )
        viewport = result["viewport"]

        elements = [
            to_surface_element(item)
            for item in result["elements"]
            if in_viewport(item.get("rect") or {}, viewport)
        ]
        logger.debug("✓ 提取 %d 个可见元素（共扫描 %d 个）", len(elements), len(result["elements"]))
        return elements

    @staticmethod
    def summarize(elements: List[SurfaceElement]) -> str:
        """生成文本摘要，用于日志"""
        lines = []
        for el in elements:
            label = el.voice or el.aria_label or el.text or el.placeholder or "(无文本)"
            lines.append(f"{el.locator} {el.tag}: \"{label}\"")
        return "\n".join(lines)
