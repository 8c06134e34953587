# tests/conftest.py
"""
In-memory stand-ins for Playwright's Page / ElementHandle.
"""

from typing import Any, Dict, List, Optional

import pytest

from voiceui import pipeline
from voiceui.highlight import HIGHLIGHT_JS
from voiceui.matcher import READ_VOICE_JS

VIEWPORT = {"width": 1280, "height": 800}


class FakeHandle:
    """Records every script evaluated against it."""

    def __init__(self, voice=None, intents=None, action=None, results=None, error=None, read_error=None):
        self.attrs = {"voice": voice, "intents": intents, "action": action}
        self.results: Dict[str, Any] = results or {}
        self.error = error
        self.read_error = read_error
        self.calls: List[tuple] = []
        self.highlights: List[int] = []

    async def evaluate(self, script, arg=None):
        if script == READ_VOICE_JS:
            if self.read_error is not None:
                raise self.read_error
            return dict(self.attrs)
        if script == HIGHLIGHT_JS:
            self.highlights.append(arg)
            return None
        self.calls.append((script, arg))
        if self.error is not None:
            raise self.error
        return self.results.get(script, True)

    @property
    def scripts(self):
        return [script for script, _ in self.calls]


class FakePage:
    """Page with a fixed selector table and a canned discovery payload."""

    def __init__(self, elements=None, voice_elements=None, raw_elements=None, viewport=None):
        self.elements: Dict[str, FakeHandle] = elements or {}
        self.voice_elements: List[FakeHandle] = voice_elements or []
        self.raw_elements: List[Dict[str, Any]] = raw_elements or []
        self.viewport = viewport or dict(VIEWPORT)
        self.queries: List[str] = []
        self.evaluations = 0

    async def query_selector(self, selector):
        self.queries.append(selector)
        if selector.startswith("!!"):
            raise ValueError(f"Unexpected token in selector {selector}")
        return self.elements.get(selector)

    async def query_selector_all(self, selector):
        return list(self.voice_elements)

    async def evaluate(self, script, arg=None):
        self.evaluations += 1
        return {"viewport": self.viewport, "elements": self.raw_elements}


def raw_element(tag="button", rect=None, ancestry=None, **attrs) -> Dict[str, Any]:
    """Build one element record the way the discovery script returns it."""
    data = {
        "tag": tag,
        "id": None,
        "classes": [],
        "rect": rect or {"top": 10, "left": 10, "bottom": 40, "right": 110, "width": 100, "height": 30},
        "ancestry": ancestry if ancestry is not None else [
            {"tag": tag, "id": None, "classes": [], "sameTagSiblings": 1, "index": 1}
        ],
    }
    data.update(attrs)
    return data


class FakePlanner:
    def __init__(self, plan):
        self.plan = plan
        self.calls: List[tuple] = []

    async def generate(self, transcript, elements):
        self.calls.append((transcript, list(elements)))
        return self.plan


@pytest.fixture(autouse=True)
def no_settle_delay(monkeypatch):
    monkeypatch.setattr(pipeline, "SETTLE_DELAY_SECONDS", 0)
