# tests/test_planner.py
"""
Tests for the planner client and plan parsing.
"""

import asyncio
import json
from types import SimpleNamespace

import httpx
import openai
import pytest

from voiceui.models import ActionKind, SurfaceElement
from voiceui.planner import API_ERROR_REASONING, RATE_LIMIT_REASONING, Planner, parse_plan

INVENTORY = [SurfaceElement(tag="select", locator="#color", voice="color picker")]


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.requests = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_client(content=None, error=None):
    completions = FakeCompletions(content, error)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


def plan_json(**overrides):
    data = {
        "steps": [{"type": "select", "target": "#color", "value": "blue", "description": "Pick blue"}],
        "confidence": 0.8,
        "reasoning": "Color selector available",
    }
    data.update(overrides)
    return json.dumps(data)


class TestParsePlan:
    """Tests for parse_plan."""

    def test_valid_plan(self):
        plan = parse_plan(plan_json())
        assert plan.confidence == 0.8
        assert plan.steps[0].kind == ActionKind.SELECT
        assert plan.steps[0].value == "blue"

    def test_numeric_value_stringified(self):
        steps = [{"type": "wait", "target": "#color", "value": 500, "description": "pause"}]
        assert parse_plan(plan_json(steps=steps)).steps[0].value == "500"

    @pytest.mark.parametrize("payload", [
        "not json",
        plan_json(confidence=1.5),
        plan_json(steps=[{"type": "toggle", "target": "#x", "description": "no"}]),
        plan_json(steps=[{"type": "click", "target": "#x"}]),
        "[]",
    ])
    def test_invalid_plans_raise(self, payload):
        with pytest.raises(ValueError):
            parse_plan(payload)


class TestPlanner:
    """Tests for Planner.generate."""

    def test_generates_plan(self):
        client, completions = fake_client(plan_json())
        plan = asyncio.run(Planner(client, "test-model").generate("select blue color", INVENTORY))

        assert plan.confidence == 0.8
        request = completions.requests[0]
        assert request["model"] == "test-model"
        assert request["response_format"] == {"type": "json_object"}
        assert '"path": "#color"' in request["messages"][0]["content"]
        assert "select blue color" in request["messages"][1]["content"]

    def test_api_error_gives_zero_confidence(self):
        error = openai.APIConnectionError(request=httpx.Request("POST", "https://api.test/v1"))
        client, _ = fake_client(error=error)
        plan = asyncio.run(Planner(client, "m").generate("go", INVENTORY))

        assert plan.confidence == 0
        assert plan.steps == []
        assert plan.reasoning == API_ERROR_REASONING

    def test_rate_limit_error_reasoning(self):
        request = httpx.Request("POST", "https://api.test/v1")
        error = openai.RateLimitError("slow down", response=httpx.Response(429, request=request), body=None)
        client, _ = fake_client(error=error)
        plan = asyncio.run(Planner(client, "m").generate("go", INVENTORY))

        assert plan.confidence == 0
        assert plan.reasoning == RATE_LIMIT_REASONING

    def test_malformed_output_gives_zero_confidence(self):
        client, _ = fake_client("Sure! Here is your plan")
        plan = asyncio.run(Planner(client, "m").generate("go", INVENTORY))
        assert plan.confidence == 0
        assert plan.reasoning == API_ERROR_REASONING

    def test_invalid_request_not_sent(self):
        client, completions = fake_client(plan_json())
        plan = asyncio.run(Planner(client, "m").generate("x" * 1001, INVENTORY))

        assert plan.confidence == 0
        assert plan.reasoning.startswith("Invalid plan request")
        assert completions.requests == []
