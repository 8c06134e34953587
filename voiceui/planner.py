"""规划模块：调用 LLM，把语音命令和页面元素清单转成多步动作计划"""

import json
import logging
from typing import List, Literal, Optional

import openai
import pydantic
from openai import AsyncOpenAI
from pydantic import BaseModel, Field, field_validator

from .errors import ValidationError
from .models import ActionKind, ActionPlan, ActionStep, SurfaceElement
from .validation import validate_plan_request

logger = logging.getLogger(__name__)

API_ERROR_REASONING = "Failed to generate action plan due to API error"
RATE_LIMIT_REASONING = "API rate limit exceeded. Please try again later."

SYSTEM_PROMPT = """You are a voice UI assistant that helps users interact with web pages through natural language commands.

Your job is to analyze user queries and generate step-by-step action plans to accomplish their goals using the available DOM elements.

CRITICAL RULES:
1. ONLY use elements that actually exist in the DOM context provided below
2. Do NOT create fictional selectors or data-voice attributes
3. Use the exact 'path' selector provided for each element as the step target
4. For dropdowns/selects, use the element's path and provide the desired option value
5. If an exact match isn't available, find the closest existing element

Available DOM elements:
{dom_context}

Available action types:
- click: Click on an element
- type: Type text into an input field
- select: Select an option from a dropdown (use value for the option)
- focus: Focus on an element
- scroll: Scroll to an element
- wait: Wait for a specified time (value in milliseconds)
- custom: Custom action with description

If you can't find an exact match, explain why in your reasoning and set confidence low.

Examples:
- "Select blue color" -> find the color selector element, select action with value "blue"
- "Play music" -> find the music/play element, click action
- "Send message Hi Mom" -> focus the message input, type "Hi Mom", click the send button

You must output only a JSON object with this exact shape:
{{
  "steps": [
    {{"type": "click|type|select|focus|scroll|wait|custom", "target": "<path>", "value": "<optional>", "description": "<what this step does>"}}
  ],
  "confidence": 0.0,
  "reasoning": "<why this plan was chosen>"
}}
confidence is a number between 0 and 1."""


class StepPayload(BaseModel):
    type: Literal["click", "type", "select", "focus", "scroll", "wait", "custom"]
    target: str
    value: Optional[str] = None
    description: str

    @field_validator("value", mode="before")
    @classmethod
    def _stringify(cls, value):
        # 模型有时把等待毫秒数输出成数字
        if value is None or isinstance(value, str):
            return value
        return str(value)


class PlanPayload(BaseModel):
    steps: List[StepPayload] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""

    def to_plan(self) -> ActionPlan:
        return ActionPlan(
            steps=[
                ActionStep(
                    kind=ActionKind(s.type),
                    target=s.target,
                    value=s.value,
                    description=s.description,
                )
                for s in self.steps
            ],
            confidence=self.confidence,
            reasoning=self.reasoning,
        )


def parse_plan(output_str: str) -> ActionPlan:
    """解析模型输出的 JSON；格式不对抛 ValueError / pydantic.ValidationError"""
    data = json.loads(output_str or "")
    return PlanPayload.model_validate(data).to_plan()


class Planner:
    """规划模块：外部计划生成服务的客户端"""

    def __init__(self, client: AsyncOpenAI, model: str):
        self.client = client
        self.model = model

    async def generate(self, transcript: str, elements: List[SurfaceElement]) -> ActionPlan:
        """
        生成动作计划。任何调用或解析失败都返回零置信度计划，不向外抛出。
        """
        try:
            request = validate_plan_request(transcript, [el.to_dict() for el in elements])
        except ValidationError as e:
            logger.warning("❌ 计划请求不合法: %s", e.details)
            return ActionPlan.failed(f"Invalid plan request: {e.details[0]['msg'] if e.details else e}")

        system_prompt = SYSTEM_PROMPT.format(dom_context=json.dumps(request.dom_context, indent=2))
        user_prompt = (
            f'User query: "{request.user_query}"\n\n'
            "Generate an action plan to accomplish this request using the available DOM elements."
        )

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                temperature=0,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
            )
        except openai.RateLimitError as e:
            logger.error("❌ 规划服务限流: %s", e)
            return ActionPlan.failed(RATE_LIMIT_REASONING)
        except openai.OpenAIError as e:
            logger.error("❌ 规划服务调用失败: %s", e)
            return ActionPlan.failed(API_ERROR_REASONING)

        output_str = response.choices[0].message.content
        try:
            plan = parse_plan(output_str)
        except (ValueError, pydantic.ValidationError) as e:
            logger.error("JSON 解析失败: %s, 原始输出: %s", e, output_str)
            return ActionPlan.failed(API_ERROR_REASONING)

        logger.debug("计划: %d 步, 置信度 %.2f, 理由: %s", len(plan.steps), plan.confidence, plan.reasoning)
        return plan
