"""AI 计划执行管线：发现元素 → 生成计划 → 校验 → 逐步执行"""

import asyncio
import logging
from typing import Callable, List, Optional

from .executor import ActionExecutor
from .locator import Locator
from .models import ActionPlan, ActionStep, CommandOutcome
from .planner import Planner

logger = logging.getLogger(__name__)

# 低于该置信度的计划直接丢弃（等于 0.3 时接受）
MIN_CONFIDENCE = 0.3

# 每步之后固定等待，让页面重新渲染后再解析下一步的 locator
SETTLE_DELAY_SECONDS = 0.2

NO_ELEMENTS_RESULT = "No interactive elements found"

StepObserver = Callable[[ActionStep, bool], None]
OutcomeObserver = Callable[[CommandOutcome], None]


class PlanPipeline:
    """AI 路径：一次语音命令对应一次 run()，计划只在本次执行内使用"""

    def __init__(
        self,
        locator: Locator,
        planner: Planner,
        executor: ActionExecutor,
        on_step: Optional[StepObserver] = None,
        on_outcome: Optional[OutcomeObserver] = None,
    ):
        self.locator = locator
        self.planner = planner
        self.executor = executor
        self.on_step = on_step
        self.on_outcome = on_outcome

    async def run(self, transcript: str) -> CommandOutcome:
        try:
            outcome = await self._run(transcript)
        except Exception as e:
            logger.exception("❌ AI 处理失败")
            outcome = CommandOutcome(transcript, str(e) or "AI processing failed", "error", "error")

        if self.on_outcome:
            self.on_outcome(outcome)
        return outcome

    async def _run(self, transcript: str) -> CommandOutcome:
        # 1. 发现
        elements = await self.locator.discover()
        if not elements:
            logger.info("❌ 页面上没有可交互元素")
            return CommandOutcome(transcript, NO_ELEMENTS_RESULT, "error", "ai")
        logger.debug("元素清单:\n%s", Locator.summarize(elements))

        # 2. 规划
        plan = await self.planner.generate(transcript, elements)

        # 3. 置信度门槛
        if plan.confidence < MIN_CONFIDENCE:
            logger.info("❌ 置信度过低 %.2f: %s", plan.confidence, plan.reasoning)
            result = f"Low confidence ({plan.confidence * 100:.0f}%): {plan.reasoning}"
            return CommandOutcome(transcript, result, "error", "ai", plan=plan)

        # 4. 执行前校验全部 target，有一个缺失就整体放弃
        missing = await self.missing_targets(plan)
        if missing:
            logger.info("❌ 找不到元素: %s", missing)
            result = f"Elements not found: {', '.join(missing)}"
            return CommandOutcome(transcript, result, "error", "ai", plan=plan)

        # 5. 逐步执行
        logger.info("执行计划: %s", plan.reasoning)
        success = await self.execute(plan)
        result = f"AI executed {len(plan.steps)} steps" if success else "Some AI steps failed"
        return CommandOutcome(transcript, result, "success" if success else "error", "ai", plan=plan)

    async def missing_targets(self, plan: ActionPlan) -> List[str]:
        """返回当前页面上解析不到的 target（保持计划顺序）"""
        missing = []
        for step in plan.steps:
            if await self.executor.resolve(step.target) is None:
                missing.append(step.target)
        return missing

    async def execute(self, plan: ActionPlan) -> bool:
        """
        严格按顺序执行每一步。单步失败不会中断后续步骤，
        返回值是所有步骤结果的逻辑与。
        """
        all_success = True
        for index, step in enumerate(plan.steps, start=1):
            logger.info("Step %d/%d: %s %s", index, len(plan.steps), step.kind.value, step.target)
            success = await self.executor.apply_step(step)
            if not success:
                logger.warning("❌ 步骤失败: %s", step.description)
                all_success = False
            if self.on_step:
                self.on_step(step, success)
            await asyncio.sleep(SETTLE_DELAY_SECONDS)
        return all_success
