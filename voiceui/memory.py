"""记忆模块：保存本次进程内的命令结果，用于反馈和审计"""

from collections import deque
from typing import Deque, List, Optional

from .models import ActionPlan, CommandOutcome


class CommandHistory:
    """命令历史：结果观察者的默认实现，只在内存中保留最近的记录"""

    def __init__(self, maxlen: int = 50):
        self.history: Deque[CommandOutcome] = deque(maxlen=maxlen)
        self.command_counter = 0

    def __call__(self, outcome: CommandOutcome) -> None:
        self.record(outcome)

    def record(self, outcome: CommandOutcome) -> None:
        """记录一次命令结果"""
        self.command_counter += 1
        self.history.append(outcome)

    def recent(self, last_n: int = 5) -> List[CommandOutcome]:
        return list(self.history)[-last_n:]

    @property
    def last_plan(self) -> Optional[ActionPlan]:
        """最近一次 AI 路径产生的计划"""
        for outcome in reversed(self.history):
            if outcome.plan is not None:
                return outcome.plan
        return None

    def format_history(self, last_n: int = 5) -> str:
        """格式化最近的记录"""
        if not self.history:
            return "(无历史)"

        lines = []
        for outcome in self.recent(last_n):
            mark = "✓" if outcome.success else "❌"
            lines.append(f"{mark} [{outcome.processing_type}] \"{outcome.command}\" → {outcome.result}")
        return "\n".join(lines)
