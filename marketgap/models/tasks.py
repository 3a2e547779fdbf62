from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import Any


class TaskStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(slots=True)
class TaskBlock:
    id: str
    title: str
    phase: str
    status: TaskStatus = TaskStatus.PENDING
    detail: str = ""


DEFAULT_TASKS: tuple[tuple[str, str, str], ...] = (
    ("extract_pain_points", "Extract pain points from community posts", "analyze"),
    ("rank_and_select", "Rank problems and select the strongest gap", "analyze"),
    ("verify_competitor_gaps", "Verify the gap on competitor sites", "validate"),
    ("generate_opportunity_brief", "Write the opportunity brief", "brief"),
)


@dataclass(slots=True)
class TaskBoard:
    """Coarse progress markers tracked for a single run."""

    blocks: list[TaskBlock] = field(default_factory=list)

    @classmethod
    def default(cls) -> "TaskBoard":
        return cls(blocks=[TaskBlock(id=i, title=t, phase=p) for i, t, p in DEFAULT_TASKS])

    def get(self, task_id: str) -> TaskBlock:
        for block in self.blocks:
            if block.id == task_id:
                return block
        raise KeyError(f"Unknown task block: {task_id}")

    def set(self, task_id: str, status: TaskStatus, detail: str = "") -> TaskBlock:
        block = self.get(task_id)
        block.status = status
        if detail:
            block.detail = detail
        return block

    def fail_running(self, phase: str, detail: str) -> list[TaskBlock]:
        failed: list[TaskBlock] = []
        for block in self.blocks:
            if block.phase == phase and block.status in (TaskStatus.PENDING, TaskStatus.RUNNING):
                block.status = TaskStatus.ERROR
                block.detail = detail
                failed.append(block)
        return failed

    def to_list(self) -> list[dict[str, Any]]:
        return [asdict(block) for block in self.blocks]
