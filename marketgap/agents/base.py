from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from marketgap.models.events import SSEEvent
from marketgap.models.state import PhaseError, RunState
from marketgap.models.tasks import TaskBoard, TaskStatus
from marketgap.services import logger as log_service
from marketgap.services import streaming
from marketgap.services.event_channel import EventChannel
from marketgap.services.providers import Providers

logger = log_service.get_logger("phases")


@dataclass
class PhaseContext:
    """Everything a phase may touch besides the run state itself."""

    run_id: str
    niche: str
    channel: EventChannel
    providers: Providers
    tasks: TaskBoard
    session_id: str
    memory_enabled: bool = True

    def emit(self, event: SSEEvent) -> None:
        self.channel.publish(event)

    def set_task(self, task_id: str, status: TaskStatus, detail: str = "") -> None:
        block = self.tasks.set(task_id, status, detail)
        self.emit(streaming.task_update(block))

    async def log_to_session(self, role: str, content: Any) -> None:
        """Append to the memory session log; failures only warn."""
        if not self.memory_enabled:
            return
        try:
            await self.providers.memory.store_message(self.session_id, role, content)
        except Exception as e:
            logger.warning("Session log write failed for run %s: %s", self.run_id, e)


class BasePhase:
    """One step of the pipeline.

    `run` reads the state and returns a partial update; it never mutates the
    state. Recoverable problems go into the update's `errors` list. Anything
    that escapes `run` is caught at the orchestrator boundary.
    """

    name: str = "base"
    start_message: str = ""

    async def run(self, state: RunState, ctx: PhaseContext) -> dict[str, Any]:
        raise NotImplementedError

    def summary(self, update: dict[str, Any]) -> str:
        return f"{self.name} phase finished"

    def degrade(self, ctx: PhaseContext, message: str) -> PhaseError:
        logger.warning("[%s] %s (run %s)", self.name, message, ctx.run_id)
        ctx.emit(streaming.phase_warning(self.name, message))
        return PhaseError(phase=self.name, message=message)
