from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Callable

from marketgap.agents.analyzer_agent import AnalyzePhase
from marketgap.agents.base import BasePhase, PhaseContext
from marketgap.agents.brief_agent import BriefPhase
from marketgap.agents.scout_agent import ScoutPhase
from marketgap.agents.validator_agent import ValidatePhase
from marketgap.config import settings
from marketgap.errors import InvalidNicheError, RunNotFoundError
from marketgap.models.run import RunRecord, RunStatus
from marketgap.models.state import PhaseError, RunState
from marketgap.models.tasks import TaskBoard
from marketgap.services import logger as log_service
from marketgap.services import streaming
from marketgap.services.providers import Providers, build_providers
from marketgap.services.run_registry import RunRegistry

logger = log_service.get_logger("orchestrator")

MIN_NICHE_LENGTH = 3


def validate_niche(niche: Any) -> str:
    cleaned = niche.strip() if isinstance(niche, str) else ""
    if len(cleaned) < MIN_NICHE_LENGTH:
        raise InvalidNicheError(
            f"Please provide a niche (min {MIN_NICHE_LENGTH} characters)."
        )
    return cleaned


def default_phases() -> list[BasePhase]:
    return [ScoutPhase(), AnalyzePhase(), ValidatePhase(), BriefPhase()]


class PipelineOrchestrator:
    """Runs the scout, analyze, validate and brief phases for each run.

    Every run executes as its own asyncio task. The progress stream of a run
    always ends with exactly one `done` event, whatever happens inside it.
    """

    def __init__(
        self,
        registry: RunRegistry,
        providers_factory: Callable[[], Providers] = build_providers,
        phases: list[BasePhase] | None = None,
        run_timeout_seconds: float | None = None,
    ):
        self.registry = registry
        self.providers_factory = providers_factory
        self.phases = phases if phases is not None else default_phases()
        self.run_timeout_seconds = run_timeout_seconds or settings.run_timeout_seconds

    # --- Public API ---

    def start_run(self, niche: str) -> str:
        """Register a run and schedule it; returns the run id immediately."""
        cleaned = validate_niche(niche)
        record = self.registry.create(cleaned)
        record.task = asyncio.create_task(self._execute(record), name=f"run-{record.run_id}")
        log_service.log_event("run_started", "Run scheduled", run_id=record.run_id, niche=cleaned)
        return record.run_id

    def get_run(self, run_id: str) -> RunRecord | None:
        return self.registry.get(run_id)

    def get_status(self, run_id: str) -> dict[str, Any]:
        return self.registry.require(run_id).status_payload()

    def get_report(self, run_id: str) -> dict[str, Any] | None:
        return self.registry.get_report(run_id)

    async def wait(self, run_id: str) -> RunStatus:
        """Wait for a run's task to finish and return its final status."""
        record = self.registry.get(run_id)
        if record is None:
            raise RunNotFoundError(run_id)
        if record.task is not None:
            await asyncio.shield(record.task)
        return record.status

    async def shutdown(self) -> None:
        """Cancel runs still in flight and wait for their cleanup."""
        pending = [r.task for r in self.registry.running() if r.task is not None and not r.task.done()]
        if not pending:
            return
        logger.info("Cancelling %d running run(s)", len(pending))
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    # --- Run execution ---

    async def _execute(self, record: RunRecord) -> None:
        started = time.monotonic()
        state = record.state
        channel = record.channel
        tasks = TaskBoard.default()
        providers: Providers | None = None
        ctx: PhaseContext | None = None

        def duration_ms() -> int:
            return int((time.monotonic() - started) * 1000)

        channel.publish(streaming.run_start(record.niche))
        try:
            providers = self.providers_factory()
            providers.reasoning.ensure_configured()
            ctx = await self._open_session(record, providers, tasks)

            await asyncio.wait_for(self._run_phases(state, ctx), timeout=self.run_timeout_seconds)

            report = self._persist(record, tasks)
            await ctx.log_to_session(
                "assistant", f"[DISK:market_gap_report] {json.dumps(report, default=str)}"
            )
            record.report_event = channel.publish(
                streaming.report_ready(report, list(record.screenshots))
            )

            status = RunStatus.COMPLETE_WITH_WARNINGS if state.errors else RunStatus.COMPLETE
            self.registry.set_status(record.run_id, status)
            log_service.log_event(
                "run_finished",
                "Run finished",
                run_id=record.run_id,
                status=status.value,
                warnings=len(state.errors),
                duration_ms=duration_ms(),
            )
            record.done_event = channel.publish(
                streaming.done(status.value, state.session_id, len(state.errors), duration_ms())
            )
        except asyncio.CancelledError:
            self._fail(record, tasks, "Run was cancelled during shutdown", duration_ms())
            raise
        except Exception as e:
            if isinstance(e, asyncio.TimeoutError):
                message = f"Run exceeded {self.run_timeout_seconds:g}s and was stopped"
            else:
                message = str(e) or type(e).__name__
            logger.exception("Run %s failed: %s", record.run_id, message)
            self._fail(record, tasks, message, duration_ms())
        finally:
            state.freeze()
            if providers is not None:
                await providers.aclose()

    def _fail(self, record: RunRecord, tasks: TaskBoard, message: str, duration_ms: int) -> None:
        """Run-fatal ending: `error`, partial report when there is data, then `done`."""
        state = record.state
        record.channel.publish(streaming.error(message))
        if state.has_data():
            try:
                self._persist(record, tasks)
            except Exception:
                logger.exception("Could not persist partial report for run %s", record.run_id)
        self.registry.set_status(record.run_id, RunStatus.ERROR)
        record.done_event = record.channel.publish(
            streaming.done(RunStatus.ERROR.value, state.session_id, len(state.errors), duration_ms)
        )

    async def _open_session(
        self,
        record: RunRecord,
        providers: Providers,
        tasks: TaskBoard,
    ) -> PhaseContext:
        session_id = record.run_id
        space_id: str | None = None
        memory_enabled = True
        try:
            session_id = await providers.memory.create_session(record.niche)
        except Exception as e:
            logger.warning("Memory session unavailable for run %s: %s", record.run_id, e)
            memory_enabled = False

        if memory_enabled:
            try:
                space_id = await providers.memory.create_space(session_id)
            except Exception as e:
                logger.warning("Learning space setup failed for run %s: %s", record.run_id, e)

        record.state.apply({"session_id": session_id, "space_id": space_id})
        record.channel.publish(streaming.session_created(session_id, space_id, tasks.to_list()))
        return PhaseContext(
            run_id=record.run_id,
            niche=record.niche,
            channel=record.channel,
            providers=providers,
            tasks=tasks,
            session_id=session_id,
            memory_enabled=memory_enabled,
        )

    async def _run_phases(self, state: RunState, ctx: PhaseContext) -> None:
        for phase in self.phases:
            ctx.emit(streaming.phase_start(phase.name, phase.start_message))
            log_service.log_phase(ctx.run_id, phase.name, "started")
            try:
                update = await phase.run(state, ctx)
                state.apply(update)
            except Exception as e:
                message = str(e) or type(e).__name__
                logger.exception("Phase %s failed for run %s", phase.name, ctx.run_id)
                update = {"errors": [PhaseError(phase=phase.name, message=message)]}
                for block in ctx.tasks.fail_running(phase.name, message):
                    ctx.emit(streaming.task_update(block))
                ctx.emit(streaming.phase_warning(phase.name, f"{phase.name} degraded: {message}"))
                state.apply(update)

            log_service.log_phase(
                ctx.run_id,
                phase.name,
                "completed",
                {"errors": len(state.errors)},
            )
            ctx.emit(streaming.phase_complete(phase.name, phase.summary(update)))

    def _persist(self, record: RunRecord, tasks: TaskBoard) -> dict[str, Any]:
        report = record.state.to_report(tasks=tasks.to_list())
        return self.registry.set_report(record.run_id, report, record.state.screenshots())
