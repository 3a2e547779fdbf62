from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from marketgap.models.state import RunState
from marketgap.services.event_channel import EventChannel


class RunStatus(StrEnum):
    RUNNING = "running"
    COMPLETE = "complete"
    COMPLETE_WITH_WARNINGS = "complete_with_warnings"
    ERROR = "error"

    @property
    def finished(self) -> bool:
        return self is not RunStatus.RUNNING


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(slots=True)
class RunRecord:
    run_id: str
    niche: str
    channel: EventChannel
    state: RunState
    started_at: str = field(default_factory=utc_now)
    status: RunStatus = RunStatus.RUNNING
    report: dict[str, Any] | None = None
    screenshots: list[dict[str, str]] = field(default_factory=list)
    finished_at: str | None = None
    finished_monotonic: float | None = None
    task: asyncio.Task | None = None
    # final stream events, replayed verbatim to late subscribers
    report_event: dict[str, Any] | None = None
    done_event: dict[str, Any] | None = None

    def status_payload(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "niche": self.niche,
            "started_at": self.started_at,
        }
