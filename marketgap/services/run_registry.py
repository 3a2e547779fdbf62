from __future__ import annotations

import copy
import threading
import time
import uuid
from typing import Any

from marketgap.errors import RunNotFoundError
from marketgap.models.run import RunRecord, RunStatus, utc_now
from marketgap.models.state import RunState
from marketgap.services.event_channel import EventChannel
from marketgap.services.logger import get_logger

logger = get_logger("registry")


class RunRegistry:
    """Thread-safe in-memory map of run id to run record.

    Finished runs are evicted once they are older than `ttl_seconds`, and the
    oldest finished runs go first when the registry grows past `max_runs`.
    Running records are never evicted.
    """

    def __init__(self, *, max_runs: int = 200, ttl_seconds: float = 6 * 3600):
        self.max_runs = max(max_runs, 1)
        self.ttl_seconds = ttl_seconds
        self._runs: dict[str, RunRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._runs)

    def create(self, niche: str) -> RunRecord:
        with self._lock:
            self._evict_locked()
            run_id = str(uuid.uuid4())
            while run_id in self._runs:
                run_id = str(uuid.uuid4())
            record = RunRecord(
                run_id=run_id,
                niche=niche,
                channel=EventChannel(run_id),
                state=RunState(run_id=run_id, niche=niche, session_id=run_id),
            )
            self._runs[run_id] = record
            return record

    def get(self, run_id: str) -> RunRecord | None:
        with self._lock:
            return self._runs.get(run_id)

    def require(self, run_id: str) -> RunRecord:
        record = self.get(run_id)
        if record is None:
            raise RunNotFoundError(run_id)
        return record

    def running(self) -> list[RunRecord]:
        with self._lock:
            return [r for r in self._runs.values() if not r.status.finished]

    def set_status(self, run_id: str, status: RunStatus) -> None:
        with self._lock:
            record = self._runs.get(run_id)
            if record is None:
                raise RunNotFoundError(run_id)
            record.status = status
            if status.finished:
                record.finished_at = utc_now()
                record.finished_monotonic = time.monotonic()

    def set_report(
        self,
        run_id: str,
        report: dict[str, Any],
        screenshots: list[dict[str, str]] | None = None,
    ) -> dict[str, Any]:
        with self._lock:
            record = self._runs.get(run_id)
            if record is None:
                raise RunNotFoundError(run_id)
            record.report = copy.deepcopy(report)
            record.screenshots = list(screenshots or [])
            return copy.deepcopy(record.report)

    def get_report(self, run_id: str) -> dict[str, Any] | None:
        with self._lock:
            record = self._runs.get(run_id)
            if record is None:
                raise RunNotFoundError(run_id)
            if record.report is None:
                return None
            return copy.deepcopy(record.report)

    def _evict_locked(self) -> None:
        now = time.monotonic()
        finished = sorted(
            (r for r in self._runs.values() if r.finished_monotonic is not None),
            key=lambda r: r.finished_monotonic or 0.0,
        )
        expired = [r for r in finished if now - (r.finished_monotonic or now) > self.ttl_seconds]
        for record in expired:
            self._runs.pop(record.run_id, None)

        evicted = len(expired)
        overflow = len(self._runs) - self.max_runs + 1
        for record in finished:
            if overflow <= 0:
                break
            if self._runs.pop(record.run_id, None) is not None:
                overflow -= 1
                evicted += 1

        if evicted:
            logger.info("Evicted %d finished runs; %d remain", evicted, len(self._runs))
