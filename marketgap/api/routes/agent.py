from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncGenerator

from fastapi import APIRouter, Depends, HTTPException
from sse_starlette.sse import EventSourceResponse

from marketgap.agents.orchestrator import PipelineOrchestrator
from marketgap.api.deps import get_orchestrator
from marketgap.config import settings
from marketgap.errors import InvalidNicheError, RunNotFoundError
from marketgap.models.events import EventType
from marketgap.models.run import RunRecord
from marketgap.models.schemas import RunStatusResponse, StartRunRequest, StartRunResponse
from marketgap.services import logger as log_service

router = APIRouter(prefix="/api/agent", tags=["agent"])


def _sse(payload: dict[str, Any]) -> dict[str, str]:
    return {"event": payload["type"], "data": json.dumps(payload, default=str)}


def _replay_finished(record: RunRecord) -> list[dict[str, Any]]:
    """Events sent to a subscriber that connects after the run has ended."""
    events = [e for e in (record.report_event, record.done_event) if e is not None]
    if record.done_event is None:
        # run ended without publishing its own `done`
        events.append(
            {
                "type": EventType.DONE.value,
                "run_id": record.run_id,
                "status": record.status.value,
                "session_id": record.state.session_id,
                "warnings": len(record.state.errors),
            }
        )
    return events


async def stream_events(record: RunRecord) -> AsyncGenerator[dict[str, str], None]:
    """Forward a run's events until `done`; finished runs get a short replay."""
    if record.status.finished or record.channel.closed:
        for payload in _replay_finished(record):
            yield _sse(payload)
        return

    queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
    handler = record.channel.subscribe(queue.put_nowait)
    try:
        while True:
            payload = await queue.get()
            yield _sse(payload)
            if payload["type"] == EventType.DONE.value:
                break
    finally:
        record.channel.unsubscribe(handler)


@router.post("/start", status_code=202, response_model=StartRunResponse)
async def start_run(
    request: StartRunRequest,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    """Start a run. Progress is streamed from /stream/{run_id}."""
    try:
        run_id = orchestrator.start_run(request.niche)
    except InvalidNicheError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return StartRunResponse(run_id=run_id, niche=request.niche.strip())


@router.get("/stream/{run_id}")
async def stream_run(
    run_id: str,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    """SSE endpoint that streams run progress events."""
    record = orchestrator.get_run(run_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Run not found")
    log_service.log_event("stream_opened", "Client subscribed", run_id=run_id)
    return EventSourceResponse(stream_events(record), ping=settings.sse_heartbeat_seconds)


@router.get("/status/{run_id}", response_model=RunStatusResponse)
async def run_status(
    run_id: str,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    try:
        return RunStatusResponse(**orchestrator.get_status(run_id))
    except RunNotFoundError:
        raise HTTPException(status_code=404, detail="Run not found")


@router.get("/report/{run_id}")
async def run_report(
    run_id: str,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    try:
        report = orchestrator.get_report(run_id)
    except RunNotFoundError:
        raise HTTPException(status_code=404, detail="Run not found")
    if report is None:
        raise HTTPException(status_code=404, detail="Report not yet available")
    return report
