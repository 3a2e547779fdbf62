from __future__ import annotations

from typing import Any

from marketgap.models.events import EventType, SSEEvent
from marketgap.models.tasks import TaskBlock


def run_start(niche: str) -> SSEEvent:
    return SSEEvent(
        event=EventType.RUN_START,
        data={"niche": niche, "message": f'Starting market gap research for "{niche}"'},
    )


def session_created(session_id: str, space_id: str | None, tasks: list[dict[str, Any]]) -> SSEEvent:
    return SSEEvent(
        event=EventType.SESSION_CREATED,
        data={"session_id": session_id, "space_id": space_id, "tasks": tasks},
    )


def phase_start(phase: str, message: str) -> SSEEvent:
    return SSEEvent(event=EventType.PHASE_START, data={"phase": phase, "message": message})


def phase_complete(phase: str, message: str = "", **kwargs: Any) -> SSEEvent:
    return SSEEvent(
        event=EventType.PHASE_COMPLETE,
        data={"phase": phase, "message": message, **kwargs},
    )


def phase_warning(phase: str, message: str) -> SSEEvent:
    return SSEEvent(event=EventType.PHASE_WARNING, data={"phase": phase, "message": message})


def search_complete(count: int, queries: list[str]) -> SSEEvent:
    return SSEEvent(
        event=EventType.SEARCH_COMPLETE,
        data={
            "count": count,
            "queries": queries,
            "message": f"Found {count} posts across {len(queries)} queries",
        },
    )


def scrape_complete(count: int, fallback_count: int = 0) -> SSEEvent:
    return SSEEvent(
        event=EventType.SCRAPE_COMPLETE,
        data={
            "count": count,
            "fallback_count": fallback_count,
            "message": f"Collected content for {count} posts",
        },
    )


def task_update(block: TaskBlock) -> SSEEvent:
    return SSEEvent(
        event=EventType.TASK_UPDATE,
        data={
            "task_id": block.id,
            "title": block.title,
            "status": block.status.value,
            "detail": block.detail,
        },
    )


def pain_points_extracted(count: int, findings: list[dict[str, Any]]) -> SSEEvent:
    return SSEEvent(
        event=EventType.PAIN_POINTS_EXTRACTED,
        data={"count": count, "pain_points": findings},
    )


def top_problem_selected(top_finding: dict[str, Any]) -> SSEEvent:
    return SSEEvent(event=EventType.TOP_PROBLEM_SELECTED, data={"top_problem": top_finding})


def browser_action(competitor: str, action: str, **kwargs: Any) -> SSEEvent:
    return SSEEvent(
        event=EventType.BROWSER_ACTION,
        data={"competitor": competitor, "action": action, **kwargs},
    )


def gap_analysis_complete(gap_analysis: dict[str, Any]) -> SSEEvent:
    return SSEEvent(event=EventType.GAP_ANALYSIS_COMPLETE, data={"gap_analysis": gap_analysis})


def report_ready(report: dict[str, Any], screenshots: list[dict[str, str]]) -> SSEEvent:
    return SSEEvent(
        event=EventType.REPORT_READY,
        data={"report": report, "screenshots": screenshots},
    )


def done(status: str, session_id: str, warnings: int, duration_ms: int) -> SSEEvent:
    return SSEEvent(
        event=EventType.DONE,
        data={
            "status": status,
            "session_id": session_id,
            "warnings": warnings,
            "duration_ms": duration_ms,
        },
    )


def error(message: str, **kwargs: Any) -> SSEEvent:
    return SSEEvent(event=EventType.ERROR, data={"message": message, **kwargs})
