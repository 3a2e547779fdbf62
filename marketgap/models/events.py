from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    RUN_START = "run_start"
    SESSION_CREATED = "session_created"
    PHASE_START = "phase_start"
    PHASE_COMPLETE = "phase_complete"
    PHASE_WARNING = "phase_warning"
    SEARCH_COMPLETE = "search_complete"
    SCRAPE_COMPLETE = "scrape_complete"
    TASK_UPDATE = "task_update"
    PAIN_POINTS_EXTRACTED = "pain_points_extracted"
    TOP_PROBLEM_SELECTED = "top_problem_selected"
    BROWSER_ACTION = "browser_action"
    GAP_ANALYSIS_COMPLETE = "gap_analysis_complete"
    REPORT_READY = "report_ready"
    DONE = "done"
    ERROR = "error"


@dataclass
class SSEEvent:
    event: EventType
    data: dict[str, Any] = field(default_factory=dict)
