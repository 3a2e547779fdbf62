from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, TypeVar


@dataclass(slots=True)
class SearchResult:
    url: str
    title: str = ""
    snippet: str = ""


@dataclass(slots=True)
class RawDocument:
    url: str
    title: str = ""
    snippet: str = ""
    content: str = ""


@dataclass(slots=True)
class Finding:
    description: str
    evidence: str = ""
    source_url: str = ""
    intensity: str = "medium"  # high | medium | low
    category: str = "other"  # workflow | cost | discovery | collaboration | other


@dataclass(slots=True)
class TopFinding:
    problem: str
    frequency_score: int = 0
    severity_score: int = 0
    market_size_estimate: str = ""
    gap_keyword: str = ""
    supporting_quotes: list[dict[str, str]] = field(default_factory=list)
    rationale: str = ""
    runner_up: str = ""


@dataclass(slots=True)
class CompetitorCheck:
    name: str
    urls_checked: list[str] = field(default_factory=list)
    detected_gaps: list[str] = field(default_factory=list)
    screenshot: str | None = None
    success: bool = False
    notes: str = ""
    pricing_url: str = ""
    features_url: str = ""
    manual: dict[str, Any] | None = None
    scraped_content: str | None = None

    def to_dict(self, *, include_screenshot: bool = False) -> dict[str, Any]:
        data = asdict(self)
        screenshot = data.pop("screenshot")
        data["has_screenshot"] = bool(screenshot)
        if include_screenshot:
            data["screenshot"] = screenshot
        return data


@dataclass(slots=True)
class GapVerdict:
    confirmed: bool = False
    confidence: str = "low"  # high | medium | low
    summary: str = ""
    competitors_missing: list[str] = field(default_factory=list)
    differentiator: str = ""
    market_entry_angle: str = ""


@dataclass(slots=True)
class BriefFeature:
    feature: str
    why: str = ""
    priority: str = "nice-to-have"  # must-have | nice-to-have


@dataclass(slots=True)
class OpportunityBrief:
    headline: str
    problem_statement: str = ""
    target_user: str = ""
    features: list[BriefFeature] = field(default_factory=list)
    go_to_market: str = ""
    validation_confidence: str = "low"
    one_liner: str = ""
    suggested_name: str = ""
    market_size_estimate: str = ""
    evidence_summary: str = ""
    competitor_landscape: str = ""
    next_steps: list[str] = field(default_factory=list)


@dataclass(slots=True)
class PhaseError:
    phase: str
    message: str


_HasUrl = TypeVar("_HasUrl", SearchResult, RawDocument)


def dedupe_by_url(items: Iterable[_HasUrl]) -> list[_HasUrl]:
    """Keep the first occurrence of each URL, preserving order."""
    seen: set[str] = set()
    unique: list[_HasUrl] = []
    for item in items:
        if not item.url or item.url in seen:
            continue
        seen.add(item.url)
        unique.append(item)
    return unique


_LAST_WRITE_FIELDS = frozenset(
    {
        "session_id",
        "space_id",
        "findings",
        "top_finding",
        "competitor_results",
        "gap_analysis",
        "brief",
    }
)
_URL_UNIQUE_FIELDS = frozenset({"search_results", "raw_documents"})


@dataclass(slots=True)
class RunState:
    """Record threaded through every phase of a run.

    Phases never mutate the state directly; they return a partial update
    that the orchestrator merges with `apply`. `errors` only ever grows,
    URL-keyed collections are deduplicated before replacing the previous
    value and every other field is last-write-wins.
    """

    run_id: str
    niche: str
    session_id: str = ""
    space_id: str | None = None
    search_results: list[SearchResult] = field(default_factory=list)
    raw_documents: list[RawDocument] = field(default_factory=list)
    findings: list[Finding] = field(default_factory=list)
    top_finding: TopFinding | None = None
    competitor_results: list[CompetitorCheck] = field(default_factory=list)
    gap_analysis: GapVerdict | None = None
    brief: OpportunityBrief | None = None
    errors: list[PhaseError] = field(default_factory=list)
    frozen: bool = False

    def apply(self, update: dict[str, Any]) -> None:
        if self.frozen:
            raise RuntimeError(f"Run {self.run_id} has finished; state is read-only")
        # validated up front so a rejected update leaves the state untouched
        for key, value in update.items():
            if key not in _URL_UNIQUE_FIELDS and key not in _LAST_WRITE_FIELDS and key != "errors":
                raise KeyError(f"Unknown run state field: {key}")
            if (key == "errors" or key in _URL_UNIQUE_FIELDS) and not isinstance(value, list):
                raise TypeError(f"Run state field {key} expects a list, got {type(value).__name__}")
        for key, value in update.items():
            if key == "errors":
                self.errors.extend(value)
            elif key in _URL_UNIQUE_FIELDS:
                setattr(self, key, dedupe_by_url(value))
            else:
                setattr(self, key, value)

    def freeze(self) -> None:
        self.frozen = True

    def has_data(self) -> bool:
        return bool(
            self.search_results
            or self.findings
            or self.competitor_results
            or self.top_finding
            or self.brief
        )

    def screenshots(self) -> list[dict[str, str]]:
        return [
            {"name": check.name, "screenshot": check.screenshot}
            for check in self.competitor_results
            if check.screenshot
        ]

    def to_report(self, *, tasks: list[dict[str, Any]] | None = None) -> dict[str, Any]:
        """Build the JSON-ready snapshot persisted at the end of a run."""
        return {
            "run_id": self.run_id,
            "niche": self.niche,
            "session_id": self.session_id,
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "search_results_count": len(self.search_results),
            "documents_count": len(self.raw_documents),
            "search_results": [asdict(r) for r in self.search_results],
            "findings": [asdict(f) for f in self.findings],
            "top_finding": asdict(self.top_finding) if self.top_finding else None,
            "competitor_results": [c.to_dict() for c in self.competitor_results],
            "gap_analysis": asdict(self.gap_analysis) if self.gap_analysis else None,
            "brief": asdict(self.brief) if self.brief else None,
            "tasks": tasks or [],
            "errors": [asdict(e) for e in self.errors],
        }
