from __future__ import annotations

import json
from dataclasses import asdict
from typing import Any

from marketgap.agents.base import BasePhase, PhaseContext
from marketgap.models.state import Finding, PhaseError, RawDocument, RunState, TopFinding
from marketgap.models.tasks import TaskStatus
from marketgap.services import streaming

INTENSITIES = ("high", "medium", "low")
CATEGORIES = ("workflow", "cost", "discovery", "collaboration", "other")


def _choice(value: Any, allowed: tuple[str, ...], default: str) -> str:
    text = str(value or "").strip().lower()
    return text if text in allowed else default


def _score(value: Any) -> int:
    try:
        return max(0, min(10, int(float(value))))
    except (TypeError, ValueError):
        return 0


def parse_findings(payload: Any) -> list[Finding]:
    """Accept {"pain_points": [...]} or a bare list of pain point objects."""
    if isinstance(payload, dict):
        payload = payload.get("pain_points")
    if not isinstance(payload, list):
        return []
    findings: list[Finding] = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        description = str(item.get("problem") or item.get("description") or "").strip()
        if not description:
            continue
        findings.append(
            Finding(
                description=description,
                evidence=str(item.get("verbatim_quote") or item.get("evidence") or "").strip(),
                source_url=str(item.get("source_url") or "").strip(),
                intensity=_choice(item.get("intensity"), INTENSITIES, "medium"),
                category=_choice(item.get("category"), CATEGORIES, "other"),
            )
        )
    return findings


def parse_top_finding(payload: Any) -> TopFinding | None:
    if not isinstance(payload, dict):
        return None
    problem = str(payload.get("top_problem") or "").strip()
    if not problem:
        return None
    quotes = [
        {"text": str(q.get("text") or ""), "source": str(q.get("source") or "")}
        for q in payload.get("supporting_quotes") or []
        if isinstance(q, dict)
    ]
    return TopFinding(
        problem=problem,
        frequency_score=_score(payload.get("frequency_score")),
        severity_score=_score(payload.get("severity_score")),
        market_size_estimate=str(payload.get("market_size_estimate") or ""),
        gap_keyword=str(payload.get("gap_keyword") or "").strip(),
        supporting_quotes=quotes,
        rationale=str(payload.get("why_this_wins") or ""),
        runner_up=str(payload.get("runner_up") or ""),
    )


def _documents_text(documents: list[RawDocument]) -> str:
    return "\n\n".join(
        f"--- POST {idx} ({doc.url}) ---\n{doc.content or doc.snippet}"
        for idx, doc in enumerate(documents, start=1)
    )


class AnalyzePhase(BasePhase):
    """Extracts pain points from the collected posts and picks the strongest one."""

    name = "analyze"
    start_message = "Phase 2: Analysing pain points and identifying the top problem…"

    async def run(self, state: RunState, ctx: PhaseContext) -> dict[str, Any]:
        errors: list[PhaseError] = []
        reasoning = ctx.providers.reasoning

        ctx.set_task("extract_pain_points", TaskStatus.RUNNING)
        findings: list[Finding] = []
        if state.raw_documents:
            payload = await reasoning.run_skill(
                "analyze.extract",
                max_tokens=3000,
                niche=state.niche,
                documents=_documents_text(state.raw_documents),
            )
            findings = parse_findings(payload)

        if not findings:
            ctx.set_task("extract_pain_points", TaskStatus.ERROR, "no findings")
            ctx.set_task("rank_and_select", TaskStatus.ERROR, "nothing to rank")
            errors.append(self.degrade(ctx, "No pain points could be extracted"))
            return {"findings": [], "top_finding": None, "errors": errors}

        ctx.set_task("extract_pain_points", TaskStatus.COMPLETE, f"{len(findings)} pain points")
        ctx.emit(streaming.pain_points_extracted(len(findings), [asdict(f) for f in findings[:3]]))
        await ctx.log_to_session("assistant", f"[ANALYZE] Extracted {len(findings)} pain points.")

        ctx.set_task("rank_and_select", TaskStatus.RUNNING)
        payload = await reasoning.run_skill(
            "analyze.rank",
            max_tokens=1500,
            niche=state.niche,
            findings=json.dumps([asdict(f) for f in findings], indent=2),
        )
        top_finding = parse_top_finding(payload)
        if top_finding is None:
            ctx.set_task("rank_and_select", TaskStatus.ERROR, "ranking failed")
            errors.append(self.degrade(ctx, "Ranking returned no top problem"))
        else:
            ctx.set_task("rank_and_select", TaskStatus.COMPLETE, top_finding.gap_keyword)
            ctx.emit(streaming.top_problem_selected(asdict(top_finding)))
            await ctx.log_to_session(
                "assistant",
                f'[ANALYZE] Top problem: "{top_finding.problem}". '
                f'Gap keyword: "{top_finding.gap_keyword}"',
            )

        return {"findings": findings, "top_finding": top_finding, "errors": errors}

    def summary(self, update: dict[str, Any]) -> str:
        if update.get("top_finding") is not None:
            return "Analysis complete: top problem identified"
        return f"Analysis complete: {len(update.get('findings', []))} pain points"
