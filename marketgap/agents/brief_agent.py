from __future__ import annotations

import json
from dataclasses import asdict
from typing import Any

from marketgap.agents.base import BasePhase, PhaseContext
from marketgap.models.state import BriefFeature, OpportunityBrief, PhaseError, RunState
from marketgap.models.tasks import TaskStatus
from marketgap.services import logger as log_service

logger = log_service.get_logger("phases.brief")

PRIORITIES = ("must-have", "nice-to-have")
CONFIDENCE_LEVELS = ("high", "medium", "low")


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, list):
        parts = []
        for item in value:
            if isinstance(item, dict):
                parts.append(": ".join(str(v) for v in item.values() if v))
            else:
                parts.append(str(item))
        return "; ".join(p for p in parts if p)
    return str(value)


def parse_brief(payload: Any) -> OpportunityBrief | None:
    if not isinstance(payload, dict):
        return None
    headline = _text(payload.get("headline"))
    if not headline:
        return None
    features = [
        BriefFeature(
            feature=_text(item.get("feature")),
            why=_text(item.get("why")),
            priority=(
                str(item.get("priority")).lower()
                if str(item.get("priority") or "").lower() in PRIORITIES
                else "nice-to-have"
            ),
        )
        for item in payload.get("mvp_features") or []
        if isinstance(item, dict) and _text(item.get("feature"))
    ]
    confidence = str(payload.get("validation_confidence") or "").lower()
    next_steps = payload.get("next_steps") or []
    return OpportunityBrief(
        headline=headline,
        problem_statement=_text(payload.get("problem_statement")),
        target_user=_text(payload.get("target_user")),
        features=features,
        go_to_market=_text(payload.get("go_to_market_angle") or payload.get("go_to_market")),
        validation_confidence=confidence if confidence in CONFIDENCE_LEVELS else "low",
        one_liner=_text(payload.get("one_liner")),
        suggested_name=_text(payload.get("suggested_name")),
        market_size_estimate=_text(payload.get("market_size_estimate")),
        evidence_summary=_text(payload.get("evidence_summary")),
        competitor_landscape=_text(payload.get("competitor_landscape")),
        next_steps=[_text(step) for step in next_steps] if isinstance(next_steps, list) else [],
    )


def degraded_brief(state: RunState) -> OpportunityBrief:
    return OpportunityBrief(
        headline=f"Market gap identified in {state.niche}",
        problem_statement=state.top_finding.problem if state.top_finding else state.niche,
        target_user=state.niche,
        features=[],
        validation_confidence="low",
    )


class BriefPhase(BasePhase):
    name = "brief"
    start_message = "Phase 4: Generating the opportunity brief…"

    async def run(self, state: RunState, ctx: PhaseContext) -> dict[str, Any]:
        errors: list[PhaseError] = []
        ctx.set_task("generate_opportunity_brief", TaskStatus.RUNNING)

        brief: OpportunityBrief | None = None
        if state.top_finding is None:
            errors.append(self.degrade(ctx, "No top problem available; writing a degraded brief"))
        else:
            payload = await ctx.providers.reasoning.run_skill(
                "brief.generate",
                max_tokens=2500,
                niche=state.niche,
                top_finding=json.dumps(asdict(state.top_finding)),
                gap_analysis=json.dumps(asdict(state.gap_analysis)) if state.gap_analysis else "null",
                competitors=", ".join(c.name for c in state.competitor_results),
                competitor_notes=" | ".join(f"{c.name}: {c.notes}" for c in state.competitor_results),
                findings=json.dumps([asdict(f) for f in state.findings[:5]]),
            )
            brief = parse_brief(payload)
            if brief is None:
                errors.append(self.degrade(ctx, "Brief synthesis failed; writing a degraded brief"))

        if brief is None:
            brief = degraded_brief(state)
            ctx.set_task("generate_opportunity_brief", TaskStatus.ERROR, "degraded brief")
        else:
            ctx.set_task("generate_opportunity_brief", TaskStatus.COMPLETE, brief.headline)

        await ctx.log_to_session("assistant", f'[BRIEF] Opportunity brief: "{brief.headline}"')
        if ctx.memory_enabled:
            try:
                await ctx.providers.memory.flush(ctx.session_id)
            except Exception as e:
                logger.warning("Session flush failed for run %s: %s", ctx.run_id, e)

        return {"brief": brief, "errors": errors}

    def summary(self, update: dict[str, Any]) -> str:
        brief = update.get("brief")
        return f'Brief ready: "{brief.headline}"' if brief else "Brief phase finished"
