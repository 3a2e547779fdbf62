from __future__ import annotations

import asyncio
import json
from dataclasses import asdict
from typing import Any

from marketgap.agents.base import BasePhase, PhaseContext
from marketgap.config import settings
from marketgap.models.state import CompetitorCheck, GapVerdict, PhaseError, RunState
from marketgap.models.tasks import TaskStatus
from marketgap.services import logger as log_service
from marketgap.services import streaming
from marketgap.tools.competitors import (
    DEFAULT_TARGETS,
    CompetitorTarget,
    build_gap_notes,
    detect_gaps,
    parse_competitor_targets,
)
from marketgap.tools.search_provider import fetch_page

logger = log_service.get_logger("phases.validate")

CONFIDENCE_LEVELS = ("high", "medium", "low")
INCONCLUSIVE = GapVerdict(confirmed=False, confidence="low", summary="Analysis inconclusive.")


def parse_verdict(payload: Any) -> GapVerdict | None:
    if not isinstance(payload, dict) or "gap_confirmed" not in payload:
        return None
    confidence = str(payload.get("confidence") or "").lower()
    missing = payload.get("competitors_missing_feature") or []
    return GapVerdict(
        confirmed=bool(payload.get("gap_confirmed")),
        confidence=confidence if confidence in CONFIDENCE_LEVELS else "low",
        summary=str(payload.get("gap_summary") or ""),
        competitors_missing=[str(name) for name in missing] if isinstance(missing, list) else [],
        differentiator=str(payload.get("differentiator") or ""),
        market_entry_angle=str(payload.get("market_entry_angle") or ""),
    )


def checks_for_prompt(checks: list[CompetitorCheck]) -> list[dict[str, Any]]:
    """Competitor results without screenshots and with bounded free text."""
    trimmed: list[dict[str, Any]] = []
    for check in checks:
        data = check.to_dict()
        data["notes"] = (check.notes or "")[:800]
        if check.scraped_content:
            data["scraped_content"] = check.scraped_content[:800]
        else:
            data.pop("scraped_content", None)
        trimmed.append(data)
    return trimmed


class ValidatePhase(BasePhase):
    """Checks competitor sites for the gap and asks for a verdict."""

    name = "validate"
    start_message = "Phase 3: Verifying competitor gaps in the browser…"

    async def run(self, state: RunState, ctx: PhaseContext) -> dict[str, Any]:
        errors: list[PhaseError] = []
        ctx.set_task("verify_competitor_gaps", TaskStatus.RUNNING)
        keyword = state.top_finding.gap_keyword if state.top_finding else ""

        targets = await self._select_targets(state, ctx)
        semaphore = asyncio.Semaphore(max(settings.competitor_check_concurrency, 1))

        async def run_check(target: CompetitorTarget) -> CompetitorCheck:
            async with semaphore:
                return await self._check_competitor(target, keyword, ctx)

        # gather keeps target order regardless of completion order
        checks = list(await asyncio.gather(*(run_check(t) for t in targets)))

        for check in checks:
            if not check.success:
                await self._fallback_fetch(check, keyword, ctx)

        failed = [c.name for c in checks if not c.success and not c.scraped_content]
        if failed:
            errors.append(self.degrade(ctx, f"Competitor checks failed for: {', '.join(failed)}"))

        payload = await ctx.providers.reasoning.run_skill(
            "validate.interpret",
            max_tokens=1000,
            problem=state.top_finding.problem if state.top_finding else "",
            gap_keyword=keyword,
            checks=json.dumps(checks_for_prompt(checks), indent=2),
        )
        verdict = parse_verdict(payload)
        if verdict is None:
            verdict = GapVerdict(**asdict(INCONCLUSIVE))
            errors.append(self.degrade(ctx, "Gap interpretation was inconclusive"))

        ctx.set_task(
            "verify_competitor_gaps",
            TaskStatus.COMPLETE,
            f"gap confirmed: {verdict.confirmed}",
        )
        ctx.emit(streaming.gap_analysis_complete(asdict(verdict)))
        await ctx.log_to_session(
            "assistant",
            f"[VALIDATE] Gap confirmed: {verdict.confirmed}. {verdict.summary[:200]}",
        )
        return {"competitor_results": checks, "gap_analysis": verdict, "errors": errors}

    async def _select_targets(self, state: RunState, ctx: PhaseContext) -> list[CompetitorTarget]:
        limit = max(settings.max_competitors, 1)
        if settings.identify_competitors and state.top_finding is not None:
            payload = await ctx.providers.reasoning.run_skill(
                "validate.identify",
                max_tokens=800,
                niche=state.niche,
                problem=state.top_finding.problem,
                gap_keyword=state.top_finding.gap_keyword,
                max_competitors=limit,
            )
            targets = parse_competitor_targets(payload, limit=limit)
            if targets:
                logger.info("Identified competitors: %s", ", ".join(t.name for t in targets))
                return targets
            logger.info("Falling back to default competitor targets")
        return list(DEFAULT_TARGETS[:limit])

    async def _check_competitor(
        self,
        target: CompetitorTarget,
        keyword: str,
        ctx: PhaseContext,
    ) -> CompetitorCheck:
        def on_action(action: str, message: str, extra: dict[str, Any]) -> None:
            ctx.emit(streaming.browser_action(target.name, action, message=message, **extra))

        try:
            manual = await ctx.providers.manuals.get_manual(
                f"{target.name.lower()} pricing page navigation"
            )
        except Exception as e:
            logger.warning("Manual lookup failed for %s: %s", target.name, e)
            manual = None

        try:
            return await asyncio.wait_for(
                ctx.providers.browser.execute(target, manual, keyword=keyword, on_action=on_action),
                timeout=settings.competitor_check_timeout_seconds,
            )
        except asyncio.TimeoutError:
            message = f"Verification timed out after {settings.competitor_check_timeout_seconds:g}s"
        except Exception as e:
            message = f"Could not complete verification: {e}"
        logger.warning("Competitor check failed for %s: %s", target.name, message)
        on_action("error", message, {})
        return CompetitorCheck(
            name=target.name,
            pricing_url=target.pricing_url,
            features_url=target.features_url,
            success=False,
            notes=message,
        )

    async def _fallback_fetch(self, check: CompetitorCheck, keyword: str, ctx: PhaseContext) -> None:
        ctx.emit(
            streaming.browser_action(
                check.name,
                "fallback",
                message=f"Falling back to a page fetch for {check.name}",
            )
        )
        content = await fetch_page(
            ctx.providers.search,
            check.pricing_url,
            max_chars=settings.competitor_page_chars,
            delay_seconds=settings.provider_delay_seconds,
        )
        if not content:
            return
        check.scraped_content = content
        check.urls_checked.append(check.pricing_url)
        check.detected_gaps = detect_gaps(content, keyword)
        check.notes = f"{build_gap_notes(check.detected_gaps, keyword)} (from page fetch)"

    def summary(self, update: dict[str, Any]) -> str:
        return f"Validation complete: {len(update.get('competitor_results', []))} competitors checked"
