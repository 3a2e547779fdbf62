from __future__ import annotations

from typing import Any

from marketgap.agents.base import BasePhase, PhaseContext
from marketgap.config import settings
from marketgap.models.state import PhaseError, RawDocument, RunState
from marketgap.services import streaming
from marketgap.tools.search_provider import build_queries, fetch_documents, run_strategies


class ScoutPhase(BasePhase):
    """Finds community posts about the niche and fetches their content."""

    name = "scout"
    start_message = "Phase 1: Scouting community discussions for pain points…"

    async def run(self, state: RunState, ctx: PhaseContext) -> dict[str, Any]:
        search = ctx.providers.search
        search.ensure_configured()

        queries = build_queries(state.niche)
        outcome = await run_strategies(
            search,
            queries,
            per_query=settings.scout_results_per_query,
            min_results=settings.scout_min_results,
            delay_seconds=settings.provider_delay_seconds,
        )
        ctx.emit(streaming.search_complete(len(outcome.results), outcome.queries_run))

        errors: list[PhaseError] = []
        if not outcome.results:
            errors.append(self.degrade(ctx, "No search results found for this niche"))
            return {"search_results": [], "raw_documents": [], "errors": errors}

        documents, fallbacks = await fetch_documents(
            search,
            outcome.results,
            max_documents=settings.scout_max_documents,
            max_chars=settings.scout_document_chars,
            delay_seconds=settings.provider_delay_seconds,
        )
        ctx.emit(streaming.scrape_complete(len(documents), fallbacks))

        documents = await self._filter_signal(ctx, state.niche, documents)
        await ctx.log_to_session(
            "assistant",
            f'[SCOUT] Collected {len(documents)} posts for niche "{state.niche}"',
        )
        return {
            "search_results": outcome.results,
            "raw_documents": documents,
            "errors": errors,
        }

    async def _filter_signal(
        self,
        ctx: PhaseContext,
        niche: str,
        documents: list[RawDocument],
    ) -> list[RawDocument]:
        """Keep posts the reasoning provider marks as real problem signals.

        The filtered set is only used when enough posts survive it.
        """
        if len(documents) <= settings.scout_filter_min_keep:
            return documents
        posts = "\n".join(f"{doc.url}: {doc.snippet or doc.content[:200]}" for doc in documents)
        parsed = await ctx.providers.reasoning.run_skill(
            "scout.filter", max_tokens=600, niche=niche, posts=posts
        )
        keep = parsed.get("keep_urls") if isinstance(parsed, dict) else None
        if not isinstance(keep, list):
            return documents
        keep_set = {str(url) for url in keep}
        filtered = [doc for doc in documents if doc.url in keep_set]
        return filtered if len(filtered) >= settings.scout_filter_min_keep else documents

    def summary(self, update: dict[str, Any]) -> str:
        return f"Scout complete: {len(update.get('raw_documents', []))} posts collected"
