from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Protocol

from marketgap.models.state import RawDocument, SearchResult, dedupe_by_url
from marketgap.services.logger import get_logger
from marketgap.tools.web_utils import truncate

logger = get_logger("search")

QUERY_TEMPLATES: tuple[str, ...] = (
    'site:reddit.com "{niche}" "I wish there was" OR "why isn\'t there a tool"',
    'site:reddit.com "{niche}" "so frustrating" OR "no app for" OR "manually"',
    'site:reddit.com "{niche}" "wish someone would build" OR "I hate having to"',
)


class SearchBackend(Protocol):
    async def search(self, query: str, max_results: int = 8) -> list[SearchResult]: ...
    async def fetch_content(self, url: str) -> str: ...


@dataclass
class StrategyOutcome:
    results: list[SearchResult] = field(default_factory=list)
    queries_run: list[str] = field(default_factory=list)
    failed_queries: list[str] = field(default_factory=list)


def build_queries(niche: str, templates: tuple[str, ...] = QUERY_TEMPLATES) -> list[str]:
    return [template.format(niche=niche) for template in templates]


async def run_strategies(
    backend: SearchBackend,
    queries: list[str],
    *,
    per_query: int = 8,
    min_results: int = 20,
    delay_seconds: float = 0.0,
) -> StrategyOutcome:
    """Run queries in priority order until `min_results` unique URLs are collected.

    A failing query is logged and skipped; it never aborts the remaining queries.
    """
    outcome = StrategyOutcome()
    collected: list[SearchResult] = []
    for idx, query in enumerate(queries):
        if idx > 0 and delay_seconds > 0:
            await asyncio.sleep(delay_seconds)
        outcome.queries_run.append(query)
        try:
            collected.extend(await backend.search(query, per_query))
        except Exception as e:
            logger.warning("Query failed, continuing: %s (%s)", query, e)
            outcome.failed_queries.append(query)
            continue
        collected = dedupe_by_url(collected)
        if len(collected) >= min_results:
            break
    outcome.results = dedupe_by_url(collected)
    logger.info("Collected %d unique URLs from %d queries", len(outcome.results), len(outcome.queries_run))
    return outcome


async def fetch_documents(
    backend: SearchBackend,
    results: list[SearchResult],
    *,
    max_documents: int = 15,
    max_chars: int = 2000,
    delay_seconds: float = 0.0,
) -> tuple[list[RawDocument], int]:
    """Fetch content for up to `max_documents` results, one at a time.

    A failed fetch keeps the result with its snippet standing in for the
    content; results with neither are dropped. Returns the documents and the
    number of snippet fallbacks.
    """
    documents: list[RawDocument] = []
    fallbacks = 0
    for result in results[:max_documents]:
        # always follows a search or fetch on the same backend
        if delay_seconds > 0:
            await asyncio.sleep(delay_seconds)
        try:
            content = await backend.fetch_content(result.url)
        except Exception as e:
            logger.warning("Failed to fetch %s: %s", result.url, e)
            content = ""
        if not content.strip():
            if not result.snippet:
                continue
            content = result.snippet
            fallbacks += 1
        documents.append(
            RawDocument(
                url=result.url,
                title=result.title,
                snippet=result.snippet,
                content=truncate(content, max_chars),
            )
        )
    return documents, fallbacks


async def fetch_page(
    backend: SearchBackend,
    url: str,
    *,
    max_chars: int = 3000,
    delay_seconds: float = 0.0,
) -> str | None:
    """Fetch one page for heuristic checks; None when the fetch fails."""
    if delay_seconds > 0:
        await asyncio.sleep(delay_seconds)
    try:
        content = await backend.fetch_content(url)
    except Exception as e:
        logger.warning("Page fetch failed for %s: %s", url, e)
        return None
    return truncate(content, max_chars) if content else None
