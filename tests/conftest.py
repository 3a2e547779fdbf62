from __future__ import annotations

from typing import Any
from unittest.mock import patch

import pytest

from marketgap.config import settings
from marketgap.errors import ProviderNotConfiguredError
from marketgap.models.state import CompetitorCheck, SearchResult
from marketgap.services.memory_local import LocalMemoryStore
from marketgap.services.providers import Providers
from marketgap.tools.competitors import CompetitorTarget


class FakeSearch:
    def __init__(
        self,
        results: dict[str, list[SearchResult]] | None = None,
        *,
        per_query: int = 3,
        configured: bool = True,
        fail_search: bool = False,
        fail_fetch: bool = False,
    ):
        self.results = results
        self.per_query = per_query
        self.configured = configured
        self.fail_search = fail_search
        self.fail_fetch = fail_fetch
        self.queries: list[str] = []
        self.fetched: list[str] = []
        self.closed = False

    def ensure_configured(self) -> None:
        if not self.configured:
            raise ProviderNotConfiguredError("search", "BRIGHTDATA_API_TOKEN")

    async def search(self, query: str, max_results: int = 8) -> list[SearchResult]:
        self.queries.append(query)
        if self.fail_search:
            raise RuntimeError("search backend down")
        if self.results is not None:
            return list(self.results.get(query, []))
        idx = len(self.queries)
        return [
            SearchResult(
                url=f"https://www.reddit.com/r/test/{idx}_{n}",
                title=f"Post {idx}.{n}",
                snippet=f"I wish there was a tool for thing {idx}.{n}",
            )
            for n in range(self.per_query)
        ]

    async def fetch_content(self, url: str) -> str:
        self.fetched.append(url)
        if self.fail_fetch:
            raise RuntimeError("fetch failed")
        return f"Full post body for {url}. Scheduling is so frustrating."

    async def aclose(self) -> None:
        self.closed = True


DEFAULT_RESPONSES: dict[str, Any] = {
    "analyze.extract": {
        "pain_points": [
            {
                "problem": "Scheduling posts across platforms is manual",
                "verbatim_quote": "I hate having to post everything by hand",
                "source_url": "https://www.reddit.com/r/test/1_0",
                "intensity": "high",
                "category": "workflow",
            },
            {
                "problem": "Analytics tools are too expensive",
                "verbatim_quote": "so frustrating to pay for analytics",
                "source_url": "https://www.reddit.com/r/test/1_1",
                "intensity": "medium",
                "category": "cost",
            },
        ]
    },
    "analyze.rank": {
        "top_problem": "Scheduling posts across platforms is manual",
        "frequency_score": 8,
        "severity_score": 7,
        "market_size_estimate": "Large",
        "gap_keyword": "bulk scheduling",
        "supporting_quotes": [{"text": "I hate having to post", "source": "https://www.reddit.com/r/test/1_0"}],
        "why_this_wins": "Frequent and painful.",
        "runner_up": "Analytics pricing",
    },
    "validate.interpret": {
        "gap_confirmed": True,
        "confidence": "high",
        "gap_summary": "None of the competitors offer bulk scheduling.",
        "competitors_missing_feature": ["Buffer", "Later"],
        "differentiator": "Bulk scheduling",
        "market_entry_angle": "Target solo creators",
    },
    "brief.generate": {
        "headline": "Bulk scheduling for solo creators",
        "problem_statement": "Creators schedule by hand.",
        "target_user": "Solo creators",
        "mvp_features": [
            {"feature": "Bulk upload", "why": "Saves time", "priority": "must-have"},
        ],
        "go_to_market_angle": "Creator communities",
        "suggested_name": "BatchPost",
        "one_liner": "Schedule a month of posts in one go",
        "validation_confidence": "medium",
        "next_steps": ["Interview creators"],
    },
}


class FakeReasoning:
    def __init__(self, responses: dict[str, Any] | None = None, *, configured: bool = True):
        self.responses = dict(DEFAULT_RESPONSES if responses is None else responses)
        self.configured = configured
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def ensure_configured(self) -> None:
        if not self.configured:
            raise ProviderNotConfiguredError("reasoning", "OPENAI_API_KEY")

    async def run_skill(self, skill: str, *, max_tokens: int | None = None, **values: Any) -> Any:
        self.calls.append((skill, values))
        response = self.responses.get(skill)
        if isinstance(response, Exception):
            raise response
        return response

    def called(self, skill: str) -> bool:
        return any(name == skill for name, _ in self.calls)


class FakeManuals:
    def __init__(self, manual: dict[str, Any] | None = None):
        self.manual = manual
        self.tasks: list[str] = []

    async def get_manual(self, task: str) -> dict[str, Any] | None:
        self.tasks.append(task)
        return self.manual


class FakeBrowser:
    def __init__(self, *, fail: set[str] | None = None, fail_all: bool = False):
        self.fail = fail or set()
        self.fail_all = fail_all
        self.executed: list[str] = []

    async def execute(
        self,
        target: CompetitorTarget,
        manual: dict[str, Any] | None = None,
        *,
        keyword: str = "",
        on_action=None,
    ) -> CompetitorCheck:
        self.executed.append(target.name)
        if on_action is not None:
            on_action("starting", f"Opening {target.name}", {})
        if self.fail_all or target.name in self.fail:
            raise RuntimeError(f"browser crashed on {target.name}")
        return CompetitorCheck(
            name=target.name,
            urls_checked=[target.pricing_url, target.features_url],
            detected_gaps=["no_free_tier"],
            screenshot="data:image/png;base64,AAAA",
            success=True,
            notes="Gap(s) confirmed: No free tier detected.",
            pricing_url=target.pricing_url,
            features_url=target.features_url,
        )


class FailingMemory(LocalMemoryStore):
    async def create_session(self, niche: str) -> str:
        raise RuntimeError("memory service unavailable")


def make_providers(
    *,
    search: FakeSearch | None = None,
    reasoning: FakeReasoning | None = None,
    manuals: FakeManuals | None = None,
    browser: FakeBrowser | None = None,
    memory: LocalMemoryStore | None = None,
) -> Providers:
    return Providers(
        search=search or FakeSearch(),
        reasoning=reasoning or FakeReasoning(),
        manuals=manuals or FakeManuals(),
        browser=browser or FakeBrowser(),
        memory=memory or LocalMemoryStore(),
    )


@pytest.fixture(autouse=True)
def fast_settings():
    with (
        patch.object(settings, "provider_delay_seconds", 0.0),
        patch.object(settings, "competitor_check_timeout_seconds", 5.0),
        patch.object(settings, "identify_competitors", True),
    ):
        yield settings
