from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from marketgap.models.state import CompetitorCheck, SearchResult
from marketgap.services.logger import get_logger
from marketgap.services.memory_store import MemoryStore, get_memory_store
from marketgap.services.reasoning import ReasoningService
from marketgap.tools.actionbook import ActionBookClient
from marketgap.tools.brightdata import BrightDataClient
from marketgap.tools.browser import ActionCallback, BrowserExecutor
from marketgap.tools.competitors import CompetitorTarget

logger = get_logger("providers")


class SearchProvider(Protocol):
    def ensure_configured(self) -> None: ...
    async def search(self, query: str, max_results: int = 8) -> list[SearchResult]: ...
    async def fetch_content(self, url: str) -> str: ...
    async def aclose(self) -> None: ...


class ManualProvider(Protocol):
    async def get_manual(self, task: str) -> dict[str, Any] | None: ...


class BrowserProvider(Protocol):
    async def execute(
        self,
        target: CompetitorTarget,
        manual: dict[str, Any] | None = None,
        *,
        keyword: str = "",
        on_action: ActionCallback | None = None,
    ) -> CompetitorCheck: ...


@dataclass
class Providers:
    """External collaborators used by one run."""

    search: SearchProvider
    reasoning: ReasoningService
    manuals: ManualProvider
    browser: BrowserProvider
    memory: MemoryStore

    async def aclose(self) -> None:
        for name, resource in (("search", self.search), ("memory", self.memory)):
            try:
                await resource.aclose()
            except Exception as e:
                logger.warning("Failed to close %s provider: %s", name, e)


def build_providers() -> Providers:
    return Providers(
        search=BrightDataClient(),
        reasoning=ReasoningService(),
        manuals=ActionBookClient(),
        browser=BrowserExecutor(),
        memory=get_memory_store(),
    )
