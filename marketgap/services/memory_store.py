from __future__ import annotations

from typing import Any, Protocol

from marketgap.config import settings
from marketgap.services.memory_acontext import AcontextMemoryStore
from marketgap.services.memory_local import LocalMemoryStore


class MemoryStore(Protocol):
    async def create_session(self, niche: str) -> str: ...
    async def store_message(self, session_id: str, role: str, content: Any) -> None: ...
    async def create_space(self, session_id: str) -> str: ...
    async def flush(self, session_id: str) -> dict[str, Any] | None: ...
    async def aclose(self) -> None: ...


def get_memory_store() -> MemoryStore:
    """Build a memory store for one run, selected by MEMORY_BACKEND."""
    backend = settings.memory_backend.lower().strip()
    if backend == "acontext":
        return AcontextMemoryStore(
            api_key=settings.acontext_api_key,
            base_url=settings.acontext_base_url,
            timeout=settings.acontext_timeout_seconds,
        )
    if backend == "local":
        return LocalMemoryStore()
    raise ValueError(f"Unsupported MEMORY_BACKEND: {settings.memory_backend}")
