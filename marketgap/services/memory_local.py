from __future__ import annotations

import json
import uuid
from typing import Any


class LocalMemoryStore:
    """In-process session log, used when no remote memory service is configured."""

    def __init__(self) -> None:
        self.sessions: dict[str, list[dict[str, str]]] = {}
        self.spaces: dict[str, list[str]] = {}

    async def create_session(self, niche: str) -> str:
        session_id = str(uuid.uuid4())
        self.sessions[session_id] = []
        await self.store_message(session_id, "user", run_started_message(niche))
        return session_id

    async def store_message(self, session_id: str, role: str, content: Any) -> None:
        if session_id not in self.sessions:
            raise KeyError(f"Unknown memory session: {session_id}")
        text = content if isinstance(content, str) else json.dumps(content, default=str)
        self.sessions[session_id].append({"role": role, "content": text})

    async def create_space(self, session_id: str) -> str:
        space_id = str(uuid.uuid4())
        self.spaces[space_id] = [session_id]
        return space_id

    async def flush(self, session_id: str) -> dict[str, Any] | None:
        messages = self.sessions.get(session_id)
        if messages is None:
            return None
        return {"session_id": session_id, "message_count": len(messages)}

    async def aclose(self) -> None:
        return None


def run_started_message(niche: str) -> str:
    return (
        f'Agent run started. Niche: "{niche}". '
        "Task: discover market gaps and validate them against competitor offerings."
    )
