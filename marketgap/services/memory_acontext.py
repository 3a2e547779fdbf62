from __future__ import annotations

import json
from typing import Any

import httpx

from marketgap.errors import ProviderNotConfiguredError
from marketgap.services.logger import get_logger
from marketgap.services.memory_local import run_started_message

logger = get_logger("memory.acontext")


class AcontextMemoryStore:
    """Session log, flush and learning-space calls against the Acontext REST API."""

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        timeout: float = 20.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key.strip()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = http_client

    def _http(self) -> httpx.AsyncClient:
        if not self.api_key:
            raise ProviderNotConfiguredError("memory", "ACONTEXT_API_KEY")
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Accept": "application/json",
                },
            )
        return self._client

    async def _post(self, path: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        response = await self._http().post(path, json=payload or {})
        response.raise_for_status()
        if not response.content:
            return {}
        body = response.json()
        if isinstance(body, dict) and isinstance(body.get("data"), dict):
            return body["data"]
        return body if isinstance(body, dict) else {}

    async def create_session(self, niche: str) -> str:
        data = await self._post("/session")
        session_id = str(data.get("id") or "")
        if not session_id:
            raise ValueError("Acontext did not return a session id")
        try:
            await self.store_message(session_id, "user", run_started_message(niche))
        except Exception as e:
            logger.warning("Session %s created but the opening message was not stored: %s", session_id, e)
        logger.info("Session %s created for niche %r", session_id, niche)
        return session_id

    async def store_message(self, session_id: str, role: str, content: Any) -> None:
        text = content if isinstance(content, str) else json.dumps(content, default=str)
        await self._post(
            f"/session/{session_id}/messages",
            {"blob": {"role": role, "content": text}, "format": "openai"},
        )

    async def create_space(self, session_id: str) -> str:
        data = await self._post("/space")
        space_id = str(data.get("id") or "")
        if not space_id:
            raise ValueError("Acontext did not return a space id")
        await self._post(f"/space/{space_id}/learn", {"session_id": session_id})
        logger.info("Session %s attached to learning space %s", session_id, space_id)
        return space_id

    async def flush(self, session_id: str) -> dict[str, Any] | None:
        await self._post(f"/session/{session_id}/flush")
        response = await self._http().get(f"/session/{session_id}/summary")
        response.raise_for_status()
        body = response.json() if response.content else None
        return body if isinstance(body, dict) else None

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
