from __future__ import annotations

import asyncio
import json
import os
import shutil
from typing import Any

from marketgap.config import settings
from marketgap.services.logger import get_logger

logger = get_logger("actionbook")


class ActionBookError(RuntimeError):
    pass


class ActionBookClient:
    """Looks up browser action manuals through the `actionbook` CLI."""

    def __init__(
        self,
        *,
        binary: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
    ):
        self.binary = binary or settings.actionbook_binary
        self.api_key = api_key if api_key is not None else settings.actionbook_api_key
        self.timeout = timeout or settings.actionbook_timeout_seconds

    def available(self) -> bool:
        return shutil.which(self.binary) is not None

    async def _run(self, *args: str) -> Any:
        env = dict(os.environ)
        if self.api_key:
            env["ACTIONBOOK_API_KEY"] = self.api_key
        proc = await asyncio.create_subprocess_exec(
            self.binary,
            *args,
            "--json",
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=env,
        )
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise ActionBookError(f"actionbook {args[0]} timed out after {self.timeout}s")
        if proc.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()[:200]
            raise ActionBookError(f"actionbook {args[0]} exited with {proc.returncode}: {detail}")
        try:
            return json.loads(stdout.decode("utf-8", errors="replace").strip())
        except json.JSONDecodeError as e:
            raise ActionBookError(f"actionbook {args[0]} returned invalid JSON") from e

    async def search(self, task: str) -> list[dict[str, Any]]:
        payload = await self._run("search", task)
        if isinstance(payload, dict):
            payload = payload.get("results") or payload.get("manuals") or []
        return [m for m in payload if isinstance(m, dict)] if isinstance(payload, list) else []

    async def get(self, action_id: str) -> dict[str, Any] | None:
        payload = await self._run("get", action_id)
        return payload if isinstance(payload, dict) else None

    async def get_manual(self, task: str) -> dict[str, Any] | None:
        """Search for `task` and fetch the best manual; None when unavailable."""
        if not self.available():
            logger.debug("actionbook CLI not found; skipping manual lookup")
            return None
        try:
            manuals = await self.search(task)
            if not manuals or not manuals[0].get("id"):
                logger.info("No manual found for %r", task)
                return None
            manual = await self.get(str(manuals[0]["id"]))
        except (ActionBookError, OSError) as e:
            logger.warning("Manual lookup failed for %r: %s", task, e)
            return None
        if manual is not None:
            manual.setdefault("id", manuals[0]["id"])
        return manual
