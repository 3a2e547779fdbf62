from __future__ import annotations

import json
import time
from typing import Any

from marketgap.config import settings
from marketgap.errors import ProviderNotConfiguredError
from marketgap.llm_client import client as llm_client, get_model, is_configured
from marketgap.services import logger as log_service
from marketgap.services.prompt_store import render_skill

logger = log_service.get_logger("reasoning")


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        parts = text.split("```")
        if len(parts) >= 2:
            text = parts[1]
        if text.startswith("json"):
            text = text[4:]
        text = text.strip()
    return text


def _first_fragment(text: str) -> Any | None:
    decoder = json.JSONDecoder()
    for idx, char in enumerate(text):
        if char not in "{[":
            continue
        try:
            value, _ = decoder.raw_decode(text, idx)
        except ValueError:
            continue
        return value
    return None


def parse_structured(raw_text: str | None) -> Any | None:
    """Parse provider output into a JSON value, or return None.

    Code fences are stripped first; failing that, the first embedded
    object or array fragment is tried. Never raises.
    """
    if not raw_text or not isinstance(raw_text, str):
        return None
    text = _strip_fences(raw_text)
    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError):
        pass
    return _first_fragment(text)


class ReasoningService:
    """Chat-completion calls in JSON mode, with logging and safe parsing."""

    def __init__(self, llm: Any | None = None, model: str | None = None):
        self._llm = llm
        self.model = model or get_model()

    def ensure_configured(self) -> None:
        if self._llm is None and not is_configured():
            raise ProviderNotConfiguredError("reasoning", "OPENAI_API_KEY")

    async def complete(
        self,
        system: str,
        user: str,
        *,
        max_tokens: int | None = None,
        caller: str = "reasoning",
    ) -> str:
        active_client = self._llm or llm_client()
        t0 = time.monotonic()
        try:
            response = await active_client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens or settings.llm_max_tokens,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                timeout=settings.llm_timeout_seconds,
            )
        except Exception as e:
            log_service.log_llm_call(
                model=self.model,
                caller=caller,
                duration_ms=int((time.monotonic() - t0) * 1000),
                status="error",
                error=str(e),
            )
            raise

        usage = getattr(response, "usage", None)
        log_service.log_llm_call(
            model=self.model,
            caller=caller,
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
            duration_ms=int((time.monotonic() - t0) * 1000),
        )
        choices = getattr(response, "choices", None) or []
        if not choices:
            return ""
        return getattr(choices[0].message, "content", None) or ""

    async def complete_json(
        self,
        system: str,
        user: str,
        *,
        max_tokens: int | None = None,
        caller: str = "reasoning",
    ) -> Any | None:
        try:
            raw = await self.complete(system, user, max_tokens=max_tokens, caller=caller)
        except Exception as e:
            logger.warning("Reasoning call %s failed: %s", caller, e)
            return None
        parsed = parse_structured(raw)
        if parsed is None:
            logger.warning("Reasoning call %s returned unparseable output", caller)
        return parsed

    async def run_skill(
        self,
        skill: str,
        *,
        max_tokens: int | None = None,
        **values: Any,
    ) -> Any | None:
        """Render the prompt pair stored under `skill` and run it in JSON mode."""
        system, user = render_skill(skill, **values)
        return await self.complete_json(system, user, max_tokens=max_tokens, caller=skill)
