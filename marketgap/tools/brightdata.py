from __future__ import annotations

import json
import re
from typing import Any
from urllib.parse import quote_plus

import httpx

from marketgap.config import settings
from marketgap.errors import ProviderNotConfiguredError
from marketgap.models.state import SearchResult
from marketgap.services.logger import get_logger
from marketgap.tools.content_extractor import extract_content
from marketgap.tools.web_utils import is_valid_url, truncate

logger = get_logger("brightdata")

GOOGLE_SEARCH_URL = "https://www.google.com/search"

_BLOCK_SPLIT = re.compile(r"\n(?=\d+\.\s)")
_URL_LINE = re.compile(r"URL:\s*(https?://\S+)", re.IGNORECASE)
_TITLE_LINE = re.compile(r"Title:\s*(.+)", re.IGNORECASE)
_SNIPPET_LINE = re.compile(r"Snippet:\s*(.+)", re.IGNORECASE | re.DOTALL)
_MARKDOWN_LINK = re.compile(r"\[([^\]]+)\]\((https?://[^)\s]+)\)")


def _from_organic(organic: list[Any]) -> list[SearchResult]:
    mapped: list[SearchResult] = []
    for item in organic:
        if not isinstance(item, dict):
            continue
        url = str(item.get("link") or item.get("url") or "").strip()
        if not is_valid_url(url):
            continue
        mapped.append(
            SearchResult(
                url=url,
                title=str(item.get("title") or "").strip(),
                snippet=truncate(str(item.get("description") or item.get("snippet") or "").strip(), 300),
            )
        )
    return mapped


def _from_markdown(raw: str) -> list[SearchResult]:
    entries: list[SearchResult] = []
    for block in _BLOCK_SPLIT.split(raw):
        url_match = _URL_LINE.search(block)
        if not url_match:
            continue
        title_match = _TITLE_LINE.search(block)
        snippet_match = _SNIPPET_LINE.search(block)
        entries.append(
            SearchResult(
                url=url_match.group(1).strip(),
                title=title_match.group(1).strip() if title_match else "",
                snippet=truncate(snippet_match.group(1).strip(), 300) if snippet_match else "",
            )
        )
    if entries:
        return entries
    return [SearchResult(url=url, title=title.strip()) for title, url in _MARKDOWN_LINK.findall(raw)]


def parse_search_payload(raw: str) -> list[SearchResult]:
    """Normalize a SERP response into search results.

    Structured JSON (`organic` entries) is preferred. Text responses are read
    as numbered URL/Title/Snippet blocks, falling back to markdown links.
    """
    text = (raw or "").strip()
    if not text:
        return []
    if text[0] in "{[":
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            payload = None
        if isinstance(payload, dict):
            organic = payload.get("organic") or payload.get("results") or []
            if isinstance(organic, list):
                return _from_organic(organic)
        if isinstance(payload, list):
            return _from_organic(payload)
    return _from_markdown(text)


class BrightDataClient:
    """SERP search and Web Unlocker fetches over the Bright Data request API."""

    def __init__(
        self,
        *,
        api_token: str | None = None,
        serp_zone: str | None = None,
        unlocker_zone: str | None = None,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.api_token = (api_token if api_token is not None else settings.brightdata_api_token).strip()
        self.serp_zone = serp_zone or settings.brightdata_serp_zone
        self.unlocker_zone = unlocker_zone or settings.brightdata_unlocker_zone
        self.timeout = timeout or settings.brightdata_timeout_seconds
        self._client = http_client

    def ensure_configured(self) -> None:
        if not self.api_token:
            raise ProviderNotConfiguredError("search", "BRIGHTDATA_API_TOKEN")

    def _http(self) -> httpx.AsyncClient:
        self.ensure_configured()
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def _request(self, payload: dict[str, Any]) -> str:
        response = await self._http().post(
            settings.brightdata_api_url,
            json=payload,
            headers={
                "Authorization": f"Bearer {self.api_token}",
                "Content-Type": "application/json",
            },
        )
        response.raise_for_status()
        return response.text

    async def search(self, query: str, max_results: int = 8) -> list[SearchResult]:
        logger.info("Searching: %r", query)
        url = f"{GOOGLE_SEARCH_URL}?q={quote_plus(query)}&num={max_results}&brd_json=1"
        raw = await self._request({"zone": self.serp_zone, "url": url, "format": "raw"})
        results = parse_search_payload(raw)[:max_results]
        logger.info("Found %d results for %r", len(results), query)
        return results

    async def fetch_content(self, url: str) -> str:
        raw = await self._request(
            {
                "zone": self.unlocker_zone,
                "url": url,
                "format": "raw",
                "data_format": "markdown",
            }
        )
        extracted = extract_content(url, raw)
        logger.info("Fetched %d chars from %s", len(extracted.text), url)
        return extracted.text

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
