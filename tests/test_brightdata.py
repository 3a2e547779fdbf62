from __future__ import annotations

import json

import httpx
import pytest

from marketgap.errors import ProviderNotConfiguredError
from marketgap.tools.brightdata import BrightDataClient, parse_search_payload


def test_parse_search_payload_reads_organic_json():
    raw = json.dumps(
        {
            "organic": [
                {"link": "https://reddit.com/r/a", "title": "A", "description": "first"},
                {"link": "not-a-url", "title": "bad"},
                {"link": "https://reddit.com/r/b", "title": "B"},
            ]
        }
    )
    results = parse_search_payload(raw)
    assert [r.url for r in results] == ["https://reddit.com/r/a", "https://reddit.com/r/b"]
    assert results[0].snippet == "first"


def test_parse_search_payload_reads_numbered_blocks():
    raw = (
        "1. Title: Need a tool\nURL: https://reddit.com/r/x/1\nSnippet: I wish there was\n"
        "2. Title: Another\nURL: https://reddit.com/r/x/2\nSnippet: so frustrating"
    )
    results = parse_search_payload(raw)
    assert [r.url for r in results] == ["https://reddit.com/r/x/1", "https://reddit.com/r/x/2"]
    assert results[0].title == "Need a tool"
    assert results[1].snippet == "so frustrating"


def test_parse_search_payload_falls_back_to_markdown_links():
    raw = "Results:\n- [Thread one](https://reddit.com/r/y/1)\n- [Thread two](https://reddit.com/r/y/2)"
    results = parse_search_payload(raw)
    assert [(r.title, r.url) for r in results] == [
        ("Thread one", "https://reddit.com/r/y/1"),
        ("Thread two", "https://reddit.com/r/y/2"),
    ]
    assert parse_search_payload("") == []


@pytest.mark.asyncio
async def test_search_posts_serp_request_and_limits_results():
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append({"auth": request.headers["Authorization"], "body": json.loads(request.content)})
        organic = [{"link": f"https://reddit.com/r/z/{i}", "title": str(i)} for i in range(10)]
        return httpx.Response(200, json={"organic": organic})

    client = BrightDataClient(
        api_token="token-123",
        serp_zone="serp_zone",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    results = await client.search('site:reddit.com "bakers"', max_results=8)
    await client.aclose()

    assert len(results) == 8
    assert seen[0]["auth"] == "Bearer token-123"
    assert seen[0]["body"]["zone"] == "serp_zone"
    assert "brd_json=1" in seen[0]["body"]["url"]
    assert "num=8" in seen[0]["body"]["url"]


@pytest.mark.asyncio
async def test_fetch_content_converts_html_to_text():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body["data_format"] == "markdown"
        return httpx.Response(
            200,
            text="<html><head><title>T</title><script>x()</script></head><body><p>Hello   world</p></body></html>",
        )

    client = BrightDataClient(
        api_token="token",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    text = await client.fetch_content("https://reddit.com/r/a")
    await client.aclose()

    assert text == "Hello world"


@pytest.mark.asyncio
async def test_http_errors_propagate_to_caller():
    client = BrightDataClient(
        api_token="token",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(502))),
    )
    with pytest.raises(httpx.HTTPStatusError):
        await client.fetch_content("https://reddit.com/r/a")
    await client.aclose()


@pytest.mark.asyncio
async def test_missing_token_raises_not_configured():
    client = BrightDataClient(api_token="")
    with pytest.raises(ProviderNotConfiguredError):
        client.ensure_configured()
    with pytest.raises(ProviderNotConfiguredError):
        await client.search("anything")
