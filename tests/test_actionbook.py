from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from marketgap.tools.actionbook import ActionBookClient, ActionBookError


@pytest.mark.asyncio
async def test_get_manual_returns_none_without_cli():
    client = ActionBookClient(binary="actionbook-missing")
    with patch("marketgap.tools.actionbook.shutil.which", return_value=None):
        assert await client.get_manual("buffer pricing page navigation") is None


@pytest.mark.asyncio
async def test_get_manual_searches_then_fetches_first_hit():
    client = ActionBookClient()
    run = AsyncMock(
        side_effect=[
            [{"id": "buffer-pricing", "title": "Buffer pricing"}, {"id": "other"}],
            {"steps": [{"action": "navigate", "url": "https://buffer.com/pricing"}]},
        ]
    )
    with (
        patch("marketgap.tools.actionbook.shutil.which", return_value="/usr/bin/actionbook"),
        patch.object(client, "_run", run),
    ):
        manual = await client.get_manual("buffer pricing page navigation")

    assert manual["id"] == "buffer-pricing"
    assert len(manual["steps"]) == 1
    assert run.await_args_list[0].args == ("search", "buffer pricing page navigation")
    assert run.await_args_list[1].args == ("get", "buffer-pricing")


@pytest.mark.asyncio
async def test_get_manual_returns_none_when_search_is_empty():
    client = ActionBookClient()
    with (
        patch("marketgap.tools.actionbook.shutil.which", return_value="/usr/bin/actionbook"),
        patch.object(client, "_run", AsyncMock(return_value=[])),
    ):
        assert await client.get_manual("later pricing page navigation") is None


@pytest.mark.asyncio
async def test_get_manual_swallows_cli_errors():
    client = ActionBookClient()
    with (
        patch("marketgap.tools.actionbook.shutil.which", return_value="/usr/bin/actionbook"),
        patch.object(client, "_run", AsyncMock(side_effect=ActionBookError("timed out"))),
    ):
        assert await client.get_manual("notion pricing page navigation") is None
