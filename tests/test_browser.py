from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import patch

import pytest

from marketgap.tools.browser import BrowserExecutor, screenshot_data_url
from marketgap.tools.competitors import (
    MISSING_TARGET,
    NO_ANALYTICS,
    NO_FREE_TIER,
    CompetitorTarget,
)

TARGET = CompetitorTarget(
    name="Buffer",
    pricing_url="https://buffer.com/pricing",
    features_url="https://buffer.com/features",
    backup_url="https://buffer.com/all-features",
)


class StubPage:
    def __init__(
        self,
        pages: dict[str, str] | None = None,
        *,
        broken_urls: set[str] | None = None,
        broken_selectors: set[str] | None = None,
    ):
        self.pages = pages or {}
        self.broken_urls = broken_urls or set()
        self.broken_selectors = broken_selectors or set()
        self.url = "about:blank"
        self.visited: list[str] = []
        self.clicked: list[str] = []

    async def goto(self, url, wait_until=None, timeout=None):
        self.visited.append(url)
        if url in self.broken_urls:
            raise RuntimeError(f"net::ERR_NAME_NOT_RESOLVED at {url}")
        self.url = url

    async def inner_text(self, selector):
        return self.pages.get(self.url, "")

    async def click(self, selector, timeout=None):
        if selector in self.broken_selectors:
            raise RuntimeError(f"Timeout waiting for {selector}")
        self.clicked.append(selector)

    async def wait_for_selector(self, selector, timeout=None):
        return None

    async def screenshot(self, type="png", full_page=False):
        return b"png-bytes"


class Recorder:
    def __init__(self):
        self.actions: list[tuple[str, str, dict]] = []

    def __call__(self, action, message, extra):
        self.actions.append((action, message, extra))

    @property
    def names(self) -> list[str]:
        return [action for action, _, _ in self.actions]


def _executor() -> BrowserExecutor:
    return BrowserExecutor(headless=True, nav_timeout_ms=1000, settle_seconds=0)


def test_screenshot_data_url():
    assert screenshot_data_url(b"abc") == "data:image/png;base64,YWJj"


@pytest.mark.asyncio
async def test_open_pricing_without_manual_goes_straight_to_pricing():
    page = StubPage()
    notify = Recorder()

    opened = await _executor()._open_pricing(page, TARGET, None, notify)

    assert opened == TARGET.pricing_url
    assert page.visited == [TARGET.pricing_url]
    assert notify.names == ["navigating"]


@pytest.mark.asyncio
async def test_open_pricing_falls_back_to_backup_url():
    page = StubPage(broken_urls={TARGET.pricing_url})
    notify = Recorder()

    opened = await _executor()._open_pricing(page, TARGET, None, notify)

    assert opened == TARGET.backup_url
    assert page.visited == [TARGET.pricing_url, TARGET.backup_url]
    assert notify.names == ["navigating", "fallback"]


@pytest.mark.asyncio
async def test_open_pricing_without_backup_raises():
    target = CompetitorTarget(
        name="Later",
        pricing_url="https://later.com/pricing",
        features_url="https://later.com/features",
    )
    page = StubPage(broken_urls={target.pricing_url})

    with pytest.raises(RuntimeError, match="ERR_NAME_NOT_RESOLVED"):
        await _executor()._open_pricing(page, target, None, Recorder())


@pytest.mark.asyncio
async def test_apply_manual_runs_steps_and_skips_failures():
    manual = {
        "id": "buffer-pricing",
        "steps": [
            {"action": "navigate", "url": "https://buffer.com/pricing?annual=1"},
            {"action": "click", "selector": "#cookie-accept"},
            {"action": "click", "selector": "#toggle-monthly"},
            {"action": "wait", "ms": 0},
            {"action": "hover", "selector": "#ignored"},
            "not-a-step",
        ],
    }
    page = StubPage(broken_selectors={"#cookie-accept"})

    navigated = await _executor()._apply_manual(page, manual)

    assert navigated is True
    assert page.visited == ["https://buffer.com/pricing?annual=1"]
    assert page.clicked == ["#toggle-monthly"]


@pytest.mark.asyncio
async def test_manual_navigation_replaces_direct_pricing_visit():
    manual = {"steps": [{"action": "goto", "url": "https://buffer.com/pricing#plans"}]}
    page = StubPage()
    notify = Recorder()

    opened = await _executor()._open_pricing(page, TARGET, manual, notify)

    assert opened == "https://buffer.com/pricing#plans"
    assert page.visited == ["https://buffer.com/pricing#plans"]
    assert notify.names == []


@pytest.mark.asyncio
async def test_manual_without_navigation_still_opens_pricing():
    manual = {"steps": [{"action": "click", "selector": "#plans"}]}
    page = StubPage()

    opened = await _executor()._open_pricing(page, TARGET, manual, Recorder())

    assert opened == TARGET.pricing_url
    assert page.clicked == ["#plans"]


@pytest.mark.asyncio
async def test_keyword_on_features_page_clears_missing_target():
    page = StubPage({TARGET.features_url: "Bulk scheduling, Reels and audience insights"})

    gaps, visited = await _executor()._check_features(
        page, TARGET, "bulk scheduling", [NO_FREE_TIER, MISSING_TARGET], Recorder()
    )

    assert visited is True
    assert gaps == [NO_FREE_TIER]


@pytest.mark.asyncio
async def test_keyword_missing_everywhere_stays_a_single_gap():
    page = StubPage({TARGET.features_url: "Reels and audience insights"})

    gaps, _ = await _executor()._check_features(
        page, TARGET, "bulk scheduling", [MISSING_TARGET], Recorder()
    )

    assert gaps == [MISSING_TARGET]


@pytest.mark.asyncio
async def test_features_page_failure_keeps_pricing_gaps():
    page = StubPage(broken_urls={TARGET.features_url})

    gaps, visited = await _executor()._check_features(
        page, TARGET, "bulk scheduling", [NO_FREE_TIER], Recorder()
    )

    assert visited is False
    assert gaps == [NO_FREE_TIER]


class _StubBrowser:
    def __init__(self, page: StubPage):
        self.page = page
        self.closed = False

    async def new_page(self, **kwargs):
        return self.page

    async def close(self):
        self.closed = True


class _StubPlaywright:
    def __init__(self, browser: _StubBrowser):
        self.browser = browser

    async def launch(self, **kwargs):
        return self.browser

    async def __aenter__(self):
        return SimpleNamespace(chromium=self)

    async def __aexit__(self, exc_type, exc, tb):
        return False


@pytest.mark.asyncio
async def test_execute_checks_pricing_and_features_pages():
    page = StubPage(
        {
            TARGET.pricing_url: "Essentials $6/month. Team $12/month.",
            TARGET.features_url: "Bulk scheduling with Reels support",
        }
    )
    browser = _StubBrowser(page)
    notify = Recorder()

    with patch("playwright.async_api.async_playwright", lambda: _StubPlaywright(browser)):
        check = await _executor().execute(TARGET, None, keyword="bulk scheduling", on_action=notify)

    assert check.success is True
    assert check.urls_checked == [TARGET.pricing_url, TARGET.features_url]
    assert check.detected_gaps == [NO_FREE_TIER, NO_ANALYTICS]
    assert check.screenshot == screenshot_data_url(b"png-bytes")
    assert notify.names[0] == "starting"
    assert "screenshot" in notify.names
    assert browser.closed


@pytest.mark.asyncio
async def test_execute_records_failed_check_and_closes_browser():
    page = StubPage(broken_urls={TARGET.pricing_url, TARGET.backup_url})
    browser = _StubBrowser(page)
    notify = Recorder()

    with patch("playwright.async_api.async_playwright", lambda: _StubPlaywright(browser)):
        check = await _executor().execute(TARGET, None, keyword="bulk scheduling", on_action=notify)

    assert check.success is False
    assert check.notes.startswith("Could not complete verification")
    assert check.screenshot is None
    assert notify.names[-1] == "error"
    assert browser.closed
