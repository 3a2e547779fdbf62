from __future__ import annotations

import asyncio
import base64
from typing import Any, Callable

from marketgap.config import settings
from marketgap.models.state import CompetitorCheck
from marketgap.services.logger import get_logger
from marketgap.tools.competitors import (
    MISSING_TARGET,
    CompetitorTarget,
    build_gap_notes,
    detect_feature_gaps,
    detect_pricing_gaps,
    has_free_tier,
)

logger = get_logger("browser")

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
VIEWPORT = {"width": 1280, "height": 800}

# (action, message, extra fields)
ActionCallback = Callable[[str, str, dict[str, Any]], None]


def summarize_manual(manual: dict[str, Any] | None) -> dict[str, Any] | None:
    if not manual:
        return None
    steps = manual.get("steps")
    return {
        "id": manual.get("id") or manual.get("name"),
        "steps": len(steps) if isinstance(steps, list) else 0,
    }


def screenshot_data_url(png: bytes) -> str:
    return f"data:image/png;base64,{base64.b64encode(png).decode('ascii')}"


def _manual_steps(manual: dict[str, Any] | None) -> list[dict[str, Any]]:
    if not manual or not isinstance(manual.get("steps"), list):
        return []
    return [step for step in manual["steps"] if isinstance(step, dict)]


class BrowserExecutor:
    """Drives a headless Chromium through a competitor's pricing and features pages.

    One browser is launched per check and always closed afterwards.
    """

    def __init__(
        self,
        *,
        headless: bool | None = None,
        nav_timeout_ms: int | None = None,
        settle_seconds: float = 1.5,
    ):
        self.headless = settings.browser_headless if headless is None else headless
        self.nav_timeout_ms = nav_timeout_ms or settings.browser_nav_timeout_ms
        self.settle_seconds = settle_seconds

    async def _goto(self, page: Any, url: str) -> None:
        await page.goto(url, wait_until="domcontentloaded", timeout=self.nav_timeout_ms)
        if self.settle_seconds > 0:
            await asyncio.sleep(self.settle_seconds)

    async def _page_text(self, page: Any) -> str:
        return (await page.inner_text("body")).lower()

    async def _apply_manual(self, page: Any, manual: dict[str, Any] | None) -> bool:
        """Run manual steps best-effort; True when a navigation step succeeded."""
        navigated = False
        for step in _manual_steps(manual):
            action = str(step.get("action") or step.get("type") or "").lower()
            try:
                if action in ("navigate", "goto", "open") and step.get("url"):
                    await self._goto(page, str(step["url"]))
                    navigated = True
                elif action == "click" and step.get("selector"):
                    await page.click(str(step["selector"]), timeout=self.nav_timeout_ms)
                elif action == "wait":
                    if step.get("selector"):
                        await page.wait_for_selector(str(step["selector"]), timeout=self.nav_timeout_ms)
                    else:
                        await asyncio.sleep(float(step.get("ms", 500)) / 1000)
            except Exception as e:
                logger.info("Manual step %s skipped: %s", action or "?", e)
        return navigated

    async def _open_pricing(
        self,
        page: Any,
        target: CompetitorTarget,
        manual: dict[str, Any] | None,
        notify: ActionCallback,
    ) -> str:
        if await self._apply_manual(page, manual):
            return page.url
        notify("navigating", f"Navigating to {target.pricing_url}", {})
        try:
            await self._goto(page, target.pricing_url)
            return target.pricing_url
        except Exception as e:
            if not target.backup_url:
                raise
            logger.warning("Pricing page failed for %s (%s); trying backup", target.name, e)
            notify("fallback", f"Pricing page unavailable, opening {target.backup_url}", {})
            await self._goto(page, target.backup_url)
            return target.backup_url

    async def _check_features(
        self,
        page: Any,
        target: CompetitorTarget,
        keyword: str,
        gaps: list[str],
        notify: ActionCallback,
    ) -> tuple[list[str], bool]:
        """Merge features-page gaps into the pricing-page gaps.

        A keyword missing from pricing but present on the features page is not a gap.
        Returns the merged gaps and whether the features page was read.
        """
        gaps = list(gaps)
        notify("navigating", f"Checking features page: {target.features_url}", {})
        try:
            await self._goto(page, target.features_url)
            features_text = await self._page_text(page)
        except Exception as e:
            logger.warning("Features page failed for %s: %s", target.name, e)
            return gaps, False
        keyword_found = MISSING_TARGET not in gaps
        if not keyword_found and keyword and keyword.lower() in features_text:
            gaps.remove(MISSING_TARGET)
            keyword_found = True
        gaps.extend(detect_feature_gaps(features_text, keyword, keyword_found=keyword_found))
        gaps = list(dict.fromkeys(gaps))
        notify("checked", f"Feature gaps identified for {target.name}", {"data": {"gaps": gaps}})
        return gaps, True

    async def execute(
        self,
        target: CompetitorTarget,
        manual: dict[str, Any] | None = None,
        *,
        keyword: str = "",
        on_action: ActionCallback | None = None,
    ) -> CompetitorCheck:
        def notify(action: str, message: str, extra: dict[str, Any]) -> None:
            if on_action is not None:
                on_action(action, message, extra)

        check = CompetitorCheck(
            name=target.name,
            pricing_url=target.pricing_url,
            features_url=target.features_url,
            manual=summarize_manual(manual),
        )
        notify("starting", f"Opening {target.name} pricing page…", {})

        try:
            from playwright.async_api import async_playwright
        except ImportError as exc:
            raise RuntimeError("Playwright is not installed") from exc

        async with async_playwright() as playwright:
            browser = await playwright.chromium.launch(
                headless=self.headless,
                args=["--no-sandbox", "--disable-dev-shm-usage"],
            )
            try:
                page = await browser.new_page(viewport=VIEWPORT, user_agent=USER_AGENT)

                opened = await self._open_pricing(page, target, manual, notify)
                check.urls_checked.append(opened)
                pricing_text = await self._page_text(page)
                gaps = detect_pricing_gaps(pricing_text, keyword)
                free = has_free_tier(pricing_text)
                notify(
                    "checked",
                    f"Free tier: {'found' if free else 'not found (gap confirmed)'}",
                    {"data": {"has_free_tier": free}},
                )

                check.screenshot = screenshot_data_url(
                    await page.screenshot(type="png", full_page=False)
                )
                notify(
                    "screenshot",
                    f"Screenshot captured for {target.name} pricing page",
                    {"screenshot": check.screenshot},
                )

                gaps, visited = await self._check_features(page, target, keyword, gaps, notify)
                if visited:
                    check.urls_checked.append(target.features_url)

                check.detected_gaps = list(dict.fromkeys(gaps))
                check.success = True
                check.notes = build_gap_notes(check.detected_gaps, keyword)
            except Exception as e:
                logger.error("Browser check failed for %s: %s", target.name, e)
                check.success = False
                check.notes = f"Could not complete verification: {e}"
                notify("error", "Verification failed, using scraped data instead", {})
            finally:
                await browser.close()
        return check
