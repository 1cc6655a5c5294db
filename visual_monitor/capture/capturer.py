"""Capturer: navigates to a target and returns a stabilized full-page PNG."""

from __future__ import annotations

import logging

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, Route

from visual_monitor.errors import CaptureError
from visual_monitor.models.config import BrowserConfig, ViewportConfig
from visual_monitor.models.report import MonitoredTarget

from .stabilizer import stabilize

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {"cache-control": "no-cache", "pragma": "no-cache"}


async def _strip_cache_headers(route: Route) -> None:
    headers = {**route.request.headers, **NO_CACHE_HEADERS}
    try:
        await route.continue_(headers=headers)
    except PlaywrightError as e:
        # The page navigated away before the request was resumed
        logger.debug("Could not continue %s: %s", route.request.url, e)


class Capturer:
    """Captures targets sequentially on one page reused for the whole run."""

    def __init__(self, page: Page, viewport: ViewportConfig, config: BrowserConfig):
        self.page = page
        self.viewport = viewport
        self.config = config
        self._prepared = False

    async def prepare(self) -> None:
        """Size the viewport and install the cache-busting route once per page."""
        if self._prepared:
            return
        await self.page.set_viewport_size(self.viewport.as_playwright())
        await self.page.route("**/*", _strip_cache_headers)
        self._prepared = True

    async def capture(self, target: MonitoredTarget) -> bytes:
        """Return PNG bytes of the full page, or raise CaptureError."""
        try:
            await self.prepare()
            logger.debug("Navigating to %s", target.url)
            await self.page.goto(
                target.url,
                wait_until="domcontentloaded",
                timeout=self.config.navigation_timeout_ms,
            )
            result = await stabilize(self.page, self.config.consent_click_timeout_ms)
            logger.debug(
                "Stabilized %s (styles=%s, consent=%s)",
                target.slug, result.styles_injected, result.consent_selector,
            )
            await self._wait_for_settle()
            return await self.page.screenshot(full_page=True, type="png")
        except PlaywrightError as e:
            raise CaptureError(target.url, str(e)) from e

    async def _wait_for_settle(self) -> None:
        # Both waits are best-effort; a screenshot is taken regardless
        try:
            await self.page.wait_for_load_state(
                "networkidle", timeout=self.config.network_idle_timeout_ms
            )
        except PlaywrightError:
            logger.debug("Network did not go idle within %dms, continuing",
                         self.config.network_idle_timeout_ms)
        await self.page.wait_for_timeout(self.config.settle_delay_ms)
