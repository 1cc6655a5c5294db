"""Browser session utilities: one Chromium page owned by a run for its duration."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from visual_monitor.models.config import BrowserConfig, ViewportConfig

logger = logging.getLogger(__name__)

# Flags for running headless Chromium inside CI containers
CHROMIUM_ARGS = [
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--no-sandbox",
    "--disable-setuid-sandbox",
]


async def launch_browser(playwright: Playwright, config: BrowserConfig) -> Browser:
    """Launch Chromium with container-friendly arguments."""
    return await playwright.chromium.launch(headless=config.headless, args=CHROMIUM_ARGS)


async def create_context(
    browser: Browser,
    config: BrowserConfig,
    viewport: ViewportConfig,
) -> BrowserContext:
    """Create a context with a pinned locale, timezone and user agent.

    Pinning these keeps date formats, translated strings and UA-sniffed
    layouts identical between runs.
    """
    return await browser.new_context(
        viewport=viewport.as_playwright(),
        locale=config.locale,
        timezone_id=config.timezone_id,
        user_agent=config.user_agent,
    )


@asynccontextmanager
async def browser_session(config: BrowserConfig, viewport: ViewportConfig) -> AsyncIterator[Page]:
    """Yield a single page; browser and context are closed even if the body raises."""
    async with async_playwright() as p:
        logger.debug("Launching Chromium (headless=%s)...", config.headless)
        browser = await launch_browser(p, config)
        try:
            context = await create_context(browser, config, viewport)
            try:
                page = await context.new_page()
                yield page
            finally:
                await context.close()
        finally:
            await browser.close()
            logger.debug("Browser closed")
