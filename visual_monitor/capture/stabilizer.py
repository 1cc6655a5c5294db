"""Render stabilization: removes run-to-run visual noise before a screenshot."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

logger = logging.getLogger(__name__)

STABILIZE_CSS = """
*,
*::before,
*::after {
  animation: none !important;
  transition: none !important;
  scroll-behavior: auto !important;
  caret-color: transparent !important;
}

/* CookieYes consent bar, overlay and revisit button */
.cky-consent-container,
.cky-overlay,
.cky-consent-bar,
.cky-revisit-bottom-left,
.cky-btn-revisit-wrapper {
  visibility: hidden !important;
  opacity: 0 !important;
}
"""

# Tried in order; the class names vary by CookieYes theme
CONSENT_ACCEPT_SELECTORS = (
    ".cky-btn-accept",
    ".cky-btn-accept-all",
    "button.cky-btn-accept",
    "button:has-text('Accept')",
    "button:has-text('Accept All')",
    "button:has-text('I Accept')",
)

CONSENT_DISMISS_DELAY_MS = 500


@dataclass
class ConsentAttempt:
    selector: str
    accepted: bool
    error: Optional[str] = None


@dataclass
class StabilizationResult:
    styles_injected: bool = False
    attempts: list[ConsentAttempt] = field(default_factory=list)

    @property
    def consent_selector(self) -> Optional[str]:
        for attempt in self.attempts:
            if attempt.accepted:
                return attempt.selector
        return None


async def inject_stabilization_styles(page: Page) -> bool:
    """Disable animations/transitions/caret and hide consent overlays."""
    try:
        await page.add_style_tag(content=STABILIZE_CSS)
        return True
    except PlaywrightError as e:
        logger.warning("Could not inject stabilization styles: %s", e)
        return False


async def try_accept_consent(page: Page, selector: str, timeout_ms: int) -> ConsentAttempt:
    """One independent attempt to click a consent button. Never raises."""
    try:
        locator = page.locator(selector).first
        if await locator.count() == 0:
            return ConsentAttempt(selector, accepted=False)
        await locator.click(timeout=timeout_ms)
        await page.wait_for_timeout(CONSENT_DISMISS_DELAY_MS)
        return ConsentAttempt(selector, accepted=True)
    except PlaywrightError as e:
        logger.debug("Consent selector %s failed: %s", selector, e)
        return ConsentAttempt(selector, accepted=False, error=str(e))


async def accept_consent(
    page: Page,
    timeout_ms: int,
    selectors: tuple[str, ...] = CONSENT_ACCEPT_SELECTORS,
) -> list[ConsentAttempt]:
    """Try each selector until one click succeeds. Absence of a banner is not an error."""
    attempts: list[ConsentAttempt] = []
    for selector in selectors:
        attempt = await try_accept_consent(page, selector, timeout_ms)
        attempts.append(attempt)
        if attempt.accepted:
            logger.debug("Consent banner accepted via %s", selector)
            break
    return attempts


async def stabilize(page: Page, consent_timeout_ms: int) -> StabilizationResult:
    # Consent buttons must still be visible when clicked; the styles hide the banner
    result = StabilizationResult()
    result.attempts = await accept_consent(page, consent_timeout_ms)
    result.styles_injected = await inject_stabilization_styles(page)
    return result
