"""Best-effort dismissal of cookie banners, permission prompts and popups.

Every lookup is bounded by a short timeout and every Playwright error is
treated as "nothing to click here", so a sweep never fails the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from playwright.async_api import Error as PlaywrightError

from domain.models import RemainingDialogs, SweepResult
from domain.ports import LoggerPort

VISIBILITY_TIMEOUT_MS = 1000
CLICK_TIMEOUT_MS = 3000
SETTLE_MS = 1000


@dataclass(frozen=True)
class DialogCategory:
    name: str
    selectors: Sequence[str]


DIALOG_CATEGORIES: Sequence[DialogCategory] = (
    DialogCategory(
        "Cookie Consent",
        (
            'button:has-text("Accept")',
            'button:has-text("Accept All")',
            'button:has-text("Allow All")',
            'button:has-text("Accept Cookies")',
            'button:has-text("I Accept")',
            'button:has-text("Agree")',
            'button:has-text("OK")',
            '[data-testid="cookie-accept"]',
            '[id*="cookie"] button:has-text("Accept")',
            '[class*="cookie"] button:has-text("Accept")',
            '.cookie-banner button:has-text("Accept")',
            '#cookie-consent button:has-text("Accept")',
        ),
    ),
    DialogCategory(
        "Notification Permission",
        (
            'button:has-text("Allow")',
            'button:has-text("Enable")',
            'button:has-text("Turn On")',
            'button:has-text("Not Now")',
            'button:has-text("Maybe Later")',
            'button:has-text("No Thanks")',
            '[data-testid="notification-allow"]',
            '[data-testid="notification-dismiss"]',
        ),
    ),
    DialogCategory(
        "Location Permission",
        (
            'button:has-text("Allow Location")',
            'button:has-text("Share Location")',
            'button:has-text("Not Now")',
            'button:has-text("Skip")',
        ),
    ),
    DialogCategory(
        "Modal Close",
        (
            'button[aria-label="Close"]',
            'button[aria-label="close"]',
            'button[title="Close"]',
            '.modal button:has-text("✕")',
            '.modal button:has-text("×")',
            '.overlay button:has-text("✕")',
            '.dialog button:has-text("×")',
            '[role="dialog"] button[aria-label="Close"]',
            ".close-button",
            ".modal-close",
            ".dialog-close",
        ),
    ),
    DialogCategory(
        "GDPR/Privacy",
        (
            'button:has-text("Reject All")',
            'button:has-text("Accept All")',
            'button:has-text("Continue")',
            'button:has-text("Proceed")',
            '[data-testid="privacy-accept"]',
            '[data-testid="gdpr-accept"]',
        ),
    ),
    DialogCategory(
        "Age Verification",
        (
            'button:has-text("I am 18+")',
            'button:has-text("Yes")',
            'button:has-text("Continue")',
            'button:has-text("Enter")',
        ),
    ),
    DialogCategory(
        "Newsletter Popup",
        (
            'button:has-text("No Thanks")',
            'button:has-text("Skip")',
            'button:has-text("Maybe Later")',
            'button:has-text("Close")',
            '.newsletter-popup button:has-text("×")',
            '.email-signup button:has-text("×")',
            'button:has-text("×")',
            'button:has-text("✕")',
            'button:has-text("X")',
            'span:has-text("×")',
            'span:has-text("✕")',
            'div:has-text("×")',
            'a:has-text("×")',
            'button[aria-label*="close" i]',
            'button[title*="close" i]',
            'span[aria-label*="close" i]',
            'div[aria-label*="close" i]',
            '[data-testid*="newsletter"] button',
            '[data-testid*="popup"] button',
            '[data-testid*="modal"] button',
            '[data-testid*="close"]',
            '[data-dismiss="modal"]',
            "[data-modal-close]",
            "[data-popup-close]",
            ".close",
            ".close-btn",
            ".close-button",
            ".popup-close",
            ".modal-close",
            ".newsletter-close",
            ".overlay-close",
            ".dialog-close",
            ".popup .close",
            ".modal .close",
            ".overlay .close",
            ".dialog .close",
            ".newsletter .close",
            ".signup .close",
            ".subscribe .close",
            'button[style*="position: absolute"][style*="top"][style*="right"]',
            'button[style*="position: fixed"][style*="top"][style*="right"]',
            '.popup [style*="position: absolute"][style*="top"][style*="right"]',
            '.modal [style*="position: absolute"][style*="top"][style*="right"]',
            '[class*="close"][class*="button"]',
            '[class*="close"][class*="icon"]',
            '[class*="close"][class*="btn"]',
            '[class*="btn"][class*="close"]',
            '[class*="icon"][class*="close"]',
        ),
    ),
)

DIALOG_CONTAINER_SELECTORS: Sequence[str] = (
    '[role="dialog"]',
    '[role="alertdialog"]',
    ".modal",
    ".popup",
    ".overlay",
    ".dialog",
    ".cookie-banner",
    ".notification-banner",
    '[data-testid*="modal"]',
    '[data-testid*="dialog"]',
    '[class*="modal"]',
    '[class*="popup"]',
    '[class*="dialog"]',
    '[id*="modal"]',
    '[id*="popup"]',
    '[id*="dialog"]',
)

LOADING_INDICATOR_SELECTORS: Sequence[str] = (
    ".loading",
    ".spinner",
    ".loader",
    '[data-testid="loading"]',
    '[class*="loading"]',
    '[class*="spinner"]',
)


class DialogSweeper:
    """Stateless dialog dismissal shared by every agent."""

    def __init__(
        self,
        *,
        logger: LoggerPort | None = None,
        categories: Sequence[DialogCategory] = DIALOG_CATEGORIES,
    ) -> None:
        self._logger = logger
        self._categories = categories

    async def sweep(self, page: Any) -> SweepResult:
        """Click at most one visible control per category."""
        handled = 0
        found: list[str] = []

        for category in self._categories:
            for selector in category.selectors:
                if await self._click_if_visible(page, selector):
                    handled += 1
                    found.append(category.name)
                    await page.wait_for_timeout(SETTLE_MS)
                    break

        if handled and self._logger is not None:
            self._logger.info("dialogs_dismissed", count=handled, categories=found)
        return SweepResult(dialogs_handled=handled, dialogs_found=tuple(found))

    async def detect_remaining(self, page: Any) -> RemainingDialogs:
        matches: list[str] = []
        for selector in DIALOG_CONTAINER_SELECTORS:
            try:
                elements = await page.locator(selector).all()
                for element in elements:
                    if await element.is_visible():
                        matches.append(selector)
            except PlaywrightError:
                continue
        return RemainingDialogs(has_dialogs=bool(matches), dialog_elements=tuple(matches))

    async def wait_until_ready(self, page: Any, max_wait_ms: int = 15000) -> None:
        """Poll until no loading indicator is visible; gives up silently."""
        waited_ms = 0
        while waited_ms < max_wait_ms:
            try:
                await page.wait_for_load_state("domcontentloaded", timeout=3000)
            except PlaywrightError:
                waited_ms += 3000
                continue

            await self.sweep(page)

            if not await self._any_loading_indicator(page):
                await self.sweep(page)
                await page.wait_for_timeout(2000)
                return

            await page.wait_for_timeout(1000)
            waited_ms += 1000

        if self._logger is not None:
            self._logger.warning("page_not_ready", max_wait_ms=max_wait_ms)

    # -- helpers ------------------------------------------------------------

    async def _click_if_visible(self, page: Any, selector: str) -> bool:
        try:
            element = page.locator(selector).first
            if not await element.is_visible(timeout=VISIBILITY_TIMEOUT_MS):
                return False
            await element.click(timeout=CLICK_TIMEOUT_MS)
        except PlaywrightError:
            return False
        return True

    async def _any_loading_indicator(self, page: Any) -> bool:
        for selector in LOADING_INDICATOR_SELECTORS:
            try:
                if await page.locator(selector).first.is_visible(timeout=VISIBILITY_TIMEOUT_MS):
                    return True
            except PlaywrightError:
                continue
        return False
