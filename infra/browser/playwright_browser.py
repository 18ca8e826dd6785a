from __future__ import annotations

from typing import Any

VIEWPORT = {"width": 1280, "height": 720}
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class PlaywrightBrowser:
    """
    Playwright-backed implementation of ``BrowserPort``.

    Requires ``playwright`` to be installed and browsers set up via
    ``playwright install chromium``.

    One Chromium process and context are shared by every task of a
    workflow; each task gets its own page. Call ``close()`` when finished.
    """

    def __init__(self, *, headless: bool = True) -> None:
        self._headless = headless
        self._playwright: Any = None
        self._browser: Any = None
        self._context: Any = None

    async def launch(self) -> None:
        from playwright.async_api import async_playwright

        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(headless=self._headless)
            self._context = await self._browser.new_context(
                viewport=VIEWPORT,
                user_agent=USER_AGENT,
            )
        except BaseException:
            # Release the driver and any half-built browser before re-raising.
            await self.close()
            raise

    async def new_page(self) -> Any:
        if self._context is None:
            raise RuntimeError("Browser not launched. Call launch() first.")
        return await self._context.new_page()

    async def close(self) -> None:
        if self._context:
            await self._context.close()
        if self._browser:
            await self._browser.close()
        if self._playwright:
            await self._playwright.stop()
        self._context = None
        self._browser = None
        self._playwright = None
