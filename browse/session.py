"""
Shared browser session for a lookup run.

One Chromium process serves every task; each task gets its own browser
context and page, so cookies and storage never leak between tasks running
side by side.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from playwright.async_api import async_playwright

from .config import BrowserOptions

if TYPE_CHECKING:
    from playwright.async_api import Browser, Page, Playwright


class BrowserSession:
    """Lazily launched Chromium plus per-task isolated pages."""

    def __init__(self, options: BrowserOptions | None = None):
        self.options = options or BrowserOptions()
        self._playwright: "Playwright | None" = None
        self._browser: "Browser | None" = None

    @property
    def is_open(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    async def open(self) -> None:
        """Launch the browser; no-op if already running."""
        if self.is_open:
            return
        if self._playwright is None:
            self._playwright = await async_playwright().start()

        args = list(self.options.launch_args)
        args.append(f"--window-size={self.options.viewport_width},{self.options.viewport_height}")
        self._browser = await self._playwright.chromium.launch(
            headless=self.options.headless,
            args=args,
        )

    async def close(self) -> None:
        """Close the browser and stop Playwright. Safe to call repeatedly."""
        browser, self._browser = self._browser, None
        playwright, self._playwright = self._playwright, None
        try:
            if browser is not None:
                await browser.close()
        finally:
            if playwright is not None:
                await playwright.stop()

    async def new_page(self) -> "Page":
        """Open an isolated context + page configured from options."""
        if not self.is_open:
            raise RuntimeError("Browser session is not open")

        context = await self._browser.new_context(**self.options.context_options())
        context.set_default_navigation_timeout(self.options.navigation_timeout_ms)
        context.set_default_timeout(self.options.default_timeout_ms)
        page = await context.new_page()

        if self.options.stealth:
            from playwright_stealth import Stealth
            await Stealth().apply_stealth_async(page)

        return page

    @staticmethod
    async def close_page(page: "Page") -> None:
        """Close a page together with the context it owns."""
        context = page.context
        try:
            await page.close()
        finally:
            await context.close()
