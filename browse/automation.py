"""
Automation capability consumed by the lookup orchestrator.

The orchestrator only talks to this interface; PlaywrightAutomation is the
production implementation and tests substitute an in-memory fake.
"""

from __future__ import annotations

from typing import Any, Protocol

from . import driver
from .config import BrowserOptions
from .session import BrowserSession


class Automation(Protocol):
    async def open_session(self) -> None: ...

    async def close_session(self) -> None: ...

    async def open_page(self) -> Any: ...

    async def close_page(self, page: Any) -> None: ...

    async def navigate(self, page: Any, url: str) -> None: ...

    async def resolve_challenge(self, page: Any) -> None: ...

    async def type_into_field(self, page: Any, selector: str, text: str) -> None: ...

    async def click_and_await_results(
        self,
        page: Any,
        trigger_selector: str,
        results_selector: str,
        navigation_expected: bool,
    ) -> bool: ...

    async def stamp(self, page: Any, label: str) -> None: ...

    async def capture_full_page(self, page: Any) -> bytes: ...


class PlaywrightAutomation:
    """Automation backed by one shared Chromium via Playwright."""

    def __init__(self, options: BrowserOptions | None = None):
        self.options = options or BrowserOptions()
        self.session = BrowserSession(self.options)

    async def open_session(self) -> None:
        await self.session.open()

    async def close_session(self) -> None:
        await self.session.close()

    async def open_page(self):
        return await self.session.new_page()

    async def close_page(self, page) -> None:
        await self.session.close_page(page)

    async def navigate(self, page, url: str) -> None:
        await driver.navigate(page, url, self.options)

    async def resolve_challenge(self, page) -> None:
        await driver.resolve_challenge(page, self.options)

    async def type_into_field(self, page, selector: str, text: str) -> None:
        await driver.type_into_field(page, selector, text, self.options)

    async def click_and_await_results(
        self,
        page,
        trigger_selector: str,
        results_selector: str,
        navigation_expected: bool,
    ) -> bool:
        return await driver.click_and_await_results(
            page, trigger_selector, results_selector, navigation_expected, self.options
        )

    async def stamp(self, page, label: str) -> None:
        await driver.stamp(page, label)

    async def capture_full_page(self, page) -> bytes:
        return await driver.capture_full_page(page)
