"""
Run-scoped ownership of the shared browser session.

State machine:
    idle --acquire--> live --recycle--> recycling --> live
    live|recycling --release--> idle

Page acquisition waits while the gate is recycling, so no task opens a
page on a browser that is being torn down. Only the orchestrator drives
the transitions.
"""

from __future__ import annotations

import asyncio
import sys
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncIterator

from .errors import RunAborted

if TYPE_CHECKING:
    from browse.automation import Automation


IDLE = "idle"
LIVE = "live"
RECYCLING = "recycling"

PAGE_CLOSE_TIMEOUT_S = 10.0


class ResourceGate:
    """Single-owner wrapper around an Automation session."""

    def __init__(self, automation: "Automation"):
        self.automation = automation
        self.state = IDLE
        self.generation = 0  # bumps on every successful (re)start
        self._ready = asyncio.Event()

    @property
    def is_live(self) -> bool:
        return self.state == LIVE

    async def acquire(self) -> None:
        """Start the session if not already live."""
        if self.state == LIVE:
            return
        await self._start()

    async def recycle(self) -> None:
        """Close and reopen the session; pages wait until it is live again."""
        self.state = RECYCLING
        self._ready.clear()
        try:
            await self.automation.close_session()
        except Exception as exc:
            # A wedged browser often fails to close cleanly; reopening is what matters
            print(f"  [resource] close during recycle failed: {exc}", file=sys.stderr)
        await self._start()

    async def release(self) -> None:
        """Close the session. Safe to call in any state."""
        self._ready.clear()
        was_open = self.state != IDLE
        self.state = IDLE
        if was_open:
            await self.automation.close_session()

    async def _start(self) -> None:
        try:
            await self.automation.open_session()
        except Exception as exc:
            self.state = IDLE
            raise RunAborted(f"Browser session could not be started: {exc}") from exc
        self.state = LIVE
        self.generation += 1
        self._ready.set()

    @asynccontextmanager
    async def page(self) -> AsyncIterator[Any]:
        """Open an isolated page for one task; always closed on exit."""
        if self.state == IDLE:
            raise RuntimeError("Browser session not acquired")
        await self._ready.wait()
        generation = self.generation
        page = await self.automation.open_page()
        try:
            yield page
        finally:
            await self._close_page(page, generation)

    async def _close_page(self, page: Any, generation: int) -> None:
        if generation != self.generation or self.state != LIVE:
            # Browser was restarted or released; the page went down with it
            return
        try:
            await asyncio.wait_for(self.automation.close_page(page), timeout=PAGE_CLOSE_TIMEOUT_S)
        except (Exception, asyncio.TimeoutError) as exc:
            print(f"  [resource] page close failed: {exc!r}", file=sys.stderr)
