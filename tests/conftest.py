"""
Shared fixtures for lookup tests.

FakeAutomation stands in for Playwright: it keeps pages in memory, counts
session opens/closes, and plays scripted outcomes per (entity, site).
"""

import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import urlparse

import pytest

# Ensure project root on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from browse.config import SiteDescriptor


FIXED_AS_OF = datetime(2026, 3, 14, 9, 30, 0, tzinfo=timezone.utc)
PNG_BYTES = b"\x89PNG\r\n\x1a\nfake"

OK = "ok"
HANG = "hang"


def make_site(name: str, **overrides) -> SiteDescriptor:
    values = {
        "name": name,
        "home_url": f"https://{name.lower()}.test/",
        "search_input_selector": "#q",
        "search_button_selector": "#go",
        "results_selector": "#results",
    }
    values.update(overrides)
    return SiteDescriptor(**values)


class FakePage:
    def __init__(self, number: int):
        self.number = number
        self.url = None
        self.entity = None
        self.stamped = None


class FakeAutomation:
    """
    In-memory Automation.

    outcomes maps (entity, lower-case site name) to a list consumed one per
    attempt: OK, HANG, or an exception instance to raise. Missing or
    exhausted lists mean OK.
    """

    def __init__(self, outcomes=None, fail_open=False, results_found=True):
        self.outcomes = {k: list(v) for k, v in (outcomes or {}).items()}
        self.fail_open = fail_open
        self.results_found = results_found
        self.session_opens = 0
        self.session_closes = 0
        self.session_live = False
        self.open_pages: set[int] = set()
        self.pages_opened = 0
        self.max_open_pages = 0
        self.attempts: list[tuple[str, str]] = []
        self.stamps: list[str] = []

    async def open_session(self):
        if self.fail_open:
            raise RuntimeError("chromium failed to launch")
        self.session_opens += 1
        self.session_live = True

    async def close_session(self):
        self.session_closes += 1
        self.session_live = False
        self.open_pages.clear()

    async def open_page(self):
        assert self.session_live, "page opened without a live session"
        self.pages_opened += 1
        page = FakePage(self.pages_opened)
        self.open_pages.add(page.number)
        self.max_open_pages = max(self.max_open_pages, len(self.open_pages))
        return page

    async def close_page(self, page):
        self.open_pages.discard(page.number)

    async def navigate(self, page, url):
        page.url = url
        await asyncio.sleep(0)

    async def resolve_challenge(self, page):
        await asyncio.sleep(0)

    async def type_into_field(self, page, selector, text):
        page.entity = text
        site_name = urlparse(page.url).hostname.split(".")[0]
        key = (text, site_name)
        self.attempts.append(key)
        queue = self.outcomes.get(key) or []
        outcome = queue.pop(0) if queue else OK
        if outcome == HANG:
            await asyncio.sleep(3600)
        elif isinstance(outcome, BaseException):
            raise outcome
        await asyncio.sleep(0)

    async def click_and_await_results(self, page, trigger_selector, results_selector, navigation_expected):
        await asyncio.sleep(0)
        return self.results_found

    async def stamp(self, page, label):
        page.stamped = label
        self.stamps.append(label)

    async def capture_full_page(self, page):
        await asyncio.sleep(0)
        return PNG_BYTES


class SnapshotRecorder:
    """Subscriber that keeps every published snapshot."""

    def __init__(self):
        self.snapshots = []

    def __call__(self, snapshot):
        self.snapshots.append(snapshot)

    @property
    def last(self):
        return self.snapshots[-1]


class SleepRecorder:
    """Injectable sleep that records requested delays and returns at once."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture
def fake_automation():
    return FakeAutomation()


@pytest.fixture
def recorder():
    return SnapshotRecorder()


@pytest.fixture
def no_sleep():
    return SleepRecorder()


@pytest.fixture
def two_sites():
    return [make_site("SiteA"), make_site("SiteB")]
