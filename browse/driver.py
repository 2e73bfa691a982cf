"""
Page-level steps of a site search: load, clear challenge, type, submit, capture.

Every step converts Playwright failures into the matching browse.errors
class. Waits that only improve screenshot quality (network idle, results
area) tolerate timeouts.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .challenge import BLOCKED, CLEAR, classify_page
from .config import BrowserOptions
from .errors import CaptureError, FieldError, InteractionError, NavigationError
from .human import random_pause, type_like_human

if TYPE_CHECKING:
    from playwright.async_api import Page


# Fixed strip along the bottom edge of the page; padding keeps it from
# covering the last row of results in a full-page capture.
_WATERMARK_JS = """
(label) => {
    const strip = document.createElement('div');
    Object.assign(strip.style, {
        position: 'fixed',
        bottom: '0',
        left: '0',
        right: '0',
        padding: '10px',
        backgroundColor: 'rgba(255, 255, 255, 0.9)',
        color: '#666',
        fontSize: '12px',
        zIndex: '9999',
        borderTop: '1px solid #ddd',
        textAlign: 'left',
        fontFamily: 'Arial, sans-serif'
    });
    strip.textContent = label;
    strip.setAttribute('data-lookup-watermark', '1');
    document.body.appendChild(strip);
    document.body.style.paddingBottom = '40px';
}
"""

MAX_CLEAR_ROUNDS = 5


async def wait_for_network_idle(page: "Page", timeout_ms: int) -> bool:
    """Wait for network idle; returns False on timeout instead of raising."""
    try:
        await page.wait_for_load_state("networkidle", timeout=timeout_ms)
        return True
    except PlaywrightTimeoutError:
        return False


async def navigate(page: "Page", url: str, options: BrowserOptions) -> None:
    """Load url and let the page settle."""
    try:
        await page.goto(url, wait_until="domcontentloaded", timeout=options.navigation_timeout_ms)
    except PlaywrightError as exc:
        raise NavigationError(f"Failed to load {url}: {exc}") from exc
    await wait_for_network_idle(page, options.network_idle_timeout_ms)


async def resolve_challenge(
    page: "Page",
    options: BrowserOptions,
    poll_interval: float = 1.0,
) -> None:
    """
    Wait until no bot challenge is showing.

    In a visible browser this is the window for a human to solve it.
    Raises NavigationError when the page is blocked outright or the
    challenge is still up after challenge_timeout_ms.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + options.challenge_timeout_ms / 1000.0

    while True:
        try:
            html = await page.content()
        except PlaywrightError as exc:
            raise NavigationError(f"Could not read page during challenge: {exc}") from exc

        state = classify_page(html)
        if state == CLEAR:
            return
        if state == BLOCKED:
            raise NavigationError(f"Blocked by site at {page.url}")
        if loop.time() >= deadline:
            raise NavigationError(
                f"Challenge not cleared within {options.challenge_timeout_ms // 1000}s at {page.url}"
            )
        await asyncio.sleep(poll_interval)


async def read_field_value(page: "Page", selector: str) -> str:
    return (await page.input_value(selector)).strip()


async def clear_field(page: "Page", selector: str) -> str:
    """Select-all + Backspace until empty; falls back to fill('')."""
    value = await read_field_value(page, selector)
    rounds = 0
    while value and rounds < MAX_CLEAR_ROUNDS:
        await page.click(selector, click_count=3)
        await page.keyboard.press("Backspace")
        await random_pause(200, 500)
        value = await read_field_value(page, selector)
        rounds += 1
    if value:
        await page.fill(selector, "")
        value = await read_field_value(page, selector)
    return value


async def type_into_field(page: "Page", selector: str, text: str, options: BrowserOptions) -> None:
    """
    Type text into the search field and verify the field holds exactly text.

    Raises FieldError if the field never appears or its content still
    differs after max_type_attempts rounds of clear-and-retype.
    """
    try:
        await page.wait_for_selector(selector, state="visible", timeout=options.field_timeout_ms)
    except PlaywrightError as exc:
        raise FieldError(f"Search field not found: {selector}") from exc

    expected = text.strip()
    value = ""
    try:
        for _ in range(max(1, options.max_type_attempts)):
            await clear_field(page, selector)
            await type_like_human(page, selector, expected, fast=not options.human_typing)
            value = await read_field_value(page, selector)
            if value == expected:
                return
            await random_pause(500, 1000)
    except PlaywrightError as exc:
        raise FieldError(f"Could not type into {selector}: {exc}") from exc

    raise FieldError(f"Search field {selector} holds {value!r}, expected {expected!r}")


async def click_and_await_results(
    page: "Page",
    trigger_selector: str,
    results_selector: str,
    navigation_expected: bool,
    options: BrowserOptions,
) -> bool:
    """
    Click the search trigger and wait for the results area.

    Returns False when the results area never became visible; the page is
    still worth capturing (empty result pages render differently per site).
    """
    try:
        await page.wait_for_selector(trigger_selector, state="visible", timeout=options.default_timeout_ms)
        await page.click(trigger_selector)
    except PlaywrightError as exc:
        raise InteractionError(f"Search trigger not clickable: {trigger_selector}") from exc

    if navigation_expected:
        try:
            await page.wait_for_load_state("load", timeout=options.navigation_timeout_ms)
        except PlaywrightTimeoutError:
            pass  # some sites update in place despite the flag
    await wait_for_network_idle(page, options.network_idle_timeout_ms)

    timeout = options.results_navigation_timeout_ms if navigation_expected else options.results_timeout_ms
    try:
        await page.wait_for_selector(results_selector, state="visible", timeout=timeout)
    except PlaywrightTimeoutError:
        return False
    return True


async def stamp(page: "Page", label: str) -> None:
    """Overlay a provenance strip (site, entity, query time) before capture."""
    try:
        await page.evaluate(_WATERMARK_JS, label)
    except PlaywrightError as exc:
        raise CaptureError(f"Could not stamp page: {exc}") from exc
    await random_pause(500, 1000)


async def capture_full_page(page: "Page") -> bytes:
    try:
        return await page.screenshot(full_page=True, type="png")
    except PlaywrightError as exc:
        raise CaptureError(f"Screenshot failed: {exc}") from exc
