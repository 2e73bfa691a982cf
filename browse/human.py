"""
Human-like pacing for search form interaction.

Search boxes on lookup sites often debounce input or run suggestion
scripts per keystroke; typing too fast leaves the field half-filled.
"""

import asyncio
import random


def typing_delay(char: str) -> float:
    """
    Delay in seconds after typing one character into a search box.

    Slower than free-text typing: ~300-700ms per key, with an extra
    pause after spaces and punctuation and a rare longer hesitation.
    """
    base = random.uniform(0.3, 0.7)

    # Cognitive pause after word boundaries
    if char in ' .,;:!?()':
        base += random.uniform(0.05, 0.2)

    # Occasional hesitation (2% chance)
    if random.random() < 0.02:
        base += random.uniform(0.5, 1.0)

    return base


def pause_seconds(min_ms: int, max_ms: int) -> float:
    """Uniform pause between min_ms and max_ms, in seconds."""
    if max_ms < min_ms:
        min_ms, max_ms = max_ms, min_ms
    return random.randint(min_ms, max_ms) / 1000.0


async def random_pause(min_ms: int, max_ms: int) -> None:
    """Sleep for a random duration in [min_ms, max_ms]."""
    await asyncio.sleep(pause_seconds(min_ms, max_ms))


async def type_like_human(page, selector: str, text: str, fast: bool = False) -> None:
    """
    Focus the element and type text one key at a time.

    Args:
        page: Playwright async page
        selector: Element to type into
        text: Text to type
        fast: Skip per-key delays (tests, trusted sites)
    """
    await page.focus(selector)
    for char in text:
        await page.keyboard.type(char)
        if not fast:
            await asyncio.sleep(typing_delay(char))
