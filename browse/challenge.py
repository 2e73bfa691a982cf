"""
Bot challenge and block detection on a loaded page.

Side-effect free: callers pass page HTML and act on the classification.
Markers are matched against visible text only, so words such as
"challenge" inside inline scripts do not trigger false positives.
"""

from __future__ import annotations

from bs4 import BeautifulSoup


CHALLENGE_MARKERS = [
    "checking your browser",
    "checking the site connection security",
    "just a moment",
    "verify you are human",
    "are you a robot",
    "captcha",
    "security verification",
    "安全验证",
    "请完成验证",
]

BLOCK_MARKERS = [
    "your request has been blocked",
    "request blocked",
    "access denied",
    "403 forbidden",
    "too many requests",
    "unusual traffic",
]

# Attributes that only appear on live challenge widgets
_CHALLENGE_ATTR_HINTS = ("cf-browser-verification", "cf-challenge", "g-recaptcha", "h-captcha")

CLEAR = "clear"
CHALLENGE = "challenge"
BLOCKED = "blocked"


def visible_text(html: str | None) -> str:
    """Lowercased visible text of a page (title + body, scripts/styles removed)."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    return " ".join(soup.get_text(" ").split()).lower()


def _has_challenge_widget(html: str) -> bool:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(True):
        classes = " ".join(tag.get("class", []))
        ident = tag.get("id") or ""
        if any(hint in classes or hint in ident for hint in _CHALLENGE_ATTR_HINTS):
            return True
    return False


def marker_hits(html: str | None, markers: list[str]) -> list[str]:
    text = visible_text(html)
    return [m for m in markers if m in text]


def classify_page(html: str | None) -> str:
    """Return CHALLENGE, BLOCKED or CLEAR for the current page HTML."""
    if not html:
        return CLEAR
    if marker_hits(html, CHALLENGE_MARKERS) or _has_challenge_widget(html):
        return CHALLENGE
    if marker_hits(html, BLOCK_MARKERS):
        return BLOCKED
    return CLEAR
