"""
Configuration for browser automation: site descriptors and launch options.
"""

from dataclasses import dataclass, field
from typing import Any


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# Chromium flags for running inside containers and CI
DEFAULT_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]

# snake_case field -> accepted aliases (camelCase from the web client)
_SITE_ALIASES = {
    "name": ("name",),
    "home_url": ("home_url", "homeUrl", "url"),
    "search_input_selector": ("search_input_selector", "searchInputSelector"),
    "search_button_selector": ("search_button_selector", "searchButtonSelector"),
    "results_selector": ("results_selector", "resultsSelector"),
    "needs_navigation": ("needs_navigation", "needsNavigation"),
    "needs_challenge": ("needs_challenge", "needsChallenge", "needsCaptcha"),
}

_REQUIRED_SITE_FIELDS = (
    "name",
    "home_url",
    "search_input_selector",
    "search_button_selector",
    "results_selector",
)


@dataclass(frozen=True)
class SiteDescriptor:
    """A searchable target site and the selectors needed to drive it."""
    name: str
    home_url: str
    search_input_selector: str
    search_button_selector: str
    results_selector: str
    needs_navigation: bool = False  # search submits to a new page
    needs_challenge: bool = False   # bot challenge may need a human in a visible browser

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SiteDescriptor":
        """Build from a config/client dict; raises ValueError on missing fields."""
        if not isinstance(data, dict):
            raise ValueError(f"Site entry must be a mapping, got {type(data).__name__}")

        values: dict[str, Any] = {}
        for key, aliases in _SITE_ALIASES.items():
            for alias in aliases:
                if alias in data and data[alias] is not None:
                    values[key] = data[alias]
                    break

        missing = [k for k in _REQUIRED_SITE_FIELDS if not str(values.get(k, "")).strip()]
        if missing:
            label = values.get("name") or "<unnamed>"
            raise ValueError(f"Site {label!r} missing required fields: {', '.join(missing)}")

        for key in _REQUIRED_SITE_FIELDS:
            values[key] = str(values[key]).strip()
        values["needs_navigation"] = bool(values.get("needs_navigation", False))
        values["needs_challenge"] = bool(values.get("needs_challenge", False))
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "home_url": self.home_url,
            "search_input_selector": self.search_input_selector,
            "search_button_selector": self.search_button_selector,
            "results_selector": self.results_selector,
            "needs_navigation": self.needs_navigation,
            "needs_challenge": self.needs_challenge,
        }


@dataclass
class BrowserOptions:
    """Launch and page settings for the shared browser."""

    headless: bool = True
    viewport_width: int = 1366
    viewport_height: int = 768
    user_agent: str = DEFAULT_USER_AGENT
    stealth: bool = False  # requires playwright-stealth
    launch_args: list[str] = field(default_factory=lambda: list(DEFAULT_LAUNCH_ARGS))

    # Timeouts
    navigation_timeout_ms: int = 30000
    default_timeout_ms: int = 15000
    field_timeout_ms: int = 30000
    network_idle_timeout_ms: int = 30000
    results_timeout_ms: int = 5000
    results_navigation_timeout_ms: int = 10000
    challenge_timeout_ms: int = 45000

    # Typing
    max_type_attempts: int = 3
    human_typing: bool = True

    def context_options(self) -> dict:
        """Return options dict for Playwright context creation."""
        return {
            "viewport": {"width": self.viewport_width, "height": self.viewport_height},
            "user_agent": self.user_agent,
        }
