"""
Browser automation for site searches.

Primary interface:
    from browse import PlaywrightAutomation, BrowserOptions, SiteDescriptor

    automation = PlaywrightAutomation(BrowserOptions(headless=False))
    await automation.open_session()
    page = await automation.open_page()
    await automation.navigate(page, site.home_url)
    await automation.type_into_field(page, site.search_input_selector, "Acme Corp")
    await automation.click_and_await_results(
        page, site.search_button_selector, site.results_selector, site.needs_navigation
    )
    png = await automation.capture_full_page(page)
"""

from .automation import Automation, PlaywrightAutomation
from .config import BrowserOptions, SiteDescriptor
from .errors import (
    CaptureError,
    DriverError,
    FieldError,
    InteractionError,
    NavigationError,
)
from .session import BrowserSession


__all__ = [
    'Automation',
    'PlaywrightAutomation',
    'BrowserOptions',
    'BrowserSession',
    'SiteDescriptor',
    'DriverError',
    'NavigationError',
    'FieldError',
    'InteractionError',
    'CaptureError',
]
