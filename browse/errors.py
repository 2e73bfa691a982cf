"""
Errors raised by the browser automation layer.

Each maps to one step of a search-and-capture attempt so callers can decide
whether a retry has any chance of helping.
"""


class DriverError(Exception):
    """Base class for automation failures on a single page."""
    pass


class NavigationError(DriverError):
    """Page could not be loaded (network, DNS, navigation timeout, challenge)."""
    pass


class FieldError(DriverError):
    """Search field missing, or its content never matched the typed text."""
    pass


class InteractionError(DriverError):
    """Search trigger could not be found or clicked."""
    pass


class CaptureError(DriverError):
    """Screenshot could not be rendered."""
    pass
