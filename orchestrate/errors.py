"""
Run-level errors for lookup orchestration.
"""


class LookupCrawlerError(Exception):
    """Base class for orchestration errors."""
    pass


class InvalidConfig(LookupCrawlerError, ValueError):
    """Malformed or empty run input. Fatal to the run, never retried."""
    pass


class StorageError(LookupCrawlerError):
    """Filesystem fault while creating run directories or writing artifacts."""
    pass


class ResourceTimeout(LookupCrawlerError):
    """A task's attempt cycle exceeded its deadline; the browser may be wedged."""
    pass


class RunAborted(LookupCrawlerError):
    """The shared browser could not be started or restarted."""
    pass


class InvalidTransition(LookupCrawlerError):
    """A task status write that the task state machine does not allow."""
    pass
