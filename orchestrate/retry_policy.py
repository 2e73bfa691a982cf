"""
Retry policy for task attempt cycles.

Responsibilities:
- Backoff timing (exponential, capped)
- Retryability decisions per error class
- Attempt budget enforcement

The decision functions are pure. retry_operation is the only piece that
awaits anything, and its sleep is injectable.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from browse.errors import FieldError, InteractionError

from .errors import InvalidConfig, StorageError


T = TypeVar("T")


# ---------------------------------------------------------------------------
# Default policy
# ---------------------------------------------------------------------------

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_DELAY_MS = 2000
DEFAULT_MAX_DELAY_MS = 10000
DEFAULT_BACKOFF_FACTOR = 2.0


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and backoff curve for one task."""
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    initial_delay_ms: int = DEFAULT_INITIAL_DELAY_MS
    max_delay_ms: int = DEFAULT_MAX_DELAY_MS
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR


def validate_policy(policy: RetryPolicy) -> RetryPolicy:
    if policy.max_attempts < 1:
        raise InvalidConfig(f"max_attempts must be >= 1, got {policy.max_attempts}")
    if policy.initial_delay_ms < 0 or policy.max_delay_ms < 0:
        raise InvalidConfig("retry delays must be >= 0")
    if policy.backoff_factor < 1:
        raise InvalidConfig(f"backoff_factor must be >= 1, got {policy.backoff_factor}")
    return policy


# ---------------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------------

# A missing selector will not appear on retry; storage faults are not transient
NON_RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    FieldError,
    InteractionError,
    StorageError,
    InvalidConfig,
)


def compute_backoff_delay(attempt: int, policy: RetryPolicy) -> float:
    """
    Delay in ms before attempt + 1, where attempt (>= 1) just failed.

    min(initial_delay_ms * backoff_factor ** (attempt - 1), max_delay_ms)
    """
    exponent = max(0, attempt - 1)
    delay = policy.initial_delay_ms * (policy.backoff_factor ** exponent)
    return min(delay, policy.max_delay_ms)


def should_retry_error(error: BaseException) -> bool:
    """Default predicate: everything is retryable except NON_RETRYABLE_ERRORS."""
    return not isinstance(error, NON_RETRYABLE_ERRORS)


def has_attempts_left(attempt: int, policy: RetryPolicy) -> bool:
    return attempt < policy.max_attempts


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------

async def retry_operation(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    should_retry: Callable[[BaseException], bool] | None = None,
    on_retry: Callable[[Exception, int], None] | None = None,
    on_attempt: Callable[[int], None] | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run operation until it succeeds or the policy gives up.

    on_attempt(n) runs before attempt n. After a failed attempt that is not
    the last, a False should_retry(error) re-raises at once; otherwise
    on_retry(error, n) runs synchronously before the backoff sleep. The last
    error is re-raised unwrapped.
    """
    attempt = 0
    while True:
        attempt += 1
        if on_attempt is not None:
            on_attempt(attempt)
        try:
            return await operation()
        except Exception as exc:
            if not has_attempts_left(attempt, policy):
                raise
            if should_retry is not None and not should_retry(exc):
                raise
            if on_retry is not None:
                on_retry(exc, attempt)
            await sleep(compute_backoff_delay(attempt, policy) / 1000.0)


__all__ = [
    "RetryPolicy",
    "NON_RETRYABLE_ERRORS",
    "compute_backoff_delay",
    "should_retry_error",
    "has_attempts_left",
    "retry_operation",
    "validate_policy",
]
