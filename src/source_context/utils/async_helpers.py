"""Error taxonomy and retry helpers for remote calls.

This module provides:
- Custom exceptions for the source context engine
- Retry decorators with exponential backoff for transient transport errors
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

import httpx
import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

log = structlog.get_logger()

P = ParamSpec("P")
T = TypeVar("T")


# =============================================================================
# Custom Exceptions
# =============================================================================


class EngineError(Exception):
    """Base exception for all engine errors."""


class SourceContextError(EngineError):
    """Source context could not be built for an error report."""


class NoStackTraceError(SourceContextError):
    """The report carries no parseable exception or stack trace."""


class NoApplicationFilesError(SourceContextError):
    """The trace exists but every frame is vendor or runtime code."""


class NoFilesRetrievedError(SourceContextError):
    """Candidate files existed but none could be fetched."""


class TransportError(EngineError):
    """A genuine failure talking to the repository host."""


class AuthenticationError(TransportError):
    """The repository host rejected our credentials."""


class RateLimitError(TransportError):
    """Rate limit exceeded.

    Attributes:
        retry_after: Number of seconds to wait before retrying, if known.
    """

    def __init__(self, message: str, retry_after: int | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class FetcherNotReadyError(TransportError):
    """The file fetcher has not been authorized yet."""


# =============================================================================
# Retry Decorator
# =============================================================================


TRANSIENT_ERRORS: tuple[type[Exception], ...] = (httpx.TimeoutException, httpx.NetworkError)


def _log_retry(retry_state: RetryCallState) -> None:
    """Log retry attempts for debugging."""
    if retry_state.outcome is None:
        return

    exception = retry_state.outcome.exception()
    if exception:
        log.warning(
            "retrying_operation",
            attempt=retry_state.attempt_number,
            exception_type=type(exception).__name__,
            exception_message=str(exception),
            wait_time=retry_state.next_action.sleep if retry_state.next_action else 0,
        )


def create_retry(
    max_attempts: int = 3,
    min_wait: float = 1.0,
    max_wait: float = 30.0,
    retry_on: tuple[type[Exception], ...] = TRANSIENT_ERRORS,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Create a customized retry decorator.

    Args:
        max_attempts: Maximum number of attempts, including the first.
        min_wait: Minimum wait time between retries (seconds).
        max_wait: Maximum wait time between retries (seconds).
        retry_on: Tuple of exception types to retry on.

    Returns:
        A retry decorator configured with the given parameters.
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(retry_on),
        before_sleep=_log_retry,
        reraise=True,
    )
