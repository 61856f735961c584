"""
Retry policy shared by the credential manager and the request executor.

A single ``RetryPolicy`` is configured once per client and describes how
many attempts a call gets and how long to back off between them. Server
errors and transport failures back off exponentially; throttled requests
wait for the ``Retry-After`` value Reddit sent.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
)

from .exceptions import RateLimitError

logger = structlog.get_logger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry with exponential backoff.

    Attributes:
        max_attempts: Total attempts per call, first try included
        initial_backoff: Delay before the second attempt, in seconds
        multiplier: Growth factor between successive delays
        max_backoff: Upper bound for an exponential delay
        max_retry_after: Upper bound for a server supplied Retry-After
        sleep: Coroutine used to wait (injectable for tests)

    Example:
        >>> policy = RetryPolicy(max_attempts=4, initial_backoff=0.5)
        >>> [policy.backoff(n) for n in (1, 2, 3)]
        [0.5, 1.0, 2.0]
    """

    max_attempts: int = 3
    initial_backoff: float = 1.0
    multiplier: float = 2.0
    max_backoff: float = 30.0
    max_retry_after: float = 600.0
    sleep: SleepFunc = field(default=asyncio.sleep, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_backoff < 0 or self.max_backoff < 0:
            raise ValueError("backoff values must be non-negative")

    def backoff(self, attempt_number: int) -> float:
        """Delay after the given (1-based) failed attempt."""
        delay = self.initial_backoff * (self.multiplier ** (attempt_number - 1))
        return min(delay, self.max_backoff)

    def wait_for(self, retry_state: RetryCallState) -> float:
        """tenacity wait strategy honouring Retry-After on throttling."""
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, RateLimitError) and exc.retry_after is not None:
            return min(max(float(exc.retry_after), 0.0), self.max_retry_after)
        return self.backoff(retry_state.attempt_number)

    def retrying(self, *retry_on: type[BaseException]) -> AsyncRetrying:
        """
        Build a tenacity controller retrying the given exception types.

        Example:
            >>> async for attempt in policy.retrying(ServerError):
            ...     with attempt:
            ...         return await do_request()
        """
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self.wait_for,
            retry=retry_if_exception_type(retry_on),
            sleep=self.sleep,
            before_sleep=_log_retry,
            reraise=True,
        )


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    wait_seconds = retry_state.next_action.sleep if retry_state.next_action else 0.0
    logger.warning(
        "request_retry_scheduled",
        attempt=retry_state.attempt_number,
        wait_seconds=round(wait_seconds, 2),
        error=str(exc),
        error_type=type(exc).__name__,
    )
