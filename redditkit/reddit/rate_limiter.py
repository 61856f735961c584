"""
Adaptive Rate Limiter for Reddit API.

Tracks two budgets: a steady budget mirroring the quota Reddit reports in
its ``x-ratelimit-*`` response headers, and a small local burst budget that
lets short runs of requests go out without pacing. Every outbound request
acquires a slot here first.
"""

import asyncio
import time
from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional

import structlog

logger = structlog.get_logger(__name__)

REMAINING_HEADER = "x-ratelimit-remaining"
RESET_HEADER = "x-ratelimit-reset"
USED_HEADER = "x-ratelimit-used"


@dataclass
class RateBudget:
    """Current request allowance; timestamps are on the limiter's clock."""

    steady_remaining: int
    steady_reset_at: float
    burst_remaining: int
    burst_reset_at: float


@dataclass(frozen=True)
class SlotPermit:
    """Proof that a request may be dispatched."""

    source: str  # "burst" or "steady"
    waited_seconds: float


class AdaptiveRateLimiter:
    """
    Dual-budget rate limiter for Reddit API requests.

    While both budgets have room a slot is granted immediately. Once the
    burst budget is spent, slots are paced evenly across the time left in
    the steady window. Once the steady budget is spent, callers suspend
    until it resets. Response headers overwrite the local estimate.

    Thread-safe using asyncio.Lock.
    """

    def __init__(
        self,
        steady_limit: int = 600,
        steady_period_seconds: float = 600,
        burst_limit: int = 10,
        burst_period_seconds: float = 10,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the rate limiter.

        Args:
            steady_limit: Requests allowed per steady window (default: 600)
            steady_period_seconds: Steady window length (default: 600)
            burst_limit: Requests allowed without pacing per burst window
            burst_period_seconds: Burst window length (default: 10)
            clock: Monotonic time source
            sleep: Coroutine used to suspend callers
        """
        if steady_limit < 1 or burst_limit < 0:
            raise ValueError("steady_limit must be positive and burst_limit non-negative")

        self.steady_limit = steady_limit
        self.steady_period = float(steady_period_seconds)
        self.burst_limit = burst_limit
        self.burst_period = float(burst_period_seconds)
        self._clock = clock
        self._sleep = sleep

        now = clock()
        self.budget = RateBudget(
            steady_remaining=steady_limit,
            steady_reset_at=now + self.steady_period,
            burst_remaining=burst_limit,
            burst_reset_at=now + self.burst_period,
        )
        self.used = 0
        self.dispatched = 0
        self._next_paced_at = 0.0
        self.lock = asyncio.Lock()

        logger.info(
            "rate_limiter_initialized",
            steady_limit=steady_limit,
            steady_period_seconds=steady_period_seconds,
            burst_limit=burst_limit,
            burst_period_seconds=burst_period_seconds,
        )

    def _replenish(self, now: float) -> None:
        budget = self.budget
        if now >= budget.steady_reset_at:
            budget.steady_remaining = self.steady_limit
            budget.steady_reset_at = now + self.steady_period
            self.used = 0
        if now >= budget.burst_reset_at:
            budget.burst_remaining = self.burst_limit
            budget.burst_reset_at = now + self.burst_period

    async def acquire_slot(self) -> SlotPermit:
        """
        Acquire permission to make an API call.

        Suspends the caller while the steady budget is exhausted, and paces
        callers when only the steady budget has room.

        Returns:
            SlotPermit describing which budget paid for the request

        Example:
            >>> limiter = AdaptiveRateLimiter(steady_limit=600, burst_limit=10)
            >>> permit = await limiter.acquire_slot()  # immediate
            >>> permit.source
            'burst'
        """
        started = self._clock()

        while True:
            async with self.lock:
                now = self._clock()
                self._replenish(now)
                budget = self.budget

                if budget.steady_remaining > 0 and budget.burst_remaining > 0:
                    budget.steady_remaining -= 1
                    budget.burst_remaining -= 1
                    self._record_dispatch()
                    return SlotPermit("burst", now - started)

                if budget.steady_remaining > 0:
                    slot_at = max(now, self._next_paced_at)
                    interval = max(budget.steady_reset_at - slot_at, 0.0) / budget.steady_remaining
                    budget.steady_remaining -= 1
                    self._next_paced_at = slot_at + interval
                    self._record_dispatch()
                    delay = slot_at - now
                    paced = True
                else:
                    delay = budget.steady_reset_at - now
                    paced = False

                    logger.warning(
                        "rate_limit_hit",
                        used=self.used,
                        steady_limit=self.steady_limit,
                        wait_seconds=round(delay, 2),
                    )

            # Sleep outside the lock so other callers can queue up
            if paced:
                if delay > 0:
                    logger.debug("rate_limit_paced", wait_seconds=round(delay, 3))
                    await self._sleep(delay)
                return SlotPermit("steady", self._clock() - started)

            await self._sleep(delay)

    def _record_dispatch(self) -> None:
        self.used += 1
        self.dispatched += 1
        if self.used > self.steady_limit * 0.9:
            logger.warning(
                "rate_limit_approaching",
                used=self.used,
                steady_limit=self.steady_limit,
                remaining=self.budget.steady_remaining,
            )

    def update_from_headers(self, headers: Mapping[str, str]) -> None:
        """
        Reconcile the steady budget with Reddit's rate limit headers.

        Header values are floats in string form (``"598.0"``). Missing
        headers leave the local estimate untouched.

        Args:
            headers: Response headers (case-insensitive mapping or a dict
                with lower-case keys)
        """
        remaining = _parse_header(headers, REMAINING_HEADER)
        reset = _parse_header(headers, RESET_HEADER)
        used = _parse_header(headers, USED_HEADER)

        if remaining is None and reset is None and used is None:
            return

        now = self._clock()
        budget = self.budget

        if used is not None:
            self.used = int(round(used))
        if remaining is not None:
            budget.steady_remaining = max(int(round(remaining)), 0)
            if used is not None:
                self.steady_limit = max(self.used + budget.steady_remaining, 1)
        if reset is not None:
            budget.steady_reset_at = now + max(reset, 0.0)

        logger.debug(
            "rate_limit_headers_applied",
            remaining=budget.steady_remaining,
            used=self.used,
            reset_in=round(budget.steady_reset_at - now, 2),
        )

    def note_throttled(self, retry_after: float) -> None:
        """
        Record a 429 so every caller backs off until ``retry_after`` passes.
        """
        now = self._clock()
        budget = self.budget
        until = now + max(retry_after, 0.0)
        budget.steady_remaining = 0
        budget.steady_reset_at = until
        budget.burst_remaining = 0
        budget.burst_reset_at = until
        self._next_paced_at = 0.0
        logger.warning("rate_limit_throttled", retry_after=retry_after)

    def get_remaining(self) -> int:
        """
        Get the number of requests left in the steady window.

        This is a synchronous method for quick status checks.

        Returns:
            Requests available before the limiter starts suspending callers
        """
        now = self._clock()
        if now >= self.budget.steady_reset_at:
            return self.steady_limit
        return max(0, self.budget.steady_remaining)

    async def reset(self) -> None:
        """
        Reset the rate limiter state.

        Useful for testing or manual intervention.
        """
        async with self.lock:
            now = self._clock()
            self.budget = RateBudget(
                steady_remaining=self.steady_limit,
                steady_reset_at=now + self.steady_period,
                burst_remaining=self.burst_limit,
                burst_reset_at=now + self.burst_period,
            )
            self.used = 0
            self._next_paced_at = 0.0
            logger.info("rate_limiter_reset")

    def get_stats(self) -> dict[str, Any]:
        """
        Get current rate limiter statistics.

        Returns:
            Dictionary with the budget, usage and utilization.

        Example:
            >>> stats = limiter.get_stats()
            >>> stats["steady_remaining"], stats["utilization_percent"]
            (555, 7.5)
        """
        now = self._clock()
        stats: dict[str, Any] = asdict(self.budget)
        stats["steady_reset_in"] = round(max(self.budget.steady_reset_at - now, 0.0), 2)
        stats["burst_reset_in"] = round(max(self.budget.burst_reset_at - now, 0.0), 2)
        stats["used"] = self.used
        stats["dispatched"] = self.dispatched
        stats["steady_limit"] = self.steady_limit
        stats["burst_limit"] = self.burst_limit
        stats["utilization_percent"] = round(self.used / self.steady_limit * 100, 2)
        return stats


def _parse_header(headers: Mapping[str, str], name: str) -> Optional[float]:
    value = headers.get(name)
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning("rate_limit_header_invalid", header=name, value=value)
        return None
