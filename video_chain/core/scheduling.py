"""
Scheduling Primitives
=====================

Clock, cancellation and scheduled re-poll helpers shared by the job client
and the chain orchestrator. The clock is injectable so polling loops can be
driven deterministically in tests.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

from .exceptions import DeadlineExceededError, RunCancelledError

logger = logging.getLogger(__name__)


class Clock(ABC):
    """Source of monotonic time and suspension."""

    @abstractmethod
    def monotonic(self) -> float:
        """Return the current monotonic time in seconds."""
        pass

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        """Suspend for the given number of seconds."""
        pass


class SystemClock(Clock):
    """Clock backed by the running event loop."""

    def monotonic(self) -> float:
        return asyncio.get_running_loop().time()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class CancelToken:
    """
    Cooperative cancellation signal.

    The token is only observed at suspension points: before each segment is
    submitted and before each poll iteration. Cancelling does not abort jobs
    already running on the provider.
    """

    def __init__(self):
        self._cancelled = False
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: str = "cancelled by caller") -> None:
        if not self._cancelled:
            logger.info(f"Cancellation requested: {reason}")
        self._cancelled = True
        self.reason = reason

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise RunCancelledError(f"Run cancelled: {self.reason}")


class Deadline:
    """Absolute point in clock time after which waiting must stop."""

    def __init__(self, clock: Clock, timeout_seconds: float, operation: str = "run"):
        self.clock = clock
        self.timeout_seconds = timeout_seconds
        self.operation = operation
        self.expires_at = clock.monotonic() + timeout_seconds

    def remaining(self) -> float:
        return self.expires_at - self.clock.monotonic()

    def expired(self) -> bool:
        return self.remaining() <= 0

    def check(self) -> None:
        if self.expired():
            raise DeadlineExceededError(
                f"{self.operation} exceeded its deadline of {self.timeout_seconds} seconds",
                operation=self.operation,
                timeout_seconds=self.timeout_seconds,
            )


class PollSchedule:
    """
    Fixed-interval re-poll schedule.

    ``wait()`` checks cancellation and deadlines, then suspends for the poll
    interval on the schedule's clock. Used by ``BaseJobClient.await_completion``.
    """

    def __init__(
        self,
        interval: float = 2.0,
        clock: Optional[Clock] = None,
        cancel_token: Optional[CancelToken] = None,
        deadlines: Optional[list] = None,
    ):
        if interval < 0:
            raise ValueError(f"Poll interval must be >= 0, got {interval}")
        self.interval = interval
        self.clock = clock or SystemClock()
        self.cancel_token = cancel_token
        self.deadlines = [d for d in (deadlines or []) if d is not None]
        self.attempts = 0

    def check(self) -> None:
        """Raise if the schedule must stop before the next poll."""
        if self.cancel_token is not None:
            self.cancel_token.raise_if_cancelled()
        for deadline in self.deadlines:
            deadline.check()

    async def wait(self) -> None:
        self.check()
        delay = self.interval
        for deadline in self.deadlines:
            delay = min(delay, max(deadline.remaining(), 0.0))
        await self.clock.sleep(delay)
        self.attempts += 1
        self.check()
