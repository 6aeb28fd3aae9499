"""
Pacing and cancellation for sequential provider runs.

The importer calls the provider one row at a time. FixedIntervalLimiter keeps
consecutive calls at least `interval` seconds apart; CancelToken lets a caller
stop a run between rows or between persistence transactions.
"""

import threading
import time
from typing import Callable, Optional

from .errors import RunCancelled


class FixedIntervalLimiter:
    """Blocks until at least `interval` seconds have passed since the last call."""

    def __init__(
        self,
        interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if interval < 0:
            raise ValueError("interval must be >= 0")
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._last: Optional[float] = None

    def wait(self) -> float:
        """Sleep if needed, then mark a call. Returns the time slept."""
        slept = 0.0
        if self._last is not None and self.interval > 0:
            remaining = self.interval - (self._clock() - self._last)
            if remaining > 0:
                self._sleep(remaining)
                slept = remaining
        self._last = self._clock()
        return slept


class NoDelayLimiter(FixedIntervalLimiter):
    """Limiter that never sleeps. Used by tests and dry runs against fakes."""

    def __init__(self):
        super().__init__(0.0)


class CancelToken:
    """Thread-safe cancellation flag checked between steps of a run."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise RunCancelled("Run cancelled")
