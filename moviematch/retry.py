"""
Exponential backoff for metadata provider requests.

Provider lookups already run one at a time behind a rate limiter. This
module only re-issues a single request after a transient failure: a
timeout, a dropped connection, or a 408/429/5xx response.
"""

import functools
import time
from typing import Callable, Iterator, Optional, Tuple, Type

RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


class RetryError(Exception):
    """Raised when every attempt has failed. The last error is the __cause__."""
    pass


class TransientHTTPError(Exception):
    """HTTP response whose status code is worth retrying."""

    def __init__(self, status_code: int, message: str = ""):
        self.status_code = status_code
        super().__init__(message or f"HTTP {status_code}")


def backoff_delays(
    retries: int,
    base_delay: float,
    max_delay: float,
    exponential_base: float,
) -> Iterator[float]:
    """Delays before each retry: base, base*k, base*k^2, ... capped at max_delay."""
    delay = base_delay
    for _ in range(retries):
        yield min(delay, max_delay)
        delay *= exponential_base


def exponential_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable] = None,
    sleep: Callable[[float], None] = time.sleep,
):
    """
    Retry the decorated call when it raises one of `exceptions`.

    The call is made at most max_retries + 1 times. Exceptions outside
    `exceptions` propagate immediately. on_retry(attempt, exc, delay) runs
    before each sleep.

    Example:
        @exponential_backoff(max_retries=2, exceptions=(requests.Timeout,))
        def search(title):
            return requests.get(url, params={"query": title}, timeout=10)
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            delays = backoff_delays(max_retries, base_delay, max_delay, exponential_base)
            attempt = 0
            while True:
                attempt += 1
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    delay = next(delays, None)
                    if delay is None:
                        raise RetryError(f"Failed after {attempt} attempts: {e}") from e
                    if on_retry:
                        on_retry(attempt, e, delay)
                    sleep(delay)

        return wrapper
    return decorator


def should_retry_http_status(status_code: int) -> bool:
    """True for request timeouts, rate limiting and gateway/server errors."""
    return status_code in RETRYABLE_STATUS_CODES
