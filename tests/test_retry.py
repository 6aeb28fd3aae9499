"""
Tests for retry.py - backoff around single provider requests.
"""

import pytest

from moviematch.retry import (
    RETRYABLE_STATUS_CODES,
    RetryError,
    TransientHTTPError,
    backoff_delays,
    exponential_backoff,
    should_retry_http_status,
)


def flaky(failures, exc=ConnectionError):
    """Callable that raises `exc` for the first `failures` calls, then returns 'ok'."""
    calls = []

    def func():
        calls.append(1)
        if len(calls) <= failures:
            raise exc("provider unavailable")
        return "ok"

    func.calls = calls
    return func


class TestExponentialBackoff:
    @pytest.mark.parametrize("failures,expected_calls", [(0, 1), (1, 2), (3, 4)])
    def test_recovers_within_budget(self, failures, expected_calls):
        func = flaky(failures)
        wrapped = exponential_backoff(max_retries=3, sleep=lambda s: None)(func)

        assert wrapped() == "ok"
        assert len(func.calls) == expected_calls

    def test_gives_up_after_budget(self):
        func = flaky(10, exc=TimeoutError)
        wrapped = exponential_backoff(max_retries=2, sleep=lambda s: None)(func)

        with pytest.raises(RetryError, match="Failed after 3 attempts") as exc_info:
            wrapped()

        assert len(func.calls) == 3
        assert isinstance(exc_info.value.__cause__, TimeoutError)

    def test_zero_retries_is_one_attempt(self):
        func = flaky(1)
        with pytest.raises(RetryError):
            exponential_backoff(max_retries=0, sleep=lambda s: None)(func)()
        assert len(func.calls) == 1

    def test_unlisted_exception_propagates(self):
        func = flaky(1, exc=KeyError)
        wrapped = exponential_backoff(max_retries=3, exceptions=(ConnectionError,), sleep=lambda s: None)(func)

        with pytest.raises(KeyError):
            wrapped()
        assert len(func.calls) == 1

    def test_sleeps_and_callbacks(self):
        slept = []
        seen = []
        wrapped = exponential_backoff(
            max_retries=3,
            base_delay=0.5,
            on_retry=lambda attempt, exc, delay: seen.append((attempt, delay)),
            sleep=slept.append,
        )(flaky(3))

        assert wrapped() == "ok"
        assert slept == [0.5, 1.0, 2.0]
        assert seen == [(1, 0.5), (2, 1.0), (3, 2.0)]

    def test_preserves_function_metadata(self):
        @exponential_backoff(sleep=lambda s: None)
        def search_movies():
            """Search TMDb."""

        assert search_movies.__name__ == "search_movies"
        assert search_movies.__doc__ == "Search TMDb."

    def test_retries_transient_http_error(self):
        statuses = [503, 429, 200]

        @exponential_backoff(max_retries=2, exceptions=(TransientHTTPError,), sleep=lambda s: None)
        def fetch():
            status = statuses.pop(0)
            if should_retry_http_status(status):
                raise TransientHTTPError(status)
            return status

        assert fetch() == 200


class TestBackoffDelays:
    def test_grows_exponentially(self):
        assert list(backoff_delays(4, 1.0, 60.0, 2.0)) == [1.0, 2.0, 4.0, 8.0]

    def test_capped(self):
        assert list(backoff_delays(5, 1.0, 2.0, 3.0)) == [1.0, 2.0, 2.0, 2.0, 2.0]

    def test_no_retries(self):
        assert list(backoff_delays(0, 1.0, 60.0, 2.0)) == []


class TestTransientHTTPError:
    def test_carries_status(self):
        err = TransientHTTPError(503)
        assert err.status_code == 503
        assert str(err) == "HTTP 503"

    def test_custom_message(self):
        assert str(TransientHTTPError(429, "slow down")) == "slow down"


@pytest.mark.parametrize("status", sorted(RETRYABLE_STATUS_CODES))
def test_retryable_statuses(status):
    assert should_retry_http_status(status)


@pytest.mark.parametrize("status", [200, 301, 400, 401, 403, 404, 501])
def test_permanent_statuses(status):
    assert not should_retry_http_status(status)
