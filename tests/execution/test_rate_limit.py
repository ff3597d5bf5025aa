"""Tests for MinimumIntervalLimiter and RateLimitedFetcher."""

import threading
import time

import pytest

from ticker_spine.core.errors import (
    DownstreamBadRequestError,
    RateLimitExceededError,
    RetriesExhaustedError,
)
from ticker_spine.core.result import Err, Ok
from ticker_spine.execution.rate_limit import MinimumIntervalLimiter, RateLimitedFetcher
from ticker_spine.execution.retry import RetryExecutor, retry_on


class TestMinimumIntervalLimiter:
    def test_first_call_does_not_wait(self, fake_clock):
        limiter = MinimumIntervalLimiter(14, clock=fake_clock, sleep=fake_clock.sleep)

        assert limiter.call(lambda: "a") == "a"
        assert fake_clock.sleeps == []
        assert limiter.calls == 1

    def test_waits_for_the_remainder_of_the_interval(self, fake_clock):
        limiter = MinimumIntervalLimiter(14, clock=fake_clock, sleep=fake_clock.sleep)
        limiter.call(lambda: None)
        fake_clock.advance(4)

        limiter.call(lambda: None)

        assert fake_clock.sleeps == [pytest.approx(10)]

    def test_no_wait_once_interval_elapsed(self, fake_clock):
        limiter = MinimumIntervalLimiter(14, clock=fake_clock, sleep=fake_clock.sleep)
        limiter.call(lambda: None)
        fake_clock.advance(20)

        limiter.call(lambda: None)

        assert fake_clock.sleeps == []

    def test_failed_call_does_not_move_last_call(self, fake_clock):
        limiter = MinimumIntervalLimiter(14, clock=fake_clock, sleep=fake_clock.sleep)
        limiter.call(lambda: None)
        first = limiter.last_call
        fake_clock.advance(20)

        def boom():
            raise RuntimeError("down")

        with pytest.raises(RuntimeError):
            limiter.call(boom)

        assert limiter.last_call == first
        assert limiter.calls == 1

    def test_consecutive_calls_are_spaced(self, fake_clock):
        limiter = MinimumIntervalLimiter(14, clock=fake_clock, sleep=fake_clock.sleep)
        issued: list[float] = []

        for _ in range(5):
            limiter.call(lambda: issued.append(fake_clock()))

        gaps = [b - a for a, b in zip(issued, issued[1:])]
        assert all(gap >= 14 for gap in gaps)

    def test_negative_interval_rejected(self):
        with pytest.raises(ValueError):
            MinimumIntervalLimiter(-1)

    @pytest.mark.slow
    def test_concurrent_callers_are_spaced_in_wall_clock_time(self):
        """Threads sharing one limiter never issue calls closer than the interval."""
        interval = 0.05
        limiter = MinimumIntervalLimiter(interval)
        issued: list[float] = []
        issued_lock = threading.Lock()

        def record():
            with issued_lock:
                issued.append(time.monotonic())

        threads = [threading.Thread(target=limiter.call, args=(record,)) for _ in range(6)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        issued.sort()
        gaps = [b - a for a, b in zip(issued, issued[1:])]
        assert len(issued) == 6
        assert min(gaps) >= interval - 0.005


class TestRateLimitedFetcher:
    def test_classified_payload_is_ok(self):
        fetcher = RateLimitedFetcher(
            "test",
            limiter=MinimumIntervalLimiter(0),
            classify=lambda response: response["data"],
        )

        assert fetcher.fetch(lambda: {"data": [1, 2]}) == Ok([1, 2])

    def test_bad_request_is_not_retried(self, sleeper):
        calls = []

        def classify(response):
            calls.append(response)
            raise DownstreamBadRequestError("unknown symbol")

        fetcher = RateLimitedFetcher(
            "test",
            limiter=MinimumIntervalLimiter(0),
            classify=classify,
            retry=RetryExecutor(
                retry_on(RateLimitExceededError), wait_seconds=86400, sleep=sleeper
            ),
        )

        result = fetcher.fetch(lambda: "response")

        assert isinstance(result, Err)
        assert isinstance(result.error, DownstreamBadRequestError)
        assert len(calls) == 1
        assert sleeper.calls == []

    def test_quota_errors_are_retried_with_long_wait(self, sleeper):
        responses = iter(["quota", "quota", "fine"])

        def classify(response):
            if response == "quota":
                raise RateLimitExceededError("daily limit")
            return response

        limiter = MinimumIntervalLimiter(0)
        fetcher = RateLimitedFetcher(
            "test",
            limiter=limiter,
            classify=classify,
            retry=RetryExecutor(
                retry_on(RateLimitExceededError),
                wait_seconds=86400,
                max_attempts=3,
                sleep=sleeper,
            ),
        )

        result = fetcher.fetch(lambda: next(responses))

        assert result == Ok("fine")
        assert sleeper.calls == [86400, 86400]
        # Only the successful call counts against the pacing state.
        assert limiter.calls == 1

    def test_quota_exhaustion_is_terminal(self, sleeper):
        def classify(response):
            raise RateLimitExceededError("daily limit")

        fetcher = RateLimitedFetcher(
            "test",
            limiter=MinimumIntervalLimiter(0),
            classify=classify,
            retry=RetryExecutor(
                retry_on(RateLimitExceededError), max_attempts=3, sleep=sleeper
            ),
        )

        result = fetcher.fetch(lambda: None)

        assert isinstance(result.error, RetriesExhaustedError)
        assert result.error.attempts == 3
