"""
Minimum-interval pacing for calls to a rate-limited remote source.

A remote quota is account-wide, so one ``MinimumIntervalLimiter`` is owned
per source and handed to every caller of that source. The limiter holds a
lock across the pacing wait and the call itself, which serializes call
issuance across worker threads.

``RateLimitedFetcher`` composes the limiter with response classification and
an optional ``RetryExecutor`` for quota failures:

    fetch(request)
      └─ retry.run(attempt)
           └─ limiter.call(request) -> classify(response) -> payload

Example:
    >>> limiter = MinimumIntervalLimiter(min_interval_seconds=14)
    >>> fetcher = RateLimitedFetcher(
    ...     "alpha_vantage",
    ...     limiter=limiter,
    ...     classify=classify_response,
    ...     retry=RetryExecutor(retry_on(RateLimitExceededError), wait_seconds=86400),
    ... )
    >>> result = fetcher.fetch(lambda: client.get(url, params=params))

Tags:
    rate-limiting, pacing, quota, threading
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Any, Generic, TypeVar

import structlog

from ticker_spine.core.result import Result, try_result
from ticker_spine.execution.retry import RetryExecutor

logger = structlog.get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class MinimumIntervalLimiter:
    """Keeps successive successful calls at least ``min_interval_seconds`` apart.

    The last-call time is only updated when a call returns normally; a call
    that raises leaves it unchanged.
    """

    def __init__(
        self,
        min_interval_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        name: str = "source",
    ):
        if min_interval_seconds < 0:
            raise ValueError("min_interval_seconds must be non-negative")
        self.min_interval_seconds = min_interval_seconds
        self.name = name
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last_call: float | None = None
        self.calls = 0

    @property
    def last_call(self) -> float | None:
        return self._last_call

    def wait_time(self) -> float:
        """Seconds a call issued now would have to wait."""
        if self._last_call is None:
            return 0.0
        elapsed = self._clock() - self._last_call
        return max(0.0, self.min_interval_seconds - elapsed)

    def call(self, func: Callable[[], T]) -> T:
        """Run ``func`` once the minimum interval has elapsed."""
        with self._lock:
            wait = self.wait_time()
            if wait > 0:
                logger.debug("rate_limit.waiting", source=self.name, wait_seconds=round(wait, 3))
                self._sleep(wait)
            value = func()
            self._last_call = self._clock()
            self.calls += 1
            return value


class RateLimitedFetcher(Generic[T]):
    """Paced, classified and optionally retried calls to one remote source."""

    def __init__(
        self,
        name: str,
        *,
        limiter: MinimumIntervalLimiter,
        classify: Callable[[Any], T] | None = None,
        retry: RetryExecutor | None = None,
    ):
        """
        Args:
            name: Source name for logs.
            limiter: Pacing shared by every caller of this source.
            classify: Turns a raw response into a payload, or raises a
                ``DownstreamBadRequestError`` / ``RateLimitExceededError``.
            retry: Retry policy applied around each paced call.
        """
        self.name = name
        self.limiter = limiter
        self._classify = classify
        self._retry = retry

    def fetch(self, request: Callable[[], R]) -> Result[T]:
        """Issue ``request`` under pacing and return the classified outcome."""

        def attempt() -> T:
            return self.limiter.call(lambda: self._issue(request))

        if self._retry is None:
            return try_result(attempt)
        return self._retry.run(attempt)

    def _issue(self, request: Callable[[], R]) -> Any:
        response = request()
        if self._classify is None:
            return response
        return self._classify(response)


__all__ = ["MinimumIntervalLimiter", "RateLimitedFetcher"]
