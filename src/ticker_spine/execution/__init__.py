"""Execution primitives: retry, rate limiting, fan-out and paced writes."""

from ticker_spine.execution.batch import BatchExecutor, BatchResult
from ticker_spine.execution.rate_limit import MinimumIntervalLimiter, RateLimitedFetcher
from ticker_spine.execution.retry import RetryExecutor, RetryState, retry_on
from ticker_spine.execution.writer import BatchedWriter

__all__ = [
    "BatchExecutor",
    "BatchResult",
    "MinimumIntervalLimiter",
    "RateLimitedFetcher",
    "RetryExecutor",
    "RetryState",
    "retry_on",
    "BatchedWriter",
]
