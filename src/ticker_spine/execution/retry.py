"""Bounded retry with a constant wait, driven by a predicate over outcomes.

Example:
    >>> from ticker_spine.core.errors import RateLimitExceededError
    >>> executor = RetryExecutor(
    ...     should_retry=retry_on(RateLimitExceededError),
    ...     wait_seconds=86400,
    ...     max_attempts=3,
    ... )
    >>> result = executor.run(lambda: fetch_prices("VOD.L"))
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

import structlog

from ticker_spine.core.errors import RetriesExhaustedError
from ticker_spine.core.result import Err, Result, try_result

logger = structlog.get_logger(__name__)

T = TypeVar("T")

RetryPredicate = Callable[[Result[T]], bool]


@dataclass
class RetryState(Generic[T]):
    """Progress of one ``RetryExecutor.run`` invocation.

    ``attempts`` counts calls already made; it is compared against
    ``max_attempts``, the total number of calls allowed.
    """

    max_attempts: int
    wait_seconds: float
    attempts: int = 0
    last_outcome: Result[T] | None = None

    @property
    def exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    def record(self, outcome: Result[T]) -> None:
        self.attempts += 1
        self.last_outcome = outcome


def retry_on(*error_types: type[BaseException]) -> RetryPredicate:
    """Predicate that retries failures of the given exception types."""

    def predicate(outcome: Result) -> bool:
        return isinstance(outcome, Err) and isinstance(outcome.error, error_types)

    return predicate


def never_retry(outcome: Result) -> bool:
    return False


class RetryExecutor:
    """Runs an operation until the predicate declines or attempts run out.

    The operation may be called up to ``max_attempts`` times, so it must
    tolerate repeated invocation.
    """

    def __init__(
        self,
        should_retry: RetryPredicate = never_retry,
        *,
        wait_seconds: float = 0.0,
        max_attempts: int = 3,
        sleep: Callable[[float], None] = time.sleep,
        name: str = "operation",
        on_retry: Callable[[RetryState], None] | None = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.should_retry = should_retry
        self.wait_seconds = wait_seconds
        self.max_attempts = max_attempts
        self.name = name
        self._sleep = sleep
        self._on_retry = on_retry

    def run(self, operation: Callable[[], T]) -> Result[T]:
        """Call ``operation`` with retries.

        Returns:
            The first outcome the predicate declines to retry, or
            ``Err(RetriesExhaustedError)`` once ``max_attempts`` calls have
            all been judged retryable.
        """
        state: RetryState[T] = RetryState(
            max_attempts=self.max_attempts,
            wait_seconds=self.wait_seconds,
        )

        while True:
            outcome = try_result(operation)
            state.record(outcome)

            if not self.should_retry(outcome):
                return outcome

            if state.exhausted:
                last_error = outcome.error if isinstance(outcome, Err) else None
                logger.warning(
                    "retry.exhausted",
                    operation=self.name,
                    attempts=state.attempts,
                    error=str(last_error) if last_error else None,
                )
                return Err(
                    RetriesExhaustedError(
                        f"{self.name} failed after {state.attempts} attempts",
                        attempts=state.attempts,
                        last_error=last_error,
                    )
                )

            logger.info(
                "retry.waiting",
                operation=self.name,
                attempt=state.attempts,
                max_attempts=state.max_attempts,
                wait_seconds=state.wait_seconds,
            )
            if self._on_retry is not None:
                self._on_retry(state)
            self._sleep(state.wait_seconds)


__all__ = [
    "RetryPredicate",
    "RetryState",
    "RetryExecutor",
    "retry_on",
    "never_retry",
]
