"""Bounded-concurrency fan-out with ordered, per-item results.

Each input runs through the handler on a fixed-size thread pool. A failing
item becomes an ``Err`` in its slot; it never cancels the other items.

Example:
    >>> batch = BatchExecutor(max_workers=5, name="reference")
    >>> result = batch.map(fetch_reference, links, key=lambda link: link.symbol)
    >>> print(f"{result.succeeded}/{result.total}")
    >>> records = result.values()
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

import structlog

from ticker_spine.core.result import Err, Ok, Result, try_result

logger = structlog.get_logger(__name__)

T = TypeVar("T")
U = TypeVar("U")


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class BatchItem(Generic[U]):
    """Outcome of one input, in input order."""

    key: str
    outcome: Result[U]
    started_at: datetime
    completed_at: datetime

    @property
    def ok(self) -> bool:
        return isinstance(self.outcome, Ok)

    @property
    def duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()


@dataclass
class BatchResult(Generic[U]):
    """Aggregate result of one ``BatchExecutor.map`` call."""

    batch_id: str
    items: list[BatchItem[U]]
    started_at: datetime
    completed_at: datetime

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def succeeded(self) -> int:
        return sum(1 for item in self.items if item.ok)

    @property
    def failed(self) -> int:
        return self.total - self.succeeded

    @property
    def duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()

    def values(self) -> list[U]:
        """Successful values in input order."""
        return [item.outcome.value for item in self.items if isinstance(item.outcome, Ok)]

    def errors(self) -> list[tuple[str, Exception]]:
        return [
            (item.key, item.outcome.error)
            for item in self.items
            if isinstance(item.outcome, Err)
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "duration_seconds": self.duration_seconds,
            "errors": [{"key": key, "error": str(error)} for key, error in self.errors()],
        }


class BatchExecutor:
    """Runs a handler over many inputs with at most ``max_workers`` in flight."""

    def __init__(
        self,
        max_workers: int = 5,
        *,
        delay_seconds: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
        name: str = "batch",
    ):
        """
        Args:
            max_workers: Pool size.
            delay_seconds: Pause each worker takes before handling an item.
            sleep: Used for the per-item pause.
            name: Label for log events.
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.max_workers = max_workers
        self.delay_seconds = delay_seconds
        self.name = name
        self._sleep = sleep

    def map(
        self,
        handler: Callable[[T], U],
        inputs: Sequence[T],
        *,
        key: Callable[[T], str] = str,
    ) -> BatchResult[U]:
        batch_id = str(uuid.uuid4())
        started_at = utcnow()
        logger.info(
            "batch.start",
            batch=self.name,
            batch_id=batch_id,
            items=len(inputs),
            max_workers=self.max_workers,
        )

        def run_one(value: T) -> BatchItem[U]:
            item_started = utcnow()
            if self.delay_seconds > 0:
                self._sleep(self.delay_seconds)
            outcome = try_result(lambda: handler(value))
            item_key = key(value)
            if isinstance(outcome, Err):
                logger.warning(
                    "batch.item_failed",
                    batch=self.name,
                    batch_id=batch_id,
                    key=item_key,
                    error=str(outcome.error),
                )
            return BatchItem(
                key=item_key,
                outcome=outcome,
                started_at=item_started,
                completed_at=utcnow(),
            )

        with ThreadPoolExecutor(
            max_workers=self.max_workers,
            thread_name_prefix=f"{self.name}-worker",
        ) as pool:
            items = list(pool.map(run_one, inputs))

        result = BatchResult(
            batch_id=batch_id,
            items=items,
            started_at=started_at,
            completed_at=utcnow(),
        )
        logger.info(
            "batch.complete",
            batch=self.name,
            batch_id=batch_id,
            succeeded=result.succeeded,
            failed=result.failed,
            duration_seconds=result.duration_seconds,
        )
        return result


__all__ = ["BatchItem", "BatchResult", "BatchExecutor"]
