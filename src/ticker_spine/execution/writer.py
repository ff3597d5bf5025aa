"""
Paced background writer for the durable price store.

``push()`` enqueues price points and returns immediately. A daemon thread
drains the queue ``batch_size`` points at a time, writes each batch with one
``PriceStore.batch_write`` call and then waits ``pacing_seconds`` before the
next batch, so sustained throughput stays at or below
``batch_size / pacing_seconds`` records per second.

A batch the store fails to write is dropped, logged and handed to the
``on_error`` reporter; the queue keeps draining.

Example:
    >>> writer = BatchedWriter(store, batch_size=5, pacing_seconds=1.0)
    >>> writer.push(points)
    >>> writer.flush(timeout=600)
    >>> writer.close()

Tags:
    writer, batching, pacing, queue, background-thread
"""

from __future__ import annotations

import queue
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass

import structlog

from ticker_spine.core.errors import ErrorReporter
from ticker_spine.core.models import PricePoint
from ticker_spine.core.timeseries import PriceStore

logger = structlog.get_logger(__name__)


@dataclass
class WriterStats:
    pushed: int = 0
    written: int = 0
    dropped: int = 0
    batches: int = 0
    failed_batches: int = 0


class BatchedWriter:
    """Queue-backed, paced batch writer."""

    def __init__(
        self,
        store: PriceStore,
        *,
        batch_size: int = 5,
        pacing_seconds: float = 1.0,
        on_error: ErrorReporter | None = None,
        sleep: Callable[[float], None] = time.sleep,
        poll_seconds: float = 0.1,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.store = store
        self.batch_size = min(batch_size, store.max_batch_size)
        self.pacing_seconds = pacing_seconds
        self.stats = WriterStats()
        self._on_error = on_error
        self._sleep = sleep
        self._poll_seconds = poll_seconds
        self._queue: queue.Queue[PricePoint] = queue.Queue()
        self._outstanding = 0
        self._idle = threading.Condition()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._start_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def pending(self) -> int:
        with self._idle:
            return self._outstanding

    def start(self) -> None:
        with self._start_lock:
            if self.is_running:
                return
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._run_loop,
                name="price-writer",
                daemon=True,
            )
            self._thread.start()
            logger.info(
                "writer.started",
                batch_size=self.batch_size,
                pacing_seconds=self.pacing_seconds,
            )

    def push(self, points: Iterable[PricePoint]) -> int:
        """Enqueue points without blocking. Starts the drain thread if needed."""
        points = list(points)
        if not points:
            return 0
        with self._idle:
            self._outstanding += len(points)
            self.stats.pushed += len(points)
        for point in points:
            self._queue.put_nowait(point)
        self.start()
        return len(points)

    def flush(self, timeout: float | None = None) -> bool:
        """Block until every pushed point is written or dropped.

        Returns False if ``timeout`` elapsed first.
        """
        with self._idle:
            return self._idle.wait_for(lambda: self._outstanding == 0, timeout=timeout)

    def close(self, timeout: float | None = None) -> None:
        """Drain what is queued, then stop the thread."""
        if self.is_running:
            self.flush(timeout=timeout)
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5.0)
        logger.info(
            "writer.stopped",
            written=self.stats.written,
            dropped=self.stats.dropped,
            batches=self.stats.batches,
        )

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            batch = self._next_batch()
            if not batch:
                continue
            try:
                self._write(batch)
            except Exception as e:
                logger.exception("writer.loop_error", size=len(batch), error=str(e))
            if self.pacing_seconds > 0:
                self._sleep(self.pacing_seconds)

    def _next_batch(self) -> list[PricePoint]:
        try:
            first = self._queue.get(timeout=self._poll_seconds)
        except queue.Empty:
            return []
        batch = [first]
        while len(batch) < self.batch_size:
            try:
                batch.append(self._queue.get_nowait())
            except queue.Empty:
                break
        return batch

    def _write(self, batch: list[PricePoint]) -> None:
        # A store may reject two puts for one key in a single request.
        unique = list({point.key: point for point in batch}.values())
        try:
            self.store.batch_write(unique)
        except Exception as e:
            self.stats.failed_batches += 1
            self.stats.dropped += len(batch)
            logger.error(
                "writer.batch_dropped",
                size=len(batch),
                symbols=sorted({p.symbol for p in batch}),
                error=str(e),
            )
            if self._on_error is not None:
                try:
                    self._on_error("writer", e)
                except Exception as report_error:
                    logger.warning("writer.report_failed", error=str(report_error))
        else:
            self.stats.batches += 1
            self.stats.written += len(unique)
            logger.debug("writer.batch_flushed", size=len(unique))
        finally:
            with self._idle:
                self._outstanding -= len(batch)
                if self._outstanding == 0:
                    self._idle.notify_all()


__all__ = ["WriterStats", "BatchedWriter"]
