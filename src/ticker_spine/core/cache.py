"""
Two-tier, day-keyed dataset cache.

Tier 1 is an in-process map of dataset -> payload reflecting the current
state for serving. Tier 2 is a durable object store holding one snapshot per
dataset per day under ``{dataset}-{YYYY-MM-DD}``.

Read path:
    memory hit -> return
    memory miss -> try today, today-1, ... today-walkback_days in the
    durable tier; the first snapshot found is returned and placed in memory

Write path:
    memory is replaced synchronously; today's durable key is written on a
    background thread. Durable write failures are logged and handed to the
    ``on_error`` reporter; they never reach the caller.

Only today's key is ever written, so snapshots of past days are never
modified.

Examples:
    >>> cache = TieredCache(InMemoryObjectStore())
    >>> cache.write("tickers", {"FTSE_100": ["VOD"]}).result()
    >>> cache.read("tickers")
    {'FTSE_100': ['VOD']}

Tags:
    cache, tiered-cache, object-store, walkback
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import date
from typing import Any

import structlog

from ticker_spine.core.dates import Today, cache_object_key, walkback_days
from ticker_spine.core.errors import ErrorReporter, StorageError
from ticker_spine.core.models import CacheEntry
from ticker_spine.core.object_store import ObjectStore

logger = structlog.get_logger(__name__)


class InMemoryCache:
    """Thread-safe dataset -> payload map with no expiry.

    Example:
        cache = InMemoryCache()
        cache.set("tickers", {"FTSE_100": ["VOD"]})
        tickers = cache.get("tickers")
    """

    def __init__(self) -> None:
        self._store: dict[str, Any] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            return self._store.get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._store[key] = value


class TieredCache:
    """In-process cache backed by day-keyed durable snapshots."""

    def __init__(
        self,
        store: ObjectStore,
        *,
        memory: InMemoryCache | None = None,
        walkback_days: int = 7,
        today: Today = date.today,
        on_error: ErrorReporter | None = None,
    ):
        """
        Args:
            store: Durable tier.
            memory: In-process tier; a fresh one is created if omitted.
            walkback_days: How many days before today the read path may fall
                back to. ``0`` only looks at today's snapshot.
            today: Provider for the current day.
            on_error: Receives durable write failures.
        """
        self.store = store
        self.memory = memory or InMemoryCache()
        self.walkback_days = walkback_days
        self._today = today
        self._on_error = on_error
        self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="cache-persist")
        self._pending: set[Future[None]] = set()
        self._pending_lock = threading.Lock()

    def read(self, dataset: str) -> Any | None:
        """Return the current payload for ``dataset`` or ``None``."""
        payload = self.memory.get(dataset)
        if payload is not None:
            return payload

        entry = self.find_snapshot(dataset)
        if entry is None:
            logger.info("cache.read_miss", dataset=dataset, walkback_days=self.walkback_days)
            return None

        self.memory.set(dataset, entry.payload)
        logger.info("cache.read_durable", dataset=dataset, key=entry.object_key)
        return entry.payload

    def find_snapshot(self, dataset: str) -> CacheEntry | None:
        """Return the most recent durable snapshot within the walkback window."""
        for day in walkback_days(self._today(), self.walkback_days + 1):
            key = cache_object_key(dataset, day)
            try:
                payload = self.store.get_json(key)
            except StorageError as e:
                logger.warning("cache.durable_read_failed", dataset=dataset, key=key, error=str(e))
                continue
            if payload is not None:
                return CacheEntry(dataset=dataset, date=day, payload=payload)
        return None

    def write(self, dataset: str, payload: Any) -> Future[None]:
        """Replace the in-process payload and persist today's snapshot.

        Returns the future of the background durable write; callers on the
        serving path do not wait on it.
        """
        self.memory.set(dataset, payload)
        key = cache_object_key(dataset, self._today())
        future = self._writer.submit(self._persist, dataset, key, payload)
        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def _persist(self, dataset: str, key: str, payload: Any) -> None:
        try:
            self.store.put_json(key, payload)
        except Exception as e:
            logger.error("cache.persist_failed", dataset=dataset, key=key, error=str(e))
            if self._on_error is not None:
                self._on_error("cache", e)
            return
        logger.info("cache.persisted", dataset=dataset, key=key)

    def _forget(self, future: Future[None]) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    def flush(self, timeout: float | None = None) -> bool:
        """Wait for outstanding durable writes. Returns False on timeout."""
        with self._pending_lock:
            pending = list(self._pending)
        for future in pending:
            try:
                future.result(timeout=timeout)
            except TimeoutError:
                return False
        return True

    def close(self) -> None:
        self._writer.shutdown(wait=True)


__all__ = ["InMemoryCache", "TieredCache"]
