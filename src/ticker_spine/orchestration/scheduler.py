"""Cron-driven trigger for the orchestrator.

A single daemon thread fires the callback once at start (optional) and then
at every time the cron expression matches. Waiting is done on a stop
``Event`` so ``stop()`` interrupts a long sleep immediately.

Example:
    >>> scheduler = CronScheduler(lambda: orchestrator.trigger("full"))
    >>> scheduler.start()
    >>> scheduler.next_fire_time()
    datetime.datetime(2024, 1, 8, 0, 0, tzinfo=datetime.timezone.utc)
    >>> scheduler.stop()
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import structlog
from croniter import croniter

from ticker_spine.core.errors import ConfigError

logger = structlog.get_logger(__name__)

DEFAULT_CRON = "0 0 */7 * *"


def utcnow() -> datetime:
    return datetime.now(UTC)


class CronScheduler:
    """Calls ``callback`` on a cron schedule from a daemon thread."""

    name = "cron"

    def __init__(
        self,
        callback: Callable[[], Any],
        cron: str = DEFAULT_CRON,
        *,
        run_on_start: bool = True,
        clock: Callable[[], datetime] = utcnow,
    ):
        if not croniter.is_valid(cron):
            raise ConfigError(f"Invalid cron expression: {cron!r}")
        self.callback = callback
        self.cron = cron
        self.run_on_start = run_on_start
        self._clock = clock
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._fire_count = 0
        self._last_fire: datetime | None = None
        self._next_fire: datetime | None = None

    def next_fire_time(self, after: datetime | None = None) -> datetime:
        """Next time the cron expression matches, strictly after ``after``."""
        return croniter(self.cron, after or self._clock()).get_next(datetime)

    def start(self) -> None:
        if self.is_running:
            logger.warning("scheduler.already_started")
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="ticker-spine-scheduler", daemon=True)
        self._thread.start()
        logger.info("scheduler.started", cron=self.cron, run_on_start=self.run_on_start)

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the loop; waits up to ``timeout`` for an in-flight callback."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("scheduler.stop_timeout")
        logger.info("scheduler.stopped", fire_count=self._fire_count)

    def _loop(self) -> None:
        if self.run_on_start:
            self._fire()
        while not self._stop_event.is_set():
            now = self._clock()
            next_fire = self.next_fire_time(now)
            with self._lock:
                self._next_fire = next_fire
            delay = max(0.0, (next_fire - now).total_seconds())
            if self._stop_event.wait(delay):
                break
            self._fire()

    def _fire(self) -> None:
        with self._lock:
            self._fire_count += 1
            self._last_fire = self._clock()
        try:
            self.callback()
        except Exception as e:
            logger.exception("scheduler.callback_failed", error=str(e))

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def fire_count(self) -> int:
        return self._fire_count

    @property
    def last_fire(self) -> datetime | None:
        return self._last_fire

    def health(self) -> dict[str, Any]:
        with self._lock:
            return {
                "healthy": self.is_running,
                "backend": self.name,
                "cron": self.cron,
                "fire_count": self._fire_count,
                "last_fire": self._last_fire.isoformat() if self._last_fire else None,
                "next_fire": self._next_fire.isoformat() if self._next_fire else None,
            }


__all__ = ["DEFAULT_CRON", "CronScheduler"]
