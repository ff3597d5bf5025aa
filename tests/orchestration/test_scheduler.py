"""Tests for CronScheduler."""

import threading
from datetime import UTC, datetime

import pytest

from ticker_spine.core.errors import ConfigError
from ticker_spine.orchestration import CronScheduler

FAR_AWAY = "0 0 1 1 *"


class TestCronScheduler:
    def test_invalid_cron(self):
        with pytest.raises(ConfigError):
            CronScheduler(lambda: None, "every tuesday")

    def test_next_fire_time_every_seventh_day(self):
        scheduler = CronScheduler(lambda: None)

        after = datetime(2024, 1, 1, 0, 0, tzinfo=UTC)

        assert scheduler.next_fire_time(after) == datetime(2024, 1, 8, 0, 0, tzinfo=UTC)

    def test_fires_on_start(self):
        fired = threading.Event()
        scheduler = CronScheduler(fired.set, FAR_AWAY)

        scheduler.start()
        try:
            assert fired.wait(timeout=5)
            assert scheduler.is_running
        finally:
            scheduler.stop()

        assert not scheduler.is_running
        assert scheduler.fire_count == 1
        assert scheduler.last_fire is not None

    def test_no_fire_on_start_when_disabled(self):
        calls = []
        scheduler = CronScheduler(lambda: calls.append(1), FAR_AWAY, run_on_start=False)

        scheduler.start()
        scheduler.stop()

        assert calls == []

    def test_fires_on_schedule(self):
        """A clock pinned just before a minute boundary makes every wait short."""
        count = {"n": 0}
        done = threading.Event()

        def callback():
            count["n"] += 1
            if count["n"] >= 3:
                done.set()

        pinned = datetime(2024, 1, 1, 0, 0, 59, 990000, tzinfo=UTC)
        scheduler = CronScheduler(callback, "* * * * *", run_on_start=False, clock=lambda: pinned)

        scheduler.start()
        try:
            assert done.wait(timeout=5)
        finally:
            scheduler.stop()

        assert scheduler.fire_count >= 3

    def test_callback_failure_keeps_loop_alive(self):
        raised = threading.Event()

        def callback():
            raised.set()
            raise RuntimeError("pass blew up")

        scheduler = CronScheduler(callback, FAR_AWAY)
        scheduler.start()
        try:
            assert raised.wait(timeout=5)
            assert scheduler.is_running
        finally:
            scheduler.stop()

    def test_health(self):
        scheduler = CronScheduler(lambda: None, FAR_AWAY)

        health = scheduler.health()

        assert health["healthy"] is False
        assert health["backend"] == "cron"
        assert health["cron"] == FAR_AWAY
        assert health["fire_count"] == 0
        assert health["next_fire"] is None
