"""
Shared pytest fixtures for ticker-spine tests.

Time is always injected: ``today`` is a fixed Friday, ``sleeper`` records
requested waits without sleeping, and ``FakeClock`` advances only when
something sleeps on it.
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import date

import pytest
import structlog

from ticker_spine.core.cache import TieredCache
from ticker_spine.core.object_store import InMemoryObjectStore
from ticker_spine.core.settings import clear_settings_cache
from ticker_spine.core.timeseries import InMemoryPriceStore
from ticker_spine.framework.alerts import MemoryChannel, Notifier

from tests._support import TODAY, FakeClock, SleepRecorder


@pytest.fixture(autouse=True)
def _reset_global_state(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for name in ("TICKER_SPINE_LOG_LEVEL", "TICKER_SPINE_STORAGE_BACKEND"):
        monkeypatch.delenv(name, raising=False)
    clear_settings_cache()
    structlog.contextvars.clear_contextvars()
    yield
    clear_settings_cache()
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def object_store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def price_store() -> InMemoryPriceStore:
    return InMemoryPriceStore()


@pytest.fixture
def cache(object_store: InMemoryObjectStore) -> Iterator[TieredCache]:
    tiered = TieredCache(object_store, walkback_days=7, today=lambda: TODAY)
    yield tiered
    tiered.close()


@pytest.fixture
def memory_channel() -> MemoryChannel:
    return MemoryChannel()


@pytest.fixture
def notifier(memory_channel: MemoryChannel) -> Notifier:
    return Notifier([memory_channel])
