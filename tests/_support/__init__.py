"""Test doubles shared across the suite: fixed days, recorded sleeps, fake clocks."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date

from ticker_spine.core.models import PricePoint
from ticker_spine.core.timeseries import InMemoryPriceStore

TODAY = date(2024, 3, 15)


class SleepRecorder:
    """Stands in for ``time.sleep``; remembers every requested wait."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

    @property
    def total(self) -> float:
        return sum(self.calls)


class FakeClock:
    """Monotonic clock whose ``sleep`` moves time forward."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


def add_prices(store: InMemoryPriceStore, symbol: str, prices: Mapping[date, float]) -> None:
    points = [PricePoint(symbol=symbol, date=day, close_price=price) for day, price in prices.items()]
    for start in range(0, len(points), store.max_batch_size):
        store.batch_write(points[start : start + store.max_batch_size])
