"""Day arithmetic and day-keyed cache keys."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import date, timedelta

Today = Callable[[], date]

DAY_FORMAT = "%Y-%m-%d"


def format_day(day: date) -> str:
    return day.strftime(DAY_FORMAT)


def parse_day(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` string."""
    return date.fromisoformat(value)


def days_before(day: date, days: int) -> date:
    return day - timedelta(days=days)


def cache_object_key(dataset: str, day: date) -> str:
    """Durable object key for ``dataset`` on ``day``.

    >>> cache_object_key("tickers", date(2024, 3, 1))
    'tickers-2024-03-01'
    """
    return f"{dataset}-{format_day(day)}"


def walkback_days(start: date, count: int) -> Iterator[date]:
    """Yield ``start``, ``start - 1``, ... ``count`` days in total."""
    for offset in range(count):
        yield start - timedelta(days=offset)


__all__ = [
    "Today",
    "DAY_FORMAT",
    "format_day",
    "parse_day",
    "days_before",
    "cache_object_key",
    "walkback_days",
]
