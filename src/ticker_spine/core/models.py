"""
Domain records shared by the acquisition, storage and serving layers.

Manifesto:
    - **Immutable records:** Universes, prices and heatmap rows are frozen
    - **Wholesale replacement:** A refresh builds new records, never patches
    - **Stable keys:** A price is identified by ``(symbol, date)`` only

Tags:
    models, dataclasses, prices, universe, heatmap
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any

from ticker_spine.core.dates import cache_object_key, format_day, parse_day
from ticker_spine.core.errors import UnsupportedIndexError


class Dataset(str, Enum):
    """Cached dataset namespaces."""

    TICKERS = "tickers"
    FUNDAMENTALS = "fundamentals"
    HEATMAPS = "heatmaps"


class TimePeriod(str, Enum):
    """Heatmap look-back periods, in calendar days."""

    ONE_MONTH = "ONE_MONTH"
    THREE_MONTH = "THREE_MONTH"
    SIX_MONTH = "SIX_MONTH"
    ONE_YEAR = "ONE_YEAR"
    TWO_YEAR = "TWO_YEAR"

    @property
    def days(self) -> int:
        return _PERIOD_DAYS[self]

    @classmethod
    def parse(cls, value: str) -> TimePeriod:
        """Look up a period by name, case-insensitively."""
        try:
            return cls[value.upper()]
        except KeyError:
            raise UnsupportedIndexError(value, kind="period") from None


_PERIOD_DAYS = {
    TimePeriod.ONE_MONTH: 30,
    TimePeriod.THREE_MONTH: 90,
    TimePeriod.SIX_MONTH: 180,
    TimePeriod.ONE_YEAR: 360,
    TimePeriod.TWO_YEAR: 720,
}


@dataclass(frozen=True)
class Universe:
    """A named index and its constituent symbols, sorted and de-duplicated."""

    name: str
    symbols: tuple[str, ...] = ()

    @classmethod
    def from_symbols(cls, name: str, symbols: Iterable[str]) -> Universe:
        cleaned = {s.strip() for s in symbols if s and s.strip()}
        return cls(name=name, symbols=tuple(sorted(cleaned)))

    def __len__(self) -> int:
        return len(self.symbols)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "symbols": list(self.symbols)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Universe:
        return cls.from_symbols(data["name"], data.get("symbols", []))


@dataclass(frozen=True)
class ReferenceRecord:
    """Fundamentals for one symbol: named yearly series plus source links."""

    symbol: str
    source_link: str
    follow_up_link: str | None = None
    attributes: Mapping[str, list[float | None]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "source_link": self.source_link,
            "follow_up_link": self.follow_up_link,
            "attributes": {k: list(v) for k, v in self.attributes.items()},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ReferenceRecord:
        return cls(
            symbol=data["symbol"],
            source_link=data["source_link"],
            follow_up_link=data.get("follow_up_link"),
            attributes={k: list(v) for k, v in data.get("attributes", {}).items()},
        )


@dataclass(frozen=True)
class PricePoint:
    """A closing price for ``symbol`` on ``date``."""

    symbol: str
    date: date
    close_price: float

    @property
    def key(self) -> str:
        """Durable record id, ``{symbol}-{YYYY-MM-DD}``."""
        return price_key(self.symbol, self.date)

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "date": format_day(self.date),
            "close_price": self.close_price,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PricePoint:
        day = data["date"]
        return cls(
            symbol=data["symbol"],
            date=parse_day(day) if isinstance(day, str) else day,
            close_price=float(data["close_price"]),
        )


def price_key(symbol: str, day: date) -> str:
    return f"{symbol}-{format_day(day)}"


@dataclass(frozen=True)
class CacheEntry:
    """A dataset payload as stored for one day in the durable tier."""

    dataset: str
    date: date
    payload: Any

    @property
    def object_key(self) -> str:
        return cache_object_key(self.dataset, self.date)


@dataclass(frozen=True)
class HeatmapEntry:
    symbol: str
    percent_change: float

    def to_dict(self) -> dict[str, Any]:
        return {"symbol": self.symbol, "percent_change": self.percent_change}


Heatmap = dict[TimePeriod, list[HeatmapEntry]]


def heatmap_to_dict(heatmap: Heatmap) -> dict[str, list[dict[str, Any]]]:
    return {
        period.value: [entry.to_dict() for entry in entries]
        for period, entries in heatmap.items()
    }


__all__ = [
    "Dataset",
    "TimePeriod",
    "Universe",
    "ReferenceRecord",
    "PricePoint",
    "price_key",
    "CacheEntry",
    "HeatmapEntry",
    "Heatmap",
    "heatmap_to_dict",
]
