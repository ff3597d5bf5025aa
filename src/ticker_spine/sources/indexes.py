"""Supported stock indexes and where their constituents are published."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ticker_spine.core.errors import UnsupportedIndexError


class StockIndex(str, Enum):
    FTSE_100 = "FTSE_100"
    FTSE_250 = "FTSE_250"
    FTSE_350 = "FTSE_350"
    FTSE_ALL_SHARE = "FTSE_ALL_SHARE"
    FTSE_AIM_ALL_SHARE = "FTSE_AIM_ALL_SHARE"


@dataclass(frozen=True)
class IndexConfig:
    """Publication URLs for one index.

    ``constituents_url`` lists the index symbols; ``fundamentals_url`` lists
    per-company pages carrying reference data.
    """

    index: StockIndex
    slug: str

    @property
    def constituents_url(self) -> str:
        return f"https://www.londonstockexchange.com/indices/{self.slug}/constituents/table"

    @property
    def fundamentals_url(self) -> str:
        return f"https://www.lse.co.uk/share-prices/indices/{self.slug}/constituents.html"


INDEX_CONFIGS: dict[StockIndex, IndexConfig] = {
    StockIndex.FTSE_100: IndexConfig(StockIndex.FTSE_100, "ftse-100"),
    StockIndex.FTSE_250: IndexConfig(StockIndex.FTSE_250, "ftse-250"),
    StockIndex.FTSE_350: IndexConfig(StockIndex.FTSE_350, "ftse-350"),
    StockIndex.FTSE_ALL_SHARE: IndexConfig(StockIndex.FTSE_ALL_SHARE, "ftse-all-share"),
    StockIndex.FTSE_AIM_ALL_SHARE: IndexConfig(StockIndex.FTSE_AIM_ALL_SHARE, "ftse-aim-all-share"),
}


def supported_indexes() -> list[str]:
    return [index.value for index in StockIndex]


def resolve_index(name: str) -> StockIndex:
    """Map an index name (any case) to ``StockIndex``.

    Raises:
        UnsupportedIndexError: for names outside ``StockIndex``.
    """
    try:
        return StockIndex(name.upper())
    except ValueError:
        raise UnsupportedIndexError(name) from None


def get_index_config(name: str) -> IndexConfig:
    return INDEX_CONFIGS[resolve_index(name)]


__all__ = [
    "StockIndex",
    "IndexConfig",
    "INDEX_CONFIGS",
    "supported_indexes",
    "resolve_index",
    "get_index_config",
]
