"""Read-only access to the cached datasets, as served by the HTTP API."""

from __future__ import annotations

from typing import Any

from ticker_spine.core.cache import TieredCache
from ticker_spine.core.errors import DatasetUnavailableError
from ticker_spine.core.models import Dataset, TimePeriod
from ticker_spine.sources.indexes import resolve_index, supported_indexes


class DataService:
    """Serves tickers, fundamentals and heatmaps through the tiered cache.

    Raises ``UnsupportedIndexError`` for unknown index or period names and
    ``DatasetUnavailableError`` when nothing has been cached yet.
    """

    def __init__(self, cache: TieredCache, indexes: list[str] | None = None):
        self.cache = cache
        self._indexes = [resolve_index(i).value for i in indexes] if indexes else supported_indexes()

    def indexes(self) -> list[str]:
        return list(self._indexes)

    def tickers(self, index: str) -> list[str]:
        return self._index_payload(Dataset.TICKERS, index)

    def fundamentals(self, index: str) -> list[dict[str, Any]]:
        return self._index_payload(Dataset.FUNDAMENTALS, index)

    def heatmap(self, index: str, period: str | None = None) -> Any:
        """Whole heatmap for ``index``, or one period's entries."""
        heatmap = self._index_payload(Dataset.HEATMAPS, index)
        if period is None:
            return heatmap
        key = TimePeriod.parse(period).value
        if key not in heatmap:
            raise DatasetUnavailableError(f"{Dataset.HEATMAPS.value}/{index}/{key}")
        return heatmap[key]

    def _index_payload(self, dataset: Dataset, index: str) -> Any:
        name = resolve_index(index).value
        payload = self.cache.read(dataset.value)
        if not payload or name not in payload:
            raise DatasetUnavailableError(f"{dataset.value}/{name}")
        return payload[name]


__all__ = ["DataService"]
