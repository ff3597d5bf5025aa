"""
Universe and reference-data acquisition phases.

Cached payloads:
    ``tickers``       {index: [symbol, ...]}
    ``fundamentals``  {index: [ReferenceRecord.to_dict(), ...]}

Each refresh replaces the whole payload; nothing is merged with the previous
cycle.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from ticker_spine.core.cache import TieredCache
from ticker_spine.core.errors import DataUnavailableError, ErrorContext
from ticker_spine.core.models import Dataset, ReferenceRecord, Universe
from ticker_spine.execution.batch import BatchExecutor, BatchResult
from ticker_spine.sources.indexes import resolve_index
from ticker_spine.sources.protocol import (
    ReferenceSource,
    UniverseSource,
    follow_up_link,
    symbol_from_link,
)

logger = structlog.get_logger(__name__)


class UniverseCatalog:
    """Looks up index universes, preferring the cached ``tickers`` dataset."""

    def __init__(self, cache: TieredCache, source: UniverseSource):
        self.cache = cache
        self.source = source

    def get(self, index: str) -> Universe:
        name = resolve_index(index).value
        cached = self.cache.read(Dataset.TICKERS.value) or {}
        if name in cached:
            return Universe.from_symbols(name, cached[name])
        logger.info("universe.cache_miss", index=name)
        return Universe.from_symbols(name, self.source.fetch_symbols(name))


class UniverseRefresh:
    """Fetches every configured index universe and caches them together."""

    name = "symbols"

    def __init__(self, source: UniverseSource, cache: TieredCache, indexes: Sequence[str]):
        self.source = source
        self.cache = cache
        self.indexes = [resolve_index(index).value for index in indexes]

    def run(self) -> dict[str, Universe]:
        universes: dict[str, Universe] = {}
        for index in self.indexes:
            universe = Universe.from_symbols(index, self.source.fetch_symbols(index))
            if not universe.symbols:
                raise DataUnavailableError(
                    f"No symbols found for {index}",
                    context=ErrorContext(index=index),
                )
            logger.info("universe.fetched", index=index, symbols=len(universe))
            universes[index] = universe

        self.cache.write(
            Dataset.TICKERS.value,
            {index: list(universe.symbols) for index, universe in universes.items()},
        )
        return universes


class ReferenceRefresh:
    """Fetches reference records per index with bounded concurrency.

    A reference page that fails to load or parse is logged and left out;
    the rest of the index is still cached.
    """

    name = "reference"

    def __init__(
        self,
        source: ReferenceSource,
        cache: TieredCache,
        indexes: Sequence[str],
        *,
        executor: BatchExecutor | None = None,
    ):
        self.source = source
        self.cache = cache
        self.indexes = [resolve_index(index).value for index in indexes]
        self.executor = executor or BatchExecutor(max_workers=5, name="reference")

    def _fetch(self, link: str) -> ReferenceRecord:
        record = self.source.fetch_reference(link)
        if record.follow_up_link is None:
            record = ReferenceRecord(
                symbol=record.symbol,
                source_link=record.source_link,
                follow_up_link=follow_up_link(record.symbol),
                attributes=record.attributes,
            )
        return record

    def fetch_index(self, index: str) -> BatchResult[ReferenceRecord]:
        links = self.source.fetch_links(index)
        result = self.executor.map(
            self._fetch,
            links,
            key=lambda link: symbol_from_link(link) or link,
        )
        for key, error in result.errors():
            logger.warning("reference.fetch_failed", index=index, key=key, error=str(error))
        return result

    def run(self) -> dict[str, BatchResult[ReferenceRecord]]:
        results: dict[str, BatchResult[ReferenceRecord]] = {}
        for index in self.indexes:
            results[index] = self.fetch_index(index)
            logger.info(
                "reference.index_fetched",
                index=index,
                succeeded=results[index].succeeded,
                failed=results[index].failed,
            )

        self.cache.write(
            Dataset.FUNDAMENTALS.value,
            {
                index: [record.to_dict() for record in result.values()]
                for index, result in results.items()
            },
        )
        return results


__all__ = ["UniverseCatalog", "UniverseRefresh", "ReferenceRefresh"]
