"""
Heatmaps: percentage price change per symbol over fixed look-back periods.

Prices are sparse (no rows for weekends, holidays or missed fetches), so
each requested day is first moved back to the nearest day that has data.

Algorithm:
    1. anchor = today - anchor_lag_days (upstream data lags by a day)
    2. resolve anchor and each ``today - period.days`` to the nearest day
       with data for the representative symbol (walking back one day at a
       time, at most ``max_date_retries`` lookups)
    3. read every symbol for each resolved day
    4. change = anchor_price / target_price * 100 - 100 for symbols with
       exactly one record on both days; everything else is left out

Assumption:
    If the representative symbol (the first of the sorted universe) has a
    price on a day, every symbol of the universe is assumed to have one
    too. This is not checked per symbol; symbols missing on the resolved
    day simply drop out of that period's result.

Example:
    >>> resolver = HeatmapResolver(store, store_symbol=listing_symbol)
    >>> heatmap = resolver.resolve(universe.symbols)
    >>> heatmap[TimePeriod.ONE_MONTH][0]
    HeatmapEntry(symbol='AAL', percent_change=4.2)
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from datetime import date, timedelta

import structlog

from ticker_spine.core.cache import TieredCache
from ticker_spine.core.dates import Today, days_before, format_day
from ticker_spine.core.errors import DataUnavailableError, ErrorContext, StorageError
from ticker_spine.core.models import (
    Dataset,
    Heatmap,
    HeatmapEntry,
    PricePoint,
    TimePeriod,
    heatmap_to_dict,
)
from ticker_spine.core.result import Ok, Result
from ticker_spine.core.timeseries import PriceStore
from ticker_spine.domain.reference import UniverseCatalog
from ticker_spine.sources.indexes import resolve_index

logger = structlog.get_logger(__name__)

Snapshot = Mapping[str, Result[list[PricePoint]]]


def _identity(symbol: str) -> str:
    return symbol


def _single_price(outcome: Result[list[PricePoint]] | None) -> float | None:
    if isinstance(outcome, Ok) and len(outcome.value) == 1:
        return outcome.value[0].close_price
    return None


def compute_changes(anchor: Snapshot, target: Snapshot) -> list[HeatmapEntry]:
    """Percent change per symbol between two snapshots.

    Symbols absent, failed, or with other than exactly one record in either
    snapshot are excluded.
    """
    entries: list[HeatmapEntry] = []
    for symbol, outcome in anchor.items():
        anchor_price = _single_price(outcome)
        target_price = _single_price(target.get(symbol))
        if anchor_price is None or target_price is None or target_price == 0:
            continue
        entries.append(
            HeatmapEntry(
                symbol=symbol,
                percent_change=(anchor_price / target_price) * 100 - 100,
            )
        )
    return entries


class HeatmapResolver:
    """Builds heatmaps from the durable price store."""

    def __init__(
        self,
        store: PriceStore,
        *,
        max_date_retries: int = 7,
        anchor_lag_days: int = 1,
        min_results: int = 0,
        representative_candidates: int = 1,
        store_symbol: Callable[[str], str] = _identity,
        today: Today = date.today,
    ):
        """
        Args:
            store: Price store to read from.
            max_date_retries: Days checked per representative before giving up.
            anchor_lag_days: How far behind today the default anchor sits.
            min_results: If non-zero, a period with fewer entries raises
                ``DataUnavailableError``.
            representative_candidates: How many leading symbols may serve as
                the representative before the walkback is declared failed.
            store_symbol: Maps a universe symbol to its key in the store.
            today: Provider for the current day.
        """
        if max_date_retries < 1:
            raise ValueError("max_date_retries must be at least 1")
        self.store = store
        self.max_date_retries = max_date_retries
        self.anchor_lag_days = anchor_lag_days
        self.min_results = min_results
        self.representative_candidates = max(1, representative_candidates)
        self._store_symbol = store_symbol
        self._today = today

    def default_anchor(self) -> date:
        return days_before(self._today(), self.anchor_lag_days)

    def find_nearest_date_with_data(self, day: date, symbol: str) -> date:
        """Walk back from ``day`` to the first day ``symbol`` has one price.

        Raises:
            DataUnavailableError: after ``max_date_retries`` empty days.
        """
        key = self._store_symbol(symbol)
        for offset in range(self.max_date_retries):
            candidate = day - timedelta(days=offset)
            try:
                records = self.store.get(key, candidate)
            except StorageError as e:
                logger.warning(
                    "heatmap.lookup_failed",
                    symbol=key,
                    date=format_day(candidate),
                    error=str(e),
                )
                continue
            if len(records) == 1:
                if offset:
                    logger.debug(
                        "heatmap.date_walked_back",
                        symbol=key,
                        requested=format_day(day),
                        resolved=format_day(candidate),
                    )
                return candidate

        raise DataUnavailableError(
            f"No price data for {key} within {self.max_date_retries} days of {format_day(day)}",
            context=ErrorContext(symbol=key, metadata={"date": format_day(day)}),
        )

    def resolve_date(self, day: date, symbols: Sequence[str]) -> date:
        """Nearest day with data, trying the leading representative symbols in turn."""
        candidates = list(symbols[: self.representative_candidates])
        if not candidates:
            raise DataUnavailableError("No symbols to resolve a date for")
        failures: list[DataUnavailableError] = []
        for symbol in candidates:
            try:
                return self.find_nearest_date_with_data(day, symbol)
            except DataUnavailableError as e:
                failures.append(e)
        raise failures[-1]

    def snapshot(self, day: date, symbols: Sequence[str]) -> Snapshot:
        """Read every symbol's records for ``day``, keyed by universe symbol."""
        keys = {symbol: self._store_symbol(symbol) for symbol in symbols}
        by_key = self.store.read_many(keys.values(), day)
        return {symbol: by_key[key] for symbol, key in keys.items()}

    def resolve(
        self,
        symbols: Sequence[str],
        anchor_date: date | None = None,
        periods: Sequence[TimePeriod] | None = None,
    ) -> Heatmap:
        """Compute the heatmap for ``symbols``.

        Args:
            symbols: Universe symbols; the first is the representative.
            anchor_date: Day to compare against; defaults to ``default_anchor()``.
                Period targets count back from today, or from ``anchor_date``
                when one is given.
            periods: Look-back periods; defaults to every ``TimePeriod``.

        Raises:
            DataUnavailableError: if a date cannot be resolved, or a period
                yields fewer than ``min_results`` entries.
        """
        symbols = list(symbols)
        periods = list(periods) if periods is not None else list(TimePeriod)
        if not symbols:
            return {period: [] for period in periods}

        requested_anchor = anchor_date or self.default_anchor()
        period_base = anchor_date or self._today()
        snapshots: dict[date, Snapshot] = {}

        def snapshot_for(day: date) -> tuple[date, Snapshot]:
            resolved = self.resolve_date(day, symbols)
            if resolved not in snapshots:
                snapshots[resolved] = self.snapshot(resolved, symbols)
            return resolved, snapshots[resolved]

        anchor_day, anchor = snapshot_for(requested_anchor)

        heatmap: Heatmap = {}
        for period in periods:
            target_day, target = snapshot_for(days_before(period_base, period.days))
            entries = compute_changes(anchor, target)
            logger.info(
                "heatmap.period_resolved",
                period=period.value,
                anchor=format_day(anchor_day),
                target=format_day(target_day),
                entries=len(entries),
                symbols=len(symbols),
            )
            if self.min_results and len(entries) < self.min_results:
                raise DataUnavailableError(
                    f"{period.value} heatmap has {len(entries)} entries, "
                    f"fewer than the required {self.min_results}",
                    context=ErrorContext(metadata={"period": period.value}),
                )
            heatmap[period] = entries
        return heatmap


class HeatmapRefresh:
    """Computes the heatmap of each configured index and caches them together.

    Cached payload ``heatmaps``: {index: {period: [{symbol, percent_change}, ...]}}
    """

    name = "heatmaps"

    def __init__(
        self,
        resolver: HeatmapResolver,
        catalog: UniverseCatalog,
        cache: TieredCache,
        indexes: Sequence[str],
    ):
        self.resolver = resolver
        self.catalog = catalog
        self.cache = cache
        self.indexes = [resolve_index(index).value for index in indexes]

    def run(self) -> dict[str, Heatmap]:
        heatmaps: dict[str, Heatmap] = {}
        for index in self.indexes:
            universe = self.catalog.get(index)
            heatmaps[index] = self.resolver.resolve(universe.symbols)

        self.cache.write(
            Dataset.HEATMAPS.value,
            {index: heatmap_to_dict(heatmap) for index, heatmap in heatmaps.items()},
        )
        return heatmaps


__all__ = ["Snapshot", "compute_changes", "HeatmapResolver", "HeatmapRefresh"]
