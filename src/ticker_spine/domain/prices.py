"""Price-history acquisition phase.

For every symbol of the configured price indexes: fetch daily closes through
the rate-limited price source and push them to the ``BatchedWriter``. A
symbol whose fetch fails terminally is reported and skipped; the phase keeps
going with the next symbol. At the end the phase waits for the writer to
drain so the next run starts from an empty queue.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

import structlog

from ticker_spine.core.result import Err
from ticker_spine.domain.reference import UniverseCatalog
from ticker_spine.execution.writer import BatchedWriter
from ticker_spine.framework.alerts import AlertSeverity, Notifier
from ticker_spine.sources.indexes import resolve_index
from ticker_spine.sources.protocol import PriceSource

logger = structlog.get_logger(__name__)


@dataclass
class PriceRefreshSummary:
    symbols: int = 0
    points: int = 0
    failed: dict[str, str] = field(default_factory=dict)
    drained: bool = True


class PriceRefresh:
    name = "prices"

    def __init__(
        self,
        source: PriceSource,
        writer: BatchedWriter,
        catalog: UniverseCatalog,
        indexes: Sequence[str],
        *,
        notifier: Notifier | None = None,
        days_to_restrict: int | None = None,
        drain_timeout: float | None = None,
    ):
        self.source = source
        self.writer = writer
        self.catalog = catalog
        self.indexes = [resolve_index(index).value for index in indexes]
        self.notifier = notifier
        self.days_to_restrict = days_to_restrict
        self.drain_timeout = drain_timeout

    def symbols(self) -> list[str]:
        """Symbols across all price indexes, each once, in sorted order."""
        seen: set[str] = set()
        for index in self.indexes:
            seen.update(self.catalog.get(index).symbols)
        return sorted(seen)

    def run(self) -> PriceRefreshSummary:
        summary = PriceRefreshSummary()
        for symbol in self.symbols():
            summary.symbols += 1
            outcome = self.source.fetch_prices(symbol, days_to_restrict=self.days_to_restrict)
            if isinstance(outcome, Err):
                summary.failed[symbol] = str(outcome.error)
                logger.error("prices.symbol_failed", symbol=symbol, error=str(outcome.error))
                if self.notifier is not None:
                    self.notifier.send(
                        f"Price fetch failed for {symbol}",
                        str(outcome.error),
                        severity=AlertSeverity.ERROR,
                    )
                continue
            summary.points += self.writer.push(outcome.value)

        summary.drained = self.writer.flush(timeout=self.drain_timeout)
        if not summary.drained:
            logger.warning("prices.writer_not_drained", pending=self.writer.pending)
        logger.info(
            "prices.complete",
            symbols=summary.symbols,
            points=summary.points,
            failed=len(summary.failed),
        )
        return summary


__all__ = ["PriceRefreshSummary", "PriceRefresh"]
