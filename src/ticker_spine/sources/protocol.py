"""Collaborator interfaces for universe, reference-data and price sources.

Page scraping lives behind these protocols. The acquisition phases only see
symbol lists, reference-page links and parsed ``ReferenceRecord`` objects.

Implementations:
    - ``StaticUniverseSource`` / ``StaticReferenceSource``: in-memory data,
      used by tests and by ``storage_backend=memory`` deployments
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Protocol, runtime_checkable
from urllib.parse import parse_qs, urlparse

from ticker_spine.core.errors import DownstreamBadRequestError, ErrorContext
from ticker_spine.core.models import PricePoint, ReferenceRecord
from ticker_spine.core.result import Result
from ticker_spine.sources.indexes import resolve_index

SHARE_NAME_URL_PARAM = "shareprice"


@runtime_checkable
class UniverseSource(Protocol):
    """Provides the constituent symbols of an index."""

    def fetch_symbols(self, index: str) -> list[str]:
        """Return the symbols currently in ``index``, in any order."""
        ...


@runtime_checkable
class ReferenceSource(Protocol):
    """Provides per-company reference (fundamentals) data for an index."""

    def fetch_links(self, index: str) -> list[str]:
        """Return one reference-page link per company in ``index``."""
        ...

    def fetch_reference(self, link: str) -> ReferenceRecord:
        """Fetch and parse one reference page."""
        ...


@runtime_checkable
class PriceSource(Protocol):
    """Provides the daily closing prices of one symbol."""

    def fetch_prices(
        self,
        symbol: str,
        *,
        days_to_restrict: int | None = None,
    ) -> Result[list[PricePoint]]: ...


def follow_up_link(symbol: str) -> str:
    """Public quote page for ``symbol`` on the London exchange."""
    return f"https://www.google.com/finance/quote/{symbol}:LON?window=1Y"


def symbol_from_link(link: str) -> str | None:
    """Read the symbol from a reference link's ``shareprice`` parameter."""
    values = parse_qs(urlparse(link).query).get(SHARE_NAME_URL_PARAM)
    return values[0] if values else None


class StaticUniverseSource:
    """Universe source backed by a fixed ``index -> symbols`` mapping."""

    def __init__(self, symbols: Mapping[str, Sequence[str]]):
        self._symbols = {resolve_index(name).value: list(values) for name, values in symbols.items()}

    def fetch_symbols(self, index: str) -> list[str]:
        return list(self._symbols.get(resolve_index(index).value, []))


class StaticReferenceSource:
    """Reference source backed by fixed records, addressed by their links."""

    def __init__(self, records: Mapping[str, Sequence[ReferenceRecord]]):
        self._links = {
            resolve_index(name).value: [record.source_link for record in values]
            for name, values in records.items()
        }
        self._records = {
            record.source_link: record for values in records.values() for record in values
        }

    def fetch_links(self, index: str) -> list[str]:
        return list(self._links.get(resolve_index(index).value, []))

    def fetch_reference(self, link: str) -> ReferenceRecord:
        try:
            return self._records[link]
        except KeyError:
            raise DownstreamBadRequestError(
                f"No reference page at {link}",
                context=ErrorContext(source="static_reference", url=link),
            ) from None


__all__ = [
    "UniverseSource",
    "ReferenceSource",
    "PriceSource",
    "follow_up_link",
    "symbol_from_link",
    "StaticUniverseSource",
    "StaticReferenceSource",
]
