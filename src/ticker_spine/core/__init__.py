"""Core primitives: errors, results, settings, records and storage tiers."""

from ticker_spine.core.cache import InMemoryCache, TieredCache
from ticker_spine.core.errors import (
    DataUnavailableError,
    DatasetUnavailableError,
    ErrorCategory,
    ErrorContext,
    RateLimitExceededError,
    StorageError,
    TerminalExternalError,
    TickerSpineError,
    TransientExternalError,
)
from ticker_spine.core.models import (
    Dataset,
    HeatmapEntry,
    PricePoint,
    ReferenceRecord,
    TimePeriod,
    Universe,
)
from ticker_spine.core.result import Err, Ok, Result

__all__ = [
    "InMemoryCache",
    "TieredCache",
    "TickerSpineError",
    "ErrorCategory",
    "ErrorContext",
    "TransientExternalError",
    "RateLimitExceededError",
    "TerminalExternalError",
    "DataUnavailableError",
    "DatasetUnavailableError",
    "StorageError",
    "Dataset",
    "TimePeriod",
    "Universe",
    "ReferenceRecord",
    "PricePoint",
    "HeatmapEntry",
    "Ok",
    "Err",
    "Result",
]
