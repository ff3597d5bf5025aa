"""
Structured error types for ticker-spine.

Every failure that crosses a component boundary is one of the typed errors
below. Errors carry a category, a retryable flag and an optional context so
that the retry executor, the orchestrator and the HTTP surface can decide what
to do without string matching.

Manifesto:
    - **Typed Error Hierarchy:** One class per failure mode callers act on
    - **Explicit Retry Semantics:** Each error knows if it's retryable
    - **Rich Context:** Errors carry symbol, dataset and source metadata
    - **Error Chaining:** Original exceptions are kept as ``cause``

Architecture:
    ::

        TickerSpineError (category, retryable, context, cause)
        ├── TransientExternalError      (NETWORK, retryable)
        │   └── RateLimitExceededError  remote quota hit
        ├── TerminalExternalError       (SOURCE, never retried)
        │   ├── DownstreamBadRequestError  malformed request or unknown symbol
        │   ├── DownstreamUnavailableError  5xx or transport failure
        │   └── RetriesExhaustedError   retry budget spent
        ├── DataUnavailableError        (DATA) no price data near a date
        ├── StorageError                (STORAGE) object store / price store
        ├── DatasetUnavailableError     (DATA) cache miss on the read surface
        ├── ConfigError                 (CONFIG)
        │   └── UnsupportedIndexError   unknown index or period
        └── OrchestrationError          (ORCHESTRATION) a phase failed

Tags:
    error-handling, exception-hierarchy, retry-logic, error-context

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from collections.abc import Callable
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    NETWORK = "NETWORK"
    SOURCE = "SOURCE"
    PARSE = "PARSE"
    STORAGE = "STORAGE"
    DATA = "DATA"
    CONFIG = "CONFIG"
    ORCHESTRATION = "ORCHESTRATION"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Known fields are first-class attributes; anything else goes into
    ``metadata``. ``to_dict()`` drops unset fields so log lines stay short.
    """

    source: str | None = None
    symbol: str | None = None
    index: str | None = None
    dataset: str | None = None
    phase: str | None = None
    run_id: str | None = None
    url: str | None = None
    http_status: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for name in (
            "source",
            "symbol",
            "index",
            "dataset",
            "phase",
            "run_id",
            "url",
            "http_status",
        ):
            value = getattr(self, name)
            if value is not None:
                result[name] = value
        if self.metadata:
            result["metadata"] = dict(self.metadata)
        return result


class TickerSpineError(Exception):
    """
    Base class for all ticker-spine errors.

    Subclasses set ``default_category`` and ``default_retryable``; callers
    may override either per instance.

    Examples:
        >>> err = TickerSpineError("boom")
        >>> err.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> err.with_context(symbol="VOD").context.symbol
        'VOD'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> TickerSpineError:
        """Attach context fields in place and return self for chaining."""
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context = self.context.to_dict()
        if context:
            result["context"] = context
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# External source errors
# =============================================================================


class TransientExternalError(TickerSpineError):
    """A remote call failed in a way that may succeed later."""

    default_category = ErrorCategory.NETWORK
    default_retryable = True


class RateLimitExceededError(TransientExternalError):
    """The remote source reported that its request quota is used up."""

    def __init__(self, message: str, *, retry_after: float | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class TerminalExternalError(TickerSpineError):
    """A remote call failed in a way that retrying cannot fix."""

    default_category = ErrorCategory.SOURCE
    default_retryable = False


class DownstreamBadRequestError(TerminalExternalError):
    """The request was malformed, or the symbol is unknown to the source."""


class DownstreamUnavailableError(TerminalExternalError):
    """The remote source answered 5xx or could not be reached at all."""


class RetriesExhaustedError(TerminalExternalError):
    """
    The retry budget was spent without a non-retryable outcome.

    ``last_error`` is the failure seen on the final attempt.
    """

    def __init__(
        self,
        message: str,
        *,
        attempts: int,
        last_error: BaseException | None = None,
        **kwargs: Any,
    ):
        kwargs.setdefault("cause", last_error)
        super().__init__(message, **kwargs)
        self.attempts = attempts
        self.last_error = last_error


# =============================================================================
# Data / storage errors
# =============================================================================


class DataUnavailableError(TickerSpineError):
    """No price data could be found near a requested date."""

    default_category = ErrorCategory.DATA


class StorageError(TickerSpineError):
    """A read or write against the object store or price store failed."""

    default_category = ErrorCategory.STORAGE
    default_retryable = True


class DatasetUnavailableError(TickerSpineError):
    """A dataset has no cached payload in any tier."""

    default_category = ErrorCategory.DATA

    def __init__(self, dataset: str, message: str | None = None):
        super().__init__(
            message or f"Dataset not currently available: {dataset}",
            context=ErrorContext(dataset=dataset),
        )
        self.dataset = dataset


# =============================================================================
# Configuration / orchestration errors
# =============================================================================


class ConfigError(TickerSpineError):
    """Configuration is missing or invalid."""

    default_category = ErrorCategory.CONFIG


class UnsupportedIndexError(ConfigError):
    """An index or time period name is not one the service knows about."""

    def __init__(self, name: str, *, kind: str = "index"):
        super().__init__(f"Unsupported {kind}: {name}")
        self.name = name
        self.kind = kind


class OrchestrationError(TickerSpineError):
    """A phase of an acquisition pass failed."""

    default_category = ErrorCategory.ORCHESTRATION


# =============================================================================
# Helpers
# =============================================================================


# Receives (component, error) for failures that are reported but not raised.
ErrorReporter = Callable[[str, BaseException], None]


def is_retryable(error: BaseException) -> bool:
    """Return True if ``error`` is marked retryable.

    Non-ticker-spine exceptions are treated as terminal.
    """
    if isinstance(error, TickerSpineError):
        return error.retryable
    return False


def is_rate_limited(error: BaseException) -> bool:
    """Return True if ``error`` is a remote quota signal."""
    return isinstance(error, RateLimitExceededError)


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "TickerSpineError",
    "TransientExternalError",
    "RateLimitExceededError",
    "DownstreamUnavailableError",
    "TerminalExternalError",
    "DownstreamBadRequestError",
    "RetriesExhaustedError",
    "DataUnavailableError",
    "StorageError",
    "DatasetUnavailableError",
    "ConfigError",
    "UnsupportedIndexError",
    "OrchestrationError",
    "ErrorReporter",
    "is_retryable",
    "is_rate_limited",
]
