"""
Result type for explicit success/failure handling.

Every fallible operation that crosses a component boundary (remote fetches,
retried calls, per-item batch work, price store reads) returns a
``Result[T]``: either ``Ok(value)`` or ``Err(error)``. Callers branch on the
variant instead of catching exceptions, and predicates such as retry policies
look at the whole outcome.

Manifesto:
    - **Errors as values:** Failures are data the caller must look at
    - **One variant type:** Success and failure share a single envelope
    - **Composable:** ``map`` / ``flat_map`` chain without unwrapping

Examples:
    >>> Ok(5).map(lambda x: x * 2)
    Ok(10)
    >>> try_result(lambda: 1 / 0).is_err()
    True

Tags:
    result-pattern, error-handling, functional-programming

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful result containing a value."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def unwrap_err(self) -> Exception:
        raise ValueError(f"Called unwrap_err on Ok: {self.value!r}")

    def map(self, f: Callable[[T], U]) -> Result[U]:
        return Ok(f(self.value))

    def flat_map(self, f: Callable[[T], Result[U]]) -> Result[U]:
        return f(self.value)

    def map_err(self, f: Callable[[Exception], Exception]) -> Result[T]:
        return self

    def to_dict(self) -> dict[str, Any]:
        return {"ok": True, "value": self.value}

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[T]):
    """Failed result containing an exception."""

    error: Exception

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> T:
        """Re-raise the wrapped error."""
        raise self.error

    def unwrap_or(self, default: T) -> T:
        return default

    def unwrap_err(self) -> Exception:
        return self.error

    def map(self, f: Callable[[T], U]) -> Result[U]:
        return Err(self.error)

    def flat_map(self, f: Callable[[T], Result[U]]) -> Result[U]:
        return Err(self.error)

    def map_err(self, f: Callable[[Exception], Exception]) -> Result[T]:
        return Err(f(self.error))

    def to_dict(self) -> dict[str, Any]:
        error = self.error
        to_dict = getattr(error, "to_dict", None)
        return {
            "ok": False,
            "error": to_dict() if callable(to_dict) else str(error),
            "error_type": type(error).__name__,
        }

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


Result = Ok[T] | Err[T]


def try_result(f: Callable[[], T]) -> Result[T]:
    """Call ``f`` and wrap its return value or raised ``Exception``."""
    try:
        return Ok(f())
    except Exception as e:
        return Err(e)


__all__ = [
    "Ok",
    "Err",
    "Result",
    "try_result",
]
