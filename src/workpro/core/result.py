"""
Result envelope for consistent success/failure handling.

Operations that can fail for environmental reasons (network, durable
storage) return ``Ok[T]`` or ``Err[T]`` instead of raising, so callers can
never mistake a failed write for a successful one.

Manifesto:
    - **Explicit over Implicit:** No hidden exceptions that callers might miss
    - **Functional composition:** Chain with map/map_err without nested try blocks
    - **Degradation-friendly:** An ``Err`` from the store is a value the cache
      can log and drop, not a fault

Architecture:
    ::

        ┌─────────────────┬─────────────────┬─────────────────────────┐
        │     Ok[T]       │     Err[T]      │     Utilities           │
        ├─────────────────┼─────────────────┼─────────────────────────┤
        │ • value: T      │ • error: Exc    │ • try_result()          │
        │ • map()         │ • map_err()     │                         │
        │ • unwrap()      │ • unwrap_or()   │                         │
        └─────────────────┴─────────────────┴─────────────────────────┘

Examples:
    >>> from workpro.core.result import Ok, Err
    >>> Ok(10).map(lambda x: x * 2).unwrap()
    20
    >>> Err(ValueError("oops")).map(lambda x: x * 2).unwrap_or(0)
    0

    Pattern matching:

    >>> match Ok({"data": []}):
    ...     case Ok(value):
    ...         print(value)
    ...     case Err(error):
    ...         print(error)
    {'data': []}

Tags:
    result-pattern, error-handling, functional-programming, workpro

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

from workpro.core.errors import WorkProError

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """
    Successful result containing a value.

    Examples:
        >>> ok = Ok(42)
        >>> ok.is_ok(), ok.is_err()
        (True, False)
        >>> ok.unwrap()
        42
    """

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        """Get the value. Safe for Ok."""
        return self.value

    def unwrap_or(self, default: T) -> T:
        """Get value or default (always returns value for Ok)."""
        return self.value

    def map(self, f: Callable[[T], U]) -> Result[U]:
        """Transform the value if Ok."""
        return Ok(f(self.value))

    def map_err(self, f: Callable[[Exception], Exception]) -> Result[T]:
        """Transform error if Err (no-op for Ok)."""
        return self

    def inspect_err(self, f: Callable[[Exception], None]) -> Result[T]:
        """Call f with error for side effects (no-op for Ok)."""
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"ok": True, "value": self.value}

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[T]):
    """
    Failed result containing an error.

    ``map`` short-circuits; ``map_err`` and ``inspect_err`` operate on the
    error. Prefer a :class:`WorkProError` subclass so ``to_dict`` carries
    category and context.

    Examples:
        >>> err = Err(ValueError("something went wrong"))
        >>> err.is_err()
        True
        >>> err.unwrap_or("default")
        'default'
    """

    error: Exception

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> T:
        """Raise the error. Use only when you're sure it's Ok."""
        raise self.error

    def unwrap_or(self, default: T) -> T:
        """Get default since this is Err."""
        return default

    def map(self, f: Callable[[T], U]) -> Result[U]:
        """No-op for Err."""
        return Err(self.error)

    def map_err(self, f: Callable[[Exception], Exception]) -> Result[T]:
        """Transform the error."""
        return Err(f(self.error))

    def inspect_err(self, f: Callable[[Exception], None]) -> Result[T]:
        """Call f with error for side effects, return self."""
        f(self.error)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        if isinstance(self.error, WorkProError):
            return {"ok": False, "error": self.error.to_dict()}
        return {
            "ok": False,
            "error": {
                "error_type": type(self.error).__name__,
                "message": str(self.error),
            },
        }

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


Result = Ok[T] | Err[T]


def try_result(
    f: Callable[[], T],
    error_mapper: Callable[[Exception], Exception] | None = None,
) -> Result[T]:
    """
    Execute a zero-argument callable and wrap the outcome in a Result.

    Bridges exception-raising stdlib calls (``json.loads``, ``sqlite3``)
    into the Result world. ``error_mapper`` converts the caught exception
    into a typed error before it is wrapped.

    Examples:
        >>> import json
        >>> try_result(lambda: json.loads('{"a": 1}')).unwrap()
        {'a': 1}
        >>> try_result(lambda: json.loads('invalid')).is_err()
        True
    """
    try:
        return Ok(f())
    except Exception as e:
        if error_mapper is not None:
            return Err(error_mapper(e))
        return Err(e)


__all__ = [
    "Ok",
    "Err",
    "Result",
    "try_result",
]
