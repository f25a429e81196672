"""
Structured error types for the WorkPro resilience core.

Provides a small hierarchy of typed errors with metadata for retry
decisions, categorization, and logging. Every failure the core can observe
(transport, persistence, validation, caller misuse) has its own type so
that the coordinator can decide *where* it is recovered.

Manifesto:
    - **Typed Error Hierarchy:** One type per failure class
    - **Explicit Retry Semantics:** Each error knows if it's retryable
    - **Rich Context:** Errors carry resource, fingerprint, and HTTP metadata
    - **Error Chaining:** Preserve original exceptions while adding context

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       WorkProError                               │
        │  (category, retryable, context, cause)                          │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  TransientError    SourceError       StorageError               │
        │  (retryable=True)  (SOURCE)          (STORAGE)                  │
        │       │                │                   │                     │
        │  NetworkError      SourceNotFound    StorageUnavailableError    │
        │  TimeoutError      ParseError                                   │
        │                                                                  │
        │  ValidationError   MisuseError                                  │
        │  (VALIDATION)      (USAGE)                                      │
        └─────────────────────────────────────────────────────────────────┘

Recovery policy:
    - Transport (TransientError, SourceError, ParseError): caught at the
      coordinator boundary, converted into a stale or error result. Any
      other exception a source raises is wrapped in a SourceError there.
    - Persistence (StorageError): always recovered inside the store.
    - Validation: treated as a cache miss.
    - Misuse (MisuseError): raised synchronously, never recovered.

Examples:
    >>> error = NetworkError("Network request failed")
    >>> error.retryable
    True
    >>> error.with_context(resource="work-orders", http_status=None).context.resource
    'work-orders'

Tags:
    error-handling, exception-hierarchy, retry-logic, error-context,
    workpro, offline

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and logging.

    Attributes:
        NETWORK: Connection, timeout, DNS errors
        SOURCE: Remote data source returned a failure envelope
        PARSE: Response body could not be decoded
        STORAGE: Durable medium unavailable, quota exceeded
        VALIDATION: Cached record has an unexpected shape
        USAGE: Caller defect (missing identifier, bad arguments)
        INTERNAL: Bugs, unexpected state
        UNKNOWN: Uncategorized errors
    """

    NETWORK = "NETWORK"
    SOURCE = "SOURCE"
    PARSE = "PARSE"
    STORAGE = "STORAGE"
    VALIDATION = "VALIDATION"
    USAGE = "USAGE"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Only non-None fields are serialized by :meth:`to_dict`; anything that
    does not fit a typed field goes in ``metadata``.

    Examples:
        >>> ErrorContext(resource="assets", http_status=503).to_dict()
        {'resource': 'assets', 'http_status': 503}

    Attributes:
        resource: Logical resource the failing operation targeted
        fingerprint: Filter fingerprint of the failing query
        url: Request URL
        http_status: HTTP status code, when one was received
        metadata: Free-form extra fields
    """

    resource: str | None = None
    fingerprint: str | None = None
    url: str | None = None
    http_status: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, excluding None values."""
        result: dict[str, Any] = {}
        for key in ("resource", "fingerprint", "url", "http_status"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        result.update(self.metadata)
        return result


class WorkProError(Exception):
    """
    Base class for all resilience-core errors.

    Examples:
        >>> error = WorkProError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.retryable
        False

        Chaining errors:

        >>> try:
        ...     raise ConnectionError("DNS lookup failed")
        ... except ConnectionError as e:
        ...     error = WorkProError("Network error", cause=e)
        >>> error.cause
        ConnectionError('DNS lookup failed')
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
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> WorkProError:
        """
        Add context to this error (fluent API).

        Usage:
            return Err(SourceError("Failed").with_context(
                resource="assets", url="http://localhost/api/assets"
            ))
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# TRANSPORT ERRORS
# =============================================================================


class TransientError(WorkProError):
    """
    Temporary error that may succeed on retry.

    Raised or returned when the remote data source could not be reached at
    all. Reads recover from it by falling back to the durable cache.
    """

    default_category = ErrorCategory.NETWORK
    default_retryable = True


class NetworkError(TransientError):
    """Network-related transient error."""


class TimeoutError(TransientError):
    """Remote request timed out."""


class SourceError(WorkProError):
    """
    The remote data source answered with a failure.

    Not retryable by default (bad request, permission denied, 404).
    """

    default_category = ErrorCategory.SOURCE
    default_retryable = False


class SourceNotFoundError(SourceError):
    """Requested resource does not exist."""


class ParseError(SourceError):
    """Response body was not a decodable envelope."""

    default_category = ErrorCategory.PARSE


# =============================================================================
# PERSISTENCE ERRORS
# =============================================================================


class StorageError(WorkProError):
    """Durable medium rejected a read or write (quota, corruption, I/O)."""

    default_category = ErrorCategory.STORAGE


class StorageUnavailableError(StorageError):
    """No durable medium is configured or it cannot be opened."""


class ValidationError(WorkProError):
    """
    Stored data did not have the expected shape.

    Never retryable; callers treat it exactly like a cache miss.
    """

    default_category = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        return result


# =============================================================================
# CALLER ERRORS
# =============================================================================


class MisuseError(WorkProError):
    """
    Programmer misuse of the coordinator API.

    The one error class raised synchronously to callers, e.g. updating a
    resource without an id.
    """

    default_category = ErrorCategory.USAGE


def failure_reason(error: Exception) -> str:
    """Human-readable reason for an error, as shown to users."""
    if isinstance(error, WorkProError):
        return error.message
    return str(error) or type(error).__name__


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "WorkProError",
    # Transport
    "TransientError",
    "NetworkError",
    "TimeoutError",
    "SourceError",
    "SourceNotFoundError",
    "ParseError",
    # Persistence
    "StorageError",
    "StorageUnavailableError",
    "ValidationError",
    # Caller
    "MisuseError",
    "failure_reason",
]
