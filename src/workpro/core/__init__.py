"""WorkPro Core -- the client-side resilience layer.

Manifesto:
    A maintenance app is used on shop floors and in plant basements where
    the network comes and goes. The resilience core keeps list views alive
    across outages: every successful read is snapshotted under the
    fingerprint of its filters, failed reads fall back to that snapshot,
    and successful writes invalidate whatever they made stale.

Architecture::

    Layer 1 -- Type System & Errors
        errors.py          Structured error hierarchy (WorkProError, TransientError)
        result.py          Result[T] envelope (Ok / Err / try_result)
        logging.py         structlog configuration
        settings.py        WorkProSettings (pydantic-settings)

    Layer 2 -- Storage
        fingerprint.py     Filter set → canonical key
        storage.py         KeyValueMedium protocol, LocalRecordStore
        cache.py           FilterCache (save/read, eviction)

    Layer 3 -- Coordination
        remote.py          RemoteDataSource protocol, HttpDataSource (httpx)
        events/            Event, EventBus, InMemoryEventBus
        coordinator.py     QueryCoordinator (dedup, fallback, invalidation)
        notifications.py   NotificationQueue (ordered, timed expiry)
        session.py         ResilienceSession (composition root)
"""

from workpro.core.cache import CacheEntry, FilterCache
from workpro.core.coordinator import (
    InvalidationSignal,
    QueryCoordinator,
    QueryKey,
    QueryResult,
    QueryStatus,
    QueryView,
    ResultSource,
)
from workpro.core.errors import (
    ErrorCategory,
    MisuseError,
    NetworkError,
    SourceError,
    StorageError,
    StorageUnavailableError,
    TransientError,
    ValidationError,
    WorkProError,
)
from workpro.core.fingerprint import fingerprint, normalize_filters
from workpro.core.notifications import INFINITE, NotificationQueue, NotificationRecord, Variant
from workpro.core.result import Err, Ok, Result
from workpro.core.session import ResilienceSession
from workpro.core.storage import InMemoryMedium, LocalRecordStore, SqliteMedium

__all__ = [
    # cache
    "CacheEntry",
    "FilterCache",
    # coordinator
    "InvalidationSignal",
    "QueryCoordinator",
    "QueryKey",
    "QueryResult",
    "QueryStatus",
    "QueryView",
    "ResultSource",
    # errors
    "ErrorCategory",
    "MisuseError",
    "NetworkError",
    "SourceError",
    "StorageError",
    "StorageUnavailableError",
    "TransientError",
    "ValidationError",
    "WorkProError",
    # fingerprint
    "fingerprint",
    "normalize_filters",
    # notifications
    "INFINITE",
    "NotificationQueue",
    "NotificationRecord",
    "Variant",
    # result
    "Err",
    "Ok",
    "Result",
    # session / storage
    "ResilienceSession",
    "InMemoryMedium",
    "LocalRecordStore",
    "SqliteMedium",
]
