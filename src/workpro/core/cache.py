"""
Filter-fingerprint cache: last known result set per query descriptor.

Every successful list read is saved under the fingerprint of its filters,
so the same view can be rendered from the last snapshot when the network
is gone. The cache is an optimization, never a correctness requirement:
saves that fail are logged and dropped, reads that fail are misses.

Manifesto:
    - **Overwrite, never merge:** the newest save for a fingerprint wins
    - **Shape-checked reads:** a record without a ``data`` field is a miss
    - **Bounded:** least-recently-written eviction past ``max_entries``
    - **Optional TTL:** entries older than ``ttl_seconds`` are ignored

Architecture:
    ::

        FilterCache
          save(filters, payload, scope) ──► fingerprint() ──► store.set(fp, record)
                                                         └──► index + eviction
          read(filters, scope) ─────────► fingerprint() ──► store.get(fp)
                                                         └──► shape check, TTL

        Persisted record (JSON):
            {"data": <payload>, "cachedAt": <epoch milliseconds>}

Examples:
    >>> from workpro.core.storage import InMemoryMedium, LocalRecordStore
    >>> cache = FilterCache(LocalRecordStore(InMemoryMedium()))
    >>> _ = cache.save({"status": "open", "page": 1}, [{"id": "wo-1"}])
    >>> cache.read({"page": 1, "status": "open"}).payload
    [{'id': 'wo-1'}]
    >>> cache.read({"page": 2}) is None
    True

Guardrails:
    ❌ DON'T: Write through the cache from mutations
    ✅ DO: Let successful reads be the only writer

Tags:
    cache, offline, fingerprint, read-through, eviction, workpro

Doc-Types:
    - API Reference
    - Technical Design
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from workpro.core.errors import ValidationError
from workpro.core.fingerprint import FilterSet, fingerprint
from workpro.core.logging import get_logger
from workpro.core.result import Result
from workpro.core.storage import LocalRecordStore

logger = get_logger(__name__)

INDEX_KEY = "__index__"


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """One cached result set.

    Attributes:
        fingerprint: Key of the filters the payload was fetched with.
        payload: The JSON-serializable result set.
        cached_at: When the payload was saved (UTC), if recorded.
    """

    fingerprint: str
    payload: Any
    cached_at: datetime | None = None

    @property
    def cached_at_ms(self) -> int | None:
        if self.cached_at is None:
            return None
        return round(self.cached_at.timestamp() * 1000)


def _from_epoch_ms(value: Any) -> datetime | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def _validate_record(fp: str, record: Any) -> CacheEntry:
    if not isinstance(record, dict) or "data" not in record:
        raise ValidationError("Cached record has no data field", field="data").with_context(
            fingerprint=fp
        )
    return CacheEntry(
        fingerprint=fp,
        payload=record["data"],
        cached_at=_from_epoch_ms(record.get("cachedAt")),
    )


class FilterCache:
    """Read-through snapshot cache keyed by filter fingerprint.

    Attributes:
        max_entries: Fingerprints kept before the least-recently-written is
            evicted (``None`` → unbounded).
        ttl_seconds: Age after which an entry reads as a miss
            (``None`` → never).
    """

    def __init__(
        self,
        store: LocalRecordStore,
        *,
        max_entries: int | None = None,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    # ------------------------------------------------------------------ #
    # Core contract
    # ------------------------------------------------------------------ #

    def save(
        self, filters: FilterSet | None, payload: Any, *, scope: str | None = None
    ) -> Result[None]:
        """Store ``payload`` for ``filters``, replacing any previous snapshot.

        ``scope`` namespaces the key, so equal filter sets of different
        resources keep separate snapshots.

        Never raises. A failed write comes back as ``Err`` and has already
        been logged by the store.
        """
        fp = fingerprint(filters, scope=scope)
        written_at = self._now_ms()
        result = self._store.set(fp, {"data": payload, "cachedAt": written_at})
        if result.is_err():
            logger.warning("cache_write_failed", fingerprint=fp, error=str(result.error))
            return result

        if self.max_entries is not None:
            self._record_write(fp, written_at)
        return result

    def read(self, filters: FilterSet | None, *, scope: str | None = None) -> CacheEntry | None:
        """Return the last snapshot for ``filters`` within ``scope``, or ``None``."""
        fp = fingerprint(filters, scope=scope)
        return self._read_fingerprint(fp)

    def _read_fingerprint(self, fp: str) -> CacheEntry | None:
        record = self._store.get(fp)
        if record is None:
            return None

        try:
            entry = _validate_record(fp, record)
        except ValidationError as e:
            logger.warning("cache_record_invalid", fingerprint=fp, error=e.message)
            return None

        if self._expired(entry):
            logger.debug("cache_entry_expired", fingerprint=fp)
            self._forget(fp)
            return None
        return entry

    def _expired(self, entry: CacheEntry) -> bool:
        if self.ttl_seconds is None or entry.cached_at_ms is None:
            return False
        return (self._now_ms() - entry.cached_at_ms) > self.ttl_seconds * 1000

    # ------------------------------------------------------------------ #
    # Eviction (least-recently-written)
    # ------------------------------------------------------------------ #

    def _load_index(self) -> dict[str, int]:
        stored = self._store.get(INDEX_KEY)
        if isinstance(stored, dict) and isinstance(stored.get("entries"), dict):
            return {
                fp: written
                for fp, written in stored["entries"].items()
                if isinstance(written, (int, float)) and not isinstance(written, bool)
            }

        # Missing or corrupt index: rebuild from whatever is stored.
        index: dict[str, int] = {}
        for fp in self._fingerprints():
            record = self._store.get(fp)
            written = record.get("cachedAt") if isinstance(record, dict) else None
            index[fp] = written if isinstance(written, (int, float)) else 0
        return index

    def _save_index(self, index: dict[str, int]) -> None:
        self._store.set(INDEX_KEY, {"entries": index})

    def _record_write(self, fp: str, written_at: int) -> None:
        index = self._load_index()
        index[fp] = written_at

        overflow = len(index) - (self.max_entries or 0)
        if overflow > 0:
            oldest = sorted((written, key) for key, written in index.items() if key != fp)
            for _, victim in oldest[:overflow]:
                self._store.remove(victim)
                index.pop(victim, None)
                logger.debug("cache_entry_evicted", fingerprint=victim)

        self._save_index(index)

    def _forget(self, fp: str) -> None:
        self._store.remove(fp)
        if self.max_entries is not None:
            index = self._load_index()
            if index.pop(fp, None) is not None:
                self._save_index(index)

    # ------------------------------------------------------------------ #
    # Maintenance
    # ------------------------------------------------------------------ #

    def _fingerprints(self) -> list[str]:
        return [key for key in self._store.keys() if key != INDEX_KEY]

    def entries(self) -> list[CacheEntry]:
        """Every readable entry, newest first."""
        found = [entry for fp in self._fingerprints() if (entry := self._read_fingerprint(fp))]
        return sorted(found, key=lambda e: e.cached_at_ms or 0, reverse=True)

    def purge(self) -> int:
        """Remove every entry and the index. Returns the number of entries removed."""
        removed = 0
        for fp in self._fingerprints():
            if self._store.remove(fp).is_ok():
                removed += 1
        self._store.remove(INDEX_KEY)
        logger.info("cache_purged", removed=removed)
        return removed


__all__ = [
    "CacheEntry",
    "FilterCache",
    "INDEX_KEY",
]
