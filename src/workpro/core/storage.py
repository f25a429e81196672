"""
Best-effort local record store over a durable key/value medium.

The medium is modelled on a browser storage object: string keys, string
values, and no guarantee that it exists or accepts a write. The store
layers JSON records and a reserved key prefix on top and converts every
medium failure into a value instead of an exception.

Manifesto:
    The rest of the resilience core must behave correctly even when every
    storage call fails. So:

    - **get never raises:** missing key, corrupt JSON, or a dead medium all
      read as ``None``
    - **set never raises:** it returns ``Ok(None)`` or ``Err(StorageError)``
      so a failed write can't be mistaken for a successful one
    - **Namespaced:** every key carries the store's prefix, foreign data
      under other keys is never touched

Architecture:
    ::

        KeyValueMedium (Protocol)
        ├── InMemoryMedium   : process-local dict, tests and ephemeral sessions
        └── SqliteMedium     : durable, single ``kv`` table (stdlib sqlite3)

        LocalRecordStore(medium | None, prefix)
            get(key)          → record | None
            set(key, record)  → Ok(None) | Err(StorageError)
            remove(key)       → Ok(None) | Err(StorageError)
            keys()            → [unprefixed keys]

Examples:
    >>> store = LocalRecordStore(InMemoryMedium(), prefix="demo:")
    >>> store.set("a", {"data": [1, 2]})
    Ok(None)
    >>> store.get("a")
    {'data': [1, 2]}
    >>> LocalRecordStore(None).get("a") is None
    True

Tags:
    storage, key-value, sqlite, offline, best-effort, workpro

Doc-Types:
    - API Reference
    - Technical Design
"""

from __future__ import annotations

import json
import sqlite3
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from workpro.core.errors import StorageError, StorageUnavailableError
from workpro.core.logging import get_logger
from workpro.core.result import Err, Ok, Result, try_result

logger = get_logger(__name__)


@runtime_checkable
class KeyValueMedium(Protocol):
    """Protocol for the durable medium behind :class:`LocalRecordStore`.

    Any method may raise; the store treats every exception as a
    persistence failure.
    """

    def get_item(self, key: str) -> str | None:
        """Return the stored string, or ``None`` if absent."""
        ...

    def set_item(self, key: str, value: str) -> None:
        """Store a string under ``key``, replacing any previous value."""
        ...

    def remove_item(self, key: str) -> None:
        """Delete ``key``. No-op if absent."""
        ...

    def keys(self) -> list[str]:
        """All keys currently stored."""
        ...


# ------------------------------------------------------------------ #
# Media
# ------------------------------------------------------------------ #


class InMemoryMedium:
    """Dict-backed medium. Lost when the process exits.

    ``quota`` optionally caps the number of keys; writes past it raise
    like a full browser storage would.
    """

    def __init__(self, *, quota: int | None = None) -> None:
        self._items: dict[str, str] = {}
        self._quota = quota

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self._quota is not None and key not in self._items and len(self._items) >= self._quota:
            raise OSError(f"quota of {self._quota} items exceeded")
        self._items[key] = str(value)

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)


class SqliteMedium:
    """Durable medium stored in a single SQLite table.

    Example:
        medium = SqliteMedium(Path.home() / ".workpro" / "offline-cache.db")
        medium.set_item("k", "v")
        medium.close()
    """

    _SCHEMA = "CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value TEXT NOT NULL)"

    def __init__(self, path: str | Path = ":memory:") -> None:
        if str(path) != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._path = str(path)
        self._conn = sqlite3.connect(self._path, check_same_thread=False)
        self._lock = threading.Lock()
        with self._lock:
            self._conn.execute(self._SCHEMA)
            self._conn.commit()

    def get_item(self, key: str) -> str | None:
        with self._lock:
            row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT INTO kv (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )
            self._conn.commit()

    def remove_item(self, key: str) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            self._conn.commit()

    def keys(self) -> list[str]:
        with self._lock:
            rows = self._conn.execute("SELECT key FROM kv ORDER BY key").fetchall()
        return [row[0] for row in rows]

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __repr__(self) -> str:
        return f"SqliteMedium({self._path!r})"


def open_sqlite_medium(path: str | Path) -> SqliteMedium | None:
    """Open a durable medium, or ``None`` when the file can't be opened.

    A ``None`` medium is the "storage unavailable" state; the store keeps
    working and simply never finds anything.
    """
    try:
        return SqliteMedium(path)
    except (OSError, sqlite3.Error) as e:
        logger.warning("storage_unavailable", path=str(path), error=str(e))
        return None


# ------------------------------------------------------------------ #
# Record store
# ------------------------------------------------------------------ #


def _storage_error(action: str, key: str) -> Callable[[Exception], Exception]:
    def mapper(e: Exception) -> Exception:
        return StorageError(f"Unable to {action} record", cause=e).with_context(key=key)

    return mapper


class LocalRecordStore:
    """JSON records under a reserved key prefix, tolerant of every failure.

    Attributes:
        prefix: Prepended to every key written to the medium.
    """

    def __init__(self, medium: KeyValueMedium | None, *, prefix: str = "workpro:") -> None:
        self._medium = medium
        self.prefix = prefix

    @property
    def available(self) -> bool:
        return self._medium is not None

    def _full_key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get(self, key: str) -> Any | None:
        """Return the decoded record, or ``None`` on any failure."""
        if self._medium is None:
            return None

        full_key = self._full_key(key)
        raw = try_result(lambda: self._medium.get_item(full_key), _storage_error("read", key))
        if raw.is_err():
            logger.warning("store_read_failed", key=key, error=str(raw.error))
            return None

        text = raw.unwrap()
        if not text:
            return None

        decoded = try_result(lambda: json.loads(text))
        if decoded.is_err():
            logger.warning("store_record_corrupt", key=key, error=str(decoded.error))
            return None
        return decoded.unwrap()

    def set(self, key: str, record: Any) -> Result[None]:
        """Write ``record`` as JSON. Never raises."""
        if self._medium is None:
            return Err(StorageUnavailableError("Durable storage is unavailable").with_context(key=key))

        encoded = try_result(lambda: json.dumps(record), _storage_error("encode", key))
        if encoded.is_err():
            logger.warning("store_write_failed", key=key, error=str(encoded.error))
            return Err(encoded.error)

        full_key = self._full_key(key)
        written = try_result(
            lambda: self._medium.set_item(full_key, encoded.unwrap()),
            _storage_error("write", key),
        )
        if written.is_err():
            logger.warning("store_write_failed", key=key, error=str(written.error))
            return Err(written.error)
        return Ok(None)

    def remove(self, key: str) -> Result[None]:
        """Delete a record. Never raises."""
        if self._medium is None:
            return Err(StorageUnavailableError("Durable storage is unavailable").with_context(key=key))

        full_key = self._full_key(key)
        removed = try_result(lambda: self._medium.remove_item(full_key), _storage_error("remove", key))
        if removed.is_err():
            logger.warning("store_remove_failed", key=key, error=str(removed.error))
            return Err(removed.error)
        return Ok(None)

    def keys(self) -> list[str]:
        """Unprefixed keys owned by this store (empty on failure)."""
        if self._medium is None:
            return []

        listed = try_result(self._medium.keys, _storage_error("list", "*"))
        if listed.is_err():
            logger.warning("store_list_failed", error=str(listed.error))
            return []
        return [key[len(self.prefix):] for key in listed.unwrap() if key.startswith(self.prefix)]


__all__ = [
    "InMemoryMedium",
    "KeyValueMedium",
    "LocalRecordStore",
    "SqliteMedium",
    "open_sqlite_medium",
]
