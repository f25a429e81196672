"""
Resilience session: the one owner of all mutable resilience state.

A session is created once per application run and handed to every
consumer. It builds the durable medium, the filter cache, the event bus,
the notification queue, the remote data source and the coordinator from
:class:`~workpro.core.settings.WorkProSettings`, and tears all of them down
in :meth:`ResilienceSession.close`. Nothing is kept in module globals.

Examples:
    >>> async with ResilienceSession(WorkProSettings()) as session:
    ...     result = await session.coordinator.read("work-orders", {"page": 1})
    ...     session.notifications.records

Tags:
    session, composition-root, lifecycle, dependency-injection, workpro
"""

from __future__ import annotations

from typing import Any

from workpro.core.cache import FilterCache
from workpro.core.coordinator import QueryCoordinator
from workpro.core.events.memory import InMemoryEventBus
from workpro.core.logging import get_logger
from workpro.core.notifications import NotificationQueue
from workpro.core.remote import HttpDataSource, RemoteDataSource
from workpro.core.settings import WorkProSettings
from workpro.core.storage import (
    InMemoryMedium,
    KeyValueMedium,
    LocalRecordStore,
    open_sqlite_medium,
)

logger = get_logger(__name__)


class ResilienceSession:
    """Owns and wires the resilience core for one application session.

    Args:
        settings: Configuration; defaults to ``WorkProSettings()``.
        medium: Durable medium to use instead of the configured SQLite file.
        source: Remote data source to use instead of :class:`HttpDataSource`.
        durable: When no ``medium`` is given, open the SQLite file (True)
            or keep everything in memory (False).
    """

    def __init__(
        self,
        settings: WorkProSettings | None = None,
        *,
        medium: KeyValueMedium | None = None,
        source: RemoteDataSource | None = None,
        durable: bool = True,
    ) -> None:
        self.settings = settings or WorkProSettings()
        s = self.settings

        self._owns_medium = medium is None
        if medium is None:
            medium = open_sqlite_medium(s.resolved_storage_path) if durable else InMemoryMedium()
        self.medium = medium

        self.store = LocalRecordStore(medium, prefix=s.cache_prefix)
        self.cache = FilterCache(
            self.store,
            max_entries=s.cache_max_entries,
            ttl_seconds=s.cache_ttl_seconds,
        )
        self.bus = InMemoryEventBus()
        self.notifications = NotificationQueue(default_duration_ms=s.notification_duration_ms)

        self._owns_source = source is None
        self.source = source or HttpDataSource(
            s.api_base_url,
            token=s.api_token,
            timeout=s.api_timeout_seconds,
        )
        self.coordinator = QueryCoordinator(
            self.source,
            self.cache,
            bus=self.bus,
            notifications=self.notifications,
            stale_time_seconds=s.stale_time_seconds,
            keep_previous_data=s.keep_previous_data,
        )
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """Tear down in reverse order of construction. Safe to call twice."""
        if self._closed:
            return
        self._closed = True

        self.notifications.clear()
        await self.coordinator.close()
        await self.bus.close()
        if self._owns_source:
            await self.source.aclose()
        if self._owns_medium:
            close = getattr(self.medium, "close", None)
            if callable(close):
                close()
        logger.debug("session_closed")

    async def __aenter__(self) -> ResilienceSession:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


__all__ = ["ResilienceSession"]
