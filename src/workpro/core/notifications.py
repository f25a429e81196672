"""
Notification queue: ordered transient messages with independent expiry.

Any part of the application can enqueue a notification describing an
outcome ("Saved", "Showing cached data", "Update failed"). The queue owns
the ordered list and is its only mutator; each record disappears when it
is dismissed or when its own timer fires, whichever comes first.

Manifesto:
    - **Ordered:** records are kept in arrival order; rendering order is
      the consumer's choice
    - **Independent timers:** one ``loop.call_later`` handle per record
    - **No stale fires:** dismissing or clearing cancels the timer
    - **Idempotent dismiss:** removing an absent id is a no-op

Architecture:
    ::

        enqueue(...) ──► records.append(record) ──► call_later(duration) ─┐
                                                                          │
        dismiss(id) ──► cancel timer, remove ◄──────── timer fires ◄──────┘
        clear()     ──► cancel all timers, empty
                            │
                            ▼
                    listeners(records)

Examples:
    >>> queue = NotificationQueue()
    >>> nid = queue.enqueue("Saved", "Asset updated", variant="success", duration=INFINITE)
    >>> [r.title for r in queue.records]
    ['Saved']
    >>> queue.dismiss(nid)
    >>> queue.records
    ()

Tags:
    notifications, toast, timers, asyncio, workpro

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import asyncio
import itertools
import math
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from workpro.core.errors import MisuseError
from workpro.core.logging import get_logger

logger = get_logger(__name__)

INFINITE = math.inf
DEFAULT_DURATION_MS = 4000


class Variant(str, Enum):
    """Visual intent of a notification."""

    DEFAULT = "default"
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True, slots=True)
class NotificationRecord:
    """One queued notification.

    Attributes:
        id: Unique within the queue.
        title: Short headline.
        description: Optional body text.
        variant: Visual intent.
        duration: Lifetime in milliseconds, or :data:`INFINITE`.
        inserted_at: When the record was enqueued (UTC).
    """

    id: str
    title: str | None = None
    description: str | None = None
    variant: Variant = Variant.DEFAULT
    duration: float = DEFAULT_DURATION_MS
    inserted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def expires(self) -> bool:
        return math.isfinite(self.duration)


Listener = Callable[[tuple[NotificationRecord, ...]], None]


class NotificationQueue:
    """Owned, ordered store of :class:`NotificationRecord`.

    Timers are scheduled on the running event loop (or ``loop`` when
    given), so ``enqueue`` of an expiring record must happen inside it.
    """

    def __init__(
        self,
        *,
        default_duration_ms: float = DEFAULT_DURATION_MS,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._records: list[NotificationRecord] = []
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._listeners: list[Listener] = []
        self._ids = itertools.count(1)
        self._default_duration = default_duration_ms
        self._loop = loop

    # ------------------------------------------------------------------ #
    # Read side
    # ------------------------------------------------------------------ #

    @property
    def records(self) -> tuple[NotificationRecord, ...]:
        """Current records, oldest first."""
        return tuple(self._records)

    def get(self, notification_id: str) -> NotificationRecord | None:
        return next((r for r in self._records if r.id == notification_id), None)

    def __len__(self) -> int:
        return len(self._records)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with the new records after every change.

        Returns a callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.records
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.warning("notification_listener_error", error=str(e))

    # ------------------------------------------------------------------ #
    # Write side
    # ------------------------------------------------------------------ #

    def _resolve_duration(self, duration: float | None) -> float:
        if duration is None or duration <= 0:
            return self._default_duration
        return duration

    def enqueue(
        self,
        title: str | None = None,
        description: str | None = None,
        *,
        variant: Variant | str = Variant.DEFAULT,
        duration: float | None = None,
        id: str | None = None,
    ) -> str:
        """Append a notification and arm its timer. Returns the id.

        ``duration`` is in milliseconds; ``None`` or a non-positive value
        means the queue default, :data:`INFINITE` means no timer. An ``id``
        already in the queue replaces the existing record.
        """
        try:
            variant = Variant(variant)
        except ValueError as e:
            raise MisuseError(f"Unknown notification variant: {variant!r}", cause=e) from e

        record = NotificationRecord(
            id=id or f"ntf_{next(self._ids)}",
            title=title,
            description=description,
            variant=variant,
            duration=self._resolve_duration(duration),
        )

        timer = None
        if record.expires:
            loop = self._loop or asyncio.get_running_loop()
            timer = loop.call_later(record.duration / 1000, self._expire, record.id)

        self._discard(record.id)
        self._records.append(record)
        if timer is not None:
            self._timers[record.id] = timer

        logger.debug("notification_enqueued", id=record.id, variant=record.variant.value)
        self._notify()
        return record.id

    def dismiss(self, notification_id: str) -> None:
        """Remove a record now and cancel its timer. No-op if absent."""
        if self._discard(notification_id):
            self._notify()

    def clear(self) -> None:
        """Remove every record and cancel every outstanding timer."""
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        had_records = bool(self._records)
        self._records.clear()
        if had_records:
            self._notify()

    def _discard(self, notification_id: str) -> bool:
        timer = self._timers.pop(notification_id, None)
        if timer is not None:
            timer.cancel()

        before = len(self._records)
        self._records = [r for r in self._records if r.id != notification_id]
        return len(self._records) != before

    def _expire(self, notification_id: str) -> None:
        self._timers.pop(notification_id, None)
        logger.debug("notification_expired", id=notification_id)
        self.dismiss(notification_id)


__all__ = [
    "DEFAULT_DURATION_MS",
    "INFINITE",
    "NotificationQueue",
    "NotificationRecord",
    "Variant",
]
