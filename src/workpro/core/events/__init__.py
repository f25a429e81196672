"""Event bus for invalidation signals and other in-session broadcasts.

Why This Package Exists
-----------------------
When a mutation succeeds, every consumer holding a query for the same
resource group has to learn that its data is stale. The coordinator
publishes a ``query.invalidated`` event; anything else in the session
(other coordinators, a UI bridge, a logger) subscribes to it without the
coordinator knowing who is listening.

The bus is owned by a :class:`~workpro.core.session.ResilienceSession`
and passed in explicitly. There is no process-wide default instance.

Usage::

    from workpro.core.events import Event
    from workpro.core.events.memory import InMemoryEventBus

    bus = InMemoryEventBus()

    async def on_invalidated(event: Event):
        print(f"{event.payload['group']} is stale")

    sub_id = await bus.subscribe("query.*", on_invalidated)
    await bus.publish(Event(
        event_type="query.invalidated",
        source="coordinator",
        payload={"group": "assets"},
    ))

Modules
-------
memory      InMemoryEventBus -- single event loop, immediate delivery
"""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable

__all__ = [
    "Event",
    "EventBus",
    "EventHandler",
    "QUERY_INVALIDATED",
]

QUERY_INVALIDATED = "query.invalidated"


# ── Event Model ──────────────────────────────────────────────────────────


@dataclass
class Event:
    """Payload broadcast on the bus.

    Attributes:
        event_type: Dot-separated type (e.g., ``query.invalidated``)
        source: Origin component
        payload: Event-specific data
        timestamp: When the event occurred (UTC)
        event_id: Unique event identifier
    """

    event_type: str
    source: str
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def matches(self, pattern: str) -> bool:
        """Check if event type matches a pattern (supports wildcards).

        Examples:
            - ``query.*`` matches ``query.invalidated``
            - ``*`` matches everything
            - ``query.invalidated`` matches exactly ``query.invalidated``
        """
        if pattern == "*":
            return True
        if pattern.endswith(".*"):
            prefix = pattern[:-2]
            return self.event_type.startswith(prefix + ".")
        return self.event_type == pattern


EventHandler = Callable[[Event], Awaitable[None]]


# ── EventBus Protocol ────────────────────────────────────────────────────


@runtime_checkable
class EventBus(Protocol):
    """Protocol for event bus implementations."""

    async def publish(self, event: Event) -> None:
        """Publish an event to all matching subscribers."""
        ...

    async def subscribe(self, event_type: str, handler: EventHandler) -> str:
        """Subscribe to events matching a pattern. Returns a subscription ID."""
        ...

    async def unsubscribe(self, subscription_id: str) -> None:
        """Remove a subscription."""
        ...

    async def close(self) -> None:
        """Drop all subscriptions and stop delivering."""
        ...
