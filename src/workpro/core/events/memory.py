"""
In-process event bus for a single session.

Handlers are awaited one after another in subscription order before
``publish`` returns. Nothing is persisted or replayed: a handler only sees
events published while it is subscribed.

Tags:
    workpro, events, in-memory, asyncio
"""

from __future__ import annotations

import uuid

from workpro.core.events import Event, EventHandler
from workpro.core.logging import get_logger

__all__ = ["InMemoryEventBus"]

logger = get_logger(__name__)


class InMemoryEventBus:
    """Pattern-matched fan-out of :class:`Event` objects on one event loop.

    Example::

        bus = InMemoryEventBus()
        await bus.subscribe("query.*", on_invalidated)
        await bus.publish(signal.to_event())
    """

    def __init__(self) -> None:
        # subscription id -> (pattern, handler); dicts keep insertion order
        self._handlers: dict[str, tuple[str, EventHandler]] = {}
        self._open = True

    async def publish(self, event: Event) -> None:
        """Deliver ``event`` to every handler whose pattern matches it.

        A failing handler is logged and skipped. Publishing on a closed bus
        is a no-op.
        """
        if not self._open:
            return

        for sub_id, (pattern, handler) in list(self._handlers.items()):
            if not event.matches(pattern):
                continue
            try:
                await handler(event)
            except Exception as e:
                logger.warning(
                    "event_handler_error",
                    subscription_id=sub_id,
                    event_type=event.event_type,
                    error=str(e),
                )

    async def subscribe(self, event_type: str, handler: EventHandler) -> str:
        """Register ``handler`` for ``event_type`` (``*`` and ``prefix.*`` allowed)."""
        sub_id = f"sub_{uuid.uuid4().hex[:12]}"
        if self._open:
            self._handlers[sub_id] = (event_type, handler)
        return sub_id

    async def unsubscribe(self, subscription_id: str) -> None:
        self._handlers.pop(subscription_id, None)

    async def close(self) -> None:
        """Drop every subscription; later publishes and subscribes do nothing."""
        self._open = False
        self._handlers.clear()
