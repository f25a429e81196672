"""
Query/mutation coordinator: cached, deduplicated reads and invalidating writes.

The coordinator sits between consumers and the remote data source. Reads
are keyed by resource plus filter fingerprint, share one in-flight fetch
per key, save every success to the durable filter cache, and fall back to
that cache when the network fails. Writes that succeed invalidate every
query of the written resource group so the next read goes back to the
network.

Manifesto:
    - **At most one fetch per key:** concurrent readers share the same task
    - **Failures are values:** source errors and exceptions become stale or error
      results, never uncaught faults
    - **Staleness is explicit:** every result says whether it is fresh
    - **Reads own the cache:** mutations never write the filter cache
    - **Misuse is loud:** a missing id raises immediately

Architecture:
    ::

        read(resource, filters)
          │ key = QueryKey(resource, fingerprint(filters))
          ├─ fresh in memory? ──────────────────────────► QueryResult(memory)
          ├─ in flight? ── await shield(task) ──────────► same QueryResult
          └─ loading, notify observers, task = _fetch(state)
                source.get(resource, filters)
                  Ok    → cache.save → success ─────────► QueryResult(network)
                  Err   → cache.read
                  raise → SourceError, then as Err
                            hit  → success, stale ──────► QueryResult(cache)
                            miss → error ───────────────► QueryResult(none)
                                     + fallback= given ─► QueryResult(fallback)

        write(resource, mutation)
          mutation(source)
            Ok  → invalidate(group(resource)) → refetch observed keys
            Err → returned unchanged, no state touched

State machine (per key):
    ``idle → loading → (success | error)``; ``success``/``error`` go back
    to ``loading`` on refetch, parameter change, or invalidation.

Examples:
    >>> coordinator = QueryCoordinator(source, cache)
    >>> result = await coordinator.read("work-orders", {"status": "open", "page": 1})
    >>> result.status, result.is_stale
    (<QueryStatus.SUCCESS: 'success'>, False)
    >>> await coordinator.update("assets", "a-1", {"name": "Pump 2"})
    Ok({...})

Guardrails:
    ❌ DON'T: Mutate QueryState from outside the coordinator
    ✅ DO: Read through ``view()`` or ``observe()``

    ❌ DON'T: Save mutation responses into the filter cache
    ✅ DO: Invalidate and let the next read repopulate it

Tags:
    query, mutation, cache, invalidation, deduplication, offline,
    asyncio, workpro

Doc-Types:
    - API Reference
    - Technical Design
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from workpro.core.cache import FilterCache
from workpro.core.errors import MisuseError, SourceError, WorkProError, failure_reason
from workpro.core.events import QUERY_INVALIDATED, Event, EventBus
from workpro.core.fingerprint import FilterSet, fingerprint, normalize_filters
from workpro.core.logging import get_logger
from workpro.core.notifications import NotificationQueue, Variant
from workpro.core.remote import RemoteDataSource
from workpro.core.result import Err, Result

logger = get_logger(__name__)


class QueryStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class ResultSource(str, Enum):
    """Where the data of a :class:`QueryResult` came from."""

    NETWORK = "network"
    MEMORY = "memory"
    CACHE = "cache"
    FALLBACK = "fallback"
    NONE = "none"


def resource_group(resource: str) -> str:
    """Invalidation group of a resource: its first path segment.

    >>> resource_group("assets/42")
    'assets'
    """
    return resource.strip("/").split("/", 1)[0]


@dataclass(frozen=True, slots=True)
class QueryKey:
    """Identity of a query: resource name plus filter fingerprint."""

    resource: str
    fingerprint: str

    def belongs_to(self, group: str) -> bool:
        resource = self.resource.strip("/")
        group = group.strip("/")
        return resource == group or resource.startswith(group + "/")

    def __str__(self) -> str:
        return f"{self.resource}:{self.fingerprint}"


@dataclass
class QueryState:
    """Mutable per-key state. Owned and mutated only by the coordinator."""

    key: QueryKey
    filters: dict[str, Any]
    status: QueryStatus = QueryStatus.IDLE
    data: Any = None
    error: Exception | None = None
    is_stale: bool = False
    fetched_at: datetime | None = None
    cached_at: datetime | None = None
    invalidated: bool = False
    generation: int = 0
    fetched_clock: float | None = None


@dataclass(frozen=True, slots=True)
class QueryResult:
    """Outcome of one :meth:`QueryCoordinator.read` call.

    ``is_stale`` is set on every result: ``False`` only for data fetched
    from the network (or served from memory within the stale time).
    """

    status: QueryStatus
    data: Any = None
    error: Exception | None = None
    is_stale: bool = False
    source: ResultSource = ResultSource.NONE
    fetched_at: datetime | None = None
    cached_at: datetime | None = None

    @property
    def ok(self) -> bool:
        return self.status is QueryStatus.SUCCESS

    @property
    def reason(self) -> str | None:
        """Failure reason shown alongside stale or missing data."""
        return failure_reason(self.error) if self.error is not None else None


@dataclass(frozen=True, slots=True)
class QueryView:
    """Read-only snapshot of a query for UI consumers."""

    status: QueryStatus
    data: Any = None
    error: Exception | None = None
    is_stale: bool = False
    is_placeholder: bool = False
    fetched_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class InvalidationSignal:
    """Declares every query in ``group`` stale until it is re-fetched."""

    group: str
    issued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_event(self, source: str = "coordinator") -> Event:
        return Event(
            event_type=QUERY_INVALIDATED,
            source=source,
            payload={"group": self.group, "issued_at": self.issued_at.isoformat()},
        )


ObserverCallback = Callable[[QueryView], Awaitable[None]]
Mutation = Callable[[RemoteDataSource], Awaitable[Result[Any]]]


@dataclass
class _Observer:
    id: str
    key: QueryKey
    filters: dict[str, Any]
    callback: ObserverCallback


class QueryCoordinator:
    """Orchestrates remote reads and writes for one session.

    Args:
        source: Remote data source for reads and mutations.
        cache: Durable filter cache used as the offline fallback.
        bus: Optional event bus that receives invalidation events.
        notifications: Optional queue that receives outcome notifications.
        stale_time_seconds: How long a network success is served from
            memory without refetching.
        keep_previous_data: While a new key loads, offer the last success
            of the same resource as placeholder data.
    """

    def __init__(
        self,
        source: RemoteDataSource,
        cache: FilterCache,
        *,
        bus: EventBus | None = None,
        notifications: NotificationQueue | None = None,
        stale_time_seconds: float = 0.0,
        keep_previous_data: bool = True,
    ) -> None:
        self._source = source
        self._cache = cache
        self._bus = bus
        self._notifications = notifications
        self.stale_time_seconds = stale_time_seconds
        self.keep_previous_data = keep_previous_data

        self._states: dict[QueryKey, QueryState] = {}
        self._inflight: dict[QueryKey, asyncio.Task[QueryResult]] = {}
        self._observers: dict[str, _Observer] = {}
        self._last_success: dict[str, QueryKey] = {}
        self._background: set[asyncio.Task[Any]] = set()

    # ------------------------------------------------------------------ #
    # Keys and state
    # ------------------------------------------------------------------ #

    @staticmethod
    def key_for(resource: str, filters: FilterSet | None = None) -> QueryKey:
        return QueryKey(resource=resource, fingerprint=fingerprint(filters))

    def _state_for(self, resource: str, filters: FilterSet | None) -> QueryState:
        key = self.key_for(resource, filters)
        state = self._states.get(key)
        if state is None:
            state = QueryState(key=key, filters=normalize_filters(filters))
            self._states[key] = state
        return state

    def state(self, resource: str, filters: FilterSet | None = None) -> QueryState | None:
        """Current state of a query, if it was ever read."""
        return self._states.get(self.key_for(resource, filters))

    def _is_fresh(self, state: QueryState) -> bool:
        if state.status is not QueryStatus.SUCCESS or state.is_stale or state.invalidated:
            return False
        if state.fetched_clock is None:
            return False
        return (time.monotonic() - state.fetched_clock) < self.stale_time_seconds

    @staticmethod
    def _result_from_state(state: QueryState, source: ResultSource) -> QueryResult:
        return QueryResult(
            status=state.status,
            data=state.data,
            error=state.error,
            is_stale=state.is_stale or state.invalidated,
            source=source,
            fetched_at=state.fetched_at,
            cached_at=state.cached_at,
        )

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    async def read(
        self,
        resource: str,
        filters: FilterSet | None = None,
        *,
        force: bool = False,
        fallback: Any = None,
    ) -> QueryResult:
        """Read ``resource`` with ``filters``, sharing any in-flight fetch.

        ``force`` skips the in-memory freshness check but still joins a
        fetch that is already outstanding for the same key.

        ``fallback`` is returned as stale data when the fetch fails and
        neither the filter cache nor memory has anything for the key. It
        applies to this call only and never enters the query state.
        """
        state = self._state_for(resource, filters)
        key = state.key

        if not force and self._is_fresh(state):
            return self._result_from_state(state, ResultSource.MEMORY)

        task = self._inflight.get(key)
        if task is None:
            state.status = QueryStatus.LOADING
            task = asyncio.ensure_future(self._fetch(state))
            self._inflight[key] = task
            # Emitted outside the task: an observer may read the same key.
            await self._emit(key)
        else:
            logger.debug("query_joined_inflight", key=str(key))

        # A cancelled caller must not cancel the fetch other callers share.
        result = await asyncio.shield(task)
        if result.status is QueryStatus.ERROR and fallback is not None:
            logger.info("query_served_fallback", key=str(key))
            return QueryResult(
                status=QueryStatus.SUCCESS,
                data=fallback,
                error=result.error,
                is_stale=True,
                source=ResultSource.FALLBACK,
            )
        return result

    async def _fetch(self, state: QueryState) -> QueryResult:
        key = state.key
        generation = state.generation
        try:
            try:
                outcome = await self._source.get(key.resource, state.filters)
            except MisuseError:
                raise
            except WorkProError as e:
                outcome = Err(e)
            except Exception as e:
                outcome = Err(SourceError(failure_reason(e), cause=e).with_context(resource=key.resource))

            if outcome.is_ok():
                result = self._on_fetch_success(state, outcome.value, generation)
            else:
                result = self._on_fetch_failure(state, outcome.error)
        except BaseException as e:
            if state.status is QueryStatus.LOADING:
                state.status = QueryStatus.ERROR
                state.error = e if isinstance(e, Exception) else None
            raise
        finally:
            if self._inflight.get(key) is asyncio.current_task():
                del self._inflight[key]

        await self._emit(key)
        return result

    def _on_fetch_success(self, state: QueryState, payload: Any, generation: int) -> QueryResult:
        key = state.key
        saved = self._cache.save(state.filters, payload, scope=key.resource)

        now = datetime.now(timezone.utc)
        state.status = QueryStatus.SUCCESS
        state.data = payload
        state.error = None
        state.is_stale = False
        state.fetched_at = now
        state.fetched_clock = time.monotonic()
        state.cached_at = now if saved.is_ok() else None
        # An invalidation that landed mid-flight keeps the result stale.
        state.invalidated = state.generation != generation
        self._last_success[key.resource] = key

        logger.info("query_fetched", key=str(key), cached=saved.is_ok())
        if state.invalidated and self._is_observed(key):
            self._spawn(self.read(key.resource, state.filters, force=True))
        return self._result_from_state(state, ResultSource.NETWORK)

    def _on_fetch_failure(self, state: QueryState, error: Exception) -> QueryResult:
        key = state.key
        reason = failure_reason(error)
        logger.warning("query_fetch_failed", key=str(key), error=reason)

        entry = self._cache.read(state.filters, scope=key.resource)
        if entry is not None:
            state.status = QueryStatus.SUCCESS
            state.data = entry.payload
            state.error = error
            state.is_stale = True
            state.cached_at = entry.cached_at
            logger.info("query_served_stale", key=str(key), cached_at=str(entry.cached_at))
            self._notify(
                "Showing saved data",
                f"{reason}. Results may be out of date.",
                Variant.WARNING,
            )
            return self._result_from_state(state, ResultSource.CACHE)

        if state.fetched_at is not None and state.data is not None:
            # Storage unavailable but this session already saw the data.
            state.status = QueryStatus.SUCCESS
            state.error = error
            state.is_stale = True
            return self._result_from_state(state, ResultSource.MEMORY)

        state.status = QueryStatus.ERROR
        state.data = None
        state.error = error
        state.is_stale = False
        self._notify(f"Unable to load {key.resource}", reason, Variant.ERROR)
        return self._result_from_state(state, ResultSource.NONE)

    # ------------------------------------------------------------------ #
    # Views and observers
    # ------------------------------------------------------------------ #

    def view(self, resource: str, filters: FilterSet | None = None) -> QueryView:
        """Read-only snapshot of ``{status, data, error}`` for a query."""
        key = self.key_for(resource, filters)
        return self._view_for(key, normalize_filters(filters))

    def _view_for(self, key: QueryKey, filters: dict[str, Any]) -> QueryView:
        state = self._states.get(key)
        status = state.status if state is not None else QueryStatus.IDLE

        if state is None or (state.data is None and status is QueryStatus.LOADING):
            entry = self._cache.read(filters, scope=key.resource)
            if entry is not None:
                return QueryView(status=status, data=entry.payload, is_stale=True)

            placeholder = self._placeholder_for(key) if status is QueryStatus.LOADING else None
            if placeholder is not None:
                return QueryView(
                    status=status,
                    data=placeholder.data,
                    is_stale=True,
                    is_placeholder=True,
                    fetched_at=placeholder.fetched_at,
                )
            return QueryView(status=status)

        return QueryView(
            status=state.status,
            data=state.data,
            error=state.error,
            is_stale=state.is_stale or state.invalidated,
            fetched_at=state.fetched_at,
        )

    def _placeholder_for(self, key: QueryKey) -> QueryState | None:
        if not self.keep_previous_data:
            return None
        previous = self._last_success.get(key.resource)
        if previous is None or previous == key:
            return None
        state = self._states.get(previous)
        if state is None or state.data is None:
            return None
        return state

    async def observe(
        self,
        resource: str,
        filters: FilterSet | None,
        callback: ObserverCallback,
        *,
        fetch: bool = True,
    ) -> str:
        """Call ``callback`` with a fresh :class:`QueryView` on every transition.

        Observed queries are re-fetched eagerly when invalidated. With
        ``fetch`` the first read is started in the background.
        """
        key = self.key_for(resource, filters)
        observer = _Observer(
            id=f"obs_{uuid.uuid4().hex[:12]}",
            key=key,
            filters=normalize_filters(filters),
            callback=callback,
        )
        self._observers[observer.id] = observer

        if fetch:
            self._spawn(self.read(resource, filters))
        return observer.id

    def unobserve(self, observer_id: str) -> None:
        """Stop observing. Any shared in-flight fetch keeps running."""
        self._observers.pop(observer_id, None)

    def _is_observed(self, key: QueryKey) -> bool:
        return any(o.key == key for o in self._observers.values())

    async def _emit(self, key: QueryKey) -> None:
        observers = [o for o in self._observers.values() if o.key == key]
        for observer in observers:
            view = self._view_for(key, observer.filters)
            try:
                await observer.callback(view)
            except Exception as e:
                logger.warning("query_observer_error", key=str(key), observer=observer.id, error=str(e))

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background_done)

    def _background_done(self, task: asyncio.Task[Any]) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning("background_fetch_failed", error=str(task.exception()))

    async def settle(self) -> None:
        """Wait for every background refetch scheduled so far."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ------------------------------------------------------------------ #
    # Writes and invalidation
    # ------------------------------------------------------------------ #

    async def invalidate(self, group: str) -> InvalidationSignal:
        """Mark every query in ``group`` stale and re-fetch the observed ones."""
        signal = InvalidationSignal(group=resource_group(group))

        affected = [state for key, state in self._states.items() if key.belongs_to(signal.group)]
        for state in affected:
            state.invalidated = True
            state.generation += 1

        logger.info("queries_invalidated", group=signal.group, count=len(affected))

        if self._bus is not None:
            await self._bus.publish(signal.to_event())

        observed = {o.key: o for o in self._observers.values() if o.key.belongs_to(signal.group)}
        for key, observer in observed.items():
            self._spawn(self.read(key.resource, observer.filters, force=True))
        return signal

    async def write(
        self,
        resource: str,
        mutation: Mutation,
        *,
        success_message: str | None = None,
    ) -> Result[Any]:
        """Run ``mutation`` against the source; invalidate ``resource``'s group on success.

        A failed mutation is returned unchanged and leaves every query and
        the filter cache untouched.
        """
        try:
            outcome = await mutation(self._source)
        except MisuseError:
            raise
        except WorkProError as e:
            outcome = Err(e)
        except Exception as e:
            outcome = Err(SourceError(failure_reason(e), cause=e).with_context(resource=resource))

        if outcome.is_err():
            reason = failure_reason(outcome.error)
            logger.warning("mutation_failed", resource=resource, error=reason)
            self._notify("Update failed", reason, Variant.ERROR)
            return outcome

        logger.info("mutation_succeeded", resource=resource)
        await self.invalidate(resource_group(resource))
        if success_message:
            self._notify(success_message, None, Variant.SUCCESS)
        return outcome

    async def update(
        self,
        resource: str,
        resource_id: str | None,
        body: Any,
        *,
        success_message: str | None = None,
    ) -> Result[Any]:
        """PATCH ``resource/resource_id``. Raises :class:`MisuseError` without an id."""
        if not resource_id:
            raise MisuseError(f"An id is required to update {resource}.").with_context(resource=resource)

        path = f"{resource.rstrip('/')}/{resource_id}"
        return await self.write(
            path,
            lambda source: source.patch(path, body),
            success_message=success_message,
        )

    async def delete(
        self,
        resource: str,
        resource_id: str | None,
        *,
        success_message: str | None = None,
    ) -> Result[Any]:
        """DELETE ``resource/resource_id``. Raises :class:`MisuseError` without an id."""
        if not resource_id:
            raise MisuseError(f"An id is required to delete {resource}.").with_context(resource=resource)

        path = f"{resource.rstrip('/')}/{resource_id}"
        return await self.write(
            path,
            lambda source: source.delete(path),
            success_message=success_message,
        )

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def _notify(self, title: str, description: str | None, variant: Variant) -> None:
        if self._notifications is not None:
            self._notifications.enqueue(title, description, variant=variant)

    async def close(self) -> None:
        """Cancel outstanding work and drop all query state."""
        pending = list(self._background) + list(self._inflight.values())
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        self._background.clear()
        self._inflight.clear()
        self._observers.clear()
        self._states.clear()
        self._last_success.clear()


__all__ = [
    "InvalidationSignal",
    "QueryCoordinator",
    "QueryKey",
    "QueryResult",
    "QueryState",
    "QueryStatus",
    "QueryView",
    "ResultSource",
    "resource_group",
]
