"""Tests for workpro.core.notifications: ordered queue with per-record expiry."""

import asyncio

import pytest

from workpro.core.errors import MisuseError
from workpro.core.notifications import (
    DEFAULT_DURATION_MS,
    INFINITE,
    NotificationQueue,
    Variant,
)


class TestEnqueue:
    @pytest.mark.asyncio
    async def test_record_fields(self):
        queue = NotificationQueue()
        nid = queue.enqueue("Saved", "Asset updated", variant="success")

        record = queue.get(nid)
        assert record.title == "Saved"
        assert record.description == "Asset updated"
        assert record.variant is Variant.SUCCESS
        assert record.duration == DEFAULT_DURATION_MS
        assert record.expires is True
        queue.clear()

    @pytest.mark.asyncio
    async def test_default_duration_fallbacks(self):
        queue = NotificationQueue(default_duration_ms=1500)
        a = queue.enqueue("a")
        b = queue.enqueue("b", duration=0)
        c = queue.enqueue("c", duration=-10)

        assert [queue.get(i).duration for i in (a, b, c)] == [1500, 1500, 1500]
        queue.clear()

    def test_generated_ids_are_unique(self):
        queue = NotificationQueue()
        ids = {queue.enqueue(f"n{i}", duration=INFINITE) for i in range(5)}
        assert len(ids) == 5
        assert all(i.startswith("ntf_") for i in ids)

    def test_infinite_needs_no_event_loop(self):
        queue = NotificationQueue()
        nid = queue.enqueue("Offline", variant=Variant.WARNING, duration=INFINITE)
        assert queue.get(nid).expires is False
        assert len(queue) == 1

    def test_unknown_variant(self):
        queue = NotificationQueue()
        with pytest.raises(MisuseError):
            queue.enqueue("x", variant="loud", duration=INFINITE)
        assert len(queue) == 0

    def test_duplicate_id_replaces(self):
        queue = NotificationQueue()
        queue.enqueue("first", id="sync", duration=INFINITE)
        queue.enqueue("other", duration=INFINITE)
        queue.enqueue("second", id="sync", duration=INFINITE)

        assert [r.title for r in queue.records] == ["other", "second"]


class TestOrderingAndDismiss:
    def test_insertion_order(self):
        queue = NotificationQueue()
        for title in ("a", "b", "c"):
            queue.enqueue(title, id=title, duration=INFINITE)
        assert [r.id for r in queue.records] == ["a", "b", "c"]

        queue.dismiss("b")
        assert [r.id for r in queue.records] == ["a", "c"]

    def test_dismiss_absent_is_noop(self):
        queue = NotificationQueue()
        queue.enqueue("a", id="a", duration=INFINITE)
        queue.dismiss("missing")
        queue.dismiss("missing")
        assert [r.id for r in queue.records] == ["a"]

    def test_clear(self):
        queue = NotificationQueue()
        queue.enqueue("a", duration=INFINITE)
        queue.enqueue("b", duration=INFINITE)
        queue.clear()
        assert queue.records == ()


class TestExpiry:
    @pytest.mark.asyncio
    async def test_record_expires(self):
        queue = NotificationQueue()
        queue.enqueue("short", id="short", duration=20)
        queue.enqueue("sticky", id="sticky", duration=INFINITE)

        await asyncio.sleep(0.1)

        assert [r.id for r in queue.records] == ["sticky"]

    @pytest.mark.asyncio
    async def test_independent_timers(self):
        queue = NotificationQueue()
        queue.enqueue("fast", id="fast", duration=20)
        queue.enqueue("slow", id="slow", duration=5000)

        await asyncio.sleep(0.1)

        assert [r.id for r in queue.records] == ["slow"]
        queue.clear()

    @pytest.mark.asyncio
    async def test_dismiss_cancels_timer(self):
        """A dismissed record's timer must not remove a later record with the same id."""
        queue = NotificationQueue()
        queue.enqueue("first", id="n", duration=30)
        queue.dismiss("n")
        queue.enqueue("second", id="n", duration=INFINITE)

        await asyncio.sleep(0.1)

        assert [r.title for r in queue.records] == ["second"]

    @pytest.mark.asyncio
    async def test_replacing_cancels_timer(self):
        queue = NotificationQueue()
        queue.enqueue("first", id="n", duration=30)
        queue.enqueue("second", id="n", duration=INFINITE)

        await asyncio.sleep(0.1)

        assert [r.title for r in queue.records] == ["second"]

    @pytest.mark.asyncio
    async def test_clear_cancels_timers(self):
        queue = NotificationQueue()
        changes = []
        queue.subscribe(lambda records: changes.append(len(records)))

        queue.enqueue("a", duration=30)
        queue.clear()
        await asyncio.sleep(0.1)

        assert changes == [1, 0]


class TestListeners:
    def test_listener_receives_snapshots(self):
        queue = NotificationQueue()
        snapshots = []
        unsubscribe = queue.subscribe(snapshots.append)

        queue.enqueue("a", id="a", duration=INFINITE)
        queue.enqueue("b", id="b", duration=INFINITE)
        queue.dismiss("a")
        unsubscribe()
        queue.dismiss("b")

        assert [[r.id for r in snap] for snap in snapshots] == [["a"], ["a", "b"], ["b"]]

    def test_failing_listener_is_isolated(self):
        queue = NotificationQueue()
        seen = []

        def broken(records):
            raise RuntimeError("render failed")

        queue.subscribe(broken)
        queue.subscribe(seen.append)
        queue.enqueue("a", duration=INFINITE)

        assert len(seen) == 1
