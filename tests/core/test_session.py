"""Tests for workpro.core.session: wiring and teardown of the resilience core."""

import sqlite3

import pytest

from workpro.core.coordinator import QueryStatus, ResultSource
from workpro.core.errors import NetworkError
from workpro.core.events import QUERY_INVALIDATED, Event
from workpro.core.remote import HttpDataSource
from workpro.core.session import ResilienceSession
from workpro.core.settings import WorkProSettings
from workpro.core.storage import InMemoryMedium, SqliteMedium

from tests._support.fakes import FakeSource


@pytest.fixture
def settings(tmp_path) -> WorkProSettings:
    return WorkProSettings(data_dir=tmp_path, notification_duration_ms=2500)


class TestWiring:
    def test_components_follow_settings(self, settings):
        session = ResilienceSession(settings, medium=InMemoryMedium(), source=FakeSource())

        assert session.store.prefix == "work-order-cache:"
        assert session.cache.max_entries == settings.cache_max_entries
        assert session.coordinator.stale_time_seconds == settings.stale_time_seconds

    def test_durable_medium_is_opened_under_data_dir(self, settings, tmp_path):
        session = ResilienceSession(settings, source=FakeSource())
        assert isinstance(session.medium, SqliteMedium)
        assert (tmp_path / "offline-cache.db").exists()

    def test_non_durable_session(self, settings, tmp_path):
        session = ResilienceSession(settings, source=FakeSource(), durable=False)
        assert isinstance(session.medium, InMemoryMedium)
        assert not (tmp_path / "offline-cache.db").exists()

    @pytest.mark.asyncio
    async def test_notification_default_comes_from_settings(self, settings):
        async with ResilienceSession(settings, source=FakeSource(), durable=False) as session:
            nid = session.notifications.enqueue("hello")
            assert session.notifications.get(nid).duration == 2500


class TestOfflineAcrossSessions:
    @pytest.mark.asyncio
    async def test_cached_snapshot_survives_restart(self, settings):
        online = FakeSource([{"id": "wo-1"}])
        async with ResilienceSession(settings, source=online) as session:
            result = await session.coordinator.read("work-orders", {"status": "open"})
            assert result.source is ResultSource.NETWORK

        offline = FakeSource()
        offline.fail_with(NetworkError("Network request failed"))
        async with ResilienceSession(settings, source=offline) as session:
            result = await session.coordinator.read("work-orders", {"status": "open"})

            assert result.status is QueryStatus.SUCCESS
            assert result.is_stale is True
            assert result.data == [{"id": "wo-1"}]
            assert [n.title for n in session.notifications.records] == ["Showing saved data"]

    @pytest.mark.asyncio
    async def test_unavailable_storage_still_serves_reads(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        settings = WorkProSettings(storage_path=blocker / "cache.db")

        async with ResilienceSession(settings, source=FakeSource(["ok"])) as session:
            assert session.medium is None
            assert session.store.available is False
            result = await session.coordinator.read("assets")
            assert result.data == ["ok"]


class TestClose:
    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, settings):
        session = ResilienceSession(settings, source=FakeSource(), durable=False)
        await session.close()
        await session.close()
        assert session.closed is True

        received = []

        async def handler(event):
            received.append(event)

        await session.bus.subscribe("*", handler)
        await session.bus.publish(Event(event_type=QUERY_INVALIDATED, source="test"))
        assert received == []

    @pytest.mark.asyncio
    async def test_owned_resources_are_released(self, settings):
        session = ResilienceSession(settings)
        assert isinstance(session.source, HttpDataSource)
        medium = session.medium

        await session.close()

        assert session.source._client.is_closed
        with pytest.raises(sqlite3.ProgrammingError):
            medium.get_item("k")

    @pytest.mark.asyncio
    async def test_injected_resources_are_left_open(self, settings):
        source = FakeSource()
        medium = InMemoryMedium()
        medium.set_item("k", "v")

        async with ResilienceSession(settings, medium=medium, source=source):
            pass

        assert source.closed is False
        assert medium.get_item("k") == "v"

    @pytest.mark.asyncio
    async def test_close_clears_notifications(self, settings):
        session = ResilienceSession(settings, source=FakeSource(), durable=False)
        session.notifications.enqueue("pending")
        await session.close()
        assert session.notifications.records == ()
