"""
Shared pytest fixtures for workpro tests.

This module provides:
- An in-memory record store and filter cache
- A scriptable fake remote data source
- A coordinator wired to the fakes, a bus and a notification queue
- structlog reset between tests

Usage:
    Fixtures are auto-discovered by pytest; request them by name.

    async def test_read(coordinator, source):
        source.succeed_with([{"id": "wo-1"}])
        result = await coordinator.read("work-orders")
"""

from __future__ import annotations

import sys
from collections.abc import Generator
from pathlib import Path

import pytest
import structlog

# Ensure workpro package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from workpro.core.cache import FilterCache
from workpro.core.coordinator import QueryCoordinator
from workpro.core.events.memory import InMemoryEventBus
from workpro.core.notifications import NotificationQueue
from workpro.core.storage import InMemoryMedium, LocalRecordStore

from tests._support.fakes import FakeSource


# =============================================================================
# Logging isolation
# =============================================================================


@pytest.fixture(autouse=True)
def reset_structlog() -> Generator[None, None, None]:
    """Undo any configure_logging() a test (or a CLI callback) performed."""
    yield
    structlog.reset_defaults()


# =============================================================================
# Core fixtures
# =============================================================================


@pytest.fixture
def medium() -> InMemoryMedium:
    return InMemoryMedium()


@pytest.fixture
def store(medium: InMemoryMedium) -> LocalRecordStore:
    return LocalRecordStore(medium, prefix="test-cache:")


@pytest.fixture
def cache(store: LocalRecordStore) -> FilterCache:
    return FilterCache(store, max_entries=50)


@pytest.fixture
def source() -> FakeSource:
    return FakeSource([{"id": "wo-1", "status": "open"}])


@pytest.fixture
def bus() -> InMemoryEventBus:
    return InMemoryEventBus()


@pytest.fixture
def notifications() -> NotificationQueue:
    return NotificationQueue()


@pytest.fixture
def coordinator(
    source: FakeSource,
    cache: FilterCache,
    bus: InMemoryEventBus,
    notifications: NotificationQueue,
) -> QueryCoordinator:
    return QueryCoordinator(source, cache, bus=bus, notifications=notifications)
