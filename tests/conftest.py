"""
EventConnect Test Suite - Shared Fixtures and Configuration

Provides factory functions for domain objects, a controllable clock,
isolated settings and stores, and resets module-level caches between tests.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio

# Saturday 14 March 2026, 12:00 UTC
NOW = datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# Factories
# =============================================================================


def make_user(
    user_id: str = "user-1",
    first_name: str = "Ana",
    interests: list[str] | None = None,
    friend_ids: set[str] | None = None,
    total_points: int = 0,
    opt_outs: set[str] | None = None,
    timezone_name: str | None = None,
    device: Any = None,
):
    """Create a User for testing (interests default to ["music"])."""
    from eventconnect_core.models import User

    return User(
        user_id=user_id,
        first_name=first_name,
        interests=["music"] if interests is None else interests,
        friend_ids=friend_ids or set(),
        total_points=total_points,
        notification_opt_outs=opt_outs or set(),
        timezone=timezone_name,
        device=device,
    )


def make_event(
    event_id: str = "evt-1",
    title: str = "Jazz Night",
    category: str = "music",
    tags: tuple[str, ...] = (),
    distance_km: float | None = 3.0,
    attendees: int = 0,
    friends_attending: int = 0,
    is_popular: bool = False,
    is_trending: bool = False,
    price: float | None = None,
    starts_at: datetime | None = None,
    organizer_id: str | None = None,
    **kwargs: Any,
):
    """Create an Event for testing."""
    from eventconnect_core.models import Event

    return Event(
        event_id=event_id,
        title=title,
        category=category,
        tags=tuple(tags),
        distance_km=distance_km,
        attendees=attendees,
        friends_attending=friends_attending,
        is_popular=is_popular,
        is_trending=is_trending,
        price=price,
        starts_at=starts_at,
        organizer_id=organizer_id,
        **kwargs,
    )


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def user_factory():
    return make_user


@pytest.fixture
def event_factory():
    return make_event


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def clock_factory():
    """Build extra independent clocks (one per simulated process)."""
    return FakeClock


# =============================================================================
# Settings and Stores
# =============================================================================


@pytest.fixture
def settings(tmp_path: Path):
    """Settings isolated to a temporary instance root."""
    from eventconnect_core.core.config import EventConnectSettings

    return EventConnectSettings(instance_root=tmp_path, default_timezone="UTC")


@pytest_asyncio.fixture
async def memory_store():
    """Initialized in-memory durable store."""
    from eventconnect_core.store.memory import MemoryKeyValueStore

    store = MemoryKeyValueStore()
    await store.initialize()
    yield store
    await store.close()


class FailingStore:
    """KeyValueStore whose every operation fails."""

    async def initialize(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def read(self, key: str) -> bytes | None:
        from eventconnect_core.core.errors import StoreError

        raise StoreError("disk unavailable", key=key)

    async def write(self, key: str, data: bytes) -> None:
        from eventconnect_core.core.errors import StoreError

        raise StoreError("disk unavailable", key=key)

    async def remove(self, key: str) -> None:
        from eventconnect_core.core.errors import StoreError

        raise StoreError("disk unavailable", key=key)


@pytest.fixture
def failing_store() -> FailingStore:
    return FailingStore()


class FlakyStore:
    """
    Wrapper around another KeyValueStore whose reads yield to the event
    loop and can be made to fail; writes and removals always pass through.
    """

    def __init__(self, inner: Any) -> None:
        self.inner = inner
        self.fail_reads = False
        self.writes = 0

    async def initialize(self) -> None:
        await self.inner.initialize()

    async def close(self) -> None:
        await self.inner.close()

    async def read(self, key: str) -> bytes | None:
        from eventconnect_core.core.errors import StoreError

        await asyncio.sleep(0)
        if self.fail_reads:
            raise StoreError("read timed out", key=key)
        return await self.inner.read(key)

    async def write(self, key: str, data: bytes) -> None:
        self.writes += 1
        await self.inner.write(key, data)

    async def remove(self, key: str) -> None:
        await self.inner.remove(key)


@pytest.fixture
def flaky_store(memory_store) -> FlakyStore:
    """FlakyStore over the initialized memory_store."""
    return FlakyStore(memory_store)


# =============================================================================
# Singleton Reset
# =============================================================================


@pytest.fixture(autouse=True)
def reset_module_state(monkeypatch):
    """
    Reset module-level caches before and after each test.

    Settings (MUST be first - loggers read their level from settings)
    and logging propagation so caplog sees package records.
    """
    for name in ("EVC_RULES_FILE", "EVC_LOG_LEVEL", "EVC_DEBUG", "EVC_LOG_JSON"):
        monkeypatch.delenv(name, raising=False)

    def do_reset():
        from eventconnect_core.core.config import reset_settings
        from eventconnect_core.core.logging import reset_logging

        reset_settings()
        reset_logging()

    do_reset()
    yield
    do_reset()
