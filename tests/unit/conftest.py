"""Unit-specific fixtures (no I/O beyond in-memory SQLite)."""

from __future__ import annotations

from typing import TYPE_CHECKING

import aiosqlite
import pytest

from offlinegate.cache import CacheStorage
from offlinegate.state import AppState, Phase
from offlinegate.sync_queue import SyncQueue

if TYPE_CHECKING:
    from offlinegate.config import Settings
    from tests.conftest import FakeFetcher


@pytest.fixture()
async def db():
    async with aiosqlite.connect(":memory:") as conn:
        yield conn


@pytest.fixture()
async def cache(db: aiosqlite.Connection) -> CacheStorage:
    """In-memory SQLite cache for unit tests."""
    c = CacheStorage(db)
    await c.init_db()
    return c


@pytest.fixture()
async def queue(db: aiosqlite.Connection) -> SyncQueue:
    q = SyncQueue(db)
    await q.init_db()
    return q


@pytest.fixture()
def state(
    settings: Settings, cache: CacheStorage, queue: SyncQueue, fake_fetcher: FakeFetcher
) -> AppState:
    """Activated state wired to in-memory stores and the fake fetcher."""
    return AppState(
        settings=settings,
        cache=cache,
        queue=queue,
        fetcher=fake_fetcher,
        phase=Phase.ACTIVATED,
    )
