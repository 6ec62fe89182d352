"""Shared fixtures wiring isolated engine instances over in-memory storage."""

from __future__ import annotations

import pytest
import pytest_asyncio

from tabengine.engine import TabAnalyticsEngine, open_engine
from tabengine.settings import AppSettings
from tabengine.storage import InMemoryKeyValueStore
from tests.tabengine.support import FrozenClock


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def settings() -> AppSettings:
    """Settings that ignore any local ``.env`` file."""

    return AppSettings(_env_file=None)


@pytest.fixture
def memory_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest_asyncio.fixture
async def engine(
    memory_store: InMemoryKeyValueStore, settings: AppSettings, clock: FrozenClock
) -> TabAnalyticsEngine:
    """A loaded engine over an empty in-memory store."""

    return await open_engine(memory_store, settings=settings, clock=clock)
