"""Test doubles shared by the engine test modules."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

from tabengine.schemas.favorites import FavoriteRecord, FavoriteUsage
from tabengine.storage import InMemoryKeyValueStore

BASE_TIME = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


class FrozenClock:
    """Deterministic clock that only moves when told to."""

    def __init__(self, start: datetime = BASE_TIME) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **delta: float) -> datetime:
        self.current = self.current + timedelta(**delta)
        return self.current


class FlakyStore(InMemoryKeyValueStore):
    """In-memory store whose writes can be made to fail on demand."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_set_keys: set[str] = set()
        self.set_calls: list[str] = []

    async def set(self, key: str, value: Any) -> None:
        self.set_calls.append(key)
        if key in self.fail_set_keys:
            raise ConnectionError(f"simulated outage writing {key}")
        await super().set(key, value)


class InMemoryRedis:
    """Lightweight async Redis double used for the Redis store tests."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.closed = False

    async def ping(self) -> bool:
        return True

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def delete(self, *keys: str) -> None:
        for key in keys:
            self.data.pop(key, None)

    async def aclose(self) -> None:
        self.closed = True


def make_favorite(
    *,
    favorite_id: str = "fav-1",
    url: str = "https://example.com",
    title: str = "Example",
    priority: int = 3,
    visit_count: int = 0,
    last_accessed_at: datetime | None = None,
    created_at: datetime = BASE_TIME,
    tags: Sequence[str] = (),
) -> FavoriteRecord:
    """Build a favorite record directly, bypassing the store."""

    return FavoriteRecord(
        id=favorite_id,
        normalized_url=url,
        title=title,
        tag_names=tuple(tags),
        priority=priority,
        usage=FavoriteUsage(visit_count=visit_count, last_accessed_at=last_accessed_at),
        created_at=created_at,
    )
