"""Key-value store persisted through SQLAlchemy's asyncio extension."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncEngine

from tabengine.db.connection import create_engine, create_session_factory
from tabengine.db.models import Base, KeyValueEntry, utcnow

logger = logging.getLogger(__name__)


class SqlKeyValueStore:
    """Persist each top-level key as one row of the ``kv_entries`` table."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._session_factory = create_session_factory(engine)
        self._schema_ready = False
        self._schema_lock = asyncio.Lock()

    @classmethod
    def from_url(cls, database_url: str) -> SqlKeyValueStore:
        return cls(create_engine(database_url))

    async def ensure_schema(self) -> None:
        """Create the backing table once per store instance."""

        async with self._schema_lock:
            if self._schema_ready:
                return
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            self._schema_ready = True
            logger.debug("kv_entries table is ready")

    async def get(self, key: str) -> Any | None:
        await self.ensure_schema()
        async with self._session_factory() as session:
            entry = await session.get(KeyValueEntry, key)
            return entry.value if entry is not None else None

    async def set(self, key: str, value: Any) -> None:
        await self.ensure_schema()
        async with self._session_factory() as session, session.begin():
            entry = await session.get(KeyValueEntry, key)
            if entry is None:
                session.add(KeyValueEntry(key=key, value=value))
            else:
                entry.value = value
                entry.updated_at = utcnow()

    async def remove(self, keys: Sequence[str]) -> None:
        if not keys:
            return
        await self.ensure_schema()
        async with self._session_factory() as session, session.begin():
            await session.execute(delete(KeyValueEntry).where(KeyValueEntry.key.in_(list(keys))))

    async def close(self) -> None:
        await self._engine.dispose()
