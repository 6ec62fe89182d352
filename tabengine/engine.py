"""Engine assembly: storage selection, logging setup and component wiring.

Consumers construct one :class:`TabAnalyticsEngine` (usually through
:func:`open_engine`) and pass it by reference; tests build isolated instances
over an :class:`~tabengine.storage.InMemoryKeyValueStore`.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from tabengine.schemas.favorites import SmartGroups, TagGroup
from tabengine.services.combined_analytics import CombinedAnalyticsAggregator
from tabengine.services.favorites import (
    FavoritesPersistence,
    ScoringEngine,
    ScoringWeights,
    TagRegistry,
)
from tabengine.services.favorites_service import FavoriteStore
from tabengine.services.session_analytics_service import SessionAnalyticsStore
from tabengine.settings import AppSettings, get_settings
from tabengine.storage import (
    InMemoryKeyValueStore,
    KeyValueStore,
    RedisKeyValueStore,
    StorageClient,
)
from tabengine.utils.timestamps import Clock, utc_now

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(active_settings: AppSettings | None = None) -> None:
    """Apply the package's root logging configuration."""

    active_settings = active_settings or get_settings()
    logging.basicConfig(level=active_settings.log_level_numeric, format=LOG_FORMAT)


def validate_environment(active_settings: AppSettings | None = None) -> None:
    """Log warnings for optional configuration that was left unset."""

    active_settings = active_settings or get_settings()
    warnings = active_settings.optional_config_warnings()
    if warnings:
        logger.warning("=" * 60)
        logger.warning("Environment Configuration Warnings:")
        for warning in warnings:
            logger.warning(f"  • {warning}")
        logger.warning("=" * 60)


def build_store(active_settings: AppSettings | None = None) -> KeyValueStore:
    """Instantiate the key-value collaborator selected by ``STORAGE_BACKEND``."""

    active_settings = active_settings or get_settings()
    backend = active_settings.storage_backend
    if backend == "redis":
        return RedisKeyValueStore(
            active_settings.redis_url, prefix=active_settings.redis_key_prefix
        )
    if backend == "sql":
        from tabengine.db.store import SqlKeyValueStore

        return SqlKeyValueStore.from_url(active_settings.resolved_database_url)
    return InMemoryKeyValueStore()


class TabAnalyticsEngine:
    """Holds one instance of every component, sharing storage, lock and clock."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        settings: AppSettings | None = None,
        clock: Clock = utc_now,
    ) -> None:
        active_settings = settings or get_settings()
        self.store = store
        self.clock = clock
        self.client = StorageClient(
            store, slow_call_threshold=active_settings.slow_storage_threshold
        )
        write_lock = asyncio.Lock()
        persistence = FavoritesPersistence(self.client)
        self.scoring = ScoringEngine(ScoringWeights.from_settings(active_settings))
        self.tags = TagRegistry(
            persistence, write_lock=write_lock, palette=active_settings.tag_palette
        )
        self.favorites = FavoriteStore(
            persistence=persistence,
            tags=self.tags,
            scoring=self.scoring,
            write_lock=write_lock,
            clock=clock,
        )
        self.sessions = SessionAnalyticsStore(self.client, clock=clock)
        self.combined = CombinedAnalyticsAggregator(
            favorites=self.favorites,
            sessions=self.sessions,
            scoring=self.scoring,
            clock=clock,
        )

    async def load(self) -> None:
        """Hydrate all three storage keys and bring tag counts in line."""

        await self.tags.load()
        await self.favorites.load()
        await self.sessions.load()
        await self.favorites.reconcile_tags()

    def smart_groups(self, now: datetime | None = None) -> SmartGroups:
        return self.scoring.smart_groups(self.favorites.list(), now or self.clock())

    def tag_groups(self, now: datetime | None = None) -> list[TagGroup]:
        return self.scoring.tag_groups(
            self.favorites.list(), self.tags.list(), now or self.clock()
        )

    async def close(self) -> None:
        """Release connections held by the storage backend, if any."""

        close = getattr(self.store, "close", None)
        if close is not None:
            await close()


async def open_engine(
    store: KeyValueStore | None = None,
    *,
    settings: AppSettings | None = None,
    clock: Clock = utc_now,
) -> TabAnalyticsEngine:
    """Build and load an engine over ``store`` (or the configured backend)."""

    active_settings = settings or get_settings()
    engine = TabAnalyticsEngine(
        store if store is not None else build_store(active_settings),
        settings=active_settings,
        clock=clock,
    )
    await engine.load()
    logger.info(f"Tab analytics engine ready ({type(engine.store).__name__})")
    return engine


__all__ = [
    "LOG_FORMAT",
    "TabAnalyticsEngine",
    "build_store",
    "configure_logging",
    "open_engine",
    "validate_environment",
]
