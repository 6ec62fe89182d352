"""Centralized configuration management for the tab analytics engine."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, PrivateAttr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables defined in a local .env file before instantiating the
# settings singleton so every consumer importing :mod:`tabengine.settings` observes
# the same values.
load_dotenv()

# -- Application-wide constants -------------------------------------------------

DEFAULT_SQLITE_DATABASE_URL = "sqlite+aiosqlite:///./data/tabengine.db"
POSTGRES_ASYNC_PREFIX = "postgresql+psycopg://"
POSTGRES_SYNC_PREFIXES = ("postgres://", "postgresql://")
DEFAULT_REDIS_URL = "redis://localhost:6379/0"
DEFAULT_REDIS_KEY_PREFIX = "tabengine"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_TAG_PALETTE = (
    "#ef4444",
    "#f97316",
    "#eab308",
    "#22c55e",
    "#06b6d4",
    "#3b82f6",
    "#8b5cf6",
    "#ec4899",
)

StorageBackend = Literal["memory", "sql", "redis"]


class AppSettings(BaseSettings):
    """Typed configuration surface built on top of ``pydantic-settings``.

    Besides the storage wiring, the class carries the scoring constants used by
    :class:`tabengine.services.favorites.scoring.ScoringEngine`. They are tuning
    knobs rather than fixed truths, so every one of them can be overridden via
    the environment or a ``.env`` file.
    """

    _explicit_redis_url: bool = PrivateAttr(default=False)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    def __init__(self, **values: object) -> None:
        """Capture explicit overrides prior to delegating to ``BaseSettings``."""

        normalized_keys = {str(key).lower() for key in values}
        super().__init__(**values)
        self._explicit_redis_url = "redis_url" in normalized_keys
        redis_env = os.getenv("REDIS_URL")
        if redis_env is not None and redis_env.strip():
            self._explicit_redis_url = True

    storage_backend: StorageBackend = Field(
        default="memory",
        alias="STORAGE_BACKEND",
        description=(
            "Which key-value collaborator backs the engine: the in-process"
            " memory store, a SQL database, or Redis."
        ),
    )
    database_url: str | None = Field(
        default=None,
        alias="DATABASE_URL",
        description=(
            "SQLAlchemy-compatible async database URL used by the ``sql`` backend."
            " Postgres URLs supplied in sync format are coerced into the async"
            " psycopg driver string at runtime."
        ),
    )
    redis_url: str = Field(
        default=DEFAULT_REDIS_URL,
        alias="REDIS_URL",
        description="Redis connection string consumed by the ``redis`` backend.",
    )
    redis_key_prefix: str = Field(
        default=DEFAULT_REDIS_KEY_PREFIX,
        alias="REDIS_KEY_PREFIX",
        description="Namespace prepended to every key written to Redis.",
    )
    log_level: str = Field(
        default=DEFAULT_LOG_LEVEL,
        alias="LOG_LEVEL",
        description="Root logging level (e.g. INFO, DEBUG, WARNING).",
    )
    slow_storage_threshold: float = Field(
        default=0.25,
        alias="SLOW_STORAGE_THRESHOLD",
        description="Storage calls slower than this many seconds are logged as warnings.",
    )
    score_frequency_cap: float = Field(default=5.0, alias="SCORE_FREQUENCY_CAP", ge=0)
    score_recency_max: float = Field(default=5.0, alias="SCORE_RECENCY_MAX", ge=0)
    score_recency_window_days: float = Field(
        default=30.0, alias="SCORE_RECENCY_WINDOW_DAYS", gt=0
    )
    recent_group_window_days: float = Field(
        default=7.0, alias="RECENT_GROUP_WINDOW_DAYS", gt=0
    )
    recent_group_min_size: int = Field(default=3, alias="RECENT_GROUP_MIN_SIZE", ge=0)
    recent_group_limit: int = Field(default=10, alias="RECENT_GROUP_LIMIT", ge=1)
    most_frequent_limit: int = Field(default=10, alias="MOST_FREQUENT_LIMIT", ge=1)
    high_priority_threshold: int = Field(
        default=4, alias="HIGH_PRIORITY_THRESHOLD", ge=1, le=5
    )
    tag_palette_raw: str | None = Field(
        default=None,
        alias="TAG_PALETTE",
        description="Comma-separated colour tokens assigned to new tags round-robin.",
    )

    @property
    def resolved_database_url(self) -> str:
        """Return the async-compatible database URL after applying fallbacks."""

        if not self.database_url:
            return DEFAULT_SQLITE_DATABASE_URL

        url = self.database_url.strip()
        for prefix in POSTGRES_SYNC_PREFIXES:
            if url.startswith(prefix):
                return url.replace(prefix, POSTGRES_ASYNC_PREFIX, 1)
        return url

    @property
    def tag_palette(self) -> tuple[str, ...]:
        """Return the configured palette or the built-in default."""

        if not self.tag_palette_raw:
            return DEFAULT_TAG_PALETTE
        colors = tuple(
            token.strip() for token in self.tag_palette_raw.split(",") if token.strip()
        )
        return colors or DEFAULT_TAG_PALETTE

    @property
    def log_level_numeric(self) -> int:
        """Translate ``log_level`` into the numeric constant expected by logging."""

        candidate = logging.getLevelName(self.log_level.upper())
        if isinstance(candidate, int):
            return candidate
        return logging.INFO

    def optional_config_warnings(self) -> list[str]:
        """Return human-readable warnings for unset optional configuration."""

        warnings: list[str] = []

        if self.storage_backend == "memory":
            warnings.append(
                "STORAGE_BACKEND is 'memory' - favorites and analytics are lost "
                "when the process exits"
            )

        if (
            self.storage_backend == "redis"
            and not self._explicit_redis_url
            and self.redis_url == DEFAULT_REDIS_URL
        ):
            warnings.append(
                "REDIS_URL is not set - the redis backend will connect to localhost"
            )

        if self.storage_backend == "sql" and not self.database_url:
            warnings.append(
                "DATABASE_URL is not set - the sql backend will use the local "
                f"SQLite file {DEFAULT_SQLITE_DATABASE_URL}"
            )

        return warnings


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Return a cached instance of :class:`AppSettings`."""

    return AppSettings()


__all__ = [
    "AppSettings",
    "DEFAULT_LOG_LEVEL",
    "DEFAULT_REDIS_KEY_PREFIX",
    "DEFAULT_REDIS_URL",
    "DEFAULT_SQLITE_DATABASE_URL",
    "DEFAULT_TAG_PALETTE",
    "POSTGRES_ASYNC_PREFIX",
    "POSTGRES_SYNC_PREFIXES",
    "StorageBackend",
    "get_settings",
]
