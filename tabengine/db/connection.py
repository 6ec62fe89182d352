from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

logger = logging.getLogger(__name__)


def _ensure_sqlite_directory(database_url: str) -> None:
    """Create the parent directory of a file-based SQLite database if needed."""

    url = make_url(database_url)
    database = url.database
    if not database or database == ":memory:":
        return
    Path(database).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)


def create_engine(database_url: str) -> AsyncEngine:
    """Create the async SQLAlchemy engine for ``database_url``.

    SQLite relies on SQLAlchemy's default pool; server databases get the warm
    connection pool settings used for long-running processes.
    """

    normalized_url = database_url.strip()
    if not normalized_url:
        raise RuntimeError("Database URL is empty. Provide a SQLAlchemy async URL.")

    if normalized_url.startswith("sqlite"):
        _ensure_sqlite_directory(normalized_url)
        engine = create_async_engine(normalized_url, future=True, echo=False)
    else:
        engine = create_async_engine(
            normalized_url,
            future=True,
            echo=False,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,  # Validate connections before use
            pool_recycle=1800,  # Recycle connections every 30 min
            pool_timeout=30,
        )

    logger.info(f"Database engine created for dialect '{engine.dialect.name}'")
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
