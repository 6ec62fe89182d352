"""SQLAlchemy ORM model backing the SQL key-value store.

The engine persists three JSON documents (favorites, tags, session analytics),
so a single table keyed by the document name is all the schema it needs.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow():
    """Return current UTC datetime."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class KeyValueEntry(Base):
    """One persisted document addressed by its top-level storage key."""

    __tablename__ = "kv_entries"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[Any] = mapped_column(
        JSON,
        nullable=True,
        doc="JSON document exactly as the engine serialized it.",
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )
