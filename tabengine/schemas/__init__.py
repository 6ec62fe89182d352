"""Pydantic schemas shared across the engine components."""

from .analytics import CombinedAnalyticsSnapshot
from .favorites import (
    DEFAULT_PRIORITY,
    MAX_PRIORITY,
    MIN_PRIORITY,
    FavoriteRecord,
    FavoriteRef,
    FavoriteUsage,
    ScoredFavorite,
    SmartGroups,
    TagGroup,
)
from .session_analytics import SavedSession, SessionTab, SessionTabVisit
from .tags import TagRecord

__all__ = [
    "CombinedAnalyticsSnapshot",
    "DEFAULT_PRIORITY",
    "FavoriteRecord",
    "FavoriteRef",
    "FavoriteUsage",
    "MAX_PRIORITY",
    "MIN_PRIORITY",
    "SavedSession",
    "ScoredFavorite",
    "SessionTab",
    "SessionTabVisit",
    "SmartGroups",
    "TagGroup",
    "TagRecord",
]
