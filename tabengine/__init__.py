"""Favorites and cross-source usage analytics for a tab-management tool."""

from tabengine.engine import TabAnalyticsEngine, open_engine
from tabengine.errors import (
    EngineError,
    ErrorType,
    InvalidArgumentError,
    NotFoundError,
    StorageFailure,
)

__all__ = [
    "EngineError",
    "ErrorType",
    "InvalidArgumentError",
    "NotFoundError",
    "StorageFailure",
    "TabAnalyticsEngine",
    "open_engine",
]
