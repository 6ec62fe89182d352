"""SQL-backed implementation of the key-value persistence collaborator."""

from .models import Base, KeyValueEntry
from .store import SqlKeyValueStore

__all__ = [
    "Base",
    "KeyValueEntry",
    "SqlKeyValueStore",
]
