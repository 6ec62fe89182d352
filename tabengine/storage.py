"""Asynchronous key-value collaborators used to persist engine state.

The engine never talks to a concrete medium directly. It depends on the small
:class:`KeyValueStore` protocol (``get``/``set``/``remove``) and reaches it
through :class:`StorageClient`, which times every call and converts whatever
the backend raises into :class:`~tabengine.errors.StorageFailure`.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from redis.asyncio import Redis

from tabengine.errors import StorageFailure
from tabengine.monitoring import monitor_storage_call
from tabengine.settings import DEFAULT_REDIS_KEY_PREFIX, DEFAULT_REDIS_URL

logger = logging.getLogger(__name__)

FAVORITES_KEY = "favorites"
TAGS_KEY = "tags"
SESSION_ANALYTICS_KEY = "sessionTabAnalytics"


@runtime_checkable
class KeyValueStore(Protocol):
    """Minimal asynchronous persistence contract consumed by the engine."""

    async def get(self, key: str) -> Any | None:
        """Return the JSON-compatible value stored under ``key`` or ``None``."""

    async def set(self, key: str, value: Any) -> None:
        """Replace the value stored under ``key``."""

    async def remove(self, keys: Sequence[str]) -> None:
        """Delete every key in ``keys``; missing keys are ignored."""


class InMemoryKeyValueStore:
    """Process-local store used by tests and the default ``memory`` backend.

    Values are kept JSON-encoded so that whatever the engine writes has the
    same shape it would have in Redis or SQL, timestamps included.
    """

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, str] = {
            key: json.dumps(value) for key, value in (initial or {}).items()
        }
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Any | None:
        async with self._lock:
            payload = self._data.get(key)
        if payload is None:
            return None
        return json.loads(payload)

    async def set(self, key: str, value: Any) -> None:
        encoded = json.dumps(value)
        async with self._lock:
            self._data[key] = encoded

    async def remove(self, keys: Sequence[str]) -> None:
        async with self._lock:
            for key in keys:
                self._data.pop(key, None)

    def keys(self) -> list[str]:
        """Expose the stored keys for diagnostics and tests."""

        return list(self._data)


class RedisKeyValueStore:
    """Store JSON documents in Redis under a configurable namespace."""

    def __init__(
        self,
        url: str = DEFAULT_REDIS_URL,
        *,
        prefix: str = DEFAULT_REDIS_KEY_PREFIX,
        client: Redis | None = None,
    ) -> None:
        self._url = url
        self._prefix = prefix
        self._client = client
        self._client_lock = asyncio.Lock()

    def namespaced(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    async def _get_client(self) -> Redis:
        # Acquire the lock before checking so concurrent first calls share one client.
        async with self._client_lock:
            if self._client is not None:
                return self._client

            client = Redis.from_url(self._url, decode_responses=True, encoding="utf-8")
            # Test connection before storing the instance.
            await client.ping()
            self._client = client
            logger.info("Redis connection established successfully")
            return self._client

    async def get(self, key: str) -> Any | None:
        client = await self._get_client()
        payload = await client.get(self.namespaced(key))
        if payload is None:
            return None
        return json.loads(payload)

    async def set(self, key: str, value: Any) -> None:
        client = await self._get_client()
        await client.set(self.namespaced(key), json.dumps(value))

    async def remove(self, keys: Sequence[str]) -> None:
        if not keys:
            return
        client = await self._get_client()
        await client.delete(*(self.namespaced(key) for key in keys))

    async def close(self) -> None:
        """Close the Redis connection gracefully."""

        if self._client is not None:
            await self._client.aclose()
            self._client = None


class StorageClient:
    """Monitored, failure-wrapping facade over a :class:`KeyValueStore`."""

    def __init__(self, backend: KeyValueStore, *, slow_call_threshold: float = 0.25) -> None:
        self._backend = backend
        self._slow_call_threshold = slow_call_threshold

    @property
    def backend(self) -> KeyValueStore:
        return self._backend

    async def get_json(self, key: str) -> Any | None:
        try:
            async with monitor_storage_call("get", key, self._slow_call_threshold):
                return await self._backend.get(key)
        except Exception as exc:  # noqa: BLE001 - any backend error is wrapped
            raise self._failure("get", key, exc) from exc

    async def set_json(self, key: str, value: Any) -> None:
        try:
            async with monitor_storage_call("set", key, self._slow_call_threshold):
                await self._backend.set(key, value)
        except Exception as exc:  # noqa: BLE001 - any backend error is wrapped
            raise self._failure("set", key, exc) from exc

    async def delete(self, *keys: str) -> None:
        if not keys:
            return
        joined = ",".join(keys)
        try:
            async with monitor_storage_call("remove", joined, self._slow_call_threshold):
                await self._backend.remove(list(keys))
        except Exception as exc:  # noqa: BLE001 - any backend error is wrapped
            raise self._failure("remove", joined, exc) from exc

    def _failure(self, operation: str, key: str, exc: Exception) -> StorageFailure:
        logger.error(f"Storage {operation} failed for key '{key}': {exc!r}")
        return StorageFailure(operation, key, detail=f"{type(exc).__name__}: {exc}")


__all__ = [
    "FAVORITES_KEY",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "RedisKeyValueStore",
    "SESSION_ANALYTICS_KEY",
    "StorageClient",
    "TAGS_KEY",
]
