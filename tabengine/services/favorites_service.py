"""Business logic for user-pinned favorites.

Collaborators:
* :class:`FavoritesPersistence` – reads and writes the ``favorites`` key.
* :class:`TagRegistry` – resolves tag names and recounts usage after every
  tag-affecting mutation.
* :class:`ScoringEngine` – ranks snapshots for ``by_score``.

Every mutation runs under the write lock shared with the tag registry, so a
full tag recount never interleaves with another favorite write. Mutations are
copy-on-write: the new sequence is persisted first and only then swapped in,
which keeps concurrent readers on a complete snapshot and leaves memory equal
to storage when a write fails.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from typing import Any

from tabengine.errors import InvalidArgumentError, NotFoundError
from tabengine.schemas.favorites import (
    DEFAULT_PRIORITY,
    MAX_PRIORITY,
    MIN_PRIORITY,
    FavoriteRecord,
    FavoriteRef,
    FavoriteUsage,
)
from tabengine.services.favorites import FavoritesPersistence, ScoringEngine, TagRegistry
from tabengine.services.favorites.persistence import merge_tag_names
from tabengine.services.favorites.tags import clean_tag_names
from tabengine.utils.timestamps import Clock, utc_now
from tabengine.utils.urls import normalize_url

logger = logging.getLogger(__name__)


def validate_priority(priority: Any) -> int:
    """Return ``priority`` when it is an integer in the accepted range."""

    if isinstance(priority, bool) or not isinstance(priority, int):
        raise InvalidArgumentError(f"Priority must be an integer, received {priority!r}")
    if not MIN_PRIORITY <= priority <= MAX_PRIORITY:
        raise InvalidArgumentError(
            f"Priority must be between {MIN_PRIORITY} and {MAX_PRIORITY}, received {priority}"
        )
    return priority


class FavoriteStore:
    """Owns favorite records and their usage counters."""

    def __init__(
        self,
        *,
        persistence: FavoritesPersistence,
        tags: TagRegistry,
        scoring: ScoringEngine,
        write_lock: asyncio.Lock,
        clock: Clock = utc_now,
    ) -> None:
        self._persistence = persistence
        self._tags = tags
        self._scoring = scoring
        self._write_lock = write_lock
        self._clock = clock
        self._favorites: tuple[FavoriteRecord, ...] = ()
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def load(self) -> None:
        """Hydrate favorites from storage."""

        async with self._write_lock:
            self._favorites = tuple(await self._persistence.load_favorites())
            self._loaded = True
        logger.info(f"Favorite store loaded with {len(self._favorites)} favorite(s)")

    async def reconcile_tags(self) -> None:
        """Register tags referenced by stored favorites and recount usage.

        Run once after both the store and the registry are loaded so the
        count invariant holds from the first read, even for data written by
        older clients that never created tag records.
        """

        async with self._write_lock:
            self._require_loaded()
            names = [name for fav in self._favorites for name in fav.tag_names]
            if names:
                await self._tags.ensure_locked(clean_tag_names(names))
            await self._tags.recompute_locked(self._favorites)

    # -- Reads ---------------------------------------------------------------

    def list(self) -> list[FavoriteRecord]:
        """Return every favorite in insertion order."""

        self._require_loaded()
        return list(self._favorites)

    def get(self, favorite_id: str) -> FavoriteRecord | None:
        self._require_loaded()
        return next((fav for fav in self._favorites if fav.id == favorite_id), None)

    def get_by_url(self, url: str) -> FavoriteRecord | None:
        self._require_loaded()
        normalized = normalize_url(url)
        return next((fav for fav in self._favorites if fav.normalized_url == normalized), None)

    def is_favorite(self, url: str) -> bool:
        return self.get_by_url(url) is not None

    def urls(self) -> set[str]:
        self._require_loaded()
        return {fav.normalized_url for fav in self._favorites}

    def filter_by_tags(self, tag_names: Iterable[str]) -> list[FavoriteRecord]:
        """Favorites carrying any of ``tag_names``; an empty filter returns all."""

        self._require_loaded()
        wanted = {name.strip().casefold() for name in tag_names if name.strip()}
        if not wanted:
            return list(self._favorites)
        return [
            fav
            for fav in self._favorites
            if any(name.casefold() in wanted for name in fav.tag_names)
        ]

    def by_score(self, now: datetime | None = None) -> list[FavoriteRecord]:
        """All favorites ordered by score desc, ties by title asc."""

        snapshot = self.list()
        return self._scoring.by_score(snapshot, now or self._clock())

    # -- Mutations -----------------------------------------------------------

    async def upsert(
        self,
        ref: FavoriteRef | Mapping[str, Any],
        tag_names: Sequence[str] = (),
        priority: int | None = None,
    ) -> FavoriteRecord:
        """Create a favorite or merge tags into the one already at this URL.

        An existing record keeps its id, ``created_at`` and usage; its tags
        become the case-insensitive union of old and new, the title/favicon
        are refreshed from ``ref`` and an explicit ``priority`` replaces the
        stored one. New favorites default to priority 3.
        """

        ref = FavoriteRef.model_validate(ref)
        normalized = normalize_url(ref.url)
        if priority is not None:
            priority = validate_priority(priority)
        names = clean_tag_names(tag_names)

        async with self._write_lock:
            self._require_loaded()
            resolved = await self._tags.ensure_locked(names)
            canonical = tuple(tag.canonical_name for tag in resolved)

            favorites = list(self._favorites)
            index = self._index_of_url(favorites, normalized)
            if index is not None:
                existing = favorites[index]
                record = existing.model_copy(
                    update={
                        "title": ref.title or existing.title,
                        "favicon_ref": ref.favicon_ref or existing.favicon_ref,
                        "tag_names": merge_tag_names(existing.tag_names, canonical),
                        "priority": existing.priority if priority is None else priority,
                    }
                )
                favorites[index] = record
                logger.info(f"Updated favorite {record.id} for {normalized}")
            else:
                record = FavoriteRecord(
                    id=f"fav_{uuid.uuid4().hex}",
                    normalized_url=normalized,
                    title=ref.title,
                    favicon_ref=ref.favicon_ref,
                    tag_names=canonical,
                    priority=DEFAULT_PRIORITY if priority is None else priority,
                    usage=FavoriteUsage(),
                    created_at=self._clock(),
                )
                favorites.append(record)
                logger.info(f"Created favorite {record.id} for {normalized}")

            await self._commit(favorites, tags_changed=True)
            return record

    async def remove(self, favorite_id: str) -> bool:
        """Delete the favorite with ``favorite_id``; returns ``False`` when absent."""

        async with self._write_lock:
            self._require_loaded()
            favorites = [fav for fav in self._favorites if fav.id != favorite_id]
            if len(favorites) == len(self._favorites):
                logger.debug(f"Favorite {favorite_id} not present; nothing to remove")
                return False
            await self._commit(favorites, tags_changed=True)
        logger.info(f"Removed favorite {favorite_id}")
        return True

    async def remove_by_url(self, url: str) -> bool:
        """Delete the favorite at ``url``; returns ``False`` when absent."""

        normalized = normalize_url(url)
        async with self._write_lock:
            self._require_loaded()
            favorites = [fav for fav in self._favorites if fav.normalized_url != normalized]
            if len(favorites) == len(self._favorites):
                logger.debug(f"No favorite at {normalized}; nothing to remove")
                return False
            await self._commit(favorites, tags_changed=True)
        logger.info(f"Removed favorite at {normalized}")
        return True

    async def set_tags(self, favorite_id: str, tag_names: Sequence[str]) -> FavoriteRecord:
        """Replace the favorite's tag set."""

        names = clean_tag_names(tag_names)
        async with self._write_lock:
            self._require_loaded()
            favorites = list(self._favorites)
            index = self._require_index(favorites, favorite_id)
            resolved = await self._tags.ensure_locked(names)
            record = favorites[index].model_copy(
                update={"tag_names": tuple(tag.canonical_name for tag in resolved)}
            )
            favorites[index] = record
            await self._commit(favorites, tags_changed=True)
            return record

    async def set_priority(self, favorite_id: str, priority: int) -> FavoriteRecord:
        priority = validate_priority(priority)
        async with self._write_lock:
            self._require_loaded()
            favorites = list(self._favorites)
            index = self._require_index(favorites, favorite_id)
            record = favorites[index].model_copy(update={"priority": priority})
            favorites[index] = record
            await self._commit(favorites, tags_changed=False)
            return record

    async def track_visit(self, url: str) -> FavoriteRecord | None:
        """Count a visit to ``url`` if it is a favorite; otherwise do nothing."""

        normalized = normalize_url(url)
        async with self._write_lock:
            self._require_loaded()
            favorites = list(self._favorites)
            index = self._index_of_url(favorites, normalized)
            if index is None:
                logger.debug(f"Ignoring visit to non-favorite {normalized}")
                return None
            current = favorites[index]
            usage = current.usage.model_copy(
                update={
                    "visit_count": current.usage.visit_count + 1,
                    "last_accessed_at": self._clock(),
                }
            )
            record = current.model_copy(update={"usage": usage})
            favorites[index] = record
            await self._commit(favorites, tags_changed=False)
            return record

    async def toggle(
        self, ref: FavoriteRef | Mapping[str, Any], tag_names: Sequence[str] = ()
    ) -> bool:
        """Unpin the URL if it is a favorite, pin it otherwise.

        Returns ``True`` when the URL is a favorite afterwards.
        """

        ref = FavoriteRef.model_validate(ref)
        if await self.remove_by_url(ref.url):
            return False
        await self.upsert(ref, tag_names)
        return True

    # -- Internals -----------------------------------------------------------

    async def _commit(self, favorites: list[FavoriteRecord], *, tags_changed: bool) -> None:
        await self._persistence.save_favorites(favorites)
        self._favorites = tuple(favorites)
        if tags_changed:
            await self._tags.recompute_locked(self._favorites)

    def _index_of_url(self, favorites: Sequence[FavoriteRecord], normalized: str) -> int | None:
        return next(
            (index for index, fav in enumerate(favorites) if fav.normalized_url == normalized),
            None,
        )

    def _require_index(self, favorites: Sequence[FavoriteRecord], favorite_id: str) -> int:
        index = next(
            (index for index, fav in enumerate(favorites) if fav.id == favorite_id),
            None,
        )
        if index is None:
            raise NotFoundError("Favorite not found", detail=f"id={favorite_id}")
        return index

    def _require_loaded(self) -> None:
        if not self._loaded:
            raise RuntimeError("Favorite store has not been loaded; call load() first.")

