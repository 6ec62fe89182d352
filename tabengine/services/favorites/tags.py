"""Tag catalog whose usage counts are derived from the favorites."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import Counter
from collections.abc import Iterable, Sequence

from tabengine.errors import InvalidArgumentError
from tabengine.schemas.favorites import FavoriteRecord
from tabengine.schemas.tags import TagRecord
from tabengine.services.favorites.persistence import FavoritesPersistence
from tabengine.settings import DEFAULT_TAG_PALETTE

logger = logging.getLogger(__name__)


def clean_tag_name(name: str) -> str:
    """Strip ``name`` and reject blank values."""

    if not isinstance(name, str) or not name.strip():
        raise InvalidArgumentError("Tag names must not be blank once whitespace is removed")
    return name.strip()


def clean_tag_names(names: Iterable[str]) -> list[str]:
    """Strip, validate, and case-insensitively de-duplicate ``names`` in order."""

    seen: set[str] = set()
    cleaned: list[str] = []
    for name in names:
        token = clean_tag_name(name)
        folded = token.casefold()
        if folded in seen:
            continue
        seen.add(folded)
        cleaned.append(token)
    return cleaned


class TagRegistry:
    """Owns the tag catalog and keeps ``usage_count`` equal to real usage.

    Tag-affecting favorite mutations run under ``write_lock``, which the
    registry shares with :class:`~tabengine.services.favorites_service.FavoriteStore`.
    The store calls the ``*_locked`` variants while already holding it; the
    public coroutines acquire it themselves. Tags are never deleted when their
    count drops to zero so their colour survives re-use.
    """

    def __init__(
        self,
        persistence: FavoritesPersistence,
        *,
        write_lock: asyncio.Lock,
        palette: Sequence[str] = DEFAULT_TAG_PALETTE,
    ) -> None:
        if not palette:
            raise ValueError("Tag palette must contain at least one colour")
        self._persistence = persistence
        self._write_lock = write_lock
        self._palette = tuple(palette)
        self._tags: tuple[TagRecord, ...] = ()
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def load(self) -> None:
        """Hydrate the catalog from storage."""

        async with self._write_lock:
            self._tags = tuple(await self._persistence.load_tags())
            self._loaded = True
        logger.info(f"Tag registry loaded with {len(self._tags)} tag(s)")

    def list(self) -> list[TagRecord]:
        """Return all tags in creation order."""

        self._require_loaded()
        return list(self._tags)

    def find(self, name: str) -> TagRecord | None:
        self._require_loaded()
        return next((tag for tag in self._tags if tag.matches(name)), None)

    def search(self, query: str) -> list[TagRecord]:
        """Case-insensitive substring search ordered by usage then name.

        A blank query matches every tag.
        """

        self._require_loaded()
        needle = query.strip().casefold()
        matches = [tag for tag in self._tags if needle in tag.canonical_name.casefold()]
        return sorted(
            matches,
            key=lambda tag: (-tag.usage_count, tag.canonical_name.casefold(), tag.canonical_name),
        )

    async def ensure(self, name: str, color: str | None = None) -> TagRecord:
        """Return the tag matching ``name``, creating it when absent."""

        async with self._write_lock:
            (tag,) = await self.ensure_locked([name], color=color)
            return tag

    async def recompute_counts(self, favorites: Iterable[FavoriteRecord]) -> list[TagRecord]:
        """Recount every tag from a full scan of ``favorites``."""

        async with self._write_lock:
            return await self.recompute_locked(favorites)

    async def ensure_locked(
        self, names: Sequence[str], *, color: str | None = None
    ) -> list[TagRecord]:
        """Resolve ``names`` to tag records, persisting any new ones in one write.

        The caller must hold the write lock.
        """

        self._require_loaded()
        tags = list(self._tags)
        resolved: list[TagRecord] = []
        created: list[TagRecord] = []
        for raw_name in names:
            name = clean_tag_name(raw_name)
            existing = next((tag for tag in tags if tag.matches(name)), None)
            if existing is None:
                existing = TagRecord(
                    id=f"tag_{uuid.uuid4().hex}",
                    canonical_name=name,
                    color_token=color or self._palette[len(tags) % len(self._palette)],
                    usage_count=0,
                )
                tags.append(existing)
                created.append(existing)
            resolved.append(existing)

        if created:
            await self._persistence.save_tags(tags)
            self._tags = tuple(tags)
            for tag in created:
                logger.info(f"Created tag '{tag.canonical_name}' with colour {tag.color_token}")
        return resolved

    async def recompute_locked(self, favorites: Iterable[FavoriteRecord]) -> list[TagRecord]:
        """Full-rescan recount; the caller must hold the write lock.

        Counts are derived state: the in-memory catalog is updated before the
        write so it always agrees with the favorites it was computed from.
        """

        self._require_loaded()
        usage = Counter(
            name.casefold() for favorite in favorites for name in favorite.tag_names
        )
        changed = False
        recounted: list[TagRecord] = []
        for tag in self._tags:
            count = usage.get(tag.canonical_name.casefold(), 0)
            if count != tag.usage_count:
                changed = True
                tag = tag.model_copy(update={"usage_count": count})
            recounted.append(tag)

        self._tags = tuple(recounted)
        if changed:
            await self._persistence.save_tags(recounted)
            logger.debug("Tag usage counts recomputed and persisted")
        return recounted

    def _require_loaded(self) -> None:
        if not self._loaded:
            raise RuntimeError("Tag registry has not been loaded; call load() first.")
