"""Storage-oriented helpers for favorites and their tag catalog."""

from __future__ import annotations

from collections.abc import Iterable

from tabengine.schemas.favorites import FavoriteRecord
from tabengine.schemas.tags import TagRecord
from tabengine.services.records import load_records, merge_duplicates, save_records
from tabengine.storage import FAVORITES_KEY, TAGS_KEY, StorageClient
from tabengine.utils.timestamps import latest


def merge_tag_names(existing: Iterable[str], additions: Iterable[str]) -> tuple[str, ...]:
    """Case-insensitive union keeping the first spelling of each name."""

    merged = list(existing)
    folded = {name.casefold() for name in merged}
    for name in additions:
        if name.casefold() not in folded:
            folded.add(name.casefold())
            merged.append(name)
    return tuple(merged)


def merge_favorites(kept: FavoriteRecord, duplicate: FavoriteRecord) -> FavoriteRecord:
    """Fold ``duplicate`` into ``kept``; both point at the same normalized URL."""

    usage = kept.usage.model_copy(
        update={
            "visit_count": kept.usage.visit_count + duplicate.usage.visit_count,
            "last_accessed_at": latest(
                kept.usage.last_accessed_at, duplicate.usage.last_accessed_at
            ),
        }
    )
    return kept.model_copy(
        update={
            "title": kept.title or duplicate.title,
            "favicon_ref": kept.favicon_ref or duplicate.favicon_ref,
            "tag_names": merge_tag_names(kept.tag_names, duplicate.tag_names),
            "priority": max(kept.priority, duplicate.priority),
            "usage": usage,
            "created_at": min(kept.created_at, duplicate.created_at),
        }
    )


class FavoritesPersistence:
    """Encapsulates the key-value operations required by the favorites domain."""

    def __init__(self, client: StorageClient) -> None:
        self._client = client

    async def load_favorites(self) -> list[FavoriteRecord]:
        """Return every stored favorite in insertion order, one per URL."""

        favorites = await load_records(self._client, FAVORITES_KEY, FavoriteRecord)
        return merge_duplicates(
            FAVORITES_KEY, favorites, lambda fav: fav.normalized_url, merge_favorites
        )

    async def save_favorites(self, favorites: Iterable[FavoriteRecord]) -> None:
        """Replace the stored favorites sequence."""

        await save_records(self._client, FAVORITES_KEY, favorites)

    async def load_tags(self) -> list[TagRecord]:
        """Return the stored tag catalog in creation order."""

        return await load_records(self._client, TAGS_KEY, TagRecord)

    async def save_tags(self, tags: Iterable[TagRecord]) -> None:
        """Replace the stored tag catalog."""

        await save_records(self._client, TAGS_KEY, tags)
