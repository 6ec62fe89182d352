"""Pydantic schemas describing favorites and the views derived from them."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, Field, field_validator

from tabengine.schemas.base import RecordModel, UtcDatetime
from tabengine.schemas.tags import TagRecord
from tabengine.utils.urls import normalize_url

MIN_PRIORITY = 1
MAX_PRIORITY = 5
DEFAULT_PRIORITY = 3


class FavoriteRef(BaseModel):
    """Caller-supplied description of the page being pinned."""

    title: str = Field(..., description="Page title shown in the favorites list")
    url: str = Field(..., description="Raw URL; normalized before it is used as a key")
    favicon_ref: str | None = Field(None, description="Optional favicon URL or data URI")


class FavoriteUsage(RecordModel):
    """Usage counters maintained by visit tracking."""

    visit_count: int = Field(0, ge=0)
    last_accessed_at: UtcDatetime | None = Field(
        None,
        validation_alias=AliasChoices("lastAccessedAt", "last_accessed_at", "lastAccess"),
        serialization_alias="lastAccessedAt",
    )


class FavoriteRecord(RecordModel):
    """A user-pinned URL with tags, priority, and usage statistics.

    Older payloads written by the browser extension used ``url``, ``tags``,
    ``favicon`` and ``dateAdded``; they are accepted on load and rewritten with
    the current names on the next save.
    """

    id: str = Field(..., min_length=1)
    normalized_url: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("normalizedUrl", "normalized_url", "url"),
        serialization_alias="normalizedUrl",
    )
    title: str = ""
    favicon_ref: str | None = Field(
        None,
        validation_alias=AliasChoices("faviconRef", "favicon_ref", "favicon"),
        serialization_alias="faviconRef",
    )
    tag_names: tuple[str, ...] = Field(
        default_factory=tuple,
        validation_alias=AliasChoices("tagNames", "tag_names", "tags"),
        serialization_alias="tagNames",
    )
    priority: int = Field(DEFAULT_PRIORITY, ge=MIN_PRIORITY, le=MAX_PRIORITY)
    usage: FavoriteUsage = Field(default_factory=FavoriteUsage)
    created_at: UtcDatetime = Field(
        ...,
        validation_alias=AliasChoices("createdAt", "created_at", "dateAdded"),
        serialization_alias="createdAt",
    )

    @field_validator("normalized_url")
    @classmethod
    def _normalize_url(cls, value: str) -> str:
        """Older payloads stored raw URLs; bring them onto the join key."""

        return normalize_url(value)

    @field_validator("tag_names")
    @classmethod
    def _dedupe_tags(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        """Collapse case-insensitive duplicates, keeping the first spelling."""

        seen: set[str] = set()
        unique: list[str] = []
        for name in value:
            folded = name.casefold()
            if folded in seen:
                continue
            seen.add(folded)
            unique.append(name)
        return tuple(unique)

    def has_tag(self, name: str) -> bool:
        folded = name.casefold()
        return any(tag.casefold() == folded for tag in self.tag_names)


class ScoredFavorite(BaseModel):
    """A favorite paired with its relevance score at a given instant."""

    favorite: FavoriteRecord
    score: float


class SmartGroups(BaseModel):
    """Algorithmically curated, non-exclusive favorite subsets."""

    high_priority: list[FavoriteRecord] = Field(default_factory=list)
    most_frequent: list[FavoriteRecord] = Field(default_factory=list)
    recent: list[FavoriteRecord] = Field(default_factory=list)


class TagGroup(BaseModel):
    """Favorites carrying one tag, ordered by score."""

    tag: TagRecord
    favorites: list[FavoriteRecord] = Field(default_factory=list)


__all__ = [
    "DEFAULT_PRIORITY",
    "FavoriteRecord",
    "FavoriteRef",
    "FavoriteUsage",
    "MAX_PRIORITY",
    "MIN_PRIORITY",
    "ScoredFavorite",
    "SmartGroups",
    "TagGroup",
]
