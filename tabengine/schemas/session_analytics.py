"""Schemas for visit counters of URLs found inside saved sessions."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

from tabengine.schemas.base import RecordModel, UtcDatetime
from tabengine.utils.urls import normalize_url


class SessionTabVisit(RecordModel):
    """Visit statistics for one URL across every saved session containing it.

    ``associated_session_names`` is a display cache aligned index-for-index
    with ``associated_session_ids``.
    """

    normalized_url: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("normalizedUrl", "normalized_url", "url"),
        serialization_alias="normalizedUrl",
    )
    title: str | None = None
    visit_count: int = Field(0, ge=0)
    last_accessed_at: UtcDatetime | None = Field(
        None,
        validation_alias=AliasChoices("lastAccessedAt", "last_accessed_at", "lastAccess"),
        serialization_alias="lastAccessedAt",
    )
    associated_session_ids: tuple[str, ...] = Field(default_factory=tuple)
    associated_session_names: tuple[str, ...] = Field(
        default_factory=tuple,
        validation_alias=AliasChoices(
            "associatedSessionNames", "associated_session_names", "sessionNames"
        ),
        serialization_alias="associatedSessionNames",
    )

    @field_validator("normalized_url")
    @classmethod
    def _normalize_url(cls, value: str) -> str:
        return normalize_url(value)

    @model_validator(mode="after")
    def _align_session_names(self) -> SessionTabVisit:
        ids = self.associated_session_ids
        names = self.associated_session_names
        if not ids and names:
            # Legacy rows only recorded names; they double as identifiers.
            ids = tuple(dict.fromkeys(names))
            names = ids
        if len(set(ids)) != len(ids):
            raise ValueError("associated_session_ids must not contain duplicates")
        if len(names) != len(ids):
            names = tuple(
                names[index] if index < len(names) else session_id
                for index, session_id in enumerate(ids)
            )
        object.__setattr__(self, "associated_session_ids", ids)
        object.__setattr__(self, "associated_session_names", names)
        return self

    @property
    def is_cross_session(self) -> bool:
        return len(self.associated_session_ids) > 1


class SessionTab(BaseModel):
    """A tab inside a saved session as reported by the session manager."""

    url: str
    title: str | None = None
    visit_count: int = Field(0, ge=0)
    last_accessed_at: UtcDatetime | None = None


class SavedSession(BaseModel):
    """Read-only view of a saved session used to rebuild analytics."""

    id: str = Field(..., min_length=1)
    name: str
    tabs: list[SessionTab] = Field(default_factory=list)


__all__ = ["SavedSession", "SessionTab", "SessionTabVisit"]
