"""Tag catalog records."""

from __future__ import annotations

from pydantic import AliasChoices, Field

from tabengine.schemas.base import RecordModel


class TagRecord(RecordModel):
    """A tag with its display colour and derived usage count.

    ``usage_count`` is never edited directly; the tag registry recomputes it
    from the favorites after every tag-affecting mutation.
    """

    id: str = Field(..., min_length=1)
    canonical_name: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("canonicalName", "canonical_name", "name"),
        serialization_alias="canonicalName",
    )
    color_token: str = Field(
        "",
        validation_alias=AliasChoices("colorToken", "color_token", "color"),
        serialization_alias="colorToken",
    )
    usage_count: int = Field(
        0,
        ge=0,
        validation_alias=AliasChoices("usageCount", "usage_count", "count"),
        serialization_alias="usageCount",
    )

    def matches(self, name: str) -> bool:
        return self.canonical_name.casefold() == name.strip().casefold()
