"""Shared pydantic configuration for persisted records."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from tabengine.utils.timestamps import ensure_aware

# Every timestamp crossing the persistence boundary is an ISO-8601 string on
# the wire and an aware UTC datetime in memory; this is the only conversion.
UtcDatetime = Annotated[datetime, AfterValidator(ensure_aware)]


class RecordModel(BaseModel):
    """Immutable record with snake_case attributes and camelCase wire names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, object]:
        """Serialize into the JSON-compatible shape handed to the key-value store."""

        return self.model_dump(mode="json", by_alias=True)
