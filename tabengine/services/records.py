"""Serialization boundary between persisted JSON arrays and pydantic records.

Every timestamp is hydrated from its ISO-8601 string here, once, when a key is
loaded; the rest of the engine only ever sees aware ``datetime`` objects.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import TypeVar

from pydantic import ValidationError

from tabengine.schemas.base import RecordModel
from tabengine.storage import StorageClient

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=RecordModel)


def deserialize_records(key: str, payload: object, model: type[RecordT]) -> list[RecordT]:
    """Validate a persisted JSON array into records, skipping corrupt items."""

    if payload is None:
        return []
    if not isinstance(payload, list):
        raise TypeError(f"Expected stored '{key}' payload to be a list")

    records: list[RecordT] = []
    for index, item in enumerate(payload):
        try:
            records.append(model.model_validate(item))
        except ValidationError as exc:
            logger.warning(
                f"Skipping unreadable {model.__name__} at {key}[{index}]: "
                f"{exc.error_count()} validation error(s)"
            )
    return records


def merge_duplicates(
    key: str,
    records: Iterable[RecordT],
    identity: Callable[[RecordT], str],
    merge: Callable[[RecordT, RecordT], RecordT],
) -> list[RecordT]:
    """Fold records sharing an identity into the first occurrence.

    Older payloads stored raw URLs, so several items can collapse onto the
    same normalized URL once hydrated.
    """

    merged: dict[str, RecordT] = {}
    for record in records:
        ident = identity(record)
        if ident in merged:
            logger.warning(f"Merging duplicate {type(record).__name__} for {ident} in '{key}'")
            merged[ident] = merge(merged[ident], record)
        else:
            merged[ident] = record
    return list(merged.values())


def serialize_records(records: Iterable[RecordModel]) -> list[dict[str, object]]:
    return [record.to_wire() for record in records]


async def load_records(
    client: StorageClient, key: str, model: type[RecordT]
) -> list[RecordT]:
    payload = await client.get_json(key)
    records = deserialize_records(key, payload, model)
    logger.debug(f"Loaded {len(records)} {model.__name__} record(s) from '{key}'")
    return records


async def save_records(
    client: StorageClient, key: str, records: Iterable[RecordModel]
) -> None:
    await client.set_json(key, serialize_records(records))
