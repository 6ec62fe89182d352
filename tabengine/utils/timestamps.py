"""Clock helpers used wherever the engine needs "now" or an age."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]

_SECONDS_PER_DAY = 86_400.0


def utc_now() -> datetime:
    """Return the current timezone-aware UTC time."""

    return datetime.now(UTC)


def ensure_aware(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC and convert aware ones to UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def age_in_days(then: datetime, now: datetime) -> float:
    """Return the non-negative age of ``then`` relative to ``now`` in days.

    Timestamps in the future (clock skew between devices) count as age zero.
    """

    return max(0.0, (now - then).total_seconds() / _SECONDS_PER_DAY)


def latest(first: datetime | None, second: datetime | None) -> datetime | None:
    """Return the later of two optional timestamps."""

    if first is None:
        return second
    if second is None:
        return first
    return max(first, second)
