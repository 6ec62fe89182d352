"""Visit counters for URLs that appear inside saved sessions.

The store is keyed by normalized URL in its own namespace; a URL being a
favorite has no effect here. It persists under ``sessionTabAnalytics`` and
serializes its own writes with a private lock.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from datetime import datetime

from tabengine.errors import InvalidArgumentError
from tabengine.schemas.session_analytics import SavedSession, SessionTabVisit
from tabengine.services.records import load_records, merge_duplicates, save_records
from tabengine.storage import SESSION_ANALYTICS_KEY, StorageClient
from tabengine.utils.timestamps import Clock, latest, utc_now
from tabengine.utils.urls import normalize_url

logger = logging.getLogger(__name__)


def _accessed_desc(visit: SessionTabVisit) -> float:
    """Sort component placing recent visits first and never-accessed ones last."""

    if visit.last_accessed_at is None:
        return float("inf")
    return -visit.last_accessed_at.timestamp()


def _traffic_key(visit: SessionTabVisit) -> tuple[int, float, str]:
    return (-visit.visit_count, _accessed_desc(visit), visit.normalized_url)


def _with_session(
    visit: SessionTabVisit, session_id: str | None, session_name: str | None
) -> tuple[tuple[str, ...], tuple[str, ...]]:
    """Return the association tuples after recording ``session_id``."""

    ids = visit.associated_session_ids
    names = visit.associated_session_names
    if session_id is None:
        return ids, names
    display = session_name or session_id
    if session_id in ids:
        position = ids.index(session_id)
        if session_name and names[position] != session_name:
            # Sessions can be renamed; keep the display cache current.
            names = names[:position] + (session_name,) + names[position + 1 :]
        return ids, names
    return ids + (session_id,), names + (display,)


def _merge_visits(kept: SessionTabVisit, duplicate: SessionTabVisit) -> SessionTabVisit:
    ids, names = kept.associated_session_ids, kept.associated_session_names
    for session_id, session_name in zip(
        duplicate.associated_session_ids, duplicate.associated_session_names
    ):
        if session_id not in ids:
            ids, names = ids + (session_id,), names + (session_name,)
    return kept.model_copy(
        update={
            "title": kept.title or duplicate.title,
            "visit_count": kept.visit_count + duplicate.visit_count,
            "last_accessed_at": latest(kept.last_accessed_at, duplicate.last_accessed_at),
            "associated_session_ids": ids,
            "associated_session_names": names,
        }
    )


class SessionAnalyticsStore:
    """Owns :class:`SessionTabVisit` records and the queries over them."""

    def __init__(self, client: StorageClient, *, clock: Clock = utc_now) -> None:
        self._client = client
        self._clock = clock
        self._visits: tuple[SessionTabVisit, ...] = ()
        self._lock = asyncio.Lock()
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def load(self) -> None:
        async with self._lock:
            visits = await load_records(self._client, SESSION_ANALYTICS_KEY, SessionTabVisit)
            self._visits = tuple(
                merge_duplicates(
                    SESSION_ANALYTICS_KEY,
                    visits,
                    lambda visit: visit.normalized_url,
                    _merge_visits,
                )
            )
            self._loaded = True
        logger.info(f"Session analytics loaded with {len(self._visits)} URL(s)")

    # -- Reads ---------------------------------------------------------------

    def list(self) -> list[SessionTabVisit]:
        """Return every record in insertion order."""

        self._require_loaded()
        return list(self._visits)

    def get(self, url: str) -> SessionTabVisit | None:
        self._require_loaded()
        normalized = normalize_url(url)
        return next((v for v in self._visits if v.normalized_url == normalized), None)

    def urls(self) -> set[str]:
        self._require_loaded()
        return {visit.normalized_url for visit in self._visits}

    def most_visited(self, limit: int = 10) -> list[SessionTabVisit]:
        """Visited URLs by count desc, then most recent, then URL."""

        self._require_loaded()
        visited = [visit for visit in self._visits if visit.visit_count > 0]
        return sorted(visited, key=_traffic_key)[: max(limit, 0)]

    def recently_accessed(self, limit: int = 10) -> list[SessionTabVisit]:
        """URLs by last access desc; never-accessed records sort last."""

        self._require_loaded()
        ordered = sorted(
            self._visits, key=lambda visit: (_accessed_desc(visit), visit.normalized_url)
        )
        return ordered[: max(limit, 0)]

    def high_traffic(self, min_visits: int = 5) -> list[SessionTabVisit]:
        self._require_loaded()
        busy = [visit for visit in self._visits if visit.visit_count >= min_visits]
        return sorted(busy, key=_traffic_key)

    def by_session(self, session_id: str) -> list[SessionTabVisit]:
        self._require_loaded()
        members = [v for v in self._visits if session_id in v.associated_session_ids]
        return sorted(members, key=_traffic_key)

    def cross_session(self) -> list[SessionTabVisit]:
        """URLs recorded in more than one saved session."""

        self._require_loaded()
        return sorted((v for v in self._visits if v.is_cross_session), key=_traffic_key)

    # -- Mutations -----------------------------------------------------------

    async def track_visit(
        self,
        url: str,
        session_id: str | None = None,
        session_name: str | None = None,
        *,
        title: str | None = None,
    ) -> SessionTabVisit:
        """Count one visit to ``url`` now, associating it with ``session_id``."""

        return await self.record_usage(
            url,
            visit_count=1,
            last_accessed_at=self._clock(),
            session_id=session_id,
            session_name=session_name,
            title=title,
        )

    async def record_usage(
        self,
        url: str,
        *,
        visit_count: int = 1,
        last_accessed_at: datetime | None = None,
        session_id: str | None = None,
        session_name: str | None = None,
        title: str | None = None,
    ) -> SessionTabVisit:
        """Merge an observed usage delta into the record for ``url``.

        The stored access time only moves forward.
        """

        if visit_count < 0:
            raise InvalidArgumentError("visit_count must not be negative")
        normalized = normalize_url(url)

        async with self._lock:
            self._require_loaded()
            visits = list(self._visits)
            index = next(
                (i for i, visit in enumerate(visits) if visit.normalized_url == normalized),
                None,
            )
            if index is None:
                base = SessionTabVisit(normalized_url=normalized, title=title)
                visits.append(base)
                index = len(visits) - 1
                logger.info(f"Tracking session analytics for {normalized}")
            current = visits[index]
            ids, names = _with_session(current, session_id, session_name)
            record = current.model_copy(
                update={
                    "title": title or current.title,
                    "visit_count": current.visit_count + visit_count,
                    "last_accessed_at": latest(current.last_accessed_at, last_accessed_at),
                    "associated_session_ids": ids,
                    "associated_session_names": names,
                }
            )
            visits[index] = record
            await self._commit(visits)
            return record

    async def rebuild_from_sessions(self, sessions: Iterable[SavedSession]) -> int:
        """Replace all analytics with an aggregation over ``sessions``.

        Visit counts are summed per URL, the latest access time wins and the
        sessions are associated in the order they are supplied. Returns the
        number of distinct URLs.
        """

        aggregated: dict[str, SessionTabVisit] = {}
        for session in sessions:
            for tab in session.tabs:
                if not tab.url or not tab.url.strip():
                    continue
                normalized = normalize_url(tab.url)
                current = aggregated.get(normalized) or SessionTabVisit(
                    normalized_url=normalized, title=tab.title
                )
                ids, names = _with_session(current, session.id, session.name)
                aggregated[normalized] = current.model_copy(
                    update={
                        "title": current.title or tab.title,
                        "visit_count": current.visit_count + tab.visit_count,
                        "last_accessed_at": latest(current.last_accessed_at, tab.last_accessed_at),
                        "associated_session_ids": ids,
                        "associated_session_names": names,
                    }
                )

        async with self._lock:
            self._require_loaded()
            await self._commit(list(aggregated.values()))
        logger.info(f"Session analytics rebuilt for {len(aggregated)} unique URL(s)")
        return len(aggregated)

    async def _commit(self, visits: Sequence[SessionTabVisit]) -> None:
        await save_records(self._client, SESSION_ANALYTICS_KEY, visits)
        self._visits = tuple(visits)

    def _require_loaded(self) -> None:
        if not self._loaded:
            raise RuntimeError("Session analytics store has not been loaded; call load() first.")
