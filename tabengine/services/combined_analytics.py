"""Read-only correlation of favorites with session analytics by URL."""

from __future__ import annotations

from datetime import datetime

from tabengine.schemas.analytics import CombinedAnalyticsSnapshot
from tabengine.schemas.favorites import FavoriteRecord
from tabengine.schemas.session_analytics import SessionTabVisit
from tabengine.services.favorites import ScoringEngine
from tabengine.services.favorites_service import FavoriteStore
from tabengine.services.session_analytics_service import SessionAnalyticsStore
from tabengine.utils.timestamps import Clock, utc_now


class CombinedAnalyticsAggregator:
    """Derives dashboard views from the current contents of both stores.

    Nothing is cached: each call reads the stores' snapshots afresh, so there
    is no invalidation to get wrong. Session-tab queries delegate straight to
    :class:`SessionAnalyticsStore`.
    """

    def __init__(
        self,
        *,
        favorites: FavoriteStore,
        sessions: SessionAnalyticsStore,
        scoring: ScoringEngine,
        clock: Clock = utc_now,
    ) -> None:
        self._favorites = favorites
        self._sessions = sessions
        self._scoring = scoring
        self._clock = clock

    def snapshot(self) -> CombinedAnalyticsSnapshot:
        return CombinedAnalyticsSnapshot.from_urls(self._favorites.urls(), self._sessions.urls())

    def cross_source_favorites(self, now: datetime | None = None) -> list[FavoriteRecord]:
        """Favorites whose URL also appears in session analytics, by score."""

        shared = self.snapshot().both_favorite_and_session
        candidates = [fav for fav in self._favorites.list() if fav.normalized_url in shared]
        return self._scoring.by_score(candidates, now or self._clock())

    def top_session_tabs(self, limit: int = 10) -> list[SessionTabVisit]:
        return self._sessions.most_visited(limit)

    def recent_session_tabs(self, limit: int = 10) -> list[SessionTabVisit]:
        return self._sessions.recently_accessed(limit)

    def high_traffic_session_tabs(self, min_visits: int = 5) -> list[SessionTabVisit]:
        return self._sessions.high_traffic(min_visits)

    def session_tabs_for(self, session_id: str) -> list[SessionTabVisit]:
        return self._sessions.by_session(session_id)

    def cross_session_tabs(self) -> list[SessionTabVisit]:
        return self._sessions.cross_session()
