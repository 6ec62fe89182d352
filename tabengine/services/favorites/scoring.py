"""Relevance scoring and smart grouping of favorites.

``ScoringEngine`` is pure: every method takes the favorites (and ``now``) it
works on and returns new lists, so it can run against any snapshot without
touching storage.

Score formula::

    score = priority
          + min(log2(visit_count + 1), frequency_cap)
          + recency_max * max(0, 1 - age_days(last_accessed_at) / recency_window_days)

With the default constants the range is roughly [1, 15].
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from tabengine.schemas.favorites import (
    FavoriteRecord,
    ScoredFavorite,
    SmartGroups,
    TagGroup,
)
from tabengine.schemas.tags import TagRecord
from tabengine.settings import AppSettings
from tabengine.utils.timestamps import age_in_days


@dataclass(frozen=True)
class ScoringWeights:
    """Tunable constants behind the score and the smart groups."""

    frequency_cap: float = 5.0
    recency_max: float = 5.0
    recency_window_days: float = 30.0
    recent_window_days: float = 7.0
    recent_min_size: int = 3
    recent_limit: int = 10
    most_frequent_limit: int = 10
    high_priority_threshold: int = 4

    @classmethod
    def from_settings(cls, settings: AppSettings) -> ScoringWeights:
        return cls(
            frequency_cap=settings.score_frequency_cap,
            recency_max=settings.score_recency_max,
            recency_window_days=settings.score_recency_window_days,
            recent_window_days=settings.recent_group_window_days,
            recent_min_size=settings.recent_group_min_size,
            recent_limit=settings.recent_group_limit,
            most_frequent_limit=settings.most_frequent_limit,
            high_priority_threshold=settings.high_priority_threshold,
        )


def _title_key(favorite: FavoriteRecord) -> tuple[str, str, str]:
    return (favorite.title.casefold(), favorite.title, favorite.id)


class ScoringEngine:
    """Pure ranking routines decoupled from persistence."""

    def __init__(self, weights: ScoringWeights | None = None) -> None:
        self.weights = weights or ScoringWeights()

    def priority_weight(self, favorite: FavoriteRecord) -> float:
        return float(favorite.priority)

    def frequency_weight(self, favorite: FavoriteRecord) -> float:
        return min(math.log2(favorite.usage.visit_count + 1), self.weights.frequency_cap)

    def recency_weight(self, favorite: FavoriteRecord, now: datetime) -> float:
        last_accessed = favorite.usage.last_accessed_at
        if last_accessed is None:
            return 0.0
        age = age_in_days(last_accessed, now)
        return self.weights.recency_max * max(0.0, 1.0 - age / self.weights.recency_window_days)

    def score(self, favorite: FavoriteRecord, now: datetime) -> float:
        """Return the favorite's relevance score; higher is more relevant."""

        return (
            self.priority_weight(favorite)
            + self.frequency_weight(favorite)
            + self.recency_weight(favorite, now)
        )

    def rank(self, favorites: Iterable[FavoriteRecord], now: datetime) -> list[ScoredFavorite]:
        """Score every favorite; order by score desc, then title asc."""

        scored = [ScoredFavorite(favorite=fav, score=self.score(fav, now)) for fav in favorites]
        scored.sort(key=lambda item: (-item.score, *_title_key(item.favorite)))
        return scored

    def by_score(self, favorites: Iterable[FavoriteRecord], now: datetime) -> list[FavoriteRecord]:
        return [item.favorite for item in self.rank(favorites, now)]

    def high_priority(
        self, favorites: Iterable[FavoriteRecord], now: datetime
    ) -> list[FavoriteRecord]:
        """Favorites at or above the priority threshold, priority desc then score desc."""

        candidates = [
            item
            for item in self.rank(favorites, now)
            if item.favorite.priority >= self.weights.high_priority_threshold
        ]
        # ``rank`` already breaks score ties by title, and sort is stable.
        candidates.sort(key=lambda item: -item.favorite.priority)
        return [item.favorite for item in candidates]

    def most_frequent(
        self, favorites: Iterable[FavoriteRecord], limit: int | None = None
    ) -> list[FavoriteRecord]:
        """Top visited favorites among those visited at least once."""

        limit = self.weights.most_frequent_limit if limit is None else limit
        visited = [fav for fav in favorites if fav.usage.visit_count > 0]
        visited.sort(key=lambda fav: (-fav.usage.visit_count, *_title_key(fav)))
        return visited[: max(limit, 0)]

    def recent(self, favorites: Iterable[FavoriteRecord], now: datetime) -> list[FavoriteRecord]:
        """Recently accessed favorites, backfilled with never-visited ones.

        Backfill only happens while fewer than ``recent_min_size`` favorites
        qualify, and stops once that size is reached.
        """

        pool = list(favorites)
        window = self.weights.recent_window_days
        accessed = [
            fav
            for fav in pool
            if fav.usage.last_accessed_at is not None
            and age_in_days(fav.usage.last_accessed_at, now) <= window
        ]
        accessed.sort(
            key=lambda fav: (-fav.usage.last_accessed_at.timestamp(), *_title_key(fav))
        )
        recent = accessed[: self.weights.recent_limit]

        if len(recent) < self.weights.recent_min_size:
            never_visited = [fav for fav in pool if fav.usage.last_accessed_at is None]
            never_visited.sort(key=lambda fav: (-fav.created_at.timestamp(), *_title_key(fav)))
            missing = self.weights.recent_min_size - len(recent)
            recent.extend(never_visited[:missing])
        return recent

    def smart_groups(self, favorites: Iterable[FavoriteRecord], now: datetime) -> SmartGroups:
        pool = list(favorites)
        return SmartGroups(
            high_priority=self.high_priority(pool, now),
            most_frequent=self.most_frequent(pool),
            recent=self.recent(pool, now),
        )

    def tag_groups(
        self,
        favorites: Iterable[FavoriteRecord],
        tags: Sequence[TagRecord],
        now: datetime,
    ) -> list[TagGroup]:
        """One group per used tag, in catalog order, members ordered by score."""

        ranked = self.by_score(favorites, now)
        groups: list[TagGroup] = []
        for tag in tags:
            if tag.usage_count <= 0:
                continue
            members = [fav for fav in ranked if fav.has_tag(tag.canonical_name)]
            groups.append(TagGroup(tag=tag, favorites=members))
        return groups

    def untagged(self, favorites: Iterable[FavoriteRecord], now: datetime) -> list[FavoriteRecord]:
        """Favorites without any tag, ordered by score."""

        return [fav for fav in self.by_score(favorites, now) if not fav.tag_names]
