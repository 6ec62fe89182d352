"""Derived, never-persisted correlation between favorites and sessions."""

from __future__ import annotations

from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, model_validator


class CombinedAnalyticsSnapshot(BaseModel):
    """URL partition across the favorites and session analytics stores."""

    model_config = ConfigDict(frozen=True)

    favorite_urls: frozenset[str]
    session_urls: frozenset[str]
    both_favorite_and_session: frozenset[str]

    @model_validator(mode="after")
    def _check_intersection(self) -> CombinedAnalyticsSnapshot:
        if self.both_favorite_and_session != self.favorite_urls & self.session_urls:
            raise ValueError("both_favorite_and_session must equal the URL intersection")
        return self

    @classmethod
    def from_urls(
        cls, favorite_urls: Iterable[str], session_urls: Iterable[str]
    ) -> CombinedAnalyticsSnapshot:
        favorites = frozenset(favorite_urls)
        sessions = frozenset(session_urls)
        return cls(
            favorite_urls=favorites,
            session_urls=sessions,
            both_favorite_and_session=favorites & sessions,
        )

    @property
    def favorites_only(self) -> frozenset[str]:
        return self.favorite_urls - self.session_urls

    @property
    def sessions_only(self) -> frozenset[str]:
        return self.session_urls - self.favorite_urls
