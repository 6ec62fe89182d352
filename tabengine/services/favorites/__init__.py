"""Favorites domain components split by responsibility.

This package isolates storage concerns (:class:`FavoritesPersistence`) from the
tag catalog (:class:`TagRegistry`) and the pure ranking logic
(:class:`ScoringEngine`).
"""

from .persistence import FavoritesPersistence
from .scoring import ScoringEngine, ScoringWeights
from .tags import TagRegistry

__all__ = [
    "FavoritesPersistence",
    "ScoringEngine",
    "ScoringWeights",
    "TagRegistry",
]
