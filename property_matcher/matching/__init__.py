"""Offer-to-request matching.

This module provides:
- calculate_similarity: weighted price/area/location score with type and purpose gates
- MatchingEngine: builds the match worklist for an offer and records feedback
- MatchCandidate, SimilarityResult, InteractionStats, MatchingStats
"""

from .engine import MatchingEngine
from .models import InteractionStats, MatchCandidate, MatchingStats, SimilarityResult
from .similarity import (
    area_similarity,
    calculate_similarity,
    location_similarity,
    match_quality,
    price_similarity,
    purpose_similarity,
)

__all__ = [
    "MatchingEngine",
    "MatchCandidate",
    "SimilarityResult",
    "InteractionStats",
    "MatchingStats",
    "calculate_similarity",
    "price_similarity",
    "area_similarity",
    "location_similarity",
    "purpose_similarity",
    "match_quality",
]
