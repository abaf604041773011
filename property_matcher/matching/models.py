"""Data models for the matching engine.

This module defines the similarity result, the match candidates handed to
the notification side, and the read-side statistics.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

from property_matcher.domain.models import Offer, Requirement


@dataclass
class SimilarityResult:
    """Outcome of scoring one offer against one requirement.

    Attributes:
        score: Weighted score 0-100 (0 when a gate failed)
        matched: True if score reached the threshold it was computed with
        match_quality: Display label for the score band
        breakdown: Per-factor scores (type, purpose, price, area, location)
        reason: Why a gate rejected the offer, None otherwise
    """

    score: int
    matched: bool
    match_quality: str
    breakdown: Dict[str, int] = field(default_factory=dict)
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"score": self.score, "breakdown": dict(self.breakdown), "matchQuality": self.match_quality}
        if self.reason:
            data["reason"] = self.reason
        return data


@dataclass
class MatchCandidate:
    """A (client, request, offer) pairing that passed every gate.

    Nothing is recorded for a candidate until its notification is delivered.

    Attributes:
        phone_number: Normalized phone of the client
        name: Client display name, may be None
        request_id: Id of the request that matched
        requirement: Requirement derived from that request
        offer: The offer being evaluated
        similarity: Similarity result for the pair
    """

    phone_number: str
    name: Optional[str]
    request_id: str
    requirement: Requirement
    offer: Offer
    similarity: SimilarityResult

    def to_worklist_item(self) -> Dict[str, Any]:
        """Outbound worklist shape consumed by the notification collaborator."""
        return {
            "phoneNumber": self.phone_number,
            "name": self.name,
            "requestId": self.request_id,
            "requirement": self.requirement.model_dump(mode="json"),
            "offer": self.offer.model_dump(mode="json"),
            "similarity": self.similarity.to_dict(),
        }


@dataclass
class InteractionStats:
    """Aggregate user feedback across every client's match history."""

    total_matches: int = 0
    opened: int = 0
    clicked: int = 0
    contacted: int = 0
    rejected: int = 0
    ignored: int = 0
    avg_score_opened: int = 0
    avg_score_contacted: int = 0
    avg_score_rejected: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class MatchingStats:
    """Request and notification volume for searcher clients."""

    total_requests: int = 0
    active_requests: int = 0
    inactive_requests: int = 0
    total_matches: int = 0
    matches_last_24h: int = 0
    active_percentage: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)
