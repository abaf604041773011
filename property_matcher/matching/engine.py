"""Matching engine for evaluating offers against standing requests.

This module implements the matching logic that:
1. Scores an incoming offer against every active request in the store
2. Suppresses offers already sent to a client and clients notified too recently
3. Records deliveries and user feedback back onto the client record
"""

from datetime import datetime, timedelta
from typing import Callable, List, Optional

from property_matcher.domain.models import (
    Client,
    ConversationState,
    MatchRecord,
    Offer,
    RequestStatus,
    Requirement,
    Role,
    UserResponse,
)
from property_matcher.logging import get_logger
from property_matcher.persistence.store import ClientStore
from property_matcher.utils.phone import normalize_phone
from property_matcher.utils.timestamps import utc_now

from .models import InteractionStats, MatchCandidate, MatchingStats, SimilarityResult
from .similarity import calculate_similarity

logger = get_logger(__name__, component="matching")

DEFAULT_THRESHOLD = 70
DEFAULT_RATE_LIMIT = timedelta(hours=1)
IGNORED_AFTER = timedelta(hours=24)
RECENT_WINDOW = timedelta(hours=24)
DEFAULT_OFFER_TITLE = "عقار"

_RESPONSE_FLAGS = {
    UserResponse.OPENED: "opened",
    UserResponse.CLICKED: "clicked",
    UserResponse.CONTACTED: "contacted",
    UserResponse.REJECTED: "rejected",
}


def _average(scores: List[int]) -> int:
    return int(round(sum(scores) / len(scores))) if scores else 0


class MatchingEngine:
    """Evaluates offers against the active requests held in a ClientStore.

    Responsibilities:
    - Score each (client, request) pair and apply the threshold gate
    - Skip offers already present in a client's match history
    - Rate-limit notifications per client
    - Record sent matches, deactivation and interaction feedback
    """

    def __init__(
        self,
        store: ClientStore,
        threshold: int = DEFAULT_THRESHOLD,
        rate_limit: timedelta = DEFAULT_RATE_LIMIT,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Args:
            store: Client store holding the requests
            threshold: Minimum similarity score for a candidate
            rate_limit: Minimum time between two notifications to one client
            clock: Source of "now", injectable for tests
        """
        self.store = store
        self.threshold = threshold
        self.rate_limit = rate_limit
        self.clock = clock

    def evaluate(self, offer: Offer) -> List[MatchCandidate]:
        """Build the match worklist for an offer.

        Has no side effects; nothing is recorded until ``record_match_sent``.

        Returns:
            Candidates in request-iteration order
        """
        active = self.store.list_active_requests()
        now = self.clock()
        candidates: List[MatchCandidate] = []

        logger.info(
            f"Evaluating offer {offer.id} against {len(active)} active requests",
            extra={"event": "matching.evaluate.started", "offer_id": offer.id, "active_requests": len(active)},
        )

        for phone, request, client in active:
            try:
                requirement = Requirement.from_request(request)
                similarity = calculate_similarity(requirement, offer, threshold=self.threshold)
            except Exception as e:
                logger.error(
                    f"Failed to score request {request.id} for {phone}: {e}",
                    extra={"event": "matching.candidate.error", "phone": phone, "request_id": request.id},
                    exc_info=True,
                )
                continue

            if similarity.score < self.threshold:
                logger.debug(
                    f"Request {request.id} scored {similarity.score}, below threshold",
                    extra={
                        "event": "matching.candidate.below_threshold",
                        "phone": phone,
                        "score": similarity.score,
                        "reason": similarity.reason,
                    },
                )
                continue

            if offer.id in client.matched_offer_ids():
                logger.debug(
                    "Offer already sent to this client",
                    extra={"event": "matching.candidate.duplicate", "phone": phone, "offer_id": offer.id},
                )
                continue

            if self._rate_limited(client, now):
                logger.debug(
                    "Client notified too recently",
                    extra={
                        "event": "matching.candidate.rate_limited",
                        "phone": phone,
                        "last_notification_at": client.last_notification_at.isoformat(),
                    },
                )
                continue

            candidates.append(
                MatchCandidate(
                    phone_number=phone,
                    name=client.name,
                    request_id=request.id,
                    requirement=requirement,
                    offer=offer,
                    similarity=similarity,
                )
            )
            logger.info(
                f"Match for {phone}: {similarity.score}%",
                extra={
                    "event": "matching.candidate.accepted",
                    "phone": phone,
                    "request_id": request.id,
                    "score": similarity.score,
                    "breakdown": similarity.breakdown,
                },
            )

        logger.info(
            f"Offer {offer.id} produced {len(candidates)} candidates",
            extra={"event": "matching.evaluate.completed", "offer_id": offer.id, "candidates": len(candidates)},
        )
        return candidates

    def _rate_limited(self, client: Client, now: datetime) -> bool:
        if client.last_notification_at is None:
            return False
        return now - client.last_notification_at < self.rate_limit

    def record_match_sent(self, phone: str, offer: Offer, similarity: SimilarityResult) -> Client:
        """Append the offer to the client's history and stamp the notification time.

        Call exactly once per confirmed delivery.
        """
        phone = normalize_phone(phone)
        client = self.store.get_or_create(phone)
        now = self.clock()

        record = MatchRecord(
            offer_id=offer.id,
            offer_title=offer.title or DEFAULT_OFFER_TITLE,
            offer_link=offer.link,
            similarity_score=similarity.score,
            match_quality=similarity.match_quality,
            sent_at=now,
        )
        history = [m.model_dump(by_alias=True, mode="json") for m in client.match_history]
        history.append(record.model_dump(by_alias=True, mode="json"))

        updated = self.store.update(phone, {"matchHistory": history, "lastNotificationAt": now})
        logger.info(
            f"Recorded match sent to {phone}",
            extra={"event": "matching.match.recorded", "phone": phone, "offer_id": offer.id},
        )
        return updated

    def mark_inactive(self, phone: str, reason: str = "user_request") -> Client:
        """Stop evaluating a client's requests without deleting them."""
        updated = self.store.update(
            phone,
            {
                "requestStatus": RequestStatus.INACTIVE.value,
                "requestDeactivatedAt": self.clock(),
                "requestDeactivationReason": reason,
            },
        )
        logger.info(
            f"Marked requests inactive for {updated.phone_number}",
            extra={"event": "matching.request.deactivated", "phone": updated.phone_number, "reason": reason},
        )
        return updated

    def reactivate(self, phone: str) -> Client:
        updated = self.store.update(
            phone,
            {
                "requestStatus": RequestStatus.ACTIVE.value,
                "requestDeactivatedAt": None,
                "requestDeactivationReason": None,
            },
        )
        logger.info(
            f"Reactivated requests for {updated.phone_number}",
            extra={"event": "matching.request.reactivated", "phone": updated.phone_number},
        )
        return updated

    def record_interaction(self, phone: str, offer_id: str, response: UserResponse) -> bool:
        """Record a user's reaction to a sent match.

        Returns:
            False if the client has no history entry for the offer
        """
        phone = normalize_phone(phone)
        response = UserResponse(response)
        client = self.store.get(phone)
        if client is None or client.find_match(str(offer_id)) is None:
            logger.warning(
                "No sent match to record interaction against",
                extra={"event": "matching.interaction.not_found", "phone": phone, "offer_id": str(offer_id)},
            )
            return False

        now = self.clock()
        history = []
        for match in client.match_history:
            if match.offer_id == str(offer_id):
                changes = {"user_response": response, "interaction_at": now}
                flag = _RESPONSE_FLAGS.get(response)
                if flag:
                    changes[flag] = True
                match = match.model_copy(update=changes)
            history.append(match.model_dump(by_alias=True, mode="json"))

        self.store.update(phone, {"matchHistory": history})
        logger.info(
            f"Recorded {response.value} for offer {offer_id}",
            extra={
                "event": "matching.interaction.recorded",
                "phone": phone,
                "offer_id": str(offer_id),
                "response": response.value,
            },
        )
        return True

    def get_interaction_stats(self) -> InteractionStats:
        """Aggregate feedback across every client's match history."""
        now = self.clock()
        stats = InteractionStats()
        opened_scores: List[int] = []
        contacted_scores: List[int] = []
        rejected_scores: List[int] = []

        for client in self.store.list_all():
            for match in client.match_history:
                stats.total_matches += 1
                score: Optional[int] = match.similarity_score

                if match.opened:
                    stats.opened += 1
                    if score:
                        opened_scores.append(score)
                if match.clicked:
                    stats.clicked += 1
                if match.contacted:
                    stats.contacted += 1
                    if score:
                        contacted_scores.append(score)
                if match.rejected:
                    stats.rejected += 1
                    if score:
                        rejected_scores.append(score)

                if (
                    match.user_response is None
                    and match.sent_at is not None
                    and now - match.sent_at > IGNORED_AFTER
                ):
                    stats.ignored += 1

        stats.avg_score_opened = _average(opened_scores)
        stats.avg_score_contacted = _average(contacted_scores)
        stats.avg_score_rejected = _average(rejected_scores)
        return stats

    def get_matching_stats(self) -> MatchingStats:
        """Request and notification volume across searcher clients."""
        since = self.clock() - RECENT_WINDOW
        stats = MatchingStats()

        for client in self.store.list_all():
            if client.role != Role.SEARCHER or client.state != ConversationState.COMPLETED:
                continue

            stats.total_requests += 1
            if client.request_status == RequestStatus.INACTIVE:
                stats.inactive_requests += 1
            else:
                stats.active_requests += 1

            stats.total_matches += len(client.match_history)
            stats.matches_last_24h += sum(
                1 for m in client.match_history if m.sent_at is not None and m.sent_at > since
            )

        if stats.total_requests:
            stats.active_percentage = int(round(stats.active_requests / stats.total_requests * 100))
        return stats
