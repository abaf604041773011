"""Dispatch of match notifications.

This module provides the NotificationDispatcher that orchestrates one
notification: duplicate re-check, template rendering, delivery through the
external MessageSender and, only after a confirmed delivery, recording the
match on the client.
"""

from typing import Iterable, List, Optional

from property_matcher.config.models import NotificationConfig
from property_matcher.logging import get_logger
from property_matcher.logging.context import log_context
from property_matcher.matching.engine import MatchingEngine
from property_matcher.matching.models import MatchCandidate
from property_matcher.persistence.exceptions import PersistenceError

from .models import DeliveryError, DispatchResult, MessageSender, NotificationTemplateError
from .payloads import build_message_context
from .templates import MessageRenderer

logger = get_logger(__name__, component="notification")


class NotificationDispatcher:
    """Sends match messages and records successful deliveries.

    A failed send never touches the client's match history, so the offer
    stays eligible on the next matching cycle.
    """

    def __init__(
        self,
        engine: MatchingEngine,
        sender: MessageSender,
        renderer: Optional[MessageRenderer] = None,
        good_threshold: int = 70,
    ):
        """
        Args:
            engine: Matching engine used to record sent matches
            sender: External message transport
            renderer: Message renderer (creates default if None)
            good_threshold: Breakdown sub-score listed as a match reason
        """
        self.engine = engine
        self.sender = sender
        self.renderer = renderer or MessageRenderer()
        self.good_threshold = good_threshold

    @classmethod
    def from_config(
        cls, engine: MatchingEngine, sender: MessageSender, config: NotificationConfig
    ) -> "NotificationDispatcher":
        return cls(engine, sender, good_threshold=config.good_threshold)

    def dispatch(self, candidate: MatchCandidate) -> DispatchResult:
        """Notify one client about one offer.

        Returns:
            DispatchResult; errors are reported in the result, not raised
        """
        phone = candidate.phone_number
        offer_id = candidate.offer.id

        with log_context(phone=phone, offer_id=offer_id):
            client = self.engine.store.get(phone)
            if client is not None and client.find_match(offer_id) is not None:
                logger.info(
                    f"Skipping notification for offer {offer_id} - already sent",
                    extra={"event": "notification.duplicate"},
                )
                return DispatchResult(phone, offer_id, status="duplicate")

            try:
                text = self.renderer.render(build_message_context(candidate, self.good_threshold))
            except NotificationTemplateError as e:
                return DispatchResult(phone, offer_id, status="failed", error=str(e))

            try:
                self.sender.send(phone, text)
            except DeliveryError as e:
                logger.error(
                    f"Delivery failed for {phone}: {e}",
                    extra={"event": "notification.send.failure", "error_type": type(e).__name__},
                )
                return DispatchResult(phone, offer_id, status="failed", error=str(e))

            logger.info(
                f"Match notification sent to {phone}",
                extra={"event": "notification.send.success", "score": candidate.similarity.score},
            )

            try:
                self.engine.record_match_sent(phone, candidate.offer, candidate.similarity)
            except PersistenceError as e:
                logger.error(
                    f"Sent but failed to record match for {phone}: {e}",
                    extra={"event": "notification.record.failed"},
                )
                return DispatchResult(phone, offer_id, status="sent", error=str(e), recorded=False)

            return DispatchResult(phone, offer_id, status="sent", recorded=True)

    def dispatch_all(self, candidates: Iterable[MatchCandidate]) -> List[DispatchResult]:
        """Dispatch every candidate, continuing past individual failures."""
        results = []

        for candidate in candidates:
            try:
                results.append(self.dispatch(candidate))
            except Exception as e:
                logger.error(
                    f"Unexpected error notifying {candidate.phone_number}: {e}",
                    extra={"event": "notification.send.error"},
                    exc_info=True,
                )
                results.append(
                    DispatchResult(
                        candidate.phone_number, candidate.offer.id, status="failed", error=str(e)
                    )
                )

        sent = sum(1 for r in results if r.status == "sent")
        failed = sum(1 for r in results if r.status == "failed")
        logger.info(
            f"Notification batch complete: {sent} sent, {failed} failed (total: {len(results)})",
            extra={"event": "notification.batch.completed", "sent": sent, "failed": failed},
        )
        return results
