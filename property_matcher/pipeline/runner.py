"""Pipeline orchestration for incoming offers."""

import threading
from datetime import datetime
from typing import Callable, Optional
from uuid import uuid4

from apscheduler.schedulers.background import BackgroundScheduler

from property_matcher.config.models import NotificationConfig
from property_matcher.domain.models import Offer
from property_matcher.logging import get_logger
from property_matcher.logging.context import log_context
from property_matcher.matching.engine import MatchingEngine
from property_matcher.notifications.dispatcher import NotificationDispatcher
from property_matcher.notifications.models import MessageSender
from property_matcher.scheduler.deferred import DeferredDispatchQueue
from property_matcher.utils.timestamps import utc_now

from .models import OfferRunResult

logger = get_logger(__name__, component="pipeline")


class OfferMatchingPipeline:
    """
    Runs one published offer through matching and notification.

    Candidates are either dispatched inline or handed to a deferred queue,
    depending on whether a queue was supplied.
    """

    def __init__(
        self,
        engine: MatchingEngine,
        dispatcher: NotificationDispatcher,
        queue: Optional[DeferredDispatchQueue] = None,
    ):
        """
        Args:
            engine: Matching engine producing the worklist
            dispatcher: Sends notifications inline when no queue is set
            queue: Deferred dispatch queue; inline delivery when None
        """
        self.engine = engine
        self.dispatcher = dispatcher
        self.queue = queue
        self._lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        engine: MatchingEngine,
        sender: MessageSender,
        config: NotificationConfig,
        clock: Callable[[], datetime] = utc_now,
        scheduler: Optional[BackgroundScheduler] = None,
    ) -> "OfferMatchingPipeline":
        """
        Build a pipeline from the notifications config section.

        With ``deferred`` set, a deferred queue is created and started;
        call shutdown() to stop it.
        """
        dispatcher = NotificationDispatcher.from_config(engine, sender, config)
        queue = None
        if config.deferred:
            queue = DeferredDispatchQueue.from_config(
                dispatcher, config, clock=clock, scheduler=scheduler
            )
            queue.start()
        return cls(engine, dispatcher, queue=queue)

    def shutdown(self, wait: bool = False) -> None:
        if self.queue is not None:
            self.queue.shutdown(wait=wait)

    def process_offer(self, offer: Offer) -> OfferRunResult:
        """
        Evaluate an offer and notify every candidate.

        This method:
        1. Acquires a lock to prevent overlapping runs
        2. Builds the match worklist
        3. Dispatches or schedules each candidate
        4. Returns aggregate counts

        Returns:
            OfferRunResult; evaluation and delivery failures are captured in it
        """
        run_started_at = utc_now()
        run_id = uuid4().hex

        if not self._lock.acquire(blocking=False):
            with log_context(run_id=run_id, offer_id=offer.id):
                logger.warning(
                    "Offer run skipped: previous run still in progress",
                    extra={"event": "pipeline.run.skipped", "reason": "lock_held"},
                )
            return OfferRunResult(
                run_id=run_id,
                offer_id=offer.id,
                run_started_at=run_started_at,
                run_finished_at=utc_now(),
                skipped_run=True,
            )

        try:
            with log_context(run_id=run_id, offer_id=offer.id):
                logger.info("Offer run started", extra={"event": "pipeline.run.started"})
                result = OfferRunResult(
                    run_id=run_id,
                    offer_id=offer.id,
                    run_started_at=run_started_at,
                    run_finished_at=run_started_at,
                )

                try:
                    candidates = self.engine.evaluate(offer)
                except Exception as e:
                    logger.error(
                        f"Offer evaluation failed: {e}",
                        extra={"event": "pipeline.evaluate.failed", "error_type": type(e).__name__},
                        exc_info=True,
                    )
                    result.error_message = str(e)
                    candidates = []

                result.candidates = len(candidates)

                if self.queue is not None:
                    for candidate in candidates:
                        if self.queue.schedule(candidate) is None:
                            result.skipped += 1
                        else:
                            result.scheduled += 1
                else:
                    for dispatch in self.dispatcher.dispatch_all(candidates):
                        if dispatch.status == "sent":
                            result.sent += 1
                        elif dispatch.status == "failed":
                            result.failed += 1
                        else:
                            result.skipped += 1

                result.run_finished_at = utc_now()
                result.duration_seconds = (
                    result.run_finished_at - result.run_started_at
                ).total_seconds()

                logger.info(
                    f"Offer run complete: {result.candidates} candidates, {result.sent} sent, "
                    f"{result.scheduled} scheduled, {result.failed} failed",
                    extra={
                        "event": "pipeline.run.completed",
                        "candidates": result.candidates,
                        "sent": result.sent,
                        "scheduled": result.scheduled,
                        "skipped": result.skipped,
                        "failed": result.failed,
                        "duration_seconds": result.duration_seconds,
                    },
                )
                return result
        finally:
            self._lock.release()
