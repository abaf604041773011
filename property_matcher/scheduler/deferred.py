"""Deferred delivery of match notifications.

Each queued notification is an APScheduler date-triggered job with a cancel
handle. A job that fires more than ``staleness`` after it was queued is
dropped rather than sent, since the offer may no longer be relevant.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional
from uuid import uuid4

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger

from property_matcher.config.models import NotificationConfig
from property_matcher.logging import get_logger
from property_matcher.logging.context import log_context
from property_matcher.matching.models import MatchCandidate
from property_matcher.notifications.dispatcher import NotificationDispatcher
from property_matcher.notifications.models import DispatchResult
from property_matcher.utils.timestamps import utc_now

logger = get_logger(__name__, component="scheduler")


@dataclass
class ScheduledDispatch:
    """Handle for one queued notification.

    Attributes:
        job_id: Scheduler job id
        candidate: The match to deliver
        enqueued_at: When it was queued
        run_at: When it is due to fire
    """

    job_id: str
    candidate: MatchCandidate
    enqueued_at: datetime
    run_at: datetime
    _queue: "DeferredDispatchQueue" = field(repr=False, compare=False, default=None)

    def cancel(self) -> bool:
        """Remove the job if it has not fired yet.

        Returns:
            True if the job was still pending
        """
        return self._queue.cancel(self.job_id)


class DeferredDispatchQueue:
    """Queues match notifications for delivery after a fixed delay.

    At most one notification per client is pending at a time, so a burst of
    offers cannot bypass the per-client rate limit.
    """

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        delay: timedelta = timedelta(minutes=5),
        staleness: timedelta = timedelta(minutes=10),
        clock: Callable[[], datetime] = utc_now,
        scheduler: Optional[BackgroundScheduler] = None,
        on_result: Optional[Callable[[DispatchResult], None]] = None,
    ):
        """
        Args:
            dispatcher: Performs the actual delivery when a job fires
            delay: Default time between queueing and delivery
            staleness: Jobs firing later than this after queueing are dropped
            clock: Source of "now", injectable for tests
            scheduler: Scheduler to use (creates a BackgroundScheduler if None)
            on_result: Optional callback receiving every DispatchResult
        """
        if delay > staleness:
            raise ValueError("delay cannot exceed staleness, every queued send would be dropped")

        self.dispatcher = dispatcher
        self.delay = delay
        self.staleness = staleness
        self.clock = clock
        self.on_result = on_result
        self.scheduler = scheduler or BackgroundScheduler(
            job_defaults={"max_instances": 1, "coalesce": True},
            timezone=timezone.utc,
        )
        self._pending: Dict[str, ScheduledDispatch] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        dispatcher: NotificationDispatcher,
        config: NotificationConfig,
        clock: Callable[[], datetime] = utc_now,
        scheduler: Optional[BackgroundScheduler] = None,
        on_result: Optional[Callable[[DispatchResult], None]] = None,
    ) -> "DeferredDispatchQueue":
        return cls(
            dispatcher,
            delay=config.dispatch_delay_delta,
            staleness=config.staleness_delta,
            clock=clock,
            scheduler=scheduler,
            on_result=on_result,
        )

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Deferred dispatch queue started", extra={"event": "scheduler.deferred.started"})

    def shutdown(self, wait: bool = False) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
        logger.info(
            "Deferred dispatch queue stopped",
            extra={"event": "scheduler.deferred.stopped", "pending": self.pending_count},
        )

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def pending(self) -> List[ScheduledDispatch]:
        with self._lock:
            return list(self._pending.values())

    def has_pending(self, phone_number: str) -> bool:
        with self._lock:
            return any(p.candidate.phone_number == phone_number for p in self._pending.values())

    def schedule(
        self, candidate: MatchCandidate, delay: Optional[timedelta] = None
    ) -> Optional[ScheduledDispatch]:
        """Queue a notification.

        Returns:
            The handle, or None when the client already has one pending
        """
        if self.has_pending(candidate.phone_number):
            logger.info(
                f"Client {candidate.phone_number} already has a pending notification",
                extra={
                    "event": "scheduler.dispatch.skipped_pending",
                    "phone": candidate.phone_number,
                    "offer_id": candidate.offer.id,
                },
            )
            return None

        now = self.clock()
        run_at = now + (self.delay if delay is None else delay)
        handle = ScheduledDispatch(
            job_id=f"dispatch-{uuid4().hex}",
            candidate=candidate,
            enqueued_at=now,
            run_at=run_at,
            _queue=self,
        )

        with self._lock:
            self._pending[handle.job_id] = handle
        self.scheduler.add_job(
            func=self.fire,
            trigger=DateTrigger(run_date=run_at, timezone=timezone.utc),
            args=[handle.job_id],
            id=handle.job_id,
            name=f"Notify {candidate.phone_number} about {candidate.offer.id}",
            # Late jobs always reach fire(), which drops the stale ones
            misfire_grace_time=None,
        )

        logger.info(
            f"Queued notification for {candidate.phone_number}",
            extra={
                "event": "scheduler.dispatch.scheduled",
                "job_id": handle.job_id,
                "phone": candidate.phone_number,
                "offer_id": candidate.offer.id,
                "run_at": run_at.isoformat(),
            },
        )
        return handle

    def cancel(self, job_id: str) -> bool:
        with self._lock:
            handle = self._pending.pop(job_id, None)
        if handle is None:
            return False

        try:
            self.scheduler.remove_job(job_id)
        except JobLookupError:
            logger.debug("Job already gone from scheduler", extra={"job_id": job_id})

        logger.info(
            "Cancelled queued notification",
            extra={"event": "scheduler.dispatch.cancelled", "job_id": job_id},
        )
        return True

    def fire(self, job_id: str) -> Optional[DispatchResult]:
        """Deliver a queued notification; called by the scheduler when the job is due."""
        with self._lock:
            handle = self._pending.pop(job_id, None)
        if handle is None:
            return None

        candidate = handle.candidate
        age = self.clock() - handle.enqueued_at

        with log_context(job_id=job_id, phone=candidate.phone_number, offer_id=candidate.offer.id):
            if age > self.staleness:
                logger.warning(
                    f"Dropping stale notification queued {age.total_seconds():.0f}s ago",
                    extra={"event": "scheduler.dispatch.dropped", "age_seconds": age.total_seconds()},
                )
                result = DispatchResult(candidate.phone_number, candidate.offer.id, status="dropped")
            else:
                result = self.dispatcher.dispatch(candidate)

        if self.on_result is not None:
            self.on_result(result)
        return result
