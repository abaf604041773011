"""Scheduler service for periodic store maintenance."""

import threading
from datetime import datetime, timezone
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from property_matcher.logging import get_logger

logger = get_logger(__name__, component="scheduler")

CLEANUP_JOB_ID = "client-cleanup"


class SchedulerService:
    """
    Wraps APScheduler to purge inactive clients at a fixed interval.

    Uses BackgroundScheduler so the main thread stays free to handle
    signals and coordinate shutdown.
    """

    def __init__(
        self,
        cleanup_callable: Callable[[], object],
        interval_seconds: int,
        shutdown_event: Optional[threading.Event] = None,
    ):
        """
        Args:
            cleanup_callable: Function run on each tick (e.g. a bound store.clean_inactive)
            interval_seconds: Interval between runs in seconds
            shutdown_event: Optional event set on shutdown
        """
        if interval_seconds < 1:
            raise ValueError(f"interval_seconds must be positive, got: {interval_seconds}")

        self.cleanup_callable = cleanup_callable
        self.interval_seconds = interval_seconds
        self.shutdown_event = shutdown_event

        self.scheduler = BackgroundScheduler(
            job_defaults={
                "max_instances": 1,
                "coalesce": True,
                "misfire_grace_time": interval_seconds,
            },
            timezone=timezone.utc,
        )

    def start(self) -> None:
        """Register the cleanup job and start the scheduler; the first run is immediate."""
        next_run = datetime.now(timezone.utc)
        self.scheduler.add_job(
            func=self._run_cleanup,
            trigger=IntervalTrigger(seconds=self.interval_seconds, timezone=timezone.utc),
            id=CLEANUP_JOB_ID,
            name="Inactive client cleanup",
            replace_existing=True,
            next_run_time=next_run,
        )
        self.scheduler.start()

        logger.info(
            f"Scheduler started with interval: {self.interval_seconds} seconds",
            extra={
                "event": "scheduler.started",
                "interval_seconds": self.interval_seconds,
                "next_run_time": next_run.isoformat(),
            },
        )

    def _run_cleanup(self) -> None:
        try:
            removed = self.cleanup_callable()
        except Exception as e:
            # The next tick retries; the scheduler thread must survive.
            logger.error(
                f"Scheduled cleanup failed: {e}",
                extra={"event": "scheduler.cleanup.failed", "error_type": type(e).__name__},
                exc_info=True,
            )
            return

        logger.info(
            "Scheduled cleanup finished",
            extra={"event": "scheduler.cleanup.completed", "removed": removed},
        )

    def shutdown(self, wait: bool = False) -> None:
        logger.info(
            "Shutting down scheduler",
            extra={"event": "scheduler.stopping", "wait_for_jobs": wait},
        )

        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)

        if self.shutdown_event:
            self.shutdown_event.set()

        logger.info("Scheduler shutdown complete", extra={"event": "scheduler.stopped"})

    def trigger_now(self) -> None:
        """Run the cleanup synchronously in the current thread."""
        logger.info("Triggering immediate cleanup", extra={"event": "scheduler.trigger_now"})
        self._run_cleanup()

    def is_running(self) -> bool:
        return self.scheduler.running

    def get_next_run_time(self) -> Optional[datetime]:
        job = self.scheduler.get_job(CLEANUP_JOB_ID)
        return job.next_run_time if job else None
