"""Data models for offer processing runs."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class OfferRunResult:
    """
    Outcome of matching one offer and notifying its candidates.

    Attributes:
        run_id: Unique id of the run, also bound to the log context
        offer_id: Offer that was processed
        run_started_at: UTC timestamp when the run began
        run_finished_at: UTC timestamp when the run completed
        candidates: Match candidates produced by the engine
        sent: Notifications delivered inline
        scheduled: Notifications queued for deferred delivery
        skipped: Candidates not notified (duplicate or already pending)
        failed: Notifications that failed
        duration_seconds: Total time for the run
        skipped_run: Whether the run was skipped because another was in progress
        error_message: Set when evaluation itself failed
    """

    run_id: str
    offer_id: str
    run_started_at: datetime
    run_finished_at: datetime
    candidates: int = 0
    sent: int = 0
    scheduled: int = 0
    skipped: int = 0
    failed: int = 0
    duration_seconds: float = 0.0
    skipped_run: bool = False
    error_message: Optional[str] = None

    def __post_init__(self):
        if self.duration_seconds == 0.0:
            self.duration_seconds = (self.run_finished_at - self.run_started_at).total_seconds()

    @property
    def had_errors(self) -> bool:
        return self.failed > 0 or self.error_message is not None
