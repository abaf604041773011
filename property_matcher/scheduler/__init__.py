"""Scheduling: periodic store cleanup and deferred notification delivery."""

from .deferred import DeferredDispatchQueue, ScheduledDispatch
from .service import SchedulerService

__all__ = [
    "SchedulerService",
    "DeferredDispatchQueue",
    "ScheduledDispatch",
]
