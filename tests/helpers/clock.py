"""Controllable clock for time-dependent tests."""

from datetime import datetime, timedelta, timezone


class FakeClock:
    """Callable returning a fixed UTC time that tests advance explicitly."""

    def __init__(self, start: datetime = datetime(2025, 11, 4, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now
