"""
Clock -- injectable source of "today".

Contracts start on the day they are created and expire once their end date
has passed; both dates come from a ``Clock`` handed to the services, never
from ``date.today()``.  ``SystemClock`` is the one place that reads the
wall clock.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone

EPOCH = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Timezone-aware current time; ``today()`` is its UTC calendar date."""

    @abstractmethod
    def now(self) -> datetime: ...

    def today(self) -> date:
        return self.now().astimezone(timezone.utc).date()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock that only moves when told to.

    Starts at ``EPOCH`` (2024-01-01 12:00 UTC) unless given a start time.
    """

    def __init__(self, start: datetime | None = None):
        self._now = start or EPOCH

    def now(self) -> datetime:
        return self._now

    def set_time(self, moment: datetime) -> None:
        self._now = moment

    def advance(self, seconds: int = 1) -> None:
        self._now += timedelta(seconds=seconds)

    def advance_days(self, days: int) -> None:
        self._now += timedelta(days=days)
