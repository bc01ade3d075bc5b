"""
Clock -- injectable time source.

Everything in the engine that depends on "today" reads it from a Clock:
whether an ownership relationship is still active, the default effective
and end dates of a relationship, and when an alert was raised or reviewed.
Services never call ``datetime.now()`` or ``date.today()`` themselves.

Architecture position:
    Kernel > Domain.  SystemClock is the only place that reads real time.
"""

from abc import ABC, abstractmethod
from datetime import UTC, date, datetime, timedelta


class Clock(ABC):
    """
    Contract:
        ``now()`` is timezone-aware (UTC); ``today()`` is its calendar date.
    """

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Wall-clock time.  The default when no clock is injected."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class DeterministicClock(Clock):
    """
    Frozen clock for tests; time moves only when told to.

    Defaults to noon UTC on 2024-01-01 so that "today" is unambiguous in
    every timezone-naive comparison.
    """

    DEFAULT_START = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or self.DEFAULT_START

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = time

    def set_date(self, day: date) -> None:
        """Move to noon UTC on ``day``."""
        self._current = datetime(day.year, day.month, day.day, 12, 0, 0, tzinfo=UTC)

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def advance_days(self, days: int) -> None:
        self._current += timedelta(days=days)
