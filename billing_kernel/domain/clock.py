"""
Clock -- injectable time source.

Services stamp ``created_at`` and derive default issue dates from a Clock
rather than calling ``datetime.now()``, so document creation is
reproducible under test.  Overdue projection and payment recording take
``now`` / ``paid_at`` as plain arguments and never read a clock.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    """Source of timezone-aware timestamps."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        """Calendar date of ``now()`` in the clock's own timezone."""
        return self.now().date()


class SystemClock(Clock):
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock frozen at a given instant until moved explicitly.

    Usage:
        clock = DeterministicClock(datetime(2024, 3, 15, 9, 30, tzinfo=timezone.utc))
        clock.advance(days=30)
    """

    def __init__(self, current: datetime | None = None):
        current = current or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        if current.tzinfo is None:
            raise ValueError("DeterministicClock requires a timezone-aware datetime")
        self._current = current

    def now(self) -> datetime:
        return self._current

    def set_time(self, current: datetime) -> None:
        self._current = current

    def advance(self, **delta: float) -> datetime:
        """Move forward by ``timedelta(**delta)`` and return the new time."""
        self._current += timedelta(**delta)
        return self._current
