"""
Clock -- injectable time source.

Ledger, advisor and batch code take a ``Clock`` instead of calling
``datetime.now()``.  ``SystemClock`` is the one place the engine reads the
wall clock; ``DeterministicClock`` pins time in tests so usage windows and
``occurred_at`` values are reproducible.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

DEFAULT_TEST_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Source of timezone-aware UTC timestamps."""

    @abstractmethod
    def now_utc(self) -> datetime:
        ...


class SystemClock(Clock):

    def now_utc(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock that stands still until moved.

    Repeated ``now_utc()`` calls return the same instant; ``advance`` and
    ``advance_days`` move it forward, ``set_time`` jumps.
    """

    def __init__(self, start: datetime | None = None):
        self._current = (start or DEFAULT_TEST_TIME).astimezone(timezone.utc)

    def now_utc(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = time.astimezone(timezone.utc)

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def advance_days(self, days: int) -> None:
        self.advance(days * 86400)
