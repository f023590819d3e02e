"""
Injectable time source.

Engines take explicit periods and dates.  Workflows fall back to the
clock only when the caller omits them, so tests pin "today" with
``DeterministicClock`` instead of patching ``date.today()``.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, time, timedelta, timezone


class Clock(ABC):

    @abstractmethod
    def now(self) -> datetime:
        """Timezone-aware current time."""

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Wall-clock time in the host's local zone."""

    def now(self) -> datetime:
        return datetime.now().astimezone()


class DeterministicClock(Clock):
    """
    Fixed clock for tests.

    Accepts a ``datetime`` or a bare ``date`` (taken as noon UTC) and only
    moves when ``set_time`` or ``advance`` is called.
    """

    def __init__(self, fixed: datetime | date | None = None):
        self._now = self._coerce(fixed or date(2024, 1, 1))

    @staticmethod
    def _coerce(value: datetime | date) -> datetime:
        if isinstance(value, datetime):
            return value
        return datetime.combine(value, time(12), tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def set_time(self, value: datetime | date) -> None:
        self._now = self._coerce(value)

    def advance(self, *, days: int = 0, seconds: int = 0) -> None:
        self._now += timedelta(days=days, seconds=seconds)
