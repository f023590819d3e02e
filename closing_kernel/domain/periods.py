"""
Periods -- period keys, posting dates and the period lock.

Responsibility:
    Derives the ``YYYY-MM`` period key, the last calendar day used as the
    posting date of period-end vouchers, and enforces the period lock:
    any posting date on or before ``locked_until`` is rejected.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Lock comparison happens on normalized calendar dates (no time part).
    - ``PeriodLock.ensure_open`` raises before the caller reaches any
      ledger call.

Failure modes:
    - InvalidPeriodError for unparseable period keys or dates.
    - LockedPeriodError when the date is locked.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime

from closing_kernel.exceptions import InvalidPeriodError, LockedPeriodError

_PERIOD_RE = re.compile(r"^(\d{4})-(\d{1,2})$")
_VN_DATE_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


def normalize_date(value: date | datetime | str) -> date:
    """
    Normalize a date-like value to a calendar date.

    Accepts ``date``, ``datetime`` (time part dropped), ISO strings
    (``2024-05-31`` or ``2024-05-31T10:00:00``) and ``dd/mm/yyyy``.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        match = _VN_DATE_RE.match(text)
        try:
            if match:
                day, month, year = (int(g) for g in match.groups())
                return date(year, month, day)
            return date.fromisoformat(text[:10])
        except ValueError as e:
            raise InvalidPeriodError(value) from e
    raise InvalidPeriodError(repr(value))


@dataclass(frozen=True, order=True)
class Period:
    """
    A calendar month used as an accounting period.

    Guarantees:
        - ``1 <= month <= 12``.
        - Ordering follows the calendar.
    """

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise InvalidPeriodError(f"{self.year}-{self.month}")

    @classmethod
    def parse(cls, value: "Period | str") -> Period:
        """Parse a ``YYYY-MM`` key."""
        if isinstance(value, Period):
            return value
        match = _PERIOD_RE.match(value.strip()) if isinstance(value, str) else None
        if match is None:
            raise InvalidPeriodError(str(value))
        return cls(int(match.group(1)), int(match.group(2)))

    @classmethod
    def of(cls, value: date | datetime | str) -> Period:
        """Period containing the given date."""
        d = normalize_date(value)
        return cls(d.year, d.month)

    @property
    def key(self) -> str:
        """``YYYY-MM``"""
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def doc_suffix(self) -> str:
        """Period as it appears in document numbers (``YYYY.MM``)."""
        return f"{self.year:04d}.{self.month:02d}"

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def last_day(self) -> date:
        return date(self.year, self.month, calendar.monthrange(self.year, self.month)[1])

    def contains(self, value: date | datetime | str) -> bool:
        d = normalize_date(value)
        return self.first_day <= d <= self.last_day

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class PeriodLock:
    """
    Single cutoff date before which no posting is allowed.

    Contract:
        ``locked_until=None`` means nothing is locked.  A posting dated on
        or before the cutoff is rejected.
    """

    locked_until: date | None = None

    @classmethod
    def until(cls, value: date | datetime | str | None) -> PeriodLock:
        if value is None or value == "":
            return cls(None)
        return cls(normalize_date(value))

    def is_locked(self, post_date: date | datetime | str) -> bool:
        if self.locked_until is None:
            return False
        return normalize_date(post_date) <= self.locked_until

    def ensure_open(self, post_date: date | datetime | str, operation: str = "post") -> date:
        """
        Return the normalized posting date, or raise if it is locked.

        Raises:
            LockedPeriodError: ``post_date <= locked_until``.
        """
        d = normalize_date(post_date)
        if self.is_locked(d):
            raise LockedPeriodError(
                post_date=d.isoformat(),
                locked_until=self.locked_until.isoformat(),
                operation=operation,
            )
        return d
