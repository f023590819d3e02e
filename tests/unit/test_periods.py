"""
Tests for period keys, posting dates and the period lock.
"""

from datetime import date, datetime

import pytest

from closing_kernel.domain.periods import Period, PeriodLock, normalize_date
from closing_kernel.exceptions import InvalidPeriodError, LockedPeriodError


class TestPeriod:

    def test_parse(self):
        period = Period.parse("2024-05")
        assert (period.year, period.month) == (2024, 5)
        assert period.key == "2024-05"

    def test_parse_single_digit_month(self):
        assert Period.parse("2024-5").key == "2024-05"

    def test_parse_passes_period_through(self):
        period = Period(2024, 5)
        assert Period.parse(period) is period

    @pytest.mark.parametrize("bad", ["2024/05", "2024-13", "May 2024", "", "2024-00"])
    def test_parse_rejects_bad_keys(self, bad):
        with pytest.raises(InvalidPeriodError):
            Period.parse(bad)

    def test_doc_suffix(self):
        assert Period.parse("2024-05").doc_suffix == "2024.05"

    def test_last_day(self):
        assert Period.parse("2024-05").last_day == date(2024, 5, 31)
        assert Period.parse("2024-02").last_day == date(2024, 2, 29)
        assert Period.parse("2023-02").last_day == date(2023, 2, 28)

    def test_of_date(self):
        assert Period.of(date(2024, 12, 31)).key == "2024-12"

    def test_contains(self):
        period = Period.parse("2024-05")
        assert period.contains(date(2024, 5, 1))
        assert period.contains("2024-05-31")
        assert not period.contains(date(2024, 6, 1))

    def test_ordering(self):
        assert Period.parse("2023-12") < Period.parse("2024-01")


class TestNormalizeDate:

    def test_datetime_drops_time(self):
        assert normalize_date(datetime(2024, 5, 31, 23, 59)) == date(2024, 5, 31)

    def test_iso_string(self):
        assert normalize_date("2024-05-31T10:00:00") == date(2024, 5, 31)

    def test_vietnamese_string(self):
        assert normalize_date("31/05/2024") == date(2024, 5, 31)

    def test_invalid_string(self):
        with pytest.raises(InvalidPeriodError):
            normalize_date("31.05.2024")


class TestPeriodLock:
    """A posting dated on or before the cutoff is rejected."""

    def test_no_lock(self):
        lock = PeriodLock()
        assert not lock.is_locked(date(1900, 1, 1))
        assert lock.ensure_open(date(2024, 5, 31)) == date(2024, 5, 31)

    def test_date_after_cutoff_is_open(self):
        lock = PeriodLock.until("2024-04-30")
        assert lock.ensure_open(date(2024, 5, 31)) == date(2024, 5, 31)

    def test_cutoff_date_itself_is_locked(self):
        lock = PeriodLock.until(date(2024, 5, 31))
        with pytest.raises(LockedPeriodError) as exc_info:
            lock.ensure_open(date(2024, 5, 31), "close")
        assert exc_info.value.locked_until == "2024-05-31"
        assert exc_info.value.operation == "close"
        assert "locked until 2024-05-31" in str(exc_info.value)

    def test_date_before_cutoff_is_locked(self):
        lock = PeriodLock.until(date(2024, 5, 31))
        assert lock.is_locked(date(2024, 1, 1))

    def test_time_of_day_is_ignored(self):
        lock = PeriodLock.until(datetime(2024, 5, 31, 0, 0))
        assert lock.is_locked(datetime(2024, 5, 31, 23, 59))

    def test_empty_string_means_unlocked(self):
        assert PeriodLock.until("").locked_until is None
