"""
Tests for the injectable clock.
"""

from datetime import date, datetime, timezone

from closing_kernel.domain.clock import DeterministicClock, SystemClock
from closing_kernel.domain.periods import Period


class TestDeterministicClock:

    def test_date_is_noon_utc(self):
        clock = DeterministicClock(date(2024, 5, 31))
        assert clock.now() == datetime(2024, 5, 31, 12, tzinfo=timezone.utc)
        assert clock.today() == date(2024, 5, 31)

    def test_advance_crosses_month_end(self):
        clock = DeterministicClock(date(2024, 5, 31))
        clock.advance(days=1)
        assert Period.of(clock.today()).key == "2024-06"

    def test_set_time(self):
        clock = DeterministicClock()
        clock.set_time(datetime(2024, 12, 31, 23, 0, tzinfo=timezone.utc))
        assert clock.today() == date(2024, 12, 31)


class TestSystemClock:

    def test_timezone_aware(self):
        assert SystemClock().now().tzinfo is not None
