"""Reconciliation scheduler tests."""

from datetime import datetime, timezone

import pytest

from packtrack.services.scheduler import seconds_until


@pytest.mark.unit
class TestSchedule:

    def test_later_today(self):
        now = datetime(2026, 3, 10, 1, 30, tzinfo=timezone.utc)
        assert seconds_until(2, now) == 30 * 60

    def test_rolls_over_month_end(self):
        now = datetime(2026, 1, 31, 3, 0, tzinfo=timezone.utc)
        assert seconds_until(2, now) == 23 * 3600

    def test_exactly_on_the_hour_waits_a_day(self):
        now = datetime(2026, 3, 10, 2, 0, tzinfo=timezone.utc)
        assert seconds_until(2, now) == 24 * 3600
