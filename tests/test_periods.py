"""Tests for periods.py - selectable months and locking."""

from datetime import date, datetime

from models import User
from periods import (
    EXTRA_MONTHS,
    compute_periods,
    default_period,
    first_unlocked_month,
    periods_for_user,
    report_months,
)


def keys(periods):
    return [p.key for p in periods]


class TestFirstUnlockedMonth:
    """Tests for first_unlocked_month."""

    def test_before_cutoff_keeps_previous_month_open(self):
        assert first_unlocked_month(date(2024, 4, 3), 5) == (2024, 3)

    def test_on_cutoff_day_keeps_previous_month_open(self):
        assert first_unlocked_month(date(2024, 4, 5), 5) == (2024, 3)

    def test_after_cutoff(self):
        assert first_unlocked_month(date(2024, 4, 6), 5) == (2024, 4)

    def test_no_cutoff(self):
        assert first_unlocked_month(date(2024, 4, 1), None) == (2024, 4)

    def test_january_wraps_to_december(self):
        assert first_unlocked_month(date(2024, 1, 2), 5) == (2023, 12)


class TestComputePeriods:
    """Tests for compute_periods."""

    def test_march_to_may_before_cutoff(self):
        """Started in March, cutoff on the 5th, now 3 April."""
        periods = compute_periods(date(2024, 3, 12), 5, date(2024, 4, 3))

        assert keys(periods) == [(2024, 3), (2024, 4), (2024, 5)]
        assert [p.locked for p in periods] == [False, False, False]
        assert [p.display for p in periods] == ["2024 March", "2024 April", "2024 May"]

    def test_march_locked_after_cutoff(self):
        periods = compute_periods(date(2024, 3, 12), 5, date(2024, 4, 6))

        assert [p.locked for p in periods] == [True, False, False]

    def test_extends_past_now(self):
        periods = compute_periods(date(2024, 1, 1), None, date(2024, 4, 15))
        assert periods[-1].key == (2024, 4 + EXTRA_MONTHS)

    def test_start_in_current_month(self):
        periods = compute_periods(date(2024, 4, 1), None, date(2024, 4, 15))
        assert keys(periods) == [(2024, 4), (2024, 5)]

    def test_start_after_horizon(self):
        assert compute_periods(date(2024, 9, 1), None, date(2024, 4, 15)) == []

    def test_ascending_and_contiguous(self):
        periods = compute_periods(date(2022, 11, 20), 5, date(2024, 2, 10))

        assert periods[0].key == (2022, 11)
        assert periods[-1].key == (2024, 3)
        assert len(periods) == 17
        assert keys(periods) == sorted(keys(periods))

    def test_number_of_days(self):
        periods = compute_periods(date(2024, 2, 1), None, date(2024, 2, 10))
        assert periods[0].number_of_days == 29
        assert periods[1].number_of_days == 31

    def test_lock_boundary(self):
        """Everything before the first unlocked month is locked."""
        periods = compute_periods(date(2023, 10, 1), 5, date(2024, 1, 20))
        locked = {p.key: p.locked for p in periods}

        assert locked[(2023, 12)] is True
        assert locked[(2024, 1)] is False
        assert locked[(2024, 2)] is False

    def test_disable_lock(self):
        periods = compute_periods(date(2023, 1, 1), 5, date(2024, 4, 20), disable_lock=True)
        assert not any(p.locked for p in periods)

    def test_accepts_datetime(self):
        periods = compute_periods(date(2024, 4, 1), 5, datetime(2024, 4, 3, 23, 59))
        assert keys(periods) == [(2024, 4), (2024, 5)]


class TestPeriodsForUser:
    def test_uses_start_date_and_cutoff(self, sample_user):
        periods = periods_for_user(sample_user, date(2024, 4, 6))
        assert periods[0].key == (2024, 3)
        assert periods[0].locked

    def test_admin_override(self, sample_user):
        periods = periods_for_user(sample_user, date(2024, 4, 6), admin_override=True)
        assert not periods[0].locked

    def test_user_without_cutoff(self):
        user = User(id="u2", username="bo", display_name="Bo", start_date=date(2024, 1, 1))
        periods = periods_for_user(user, date(2024, 3, 1))
        assert [p.locked for p in periods] == [True, True, False, False]


class TestDefaultPeriod:
    def test_current_month(self):
        periods = compute_periods(date(2024, 1, 1), None, date(2024, 3, 10))
        assert default_period(periods, date(2024, 3, 10)).key == (2024, 3)

    def test_falls_back_to_latest(self):
        periods = compute_periods(date(2024, 1, 1), None, date(2024, 3, 10))
        assert default_period(periods, date(2025, 1, 1)).key == (2024, 4)

    def test_empty(self):
        assert default_period([], date(2024, 3, 10)) is None


class TestReportMonths:
    def test_from_first_activity_to_now(self):
        months = report_months(date(2023, 11, 14), date(2024, 2, 1))
        assert months == [(2023, 11), (2023, 12), (2024, 1), (2024, 2)]

    def test_no_activity_yet(self):
        assert report_months(None, date(2024, 2, 1)) == [(2024, 2)]
