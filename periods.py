"""Selectable ledger months and their edit locks."""

from __future__ import annotations

from calendar import monthrange
from datetime import date, datetime

from models import Period, User
from utils import add_months, format_month

# Entries may be logged this many months ahead of the current one
EXTRA_MONTHS = 1


def first_unlocked_month(now: date | datetime, cutoff_day: int | None) -> tuple[int, int]:
    """Earliest (year, month) that is still open for editing.

    Until the cutoff day has passed the previous month stays open as well.
    """
    if cutoff_day and now.day <= cutoff_day:
        return add_months(now.year, now.month, -1)
    return now.year, now.month


def compute_periods(
    start_date: date,
    cutoff_day: int | None,
    now: date | datetime,
    disable_lock: bool = False,
) -> list[Period]:
    """List periods from the start month through now's month plus EXTRA_MONTHS.

    Periods are ordered oldest first. A period is locked when it lies before
    the first unlocked month, unless ``disable_lock`` is set.
    """
    unlocked_from = first_unlocked_month(now, cutoff_day)
    last = add_months(now.year, now.month, EXTRA_MONTHS)

    periods = []
    year, month = start_date.year, start_date.month
    while (year, month) <= last:
        periods.append(Period(
            year=year,
            month=month,
            number_of_days=monthrange(year, month)[1],
            locked=not disable_lock and (year, month) < unlocked_from,
            display=format_month(year, month),
        ))
        year, month = add_months(year, month, 1)

    return periods


def periods_for_user(user: User, now: date | datetime, admin_override: bool = False) -> list[Period]:
    return compute_periods(user.start_date, user.last_report_day, now, disable_lock=admin_override)


def default_period(periods: list[Period], now: date | datetime) -> Period | None:
    """The period containing now, falling back to the latest one."""
    for period in periods:
        if period.key == (now.year, now.month):
            return period
    return periods[-1] if periods else None


def report_months(first_activity: date | None, now: date | datetime) -> list[tuple[int, int]]:
    """Months from the first recorded activity through the current month."""
    if first_activity is None:
        return [(now.year, now.month)]

    months = []
    year, month = first_activity.year, first_activity.month
    while (year, month) <= (now.year, now.month):
        months.append((year, month))
        year, month = add_months(year, month, 1)
    return months
