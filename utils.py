"""Utility functions for month and weekday calculations."""

from __future__ import annotations

from datetime import date, time
from calendar import monthrange, month_name
from decimal import Decimal, InvalidOperation


def add_months(year: int, month: int, months: int) -> tuple[int, int]:
    """Shift a (year, month) pair by a number of months (may be negative)."""
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last day of a calendar month."""
    return date(year, month, 1), date(year, month, monthrange(year, month)[1])


def format_month(year: int, month: int) -> str:
    """Display name for a month, e.g. '2024 March'."""
    return f"{year} {month_name[month]}"


def weekday_sort_key(d: date) -> int:
    """Position of a date within a week that starts on Saturday."""
    # Saturday = 5 in weekday()
    return (d.weekday() + 2) % 7


def parse_hours(val) -> Decimal | None:
    """Parse a duration in decimal hours; empty or malformed values give None."""
    if val is None or val == "":
        return None
    try:
        hours = val if isinstance(val, Decimal) else Decimal(str(val).strip())
    except InvalidOperation:
        return None
    return hours if hours.is_finite() else None


def parse_time(val: str | None) -> time | None:
    """Parse HH:MM (seconds ignored) to a time object."""
    if not val:
        return None
    parts = val.strip().split(":")
    return time(int(parts[0]), int(parts[1]))


def format_time(t: time | None) -> str:
    if not t:
        return ""
    return t.strftime("%H:%M")


def format_hours(hours: Decimal | None) -> str:
    """Render hours without trailing zeros ('7.5', '8')."""
    if hours is None:
        return ""
    return f"{float(hours):g}"
