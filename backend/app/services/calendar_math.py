"""Pure calendar arithmetic used by the occurrence generator.

Weekday numbers follow the convention used throughout recurrence rules:
0 is Sunday and 6 is Saturday.
"""

from __future__ import annotations

from calendar import isleap, monthrange
from datetime import date, timedelta

QUARTER_START_MONTHS = (1, 4, 7, 10)


def is_leap_year(year: int) -> bool:
    return isleap(year)


def days_in_month(year: int, month: int) -> int:
    _, length = monthrange(year, month)
    return length


def clamp_day_of_month(year: int, month: int, day: int) -> int:
    return max(1, min(day, days_in_month(year, month)))


def shift_month(year: int, month: int, months: int) -> tuple[int, int]:
    total_months = month - 1 + months
    return year + total_months // 12, total_months % 12 + 1


def add_months(source: date, months: int) -> date:
    """Move ``source`` by ``months`` months, clamping the day (Jan 31 + 1 -> Feb 28/29)."""
    year, month = shift_month(source.year, source.month, months)
    return date(year, month, clamp_day_of_month(year, month, source.day))


def add_years(source: date, years: int) -> date:
    """Move ``source`` by ``years`` years; Feb 29 lands on Feb 28 in common years."""
    year = source.year + years
    return date(year, source.month, clamp_day_of_month(year, source.month, source.day))


def end_of_month(year: int, month: int) -> date:
    return date(year, month, days_in_month(year, month))


def quarter_start_month(value: date) -> int:
    return QUARTER_START_MONTHS[(value.month - 1) // 3]


def js_weekday(value: date) -> int:
    return (value.weekday() + 1) % 7


def week_start(value: date) -> date:
    """Sunday on or before ``value``."""
    return value - timedelta(days=js_weekday(value))


def nth_weekday_of_month(year: int, month: int, day_of_week: int, week_of_month: int) -> int:
    """Day number of e.g. the second Tuesday; ``week_of_month`` 5 means the last one."""
    matches = [
        day
        for day in range(1, days_in_month(year, month) + 1)
        if js_weekday(date(year, month, day)) == day_of_week
    ]
    if week_of_month >= 5 or week_of_month > len(matches):
        return matches[-1]
    return matches[week_of_month - 1]
