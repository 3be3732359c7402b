"""Calendar boundaries used by the aggregators and reports."""
from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Return the first and last instant of a local calendar day."""
    if isinstance(day, datetime):
        day = day.date()
    return datetime.combine(day, time.min), datetime.combine(day, time.max)


def month_bounds(month: int, year: int) -> tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def period_bounds(period: str, reference: date) -> tuple[datetime, datetime]:
    """Inclusive datetime range of the day/week/month/year containing ``reference``.

    Weeks start on Monday.
    """
    if isinstance(reference, datetime):
        reference = reference.date()

    if period == "day":
        first, last = reference, reference
    elif period == "week":
        first = reference - timedelta(days=reference.weekday())
        last = first + timedelta(days=6)
    elif period == "month":
        first, last = month_bounds(reference.month, reference.year)
    elif period == "year":
        first, last = date(reference.year, 1, 1), date(reference.year, 12, 31)
    else:
        raise ValueError(f"Unknown period {period!r}")

    return day_bounds(first)[0], day_bounds(last)[1]
