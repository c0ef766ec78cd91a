"""Calendar-month helpers shared by the cohort and churn analyses."""

from __future__ import annotations

from datetime import date


def month_start(dt: date) -> date:
    """Truncate a date to the first day of its month."""
    return date(dt.year, dt.month, 1)


def months_between(start: date, end: date) -> int:
    """Whole calendar months from ``start``'s month to ``end``'s month.

    Days within the month are ignored, so ``months_between(2024-01-31,
    2024-02-01)`` is 1.

    >>> months_between(date(2023, 11, 5), date(2024, 2, 1))
    3
    """
    return (end.year - start.year) * 12 + (end.month - start.month)


def add_months(dt: date, months: int) -> date:
    """Return the first day of the month ``months`` after ``dt``'s month."""
    index = dt.year * 12 + (dt.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def quarter_of(dt: date) -> int:
    return (dt.month - 1) // 3 + 1


def month_range(start: date, end: date) -> list[date]:
    """Inclusive list of month starts between the months of start and end."""
    cur = month_start(start)
    last = month_start(end)
    out: list[date] = []
    while cur <= last:
        out.append(cur)
        cur = add_months(cur, 1)
    return out
