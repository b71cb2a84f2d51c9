"""Calendar period keys shared by every granularity of the pipeline.

All grouping uses canonical string keys rather than date objects:

- months are ``YYYY-MM``
- days are ``YYYY-MM-DD``
- weeks are the ``YYYY-MM-DD`` of their Monday

Keys of one granularity sort chronologically as plain strings, which the
transition engine relies on.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from enum import Enum
from typing import Iterator

#: ``as_of_month`` reported when there is no usable order at all.
NO_DATA_MONTH = "—"


class PeriodGranularity(str, Enum):
    """Time granularities of the active-customer sets."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"


def month_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def day_key(value: date) -> str:
    return value.isoformat()


def parse_month_key(key: str) -> date:
    """Return the first day of the ``YYYY-MM`` month."""
    year, month = key[:7].split("-")
    return date(int(year), int(month), 1)


def add_months(value: date, months: int) -> date:
    """Shift ``value`` by whole months, clamping the day to the target month.

    >>> add_months(date(2024, 1, 31), 1)
    datetime.date(2024, 2, 29)
    """
    index = value.year * 12 + (value.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def shift_month_key(key: str, months: int) -> str:
    return month_key(add_months(parse_month_key(key), months))


def days_in_month(key: str) -> int:
    first = parse_month_key(key)
    return calendar.monthrange(first.year, first.month)[1]


def last_day_of_month(key: str) -> date:
    first = parse_month_key(key)
    return first.replace(day=days_in_month(key))


def week_start(value: date) -> date:
    """Monday of the ISO week containing ``value``."""
    return value - timedelta(days=value.weekday())


def week_key(day: str) -> str:
    return week_start(date.fromisoformat(day)).isoformat()


def month_range(start: str, end: str) -> list[str]:
    """Inclusive list of month keys from ``start`` to ``end``."""
    months: list[str] = []
    current = start
    while current <= end:
        months.append(current)
        current = shift_month_key(current, 1)
    return months


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield each day from ``start`` to ``end`` inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def day_range(start: str, end: str) -> list[str]:
    return [
        day_key(d) for d in iter_days(date.fromisoformat(start), date.fromisoformat(end))
    ]


def week_range(start: str, end: str) -> list[str]:
    """Inclusive list of Monday week keys covering ``start``..``end``."""
    weeks: list[str] = []
    current = date.fromisoformat(week_key(start))
    last = date.fromisoformat(week_key(end))
    while current <= last:
        weeks.append(current.isoformat())
        current += timedelta(days=7)
    return weeks


def period_range(granularity: PeriodGranularity, start: str, end: str) -> list[str]:
    """Contiguous period keys of ``granularity`` between two keys."""
    if granularity is PeriodGranularity.MONTH:
        return month_range(start, end)
    if granularity is PeriodGranularity.DAY:
        return day_range(start, end)
    if granularity is PeriodGranularity.WEEK:
        return week_range(start, end)
    raise ValueError(f"Unsupported granularity: {granularity}")  # pragma: no cover


def resolve_as_of_month(latest_month: str | None, today: date | None = None) -> str:
    """Clamp the latest observed month to the last fully elapsed month.

    Parameters
    ----------
    latest_month:
        Most recent ``YYYY-MM`` month present in the data, or ``None``.
    today:
        Reference date, defaults to :func:`date.today`. The month before
        ``today``'s month is the latest month considered fully observed.

    Examples
    --------
    >>> resolve_as_of_month("2024-03", today=date(2024, 9, 2))
    '2024-03'
    >>> resolve_as_of_month("2024-09", today=date(2024, 9, 2))
    '2024-08'
    """
    today = today or date.today()
    baseline = month_key(add_months(today.replace(day=1), -1))
    if not latest_month:
        return baseline
    return min(latest_month, baseline)


def months_between(start: str, end: str) -> int:
    """Whole months from ``start`` to ``end`` (negative when ``end`` is earlier)."""
    s = parse_month_key(start)
    e = parse_month_key(end)
    return (e.year - s.year) * 12 + (e.month - s.month)
