"""Reporting periods for income summaries.

Maps a date onto the key of the period bucket it falls in (day, ISO week,
month, quarter, year, or everything), and gives the start of the trailing
window each period covers.
"""

import calendar
from collections.abc import Iterable
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Union

from glidemoney_core.models import ZERO, ensure_utc, to_decimal

DateLike = Union[date, datetime]


class Period(str, Enum):
    """Reporting period options."""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"
    ALL = "all"


def bucket_key(value: DateLike, period: Period) -> str:
    """Key of the bucket ``value`` falls in.

    Examples for 2025-01-15: ``2025-01-15``, ``2025-W03``, ``2025-01``,
    ``2025-Q1``, ``2025``, ``all``. Datetimes are bucketed by their UTC date.
    """
    if isinstance(value, datetime):
        value = ensure_utc(value).astimezone(timezone.utc).date()

    if period == Period.DAY:
        return value.isoformat()
    if period == Period.WEEK:
        iso_year, iso_week, _ = value.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    if period == Period.MONTH:
        return f"{value.year}-{value.month:02d}"
    if period == Period.QUARTER:
        return f"{value.year}-Q{(value.month - 1) // 3 + 1}"
    if period == Period.YEAR:
        return str(value.year)
    return "all"


def _months_back(value: datetime, months: int) -> datetime:
    month_index = value.year * 12 + (value.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def period_start(now: datetime, period: Period) -> datetime:
    """Start of the trailing window ending at ``now``.

    ALL covers the last five years.
    """
    now = ensure_utc(now)
    if period == Period.DAY:
        return now - timedelta(days=1)
    if period == Period.WEEK:
        return now - timedelta(days=7)
    if period == Period.MONTH:
        return _months_back(now, 1)
    if period == Period.QUARTER:
        return _months_back(now, 3)
    if period == Period.YEAR:
        return _months_back(now, 12)
    return _months_back(now, 60)


def summarize_by_period(
    dated_amounts: Iterable[tuple[DateLike, object]],
    period: Period,
) -> dict[str, Decimal]:
    """Total amounts per bucket, keys in chronological order."""
    totals: dict[str, Decimal] = {}
    for when, amount in sorted(dated_amounts, key=lambda pair: _sort_key(pair[0])):
        key = bucket_key(when, period)
        totals[key] = totals.get(key, ZERO) + to_decimal(amount)
    return totals


def _sort_key(value: DateLike) -> datetime:
    if isinstance(value, datetime):
        return ensure_utc(value)
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
