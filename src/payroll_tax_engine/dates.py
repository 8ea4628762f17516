"""Quarter, month and statutory due-date helpers.

Every calendar field is derived from UTC. Aware datetimes are converted to
UTC first, naive datetimes are taken to already be UTC, and plain dates are
used as-is.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

from payroll_tax_engine.exceptions import InvalidInputError

DateLike = date | datetime | str


@dataclass(frozen=True)
class YearQuarter:
    year: int
    quarter: int


def to_utc_date(value: DateLike) -> date:
    """Normalize a date, datetime or ISO string to its UTC calendar date."""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as exc:
            raise InvalidInputError(f"Invalid date string: {value!r}") from exc
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    raise InvalidInputError(f"Unsupported date value: {value!r}")


def _check_quarter(quarter: int) -> None:
    if quarter not in (1, 2, 3, 4):
        raise InvalidInputError(f"Quarter must be 1-4, got {quarter}")


def quarter_of_month(month: int) -> int:
    return (month - 1) // 3 + 1


def first_month_of_quarter(quarter: int) -> int:
    _check_quarter(quarter)
    return (quarter - 1) * 3 + 1


def year_quarter(value: DateLike) -> YearQuarter:
    d = to_utc_date(value)
    return YearQuarter(d.year, quarter_of_month(d.month))


def month_of_quarter(value: DateLike) -> int:
    """Return 1, 2 or 3 for the UTC month's position within its quarter."""
    return (to_utc_date(value).month - 1) % 3 + 1


def last_day_of_month(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def month_range(year: int, month: int) -> tuple[date, date]:
    return date(year, month, 1), last_day_of_month(year, month)


def quarter_range(year: int, quarter: int) -> tuple[date, date]:
    first = first_month_of_quarter(quarter)
    return date(year, first, 1), last_day_of_month(year, first + 2)


def year_range(year: int) -> tuple[date, date]:
    return date(year, 1, 1), date(year, 12, 31)


def _next_month(year: int, month: int) -> tuple[int, int]:
    if month == 12:
        return year + 1, 1
    return year, month + 1


def monthly_due_date(year: int, month: int) -> date:
    """Monthly deposits are due the 15th of the following month."""
    y, m = _next_month(year, month)
    return date(y, m, 15)


def quarterly_due_date(year: int, quarter: int) -> date:
    """Quarterly returns and deposits are due the last day of the month after quarter end."""
    y, m = _next_month(year, first_month_of_quarter(quarter) + 2)
    return last_day_of_month(y, m)


def de9_due_dates(year: int, quarter: int) -> tuple[date, date]:
    """Return (due, delinquent) for a DE 9: due the 1st, delinquent after month end."""
    y, m = _next_month(year, first_month_of_quarter(quarter) + 2)
    return date(y, m, 1), last_day_of_month(y, m)


def annual_940_due_date(year: int) -> date:
    """Jan 31 of the following year, moved to Monday when it falls on a weekend."""
    due = date(year + 1, 1, 31)
    if due.weekday() == 5:
        due += timedelta(days=2)
    elif due.weekday() == 6:
        due += timedelta(days=1)
    return due


def lookback_quarters(year: int) -> list[YearQuarter]:
    """Quarters forming the 941 lookback period for ``year``: Jul 1 Y-2 to Jun 30 Y-1."""
    return [
        YearQuarter(year - 2, 3),
        YearQuarter(year - 2, 4),
        YearQuarter(year - 1, 1),
        YearQuarter(year - 1, 2),
    ]
