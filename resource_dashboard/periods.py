"""
Month filter resolution.

Every public entry point takes a MonthFilter (or a bare "YYYY-MM" string,
treated as a single month) and resolves it here to an ordered list of
month tokens.
"""

import re

import pandas as pd

from .exceptions import MonthFilterError
from .models import MonthFilter, MonthRange, SingleMonth

_MONTH_RE = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")

_MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


def parse_month(token: str) -> pd.Period:
    """Validate a "YYYY-MM" token and return it as a monthly Period."""
    if not isinstance(token, str) or not _MONTH_RE.match(token):
        raise MonthFilterError(f"Malformed month token: {token!r}", token=token)
    return pd.Period(token, freq="M")


def as_month_filter(value: MonthFilter | str) -> MonthFilter:
    if isinstance(value, (SingleMonth, MonthRange)):
        return value
    if isinstance(value, str):
        return SingleMonth(value)
    raise MonthFilterError(f"Unsupported month filter: {value!r}")


def resolve_months(month_filter: MonthFilter | str) -> list[str]:
    """Expand a month filter into chronologically ordered month tokens.

    A single month yields a one-element list. A range yields every month
    from start to end inclusive, crossing year boundaries as needed.
    A range whose start is after its end is a caller error.
    """
    month_filter = as_month_filter(month_filter)

    if isinstance(month_filter, SingleMonth):
        parse_month(month_filter.month)
        return [month_filter.month]

    start = parse_month(month_filter.start)
    end = parse_month(month_filter.end)
    if start > end:
        raise MonthFilterError(
            f"Month range start {month_filter.start} is after end {month_filter.end}"
        )

    return [p.strftime("%Y-%m") for p in pd.period_range(start, end, freq="M")]


def shift_month(month: str, offset: int) -> str:
    return (parse_month(month) + offset).strftime("%Y-%m")


def previous_month(month: str) -> str:
    return shift_month(month, -1)


def trailing_months(month: str, count: int) -> list[str]:
    """The `count` months before `month`, oldest first."""
    if count <= 0:
        return []
    return resolve_months(MonthRange(shift_month(month, -count), previous_month(month)))


def month_label(month: str) -> str:
    """'2025-01' -> 'January 2025'."""
    period = parse_month(month)
    return f"{_MONTH_NAMES[period.month - 1]} {period.year}"


def single_month(month_filter: MonthFilter | str) -> str:
    """Return the month token of a single-month filter; ranges are rejected."""
    month_filter = as_month_filter(month_filter)
    if not isinstance(month_filter, SingleMonth):
        raise MonthFilterError(
            f"Expected a single month, got range {month_filter.start}..{month_filter.end}"
        )
    parse_month(month_filter.month)
    return month_filter.month
