"""
Period (calendar month) helpers.

A period is a ``YYYY-MM`` string. A period selector is either one period
or a list of them.
"""

import re

PERIOD_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"
_PERIOD_RE = re.compile(PERIOD_PATTERN)

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


def is_valid_period(value: str) -> bool:
    return bool(_PERIOD_RE.match(value or ""))


def resolve_periods(selector: str | list[str] | tuple[str, ...]) -> list[str]:
    """Normalize a period selector to a list."""
    if isinstance(selector, str):
        return [selector]
    return list(selector)


def period_of(date: str) -> str:
    """2026-01-15 -> 2026-01"""
    return date[:7]


def previous_period(period: str) -> str:
    """2026-01 -> 2025-12"""
    year, month = (int(part) for part in period.split("-"))
    month -= 1
    if month == 0:
        month = 12
        year -= 1
    return f"{year}-{month:02d}"


def period_label(period: str) -> str:
    """2026-01 -> January 2026"""
    year, month = period.split("-")
    return f"{MONTH_NAMES[int(month) - 1]} {year}"
