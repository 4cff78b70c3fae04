# gstbooks/domain/services/return_periods.py
"""
GST return period (MMYY) and financial year (YYYY-YY) helpers.

Indian financial years run April to March, so period 0325 (March 2025)
belongs to FY 2024-25 and period 0425 to FY 2025-26.
"""

from __future__ import annotations

import re
from datetime import date

from gstbooks.domain.errors import ValidationFailure

RETURN_PERIOD_REGEX = re.compile(r"^(0[1-9]|1[0-2])([0-9]{2})$")
FINANCIAL_YEAR_REGEX = re.compile(r"^([0-9]{4})-([0-9]{2})$")

FY_START_MONTH = 4


def parse_return_period(period: str) -> tuple[int, int]:
    """Return (month, four-digit year) for an ``MMYY`` period."""
    m = RETURN_PERIOD_REGEX.match((period or "").strip())
    if not m:
        raise ValidationFailure.for_field(
            "return_period", f"Return period must be MMYY, got {period!r}"
        )
    return int(m.group(1)), 2000 + int(m.group(2))


def parse_financial_year(financial_year: str) -> int:
    """Return the starting year of a ``YYYY-YY`` financial year."""
    m = FINANCIAL_YEAR_REGEX.match((financial_year or "").strip())
    if not m:
        raise ValidationFailure.for_field(
            "financial_year", f"Financial year must be YYYY-YY, got {financial_year!r}"
        )
    start = int(m.group(1))
    if (start + 1) % 100 != int(m.group(2)):
        raise ValidationFailure.for_field(
            "financial_year", f"Financial year {financial_year} must span consecutive years"
        )
    return start


def financial_year_for(d: date) -> str:
    start = d.year if d.month >= FY_START_MONTH else d.year - 1
    return f"{start}-{str(start + 1)[-2:]}"


def period_in_financial_year(period: str, financial_year: str) -> bool:
    month, year = parse_return_period(period)
    parse_financial_year(financial_year)
    return financial_year_for(date(year, month, 1)) == financial_year.strip()


def validate_period_and_year(period: str, financial_year: str) -> None:
    """Raise ValidationFailure unless period is MMYY and the year is YYYY-YY.

    The pair is not cross-checked; the backend decides which combinations
    it accepts.
    """
    parse_return_period(period)
    parse_financial_year(financial_year)


def format_return_period(d: date) -> str:
    return f"{d.month:02d}{str(d.year)[-2:]}"


def recent_return_periods(today: date, count: int = 12) -> list[str]:
    """The last ``count`` periods, current month first."""
    periods = []
    year, month = today.year, today.month
    for _ in range(count):
        periods.append(f"{month:02d}{str(year)[-2:]}")
        month -= 1
        if month == 0:
            month, year = 12, year - 1
    return periods


def selectable_financial_years(today: date) -> list[str]:
    """Current financial year and the one before it."""
    current = financial_year_for(today)
    start = int(current[:4])
    return [current, f"{start - 1}-{str(start)[-2:]}"]
