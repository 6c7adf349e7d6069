# accounting/services/fiscal.py

"""
FISCAL PERIOD ARITHMETIC (single source of truth)

Fiscal year starts in ACCOUNTING_FISCAL_YEAR_START_MONTH (default April):
- 2024-05-10 -> financial_year "2024-25", period_month 2
- 2025-03-31 -> financial_year "2024-25", period_month 12

Every component (builder, store, reports, seeders) calls these; nothing
else is allowed to compute a fiscal year by hand.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date

from django.conf import settings


@dataclass(frozen=True)
class FiscalPeriod:
    financial_year: str
    period_month: int

    @property
    def start_year(self) -> int:
        return int(self.financial_year.split("-", 1)[0])


def _start_month() -> int:
    month = int(getattr(settings, "ACCOUNTING_FISCAL_YEAR_START_MONTH", 4))
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid fiscal year start month: {month}")
    return month


def format_financial_year(start_year: int) -> str:
    return f"{start_year}-{(start_year + 1) % 100:02d}"


def parse_financial_year(financial_year: str) -> int:
    try:
        head, tail = str(financial_year).strip().split("-", 1)
        start_year = int(head)
        expected = (start_year + 1) % 100
        if int(tail) != expected:
            raise ValueError
    except ValueError as exc:
        raise ValueError(f'Invalid financial year {financial_year!r}; expected "YYYY-YY"') from exc
    return start_year


def fiscal_period(d: date) -> FiscalPeriod:
    start = _start_month()
    year = d.year if d.month >= start else d.year - 1
    period_month = (d.month - start) % 12 + 1
    return FiscalPeriod(financial_year=format_financial_year(year), period_month=period_month)


def fiscal_year_start(financial_year: str) -> date:
    return date(parse_financial_year(financial_year), _start_month(), 1)


def period_end_date(financial_year: str, period_month: int | None = None) -> date:
    """
    Last calendar day of the given fiscal month; without a month, the last
    day of the fiscal year.
    """
    start_year = parse_financial_year(financial_year)
    pm = 12 if period_month is None else int(period_month)
    if not 1 <= pm <= 12:
        raise ValueError(f"period_month must be 1..12, got {period_month}")

    offset = _start_month() - 1 + (pm - 1)
    year = start_year + offset // 12
    month = offset % 12 + 1
    return date(year, month, calendar.monthrange(year, month)[1])
