# accounting/services/money.py

"""
MONEY HELPERS

- Decimal only; 2dp; ROUND_HALF_UP (same rounding everywhere)
- Reports emit both major-unit floats and exact minor-unit ints
- Tolerance comes from settings so it can be tuned without code changes
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def q2(amount) -> Decimal:
    return (amount or ZERO).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def to_major_number(amount: Decimal) -> float:
    return float(q2(amount))


def to_minor_int(amount: Decimal) -> int:
    return int((q2(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def balance_tolerance() -> Decimal:
    raw = getattr(settings, "ACCOUNTING_BALANCE_TOLERANCE", "0.01")
    try:
        tol = Decimal(str(raw))
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise ImproperlyConfigured(f"ACCOUNTING_BALANCE_TOLERANCE is not a number: {raw!r}") from exc
    # The store requires totals equal at 2dp, so a tolerance can only tighten.
    if not tol.is_finite() or not (ZERO < tol <= TWOPLACES):
        raise ImproperlyConfigured(f"ACCOUNTING_BALANCE_TOLERANCE must be in (0, 0.01], got {raw!r}")
    return tol


def is_balanced(total_debit: Decimal, total_credit: Decimal) -> bool:
    return abs(q2(total_debit) - q2(total_credit)) < balance_tolerance()
