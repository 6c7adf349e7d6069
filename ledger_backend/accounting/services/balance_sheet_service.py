# accounting/services/balance_sheet_service.py

"""
BALANCE SHEET SERVICE

Pure accounting read service.

Responsibilities:
- Compute balances per account as at a given date
  (opening_balance + committed movements up to and including as_of)
- Classify balances into Assets, Liabilities, Equity, grouped by subtype
- CHECK Assets = Liabilities + Equity

Important:
- Income/Expense activity (no period close exists) is represented as
  "Current Period Earnings" in Equity.
- A mismatch is REPORTED (balanced=false + data_quality_alerts).
  It is never raised and never patched.

Contract:
- Emits numeric JSON values (not strings)
- Provide both major-unit numbers (floats, 2dp) and minor-unit ints (exact)
- Provide liabilities_plus_equity in totals
"""

from __future__ import annotations

import logging
from datetime import date

from django.db import transaction
from django.utils import timezone

from accounting.models.account import Account
from accounting.models.company import Company
from accounting.services.ledger_queries import Movement, committed_lines, movements_by_account
from accounting.services.money import ZERO, balance_tolerance, q2, to_major_number, to_minor_int

logger = logging.getLogger(__name__)

DEFAULT_GROUP = "Other"
CURRENT_EARNINGS_CODE = "E-CURR"
CURRENT_EARNINGS_NAME = "Current Period Earnings"

_SECTION_BY_TYPE = {
    Account.ASSET: "assets",
    Account.LIABILITY: "liabilities",
    Account.EQUITY: "equity",
}


def _group_section(rows: list[dict]) -> list[dict]:
    groups: dict[str, list[dict]] = {}
    for row in rows:
        groups.setdefault(row["account_subtype"] or DEFAULT_GROUP, []).append(row)

    out = []
    for name in sorted(groups):
        total = q2(sum((r["_balance"] for r in groups[name]), ZERO))
        out.append(
            {
                "name": name,
                "accounts": [{k: v for k, v in r.items() if k != "_balance"} for r in groups[name]],
                "total": to_major_number(total),
                "total_minor": to_minor_int(total),
            }
        )
    return out


def generate_balance_sheet(*, company: Company, as_of_date: date | None = None) -> dict:
    """
    Args:
        company: the company to report on
        as_of_date: inclusive snapshot date (defaults to today)

    Returns:
        {
            "as_of": "YYYY-MM-DD",
            "assets": [{"name", "accounts": [...], "total", "total_minor"}...],
            "liabilities": [...],
            "equity": [...],
            "totals": {
                "assets", "liabilities", "equity", "liabilities_plus_equity",
                "difference" (+ *_minor),
                "balanced": bool,
            },
            "data_quality_alerts": [str, ...],
        }
    """
    cutoff = as_of_date or timezone.localdate()

    with transaction.atomic():
        accounts = list(Account.objects.filter(company=company).order_by("account_type", "code"))
        moved = movements_by_account(committed_lines(company, as_of=cutoff))

    sections: dict[str, list[dict]] = {"assets": [], "liabilities": [], "equity": []}
    totals = {"assets": ZERO, "liabilities": ZERO, "equity": ZERO}
    income_total = ZERO
    expense_total = ZERO

    for acc in accounts:
        closing = q2(acc.opening_balance + moved.get(acc.id, Movement()).net)
        if closing == ZERO:
            continue

        if acc.account_type == Account.INCOME:
            income_total += -closing
            continue
        if acc.account_type == Account.EXPENSE:
            expense_total += closing
            continue

        section = _SECTION_BY_TYPE.get(acc.account_type)
        if section is None:
            continue

        # Assets debit-positive; liabilities / equity credit-positive.
        bal = closing if acc.account_type == Account.ASSET else -closing

        sections[section].append(
            {
                "account_id": acc.id,
                "account_code": acc.code,
                "account_name": acc.name,
                "account_type": acc.account_type,
                "account_subtype": acc.account_subtype,
                "normal_balance": acc.normal_balance,
                "balance": to_major_number(bal),
                "balance_minor": to_minor_int(bal),
                "_balance": bal,
            }
        )
        totals[section] += bal

    current_earnings = q2(income_total - expense_total)
    if current_earnings != ZERO:
        sections["equity"].append(
            {
                "account_id": None,
                "account_code": CURRENT_EARNINGS_CODE,
                "account_name": CURRENT_EARNINGS_NAME,
                "account_type": Account.EQUITY,
                "account_subtype": CURRENT_EARNINGS_NAME,
                "normal_balance": Account.CREDIT,
                "balance": to_major_number(current_earnings),
                "balance_minor": to_minor_int(current_earnings),
                "_balance": current_earnings,
            }
        )
        totals["equity"] += current_earnings

    assets_q = q2(totals["assets"])
    liabilities_q = q2(totals["liabilities"])
    equity_q = q2(totals["equity"])
    liabilities_plus_equity_q = q2(liabilities_q + equity_q)
    difference = q2(assets_q - liabilities_plus_equity_q)

    balanced = abs(difference) < balance_tolerance()
    alerts: list[str] = []
    if not balanced:
        msg = (
            "Balance Sheet is unbalanced "
            f"(Assets={assets_q} Liabilities+Equity={liabilities_plus_equity_q} Difference={difference})"
        )
        logger.warning("%s for company %s as of %s", msg, company.code, cutoff)
        alerts.append(msg)

    return {
        "company": company.code,
        "as_of": cutoff.isoformat(),
        "assets": _group_section(sections["assets"]),
        "liabilities": _group_section(sections["liabilities"]),
        "equity": _group_section(sections["equity"]),
        "totals": {
            "assets": to_major_number(assets_q),
            "liabilities": to_major_number(liabilities_q),
            "equity": to_major_number(equity_q),
            "liabilities_plus_equity": to_major_number(liabilities_plus_equity_q),
            "difference": to_major_number(difference),
            "assets_minor": to_minor_int(assets_q),
            "liabilities_minor": to_minor_int(liabilities_q),
            "equity_minor": to_minor_int(equity_q),
            "liabilities_plus_equity_minor": to_minor_int(liabilities_plus_equity_q),
            "difference_minor": to_minor_int(difference),
            "balanced": balanced,
        },
        "data_quality_alerts": alerts,
    }
