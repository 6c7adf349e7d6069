# accounting/services/profit_and_loss_service.py

"""
PROFIT & LOSS SERVICE (INCOME STATEMENT)

Read-only aggregation over immutable journal lines.

Contract-locked numbers:
{
  "income": float,
  "expenses": float,
  "net_profit": float,
  "income_minor": int,
  "expenses_minor": int,
  "net_profit_minor": int
}

Key rules:
- Uses JournalEntry.journal_date as the accounting effective date
- Scopes to ONE company; posted + reversed entries only
- Income shown credit-positive, expenses debit-positive
- Sections are grouped by account_subtype
  ("Other Income" / "Other Expenses" when blank)
"""

from __future__ import annotations

from datetime import date

from django.db import transaction
from django.utils import timezone

from accounting.models.account import Account
from accounting.models.company import Company
from accounting.services.ledger_queries import committed_lines, movements_by_account
from accounting.services.money import ZERO, q2, to_major_number, to_minor_int

DEFAULT_INCOME_GROUP = "Other Income"
DEFAULT_EXPENSE_GROUP = "Other Expenses"


def _grouped(rows: list[dict], default_group: str) -> list[dict]:
    groups: dict[str, dict] = {}
    for row in rows:
        name = row.pop("_group") or default_group
        group = groups.setdefault(name, {"name": name, "accounts": [], "_total": ZERO})
        group["accounts"].append(row)
        group["_total"] += row.pop("_amount")

    result = []
    for name in sorted(groups):
        group = groups[name]
        total = q2(group.pop("_total"))
        group["total"] = to_major_number(total)
        group["total_minor"] = to_minor_int(total)
        result.append(group)
    return result


def get_profit_and_loss(
    *,
    company: Company,
    start_date: date | None = None,
    end_date: date | None = None,
) -> dict:
    end_date = end_date or timezone.localdate()

    with transaction.atomic():
        accounts = list(
            Account.objects.filter(
                company=company,
                account_type__in=(Account.INCOME, Account.EXPENSE),
            ).order_by("code")
        )
        moved = movements_by_account(committed_lines(company, from_date=start_date, as_of=end_date))

    income_rows: list[dict] = []
    expense_rows: list[dict] = []
    income = ZERO
    expenses = ZERO

    for acc in accounts:
        m = moved.get(acc.id)
        if m is None:
            continue

        if acc.account_type == Account.INCOME:
            amount = q2(m.credit - m.debit)
        else:
            amount = q2(m.debit - m.credit)

        if amount == ZERO:
            continue

        row = {
            "account_id": acc.id,
            "account_code": acc.code,
            "account_name": acc.name,
            "account_type": acc.account_type,
            "normal_balance": acc.normal_balance,
            "amount": to_major_number(amount),
            "amount_minor": to_minor_int(amount),
            "_group": acc.account_subtype,
            "_amount": amount,
        }

        if acc.account_type == Account.INCOME:
            income_rows.append(row)
            income += amount
        else:
            expense_rows.append(row)
            expenses += amount

    income = q2(income)
    expenses = q2(expenses)
    net_profit = q2(income - expenses)

    return {
        "company": company.code,
        "start_date": start_date.isoformat() if start_date else None,
        "end_date": end_date.isoformat(),
        "income_groups": _grouped(income_rows, DEFAULT_INCOME_GROUP),
        "expense_groups": _grouped(expense_rows, DEFAULT_EXPENSE_GROUP),
        "income": to_major_number(income),
        "expenses": to_major_number(expenses),
        "net_profit": to_major_number(net_profit),
        "income_minor": to_minor_int(income),
        "expenses_minor": to_minor_int(expenses),
        "net_profit_minor": to_minor_int(net_profit),
    }
