# accounting/services/account_ledger_service.py

"""
ACCOUNT LEDGER (GENERAL LEDGER FOR ONE ACCOUNT)

- Opening = account.opening_balance + every committed line strictly before from_date
- Lines in [from_date, to_date], ordered by journal_date then journal_number
- running_balance is in the account's NORMAL direction
  (a liability with more credits than debits shows a positive balance)
- closing == opening + sum(signed movements) always
"""

from __future__ import annotations

from datetime import date

from django.db import transaction
from django.utils import timezone

from accounting.models.account import Account
from accounting.services.ledger_queries import committed_lines, sum_debit_credit
from accounting.services.money import ZERO, q2, to_major_number, to_minor_int


def get_account_ledger(
    *,
    account: Account,
    from_date: date | None = None,
    to_date: date | None = None,
) -> dict:
    to_date = to_date or timezone.localdate()
    company = account.company

    with transaction.atomic():
        prior = ZERO
        if from_date is not None:
            prior = sum_debit_credit(committed_lines(company, before=from_date).filter(account=account)).net

        lines = list(
            committed_lines(company, from_date=from_date, as_of=to_date)
            .filter(account=account)
            .select_related("journal_entry")
            .order_by("journal_entry__journal_date", "journal_entry__journal_number", "line_number", "id")
        )

    opening = q2(account.in_normal_direction(q2(account.opening_balance + prior)))
    running = opening
    total_debit = ZERO
    total_credit = ZERO

    rows = []
    for ln in lines:
        entry = ln.journal_entry
        running = q2(running + account.in_normal_direction(ln.debit_amount - ln.credit_amount))
        total_debit += ln.debit_amount
        total_credit += ln.credit_amount

        rows.append(
            {
                "entry_id": entry.id,
                "journal_number": entry.journal_number,
                "journal_date": entry.journal_date.isoformat(),
                "entry_type": entry.entry_type,
                "status": entry.status,
                "source_type": entry.source_type,
                "source_id": entry.source_id,
                "description": ln.description or entry.description,
                "debit": to_major_number(ln.debit_amount),
                "credit": to_major_number(ln.credit_amount),
                "debit_minor": to_minor_int(ln.debit_amount),
                "credit_minor": to_minor_int(ln.credit_amount),
                "running_balance": to_major_number(running),
                "running_balance_minor": to_minor_int(running),
                "subledger_type": ln.subledger_type,
                "subledger_id": ln.subledger_id,
            }
        )

    total_debit = q2(total_debit)
    total_credit = q2(total_credit)

    return {
        "account": {
            "account_id": account.id,
            "account_code": account.code,
            "account_name": account.name,
            "account_type": account.account_type,
            "normal_balance": account.normal_balance,
        },
        "from_date": from_date.isoformat() if from_date else None,
        "to_date": to_date.isoformat(),
        "opening_balance": to_major_number(opening),
        "opening_balance_minor": to_minor_int(opening),
        "lines": rows,
        "totals": {
            "debit": to_major_number(total_debit),
            "credit": to_major_number(total_credit),
            "debit_minor": to_minor_int(total_debit),
            "credit_minor": to_minor_int(total_credit),
        },
        "closing_balance": to_major_number(running),
        "closing_balance_minor": to_minor_int(running),
    }
