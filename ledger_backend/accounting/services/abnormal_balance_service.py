# accounting/services/abnormal_balance_service.py

"""
ABNORMAL BALANCE REPORT

Finds accounts whose actual balance sign contradicts their normal balance:
    liability / equity / income with a net DEBIT
    asset / expense with a net CREDIT

Each row explains itself (category, possible_reason, recommended_action).
Accounts flagged is_contra_account (accumulated depreciation, ...) are
listed with severity "info" and excluded from the actionable count.

Summary status:
    0 actionable -> success
    1..3         -> warning
    more         -> error
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from accounting.models.account import Account
from accounting.models.company import Company
from accounting.services.ledger_queries import Movement, committed_lines, movements_by_account
from accounting.services.money import ZERO, q2, to_major_number, to_minor_int

SEVERITY_INFO = "info"
SEVERITY_WARNING = "warning"

STATUS_SUCCESS = "success"
STATUS_WARNING = "warning"
STATUS_ERROR = "error"

WARNING_THRESHOLD = 3

CONTRA_CATEGORY = "Contra Account"

CATEGORY_BY_TYPE = {
    Account.LIABILITY: "Liability with Debit Balance",
    Account.ASSET: "Asset with Credit Balance",
    Account.EQUITY: "Equity with Debit Balance",
    Account.INCOME: "Income with Debit Balance",
    Account.EXPENSE: "Expense with Credit Balance",
}


def _is_abnormal(account: Account, net: Decimal) -> bool:
    if net == ZERO:
        return False
    return net < ZERO if account.is_debit_normal else net > ZERO


def _name_has(account: Account, *words: str) -> bool:
    name = (account.name or "").lower()
    return all(w in name for w in words)


def explain(account: Account) -> tuple[str, str, str]:
    """(category, possible_reason, recommended_action) for an abnormal account."""
    if account.is_contra_account:
        return (
            CONTRA_CATEGORY,
            "Normal for contra accounts",
            "No action needed - this is correct",
        )

    category = CATEGORY_BY_TYPE.get(account.account_type, "Other")

    if account.account_type == Account.LIABILITY:
        if account.control_account_type == Account.CONTROL_PAYABLES or (_name_has(account, "payable") and not _name_has(account, "salary")):
            return category, "Advance paid or overpayment to vendor", "Reclassify to Advance to Vendors (Asset)"
        if account.control_account_type == Account.CONTROL_LOANS or _name_has(account, "loan") or _name_has(account, "borrowing"):
            if _name_has(account, "loan", "director"):
                return (
                    category,
                    "Loan given (not received) or overpayment",
                    "Verify if loan given TO director, reclassify to Loans & Advances",
                )
            return category, "Loan given (not received) or overpayment", "Reclassify to Loans & Advances (Asset)"
        if _name_has(account, "salary") or _name_has(account, "wage"):
            return category, "Salary advance paid to employee", "Reclassify to Salary Advance (Asset)"
        return category, "Possible advance payment or data entry error", "Review and reclassify or correct entry"

    if account.account_type == Account.ASSET:
        return (
            category,
            "Overdrawn or liability misclassified as asset",
            "Review - may need reclassification to liability",
        )
    if account.account_type == Account.INCOME:
        return category, "Sales return or reversal", "Review with accountant"
    if account.account_type == Account.EXPENSE:
        return category, "Expense refund or reversal", "Review with accountant"

    return category, "Review required", "Review with accountant"


def summary_status(actionable_count: int) -> str:
    if actionable_count == 0:
        return STATUS_SUCCESS
    if actionable_count <= WARNING_THRESHOLD:
        return STATUS_WARNING
    return STATUS_ERROR


def get_abnormal_balances(*, company: Company, as_of: date | None = None) -> dict:
    cutoff = as_of or timezone.localdate()

    with transaction.atomic():
        accounts = list(Account.objects.filter(company=company, is_active=True).order_by("code"))
        moved = movements_by_account(committed_lines(company, as_of=cutoff))

    rows = []
    for acc in accounts:
        net = q2(acc.opening_balance + moved.get(acc.id, Movement()).net)
        if not _is_abnormal(acc, net):
            continue

        category, reason, action = explain(acc)
        amount = abs(net)
        rows.append(
            {
                "account_id": acc.id,
                "account_code": acc.code,
                "account_name": acc.name,
                "account_type": acc.account_type,
                "account_subtype": acc.account_subtype,
                "normal_balance": acc.normal_balance,
                "actual_balance_side": Account.DEBIT if net > ZERO else Account.CREDIT,
                "amount": to_major_number(amount),
                "amount_minor": to_minor_int(amount),
                "category": category,
                "possible_reason": reason,
                "recommended_action": action,
                "is_contra_account": acc.is_contra_account,
                "severity": SEVERITY_INFO if acc.is_contra_account else SEVERITY_WARNING,
                "_amount": amount,
            }
        )

    # Actionable first, largest first.
    rows.sort(key=lambda r: (r["is_contra_account"], -r["_amount"], r["account_code"]))

    categories: dict[str, dict] = {}
    actionable = [r for r in rows if not r["is_contra_account"]]
    for r in rows:
        c = categories.setdefault(
            r["category"],
            {"category": r["category"], "count": 0, "_total": ZERO, "severity": r["severity"]},
        )
        c["count"] += 1
        c["_total"] += r["_amount"]
        if r["severity"] == SEVERITY_WARNING:
            c["severity"] = SEVERITY_WARNING

    category_rows = []
    for c in sorted(categories.values(), key=lambda c: (c["category"] == CONTRA_CATEGORY, -c["_total"])):
        total = q2(c.pop("_total"))
        category_rows.append({**c, "total_amount": to_major_number(total), "total_amount_minor": to_minor_int(total)})

    total_abnormal = q2(sum((r["_amount"] for r in actionable), ZERO))
    for r in rows:
        r.pop("_amount")

    return {
        "company": company.code,
        "as_of": cutoff.isoformat(),
        "accounts": rows,
        "summary": {
            "status": summary_status(len(actionable)),
            "total_abnormal_accounts": len(rows),
            "actionable_accounts": len(actionable),
            "contra_accounts": len(rows) - len(actionable),
            "liabilities_with_debit": sum(1 for r in actionable if r["account_type"] == Account.LIABILITY),
            "assets_with_credit": sum(1 for r in actionable if r["account_type"] == Account.ASSET),
            "total_abnormal_amount": to_major_number(total_abnormal),
            "total_abnormal_amount_minor": to_minor_int(total_abnormal),
            "categories": category_rows,
        },
    }
