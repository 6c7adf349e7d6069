# accounting/services/trial_balance_service.py

from __future__ import annotations

import logging
from datetime import date

from django.db import transaction
from django.utils import timezone

from accounting.models.account import Account
from accounting.models.company import Company
from accounting.services.fiscal import period_end_date
from accounting.services.ledger_queries import Movement, committed_lines, movements_by_account
from accounting.services.money import ZERO, balance_tolerance, q2, to_major_number, to_minor_int

logger = logging.getLogger(__name__)


def _money_pair(name: str, amount) -> dict:
    return {name: to_major_number(amount), f"{name}_minor": to_minor_int(amount)}


class TrialBalanceService:
    """
    Trial Balance computation service.

    Guarantees:
    - Scopes to ONE company
    - Ledger truth is posted + reversed entries (drafts excluded)
    - Uses JournalEntry.journal_date as accounting timeline
    - Avoids N+1 queries by aggregating in bulk
    - Returns JSON-safe numeric values (no Decimals)

    Per account:
        closing = opening + period_debit - period_credit   (debit-positive)
        closing > 0 -> debit column, closing < 0 -> credit column

    An unbalanced result is REPORTED in data_quality_alerts, never raised.
    """

    def __init__(self, account_model=Account):
        self.Account = account_model

    def generate(
        self,
        *,
        company: Company,
        as_of: date | None = None,
        include_zero: bool = False,
        from_date: date | None = None,
    ) -> dict:
        cutoff = as_of or timezone.localdate()

        with transaction.atomic():
            accounts = list(
                self.Account.objects.filter(company=company)
                .only(
                    "id",
                    "code",
                    "name",
                    "account_type",
                    "account_subtype",
                    "normal_balance",
                    "is_contra_account",
                    "is_active",
                    "opening_balance",
                )
                .order_by("code")
            )

            if from_date is not None:
                before = movements_by_account(committed_lines(company, before=from_date))
                period = movements_by_account(committed_lines(company, from_date=from_date, as_of=cutoff))
            else:
                before = {}
                period = movements_by_account(committed_lines(company, as_of=cutoff))

        accounts_output = []
        sums = {
            "opening": ZERO,
            "period_debit": ZERO,
            "period_credit": ZERO,
            "debit": ZERO,
            "credit": ZERO,
        }

        for acc in accounts:
            prior = before.get(acc.id, Movement())
            moved = period.get(acc.id, Movement())

            opening = q2(acc.opening_balance + prior.net)
            closing = q2(opening + moved.debit - moved.credit)

            is_zero = opening == ZERO and closing == ZERO and moved.debit == ZERO and moved.credit == ZERO
            if is_zero and not (include_zero and acc.is_active):
                continue

            debit_col = closing if closing > ZERO else ZERO
            credit_col = -closing if closing < ZERO else ZERO
            balance = q2(acc.in_normal_direction(closing))

            accounts_output.append(
                {
                    "account_id": acc.id,
                    "account_code": acc.code,
                    "account_name": acc.name,
                    "account_type": acc.account_type,
                    "account_subtype": acc.account_subtype,
                    "normal_balance": acc.normal_balance,
                    **_money_pair("opening", opening),
                    **_money_pair("period_debit", moved.debit),
                    **_money_pair("period_credit", moved.credit),
                    **_money_pair("closing", closing),
                    **_money_pair("debit", debit_col),
                    **_money_pair("credit", credit_col),
                    **_money_pair("balance", balance),
                    "is_abnormal": balance < ZERO,
                    "is_contra_account": acc.is_contra_account,
                }
            )

            sums["opening"] += opening
            sums["period_debit"] += moved.debit
            sums["period_credit"] += moved.credit
            sums["debit"] += debit_col
            sums["credit"] += credit_col

        sums = {k: q2(v) for k, v in sums.items()}
        difference = q2(sums["debit"] - sums["credit"])
        tolerance = balance_tolerance()
        balanced = abs(difference) < tolerance

        alerts: list[str] = []
        if not balanced:
            alerts.append(
                f"Trial balance does not balance: debits {sums['debit']} vs credits {sums['credit']} "
                f"(difference {difference})"
            )
        period_gap = q2(sums["period_debit"] - sums["period_credit"])
        if abs(period_gap) >= tolerance:
            alerts.append(f"Period movements do not balance (difference {period_gap})")
        if abs(sums["opening"]) >= tolerance:
            alerts.append(f"Opening balances do not net to zero (difference {sums['opening']})")

        for alert in alerts:
            logger.warning("Trial balance for %s as of %s: %s", company.code, cutoff, alert)

        return {
            "company": company.code,
            "as_of": cutoff.isoformat(),
            "from_date": from_date.isoformat() if from_date else None,
            "accounts": accounts_output,
            "totals": {
                **_money_pair("opening", sums["opening"]),
                **_money_pair("period_debit", sums["period_debit"]),
                **_money_pair("period_credit", sums["period_credit"]),
                **_money_pair("debit", sums["debit"]),
                **_money_pair("credit", sums["credit"]),
                **_money_pair("difference", difference),
                "balanced": balanced,
            },
            "data_quality_alerts": alerts,
        }


def generate_trial_balance(
    *,
    company: Company,
    as_of: date | None = None,
    include_zero: bool = False,
    from_date: date | None = None,
) -> dict:
    return TrialBalanceService().generate(
        company=company,
        as_of=as_of,
        include_zero=include_zero,
        from_date=from_date,
    )


def trial_balance_for_period(
    *,
    company: Company,
    financial_year: str,
    period_month: int | None = None,
    include_zero: bool = False,
) -> dict:
    """Trial balance as at the last day of a fiscal period (or year)."""
    return generate_trial_balance(
        company=company,
        as_of=period_end_date(financial_year, period_month),
        include_zero=include_zero,
    )
