# accounting/services/aging_service.py

"""
======================================================
PATH: accounting/services/aging_service.py
======================================================
AP / AR AGING + PARTY LEDGER

Reads both party regimes through subledger_service.party_sources():
- control accounts -> tagged lines (subledger_type / subledger_id)
- legacy party accounts -> every line of the party's own account

Sign convention is per party kind, not per account:
    customer, bank      -> debit-positive (they owe us)
    vendor, employee    -> credit-positive (we owe them)

Aging (as of a reference date):
- positive movements are charges (invoices), dated by journal_date
- negative movements are settlements, applied FIFO to the oldest charge
- days overdue = (as_of - charge date) - credit_days
      <= 0 -> current | 1-30 | 31-60 | 61-90 | over 90
- settlements beyond all charges are reported as an advance
- a legacy account's opening balance has no date; it lands in "over_90"
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from accounting.models.company import Company
from accounting.models.ledger import JournalEntryLine
from accounting.services.money import ZERO, q2, to_major_number, to_minor_int
from accounting.services.subledger_service import party_sources

BUCKET_CURRENT = "current"
BUCKET_1_30 = "days_1_30"
BUCKET_31_60 = "days_31_60"
BUCKET_61_90 = "days_61_90"
BUCKET_OVER_90 = "over_90"

BUCKETS = (BUCKET_CURRENT, BUCKET_1_30, BUCKET_31_60, BUCKET_61_90, BUCKET_OVER_90)

DEBIT_POSITIVE_PARTIES = {
    JournalEntryLine.SUBLEDGER_CUSTOMER,
    JournalEntryLine.SUBLEDGER_BANK,
}


def party_direction(party_type: str, debit_positive: Decimal) -> Decimal:
    return debit_positive if party_type in DEBIT_POSITIVE_PARTIES else -debit_positive


def bucket_for(days_overdue: int | None) -> str:
    if days_overdue is None:
        return BUCKET_OVER_90
    if days_overdue <= 0:
        return BUCKET_CURRENT
    if days_overdue <= 30:
        return BUCKET_1_30
    if days_overdue <= 60:
        return BUCKET_31_60
    if days_overdue <= 90:
        return BUCKET_61_90
    return BUCKET_OVER_90


@dataclass
class _Charge:
    charge_date: date | None
    outstanding: Decimal


@dataclass
class _PartyAging:
    party_type: str
    party_id: str
    charges: list[_Charge] = field(default_factory=list)
    settlements: Decimal = ZERO

    def apply_fifo(self) -> Decimal:
        """Apply settlements oldest-first. Returns the unapplied remainder (advance)."""
        remaining = self.settlements
        # Undated (opening) charges are the oldest.
        self.charges.sort(key=lambda c: (c.charge_date is not None, c.charge_date or date.min))
        for charge in self.charges:
            if remaining <= ZERO:
                break
            applied = min(charge.outstanding, remaining)
            charge.outstanding -= applied
            remaining -= applied
        return q2(remaining)


def _money_pair(name: str, amount: Decimal) -> dict:
    return {name: to_major_number(amount), f"{name}_minor": to_minor_int(amount)}


def get_aging(
    *,
    company: Company,
    party_type: str,
    as_of: date | None = None,
    credit_days: int = 0,
) -> dict:
    """
    Returns:
        {
            "party_type", "as_of", "credit_days",
            "parties": [
                {"party_type", "party_id",
                 "current", "days_1_30", "days_31_60", "days_61_90", "over_90",
                 "outstanding", "advance", "balance" (+ *_minor)}
            ],
            "totals": {same money keys},
        }
    """
    cutoff = as_of or timezone.localdate()
    credit_days = max(int(credit_days or 0), 0)
    parties: dict[tuple[str, str], _PartyAging] = {}

    def party(pt: str, pid: str) -> _PartyAging:
        return parties.setdefault((pt, pid), _PartyAging(party_type=pt, party_id=pid))

    with transaction.atomic():
        for source in party_sources(company, party_type):
            opening = source.party_opening()
            if opening != ZERO:
                pt, pid = source.party_of(None)
                amount = party_direction(pt, opening)
                if amount > ZERO:
                    party(pt, pid).charges.append(_Charge(None, amount))
                else:
                    party(pt, pid).settlements += -amount

            for pt, pid, line in source.iter_party_lines(party_type=party_type, as_of=cutoff):
                amount = party_direction(pt, line.debit_amount - line.credit_amount)
                if amount > ZERO:
                    party(pt, pid).charges.append(_Charge(line.journal_entry.journal_date, amount))
                elif amount < ZERO:
                    party(pt, pid).settlements += -amount

    rows = []
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)

    for key in sorted(parties):
        p = parties[key]
        advance = p.apply_fifo()

        buckets = {b: ZERO for b in BUCKETS}
        for charge in p.charges:
            if charge.outstanding <= ZERO:
                continue
            days = None if charge.charge_date is None else (cutoff - charge.charge_date).days - credit_days
            buckets[bucket_for(days)] += charge.outstanding

        outstanding = q2(sum(buckets.values(), ZERO))
        balance = q2(outstanding - advance)
        if outstanding == ZERO and advance == ZERO:
            continue

        row = {"party_type": p.party_type, "party_id": p.party_id}
        for b in BUCKETS:
            row.update(_money_pair(b, q2(buckets[b])))
            totals[b] += buckets[b]
        row.update(_money_pair("outstanding", outstanding))
        row.update(_money_pair("advance", advance))
        row.update(_money_pair("balance", balance))
        rows.append(row)

        totals["outstanding"] += outstanding
        totals["advance"] += advance
        totals["balance"] += balance

    totals_out: dict = {}
    for name in (*BUCKETS, "outstanding", "advance", "balance"):
        totals_out.update(_money_pair(name, q2(totals[name])))

    return {
        "company": company.code,
        "party_type": party_type,
        "as_of": cutoff.isoformat(),
        "credit_days": credit_days,
        "parties": rows,
        "totals": totals_out,
    }


def get_ap_aging(*, company: Company, as_of: date | None = None, credit_days: int = 0) -> dict:
    return get_aging(
        company=company,
        party_type=JournalEntryLine.SUBLEDGER_VENDOR,
        as_of=as_of,
        credit_days=credit_days,
    )


def get_ar_aging(*, company: Company, as_of: date | None = None, credit_days: int = 0) -> dict:
    return get_aging(
        company=company,
        party_type=JournalEntryLine.SUBLEDGER_CUSTOMER,
        as_of=as_of,
        credit_days=credit_days,
    )


def party_ledger(
    *,
    company: Company,
    subledger_type: str,
    subledger_id,
    from_date: date | None = None,
    to_date: date | None = None,
) -> dict:
    """Chronological lines for ONE party across both regimes, with a running balance."""
    party_id = str(subledger_id).strip()
    to_date = to_date or timezone.localdate()

    opening = ZERO
    collected: list[JournalEntryLine] = []

    with transaction.atomic():
        for source in party_sources(company, subledger_type):
            opening += source.party_opening(party_id)
            if from_date is not None:
                for _, _, line in source.iter_party_lines(
                    party_type=subledger_type, party_id=party_id, before=from_date
                ):
                    opening += line.debit_amount - line.credit_amount

            collected.extend(
                line
                for _, _, line in source.iter_party_lines(
                    party_type=subledger_type,
                    party_id=party_id,
                    from_date=from_date,
                    as_of=to_date,
                )
            )

    collected.sort(
        key=lambda ln: (
            ln.journal_entry.journal_date,
            ln.journal_entry.journal_number,
            ln.line_number,
            ln.id,
        )
    )

    opening = q2(party_direction(subledger_type, opening))
    running = opening
    total_debit = ZERO
    total_credit = ZERO
    rows = []

    for ln in collected:
        entry = ln.journal_entry
        running = q2(running + party_direction(subledger_type, ln.debit_amount - ln.credit_amount))
        total_debit += ln.debit_amount
        total_credit += ln.credit_amount
        rows.append(
            {
                "entry_id": entry.id,
                "journal_number": entry.journal_number,
                "journal_date": entry.journal_date.isoformat(),
                "source_type": entry.source_type,
                "source_id": entry.source_id,
                "account_code": ln.account.code,
                "account_name": ln.account.name,
                "description": ln.description or entry.description,
                **_money_pair("debit", ln.debit_amount),
                **_money_pair("credit", ln.credit_amount),
                **_money_pair("running_balance", running),
            }
        )

    return {
        "company": company.code,
        "subledger_type": subledger_type,
        "subledger_id": party_id,
        "from_date": from_date.isoformat() if from_date else None,
        "to_date": to_date.isoformat(),
        **_money_pair("opening_balance", opening),
        "lines": rows,
        "totals": {
            **_money_pair("debit", q2(total_debit)),
            **_money_pair("credit", q2(total_credit)),
        },
        **_money_pair("closing_balance", running),
    }
