# accounting/services/subledger_service.py

"""
======================================================
PATH: accounting/services/subledger_service.py
======================================================
PARTY SUBLEDGERS (two regimes, one reporting interface)

Control regime:
    ONE control account (e.g. 2100 Trade Payables); every party-related line
    carries subledger_type + subledger_id. Party balances are the sums of
    the tagged lines.

Legacy regime:
    ONE account per party (is_legacy_party_account + legacy_party_type/_id).
    The whole account (opening balance included) belongs to that party.

Reports never branch on the regime themselves: they ask party_sources() for
PartyLedgerSource objects and iterate (party_type, party_id, line) tuples.

Control reconciliation:
    control balance (opening + debits - credits)  vs  sum of tagged lines.
    A non-zero difference is a data-quality finding. It is reported, never
    patched.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import date
from decimal import Decimal

from django.db import transaction
from django.db.models import Q, QuerySet

from accounting.models.account import Account
from accounting.models.company import Company
from accounting.models.ledger import JournalEntryLine
from accounting.services.ledger_queries import (
    committed_lines,
    movements_by_party,
    sum_debit_credit,
    untagged_filter,
)
from accounting.services.money import ZERO, balance_tolerance, q2, to_major_number, to_minor_int

logger = logging.getLogger(__name__)

# Which line tag a party control account expects. Control types not listed
# (GST, TDS, loans) are not party ledgers: aging, party ledgers and
# reconciliation ignore them.
CONTROL_SUBLEDGER_TYPES = {
    Account.CONTROL_PAYABLES: JournalEntryLine.SUBLEDGER_VENDOR,
    Account.CONTROL_RECEIVABLES: JournalEntryLine.SUBLEDGER_CUSTOMER,
    Account.CONTROL_BANK: JournalEntryLine.SUBLEDGER_BANK,
    Account.CONTROL_SALARIES: JournalEntryLine.SUBLEDGER_EMPLOYEE,
}

CONTROL = "control"
LEGACY = "legacy"


class PartyLedgerSource:
    """Base for both regimes."""

    kind = ""

    def __init__(self, account: Account):
        self.account = account

    def accepts(self, party_type: str | None) -> bool:
        raise NotImplementedError

    def party_lines(
        self,
        *,
        party_type: str | None = None,
        party_id: str | None = None,
        as_of: date | None = None,
        from_date: date | None = None,
        before: date | None = None,
    ) -> QuerySet:
        raise NotImplementedError

    def party_of(self, line: JournalEntryLine) -> tuple[str, str]:
        raise NotImplementedError

    def party_opening(self, party_id: str | None = None) -> Decimal:
        """Opening balance attributable to a party (debit-positive)."""
        return ZERO

    def _base_lines(self, *, as_of=None, from_date=None, before=None) -> QuerySet:
        return committed_lines(
            self.account.company,
            as_of=as_of,
            from_date=from_date,
            before=before,
        ).filter(account=self.account)

    def iter_party_lines(self, **filters) -> Iterator[tuple[str, str, JournalEntryLine]]:
        qs = (
            self.party_lines(**filters)
            .select_related("journal_entry", "account")
            .order_by("journal_entry__journal_date", "journal_entry__journal_number", "line_number", "id")
        )
        for line in qs:
            party_type, party_id = self.party_of(line)
            yield party_type, party_id, line


class ControlAccountSource(PartyLedgerSource):
    kind = CONTROL

    def __init__(self, account: Account, subledger_type: str = ""):
        super().__init__(account)
        self.subledger_type = subledger_type

    def accepts(self, party_type: str | None) -> bool:
        return not party_type or not self.subledger_type or self.subledger_type == party_type

    def party_lines(self, *, party_type=None, party_id=None, as_of=None, from_date=None, before=None) -> QuerySet:
        qs = self._base_lines(as_of=as_of, from_date=from_date, before=before).exclude(untagged_filter())
        wanted = party_type or self.subledger_type
        if wanted:
            qs = qs.filter(subledger_type=wanted)
        if party_id:
            qs = qs.filter(subledger_id=str(party_id))
        return qs

    def party_of(self, line: JournalEntryLine) -> tuple[str, str]:
        return line.subledger_type, line.subledger_id


class LegacyPartyAccountSource(PartyLedgerSource):
    kind = LEGACY

    def __init__(self, account: Account):
        super().__init__(account)
        self.party_type = account.legacy_party_type
        self.party_id = account.legacy_party_id

    def accepts(self, party_type: str | None) -> bool:
        return not party_type or self.party_type == party_type

    def party_lines(self, *, party_type=None, party_id=None, as_of=None, from_date=None, before=None) -> QuerySet:
        qs = self._base_lines(as_of=as_of, from_date=from_date, before=before)
        if (party_type and party_type != self.party_type) or (party_id and str(party_id) != self.party_id):
            return qs.none()
        return qs

    def party_of(self, line: JournalEntryLine) -> tuple[str, str]:
        return self.party_type, self.party_id

    def party_opening(self, party_id: str | None = None) -> Decimal:
        if party_id and str(party_id) != self.party_id:
            return ZERO
        return q2(self.account.opening_balance)


def party_sources(company: Company, party_type: str | None = None) -> list[PartyLedgerSource]:
    """Every party control account and legacy party account, wrapped by regime."""
    sources: list[PartyLedgerSource] = []

    accounts = Account.objects.filter(company=company, is_active=True).filter(
        Q(is_control_account=True, control_account_type__in=list(CONTROL_SUBLEDGER_TYPES))
        | Q(is_legacy_party_account=True)
    )

    for account in accounts.order_by("code"):
        if account.is_control_account:
            source = ControlAccountSource(account, CONTROL_SUBLEDGER_TYPES[account.control_account_type])
        else:
            source = LegacyPartyAccountSource(account)

        if source.accepts(party_type):
            sources.append(source)

    return sources


def reconcile_control_accounts(company: Company, as_of: date | None = None) -> dict:
    """
    Compare every party control account (payables, receivables, bank, salaries) with
    the sum of its tagged lines.

    Returns:
        {
            "as_of": "YYYY-MM-DD" | None,
            "accounts": [
                {
                    "account_code", "account_name", "control_account_type",
                    "expected_subledger_type",
                    "control_balance", "subledger_total", "untagged_total",
                    "opening_balance", "difference" (+ *_minor),
                    "is_reconciled": bool,
                    "parties": [{"subledger_type","subledger_id","balance","balance_minor"}],
                }
            ],
            "all_reconciled": bool,
            "data_quality_alerts": [str, ...],
        }

    All amounts are debit-positive.
    """
    tolerance = balance_tolerance()
    rows = []
    alerts: list[str] = []

    with transaction.atomic():
        controls = Account.objects.filter(
            company=company,
            is_control_account=True,
            control_account_type__in=list(CONTROL_SUBLEDGER_TYPES),
            is_active=True,
        ).order_by("code")

        for account in controls:
            expected = CONTROL_SUBLEDGER_TYPES.get(account.control_account_type, "")
            lines = committed_lines(company, as_of=as_of).filter(account=account)

            total = sum_debit_credit(lines)
            opening = q2(account.opening_balance)
            control_balance = q2(opening + total.net)

            parties = movements_by_party(lines, subledger_type=expected or None)
            subledger_total = q2(sum((m.net for m in parties.values()), ZERO))

            untagged = sum_debit_credit(lines.filter(untagged_filter())).net
            if expected:
                # Tagged with the wrong party kind counts as untagged.
                untagged += sum_debit_credit(
                    lines.exclude(untagged_filter()).exclude(subledger_type=expected)
                ).net
            untagged = q2(untagged)

            difference = q2(control_balance - subledger_total)
            is_reconciled = abs(difference) < tolerance

            if not is_reconciled:
                logger.warning(
                    "Control account %s (%s) out of balance with its subledger by %s",
                    account.code,
                    company.code,
                    difference,
                )
                alerts.append(
                    f"Control account {account.code} ({account.name}) differs from its "
                    f"subledger by {difference} (untagged lines: {untagged}, opening: {opening})"
                )

            rows.append(
                {
                    "account_id": account.id,
                    "account_code": account.code,
                    "account_name": account.name,
                    "account_type": account.account_type,
                    "normal_balance": account.normal_balance,
                    "control_account_type": account.control_account_type,
                    "expected_subledger_type": expected,
                    "opening_balance": to_major_number(opening),
                    "opening_balance_minor": to_minor_int(opening),
                    "control_balance": to_major_number(control_balance),
                    "control_balance_minor": to_minor_int(control_balance),
                    "subledger_total": to_major_number(subledger_total),
                    "subledger_total_minor": to_minor_int(subledger_total),
                    "untagged_total": to_major_number(untagged),
                    "untagged_total_minor": to_minor_int(untagged),
                    "difference": to_major_number(difference),
                    "difference_minor": to_minor_int(difference),
                    "is_reconciled": is_reconciled,
                    "parties": [
                        {
                            "subledger_type": key[0],
                            "subledger_id": key[1],
                            "balance": to_major_number(m.net),
                            "balance_minor": to_minor_int(m.net),
                        }
                        for key, m in sorted(parties.items())
                        if m.net != ZERO
                    ],
                }
            )

    return {
        "as_of": as_of.isoformat() if as_of else None,
        "accounts": rows,
        "all_reconciled": all(r["is_reconciled"] for r in rows),
        "data_quality_alerts": alerts,
    }
