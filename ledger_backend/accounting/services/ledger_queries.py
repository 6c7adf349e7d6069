# accounting/services/ledger_queries.py

"""
LEDGER READ HELPERS (shared by every report)

Ledger truth for reporting:
- Lines of entries with status posted OR reversed (a reversed original and
  its reversal both count, so together they net to zero)
- Drafts never count
- Timeline is JournalEntry.journal_date (not created_at)
- Aggregation happens in the database (one grouped query, no N+1)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from django.db.models import DecimalField, Q, QuerySet, Sum, Value
from django.db.models.functions import Coalesce

from accounting.models.company import Company
from accounting.models.journal import JournalEntry
from accounting.models.ledger import JournalEntryLine
from accounting.services.money import ZERO, q2

_MONEY = DecimalField(max_digits=18, decimal_places=2)


@dataclass(frozen=True)
class Movement:
    debit: Decimal = ZERO
    credit: Decimal = ZERO

    @property
    def net(self) -> Decimal:
        """Debit-positive."""
        return q2(self.debit - self.credit)


def committed_lines(
    company: Company,
    *,
    as_of: date | None = None,
    from_date: date | None = None,
    before: date | None = None,
) -> QuerySet:
    """
    as_of: journal_date <= as_of (inclusive)
    from_date: journal_date >= from_date
    before: journal_date < before (strict)
    """
    qs = JournalEntryLine.objects.filter(
        journal_entry__company=company,
        journal_entry__status__in=JournalEntry.COMMITTED_STATUSES,
    )
    if as_of is not None:
        qs = qs.filter(journal_entry__journal_date__lte=as_of)
    if from_date is not None:
        qs = qs.filter(journal_entry__journal_date__gte=from_date)
    if before is not None:
        qs = qs.filter(journal_entry__journal_date__lt=before)
    return qs


def sum_debit_credit(qs: QuerySet) -> Movement:
    totals = qs.aggregate(
        debit=Coalesce(Sum("debit_amount"), Value(ZERO), output_field=_MONEY),
        credit=Coalesce(Sum("credit_amount"), Value(ZERO), output_field=_MONEY),
    )
    return Movement(debit=q2(totals["debit"]), credit=q2(totals["credit"]))


def movements_by_account(qs: QuerySet) -> dict[int, Movement]:
    rows = qs.values("account_id").annotate(
        debit=Coalesce(Sum("debit_amount"), Value(ZERO), output_field=_MONEY),
        credit=Coalesce(Sum("credit_amount"), Value(ZERO), output_field=_MONEY),
    )
    return {r["account_id"]: Movement(debit=q2(r["debit"]), credit=q2(r["credit"])) for r in rows}


def movements_by_party(qs: QuerySet, *, subledger_type: str | None = None) -> dict[tuple[str, str], Movement]:
    tagged = qs.exclude(subledger_type="").exclude(subledger_id="")
    if subledger_type:
        tagged = tagged.filter(subledger_type=subledger_type)
    rows = tagged.values("subledger_type", "subledger_id").annotate(
        debit=Coalesce(Sum("debit_amount"), Value(ZERO), output_field=_MONEY),
        credit=Coalesce(Sum("credit_amount"), Value(ZERO), output_field=_MONEY),
    )
    return {
        (r["subledger_type"], r["subledger_id"]): Movement(debit=q2(r["debit"]), credit=q2(r["credit"]))
        for r in rows
    }


def untagged_filter() -> Q:
    return Q(subledger_type="") | Q(subledger_id="")
