# accounting/services/journal_entry_builder.py

"""
======================================================
PATH: accounting/services/journal_entry_builder.py
======================================================
JOURNAL ENTRY BUILDER

Assembles resolved lines into ONE balanced, unsaved entry (DraftEntry).

Rules:
- Accounts are looked up by code inside the company, active only
  (unknown code -> line dropped + logged; strict mode raises instead)
- Fiscal year / period come from fiscal.fiscal_period(journal_date)
- auto_post=True -> status "posted" stamped with time + actor, else "draft"
- Invariant: |sum(debit) - sum(credit)| < ACCOUNTING_BALANCE_TOLERANCE,
  otherwise UnbalancedEntryError and nothing is written anywhere
- Zero surviving lines -> None (no-op, not an error)

THIS MODULE DOES NOT write to the database. Persisting is
journal_entry_service.persist_entry's job.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from django.conf import settings
from django.utils import timezone

from accounting.models.account import Account
from accounting.models.company import Company
from accounting.models.journal import JournalEntry
from accounting.models.posting_rule import PostingRule
from accounting.services.exceptions import (
    AccountResolutionError,
    JournalEntryCreationError,
    UnbalancedEntryError,
)
from accounting.services.fiscal import fiscal_period
from accounting.services.money import ZERO, is_balanced, q2
from accounting.services.template_resolver import (
    DROP_UNKNOWN_ACCOUNT,
    DroppedLine,
    ResolvedLine,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DraftLine:
    account: Account
    debit: Decimal
    credit: Decimal
    description: str = ""
    subledger_type: str = ""
    subledger_id: str = ""
    currency: str = "INR"
    exchange_rate: Decimal = Decimal("1")

    @property
    def signed_amount(self) -> Decimal:
        return self.debit - self.credit


@dataclass
class DraftEntry:
    company: Company
    journal_date: date
    financial_year: str
    period_month: int
    entry_type: str
    description: str
    status: str
    lines: list[DraftLine]
    source_type: str = ""
    source_id: str | None = None
    source_number: str = ""
    narration: str = ""
    posted_at: datetime | None = None
    posted_by: str = ""
    created_by: str = ""
    posting_rule: PostingRule | None = None
    rule_code: str = ""
    rule_pack_version: str = ""
    dropped: list[DroppedLine] = field(default_factory=list)

    @property
    def total_debit(self) -> Decimal:
        return q2(sum((ln.debit for ln in self.lines), ZERO))

    @property
    def total_credit(self) -> Decimal:
        return q2(sum((ln.credit for ln in self.lines), ZERO))


def _require_nonzero_lines() -> bool:
    return bool(getattr(settings, "ACCOUNTING_REQUIRE_NONZERO_LINES", True))


def lookup_accounts(company: Company, codes) -> dict[str, Account]:
    wanted = {str(c).strip() for c in codes if str(c or "").strip()}
    if not wanted:
        return {}
    return {
        a.code: a
        for a in Account.objects.filter(company=company, code__in=wanted, is_active=True)
    }


def build_entry(
    *,
    company: Company,
    resolved_lines: list[ResolvedLine],
    journal_date: date,
    description: str,
    source_type: str = "",
    source_id: str | None = None,
    source_number: str = "",
    narration: str = "",
    rule: PostingRule | None = None,
    actor: str = "",
    auto_post: bool = True,
    entry_type: str = JournalEntry.AUTO_POST,
    strict_accounts: bool = False,
) -> DraftEntry | None:
    """
    Build an unsaved DraftEntry, or None when no line survives.

    Raises:
        UnbalancedEntryError: surviving lines do not balance
        AccountResolutionError: strict_accounts and a code is unknown
        JournalEntryCreationError: a line breaks the line-shape rules
    """
    context = f"{source_type}:{source_id}" if source_type else (description or "manual")

    accounts = lookup_accounts(company, [ln.account_code for ln in resolved_lines])

    lines: list[DraftLine] = []
    dropped: list[DroppedLine] = []

    for ln in resolved_lines:
        account = accounts.get(ln.account_code)
        if account is None:
            if strict_accounts:
                raise AccountResolutionError(
                    f"Account {ln.account_code} not found (or inactive) for company {company.code}"
                )
            logger.warning(
                "Account %s not found for company %s; dropping line for %s",
                ln.account_code,
                company.code,
                context,
            )
            dropped.append(
                DroppedLine(
                    template_index=ln.template_index,
                    reason=DROP_UNKNOWN_ACCOUNT,
                    account_code=ln.account_code,
                )
            )
            continue

        debit = q2(ln.debit)
        credit = q2(ln.credit)

        if debit < 0 or credit < 0:
            raise JournalEntryCreationError("Debit or credit cannot be negative")
        if debit > 0 and credit > 0:
            raise JournalEntryCreationError("A line cannot have both debit and credit")
        if debit == 0 and credit == 0:
            if _require_nonzero_lines():
                raise JournalEntryCreationError(
                    f"A line must have either debit or credit (account {account.code})"
                )
            continue

        lines.append(
            DraftLine(
                account=account,
                debit=debit,
                credit=credit,
                description=ln.description,
                subledger_type=ln.subledger_type if ln.has_subledger else "",
                subledger_id=ln.subledger_id if ln.has_subledger else "",
                currency=(ln.currency or company.base_currency).upper(),
                exchange_rate=ln.exchange_rate if ln.exchange_rate is not None else Decimal("1"),
            )
        )

    if not lines:
        logger.warning("No valid journal lines for %s; nothing to post", context)
        return None

    period = fiscal_period(journal_date)
    posted_at = timezone.now() if auto_post else None

    draft = DraftEntry(
        company=company,
        journal_date=journal_date,
        financial_year=period.financial_year,
        period_month=period.period_month,
        entry_type=entry_type,
        description=(description or "").strip(),
        narration=(narration or "").strip(),
        status=JournalEntry.POSTED if auto_post else JournalEntry.DRAFT,
        lines=lines,
        source_type=source_type or "",
        source_id=str(source_id) if source_id is not None else None,
        source_number=source_number or "",
        posted_at=posted_at,
        posted_by=actor if auto_post else "",
        created_by=actor,
        posting_rule=rule,
        rule_code=rule.rule_code if rule else "",
        rule_pack_version=(rule.financial_year or "") if rule else "",
        dropped=dropped,
    )

    if not is_balanced(draft.total_debit, draft.total_credit):
        logger.error(
            "Journal entry for %s is not balanced. Debit: %s, Credit: %s",
            context,
            draft.total_debit,
            draft.total_credit,
        )
        raise UnbalancedEntryError(draft.total_debit, draft.total_credit, context)

    return draft
