# accounting/services/journal_entry_service.py

"""
======================================================
PATH: accounting/services/journal_entry_service.py
======================================================
JOURNAL ENTRY SERVICE (LEDGER STORE)

This module is the ONLY place allowed to:
- Create JournalEntry / JournalEntryLine rows
- Allocate journal numbers (per company, monotonic)
- Move an entry draft -> posted, or posted -> reversed
- Touch Account.current_balance

Guarantees:
- Atomic: an entry and all its lines become visible together, or nothing
- Re-validates balance before writing and fails loudly (never "fixes" totals)
- Idempotency: one business event (company, source_type, source_id) -> at most
  one entry. Enforced by a partial unique constraint; the IntegrityError of a
  lost race is translated into IdempotencyError.
- Reversal is a new entry with every line's debit/credit swapped; the
  original only changes status. A reversal can never be reversed.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from accounting.models.account import Account
from accounting.models.company import Company, CompanySequence
from accounting.models.journal import JournalEntry
from accounting.models.ledger import JournalEntryLine
from accounting.services.exceptions import (
    CannotReverseReversal,
    EntryAlreadyReversed,
    EntryNotFound,
    EntryNotPosted,
    IdempotencyError,
    JournalEntryCreationError,
    UnbalancedEntryError,
)
from accounting.services.fiscal import fiscal_period
from accounting.services.journal_entry_builder import DraftEntry, DraftLine, build_entry
from accounting.services.money import ZERO, q2
from accounting.services.template_resolver import ResolvedLine

logger = logging.getLogger(__name__)

JOURNAL_PREFIX = "JV"


# ============================================================
# IDEMPOTENCY GATE
# ============================================================

def _source_qs(company: Company, source_type: str, source_id):
    return JournalEntry.objects.filter(
        company=company,
        source_type=(source_type or "").strip(),
        source_id=str(source_id).strip(),
    ).exclude(entry_type=JournalEntry.REVERSAL)


def has_posted_for(company: Company, source_type: str, source_id) -> bool:
    """True when this business event already produced an entry (any status)."""
    if source_id is None or not str(source_id).strip():
        return False
    return _source_qs(company, source_type, source_id).exists()


def get_entry_for_source(company: Company, source_type: str, source_id) -> JournalEntry | None:
    if source_id is None or not str(source_id).strip():
        return None
    return _source_qs(company, source_type, source_id).first()


# ============================================================
# NUMBERING
# ============================================================

def _next_sequence_value(company: Company, name: str) -> int:
    """
    Allocate the next value for a company/name pair.
    Must run inside the posting transaction (row stays locked until commit).
    """
    try:
        seq = CompanySequence.objects.select_for_update().get(company=company, name=name)
    except CompanySequence.DoesNotExist:
        try:
            with transaction.atomic():
                seq = CompanySequence.objects.create(company=company, name=name, next_value=1)
        except IntegrityError:
            seq = CompanySequence.objects.select_for_update().get(company=company, name=name)

    value = seq.next_value
    seq.next_value = value + 1
    seq.save(update_fields=["next_value", "updated_at"])
    return value


def next_journal_number(company: Company, financial_year: str) -> str:
    seq = _next_sequence_value(company, CompanySequence.JOURNAL_NUMBER)
    return f"{JOURNAL_PREFIX}/{financial_year}/{seq:05d}"


# ============================================================
# VALIDATION
# ============================================================

def _validate_draft(draft: DraftEntry) -> None:
    if not draft.lines:
        raise JournalEntryCreationError("Journal entry must contain at least one line")

    if not draft.description:
        raise JournalEntryCreationError("Journal entry description is required")

    total_debit = ZERO
    total_credit = ZERO
    for line in draft.lines:
        if line.account.company_id != draft.company.pk:
            raise JournalEntryCreationError(
                f"Account {line.account.code} belongs to another company. Cross-company entries are not allowed."
            )
        if line.debit < 0 or line.credit < 0:
            raise JournalEntryCreationError("Debit or credit cannot be negative")
        if line.debit > 0 and line.credit > 0:
            raise JournalEntryCreationError("A line cannot have both debit and credit")
        if bool(line.subledger_type) != bool(line.subledger_id):
            raise JournalEntryCreationError("subledger_type and subledger_id must be set together")
        total_debit += line.debit
        total_credit += line.credit

    # Stored totals must be exactly equal after rounding.
    if q2(total_debit) != q2(total_credit):
        raise UnbalancedEntryError(q2(total_debit), q2(total_credit), "persist")


# ============================================================
# BALANCES
# ============================================================

def _apply_to_account_balances(lines) -> None:
    """current_balance += debit - credit, per account (debit-positive)."""
    deltas: dict[int, Decimal] = defaultdict(lambda: ZERO)
    for line in lines:
        deltas[line.account_id] += (line.debit_amount or ZERO) - (line.credit_amount or ZERO)

    for account_id, delta in deltas.items():
        if delta == ZERO:
            continue
        Account.objects.filter(pk=account_id).update(current_balance=F("current_balance") + delta)


# ============================================================
# PERSIST
# ============================================================

@transaction.atomic
def persist_entry(draft: DraftEntry, *, reversal_of: JournalEntry | None = None) -> JournalEntry:
    _validate_draft(draft)

    company = draft.company
    if draft.source_id and draft.entry_type != JournalEntry.REVERSAL:
        # Clear error before DB constraint race handling
        if has_posted_for(company, draft.source_type, draft.source_id):
            raise IdempotencyError(
                f"Journal entry already exists for {draft.source_type}:{draft.source_id}"
            )

    journal_number = next_journal_number(company, draft.financial_year)

    entry = JournalEntry(
        company=company,
        journal_number=journal_number,
        journal_date=draft.journal_date,
        financial_year=draft.financial_year,
        period_month=draft.period_month,
        entry_type=draft.entry_type,
        source_type=draft.source_type,
        source_id=draft.source_id,
        source_number=draft.source_number,
        description=draft.description,
        narration=draft.narration,
        total_debit=draft.total_debit,
        total_credit=draft.total_credit,
        status=draft.status,
        posting_rule=draft.posting_rule,
        rule_code=draft.rule_code,
        rule_pack_version=draft.rule_pack_version,
        posted_at=draft.posted_at,
        posted_by=draft.posted_by,
        reversal_of=reversal_of,
        created_by=draft.created_by,
    )

    try:
        with transaction.atomic():
            entry.save()
    except (IntegrityError, ValidationError) as exc:
        if reversal_of is not None and JournalEntry.objects.filter(reversal_of=reversal_of).exists():
            raise EntryAlreadyReversed(
                f"Journal entry {reversal_of.journal_number} has already been reversed"
            ) from exc
        if draft.source_id and has_posted_for(company, draft.source_type, draft.source_id):
            raise IdempotencyError(
                f"Journal entry already exists for {draft.source_type}:{draft.source_id}"
            ) from exc
        raise JournalEntryCreationError(f"Failed to create journal entry: {exc}") from exc

    lines = [
        JournalEntryLine(
            journal_entry=entry,
            account=line.account,
            line_number=i,
            debit_amount=line.debit,
            credit_amount=line.credit,
            description=(line.description or "")[:500],
            currency=line.currency,
            exchange_rate=line.exchange_rate,
            subledger_type=line.subledger_type,
            subledger_id=line.subledger_id,
        )
        for i, line in enumerate(draft.lines, start=1)
    ]
    JournalEntryLine.objects.bulk_create(lines)

    if entry.status == JournalEntry.POSTED:
        _apply_to_account_balances(lines)

    logger.info(
        "Created journal entry %s (%s, %s) for company %s",
        entry.journal_number,
        entry.entry_type,
        entry.status,
        company.code,
    )
    return entry


# ============================================================
# DRAFT -> POSTED
# ============================================================

@transaction.atomic
def post_draft_entry(entry_id: int, *, actor: str = "", company: Company | None = None) -> JournalEntry:
    qs = JournalEntry.objects.select_for_update()
    if company is not None:
        qs = qs.filter(company=company)

    entry = qs.filter(pk=entry_id).first()
    if entry is None:
        raise JournalEntryCreationError(f"Journal entry {entry_id} not found")
    if entry.status != JournalEntry.DRAFT:
        raise JournalEntryCreationError(
            f"Only draft entries can be posted ({entry.journal_number} is {entry.status})"
        )

    entry.status = JournalEntry.POSTED
    entry.posted_at = timezone.now()
    entry.posted_by = actor or ""
    entry.save(update_fields=["status", "posted_at", "posted_by", "updated_at"])

    _apply_to_account_balances(entry.lines.all())

    logger.info("Posted draft journal entry %s", entry.journal_number)
    return entry


# ============================================================
# REVERSAL
# ============================================================

@transaction.atomic
def reverse_entry(
    entry_id: int,
    *,
    actor: str = "",
    reason: str = "",
    company: Company | None = None,
    reversal_date: date | None = None,
) -> JournalEntry:
    """
    Create the exact line-wise negation of a posted entry and mark the
    original reversed.

    Raises (distinct per case):
        EntryNotFound, CannotReverseReversal, EntryAlreadyReversed, EntryNotPosted
    """
    qs = JournalEntry.objects.select_for_update()
    if company is not None:
        qs = qs.filter(company=company)

    original = qs.select_related("company").filter(pk=entry_id).first()
    if original is None:
        raise EntryNotFound(f"Journal entry {entry_id} not found")

    if original.entry_type == JournalEntry.REVERSAL:
        raise CannotReverseReversal(
            f"{original.journal_number} is itself a reversal; post a new entry to correct it"
        )
    if original.status == JournalEntry.REVERSED or JournalEntry.objects.filter(reversal_of=original).exists():
        raise EntryAlreadyReversed(f"Journal entry {original.journal_number} has already been reversed")
    if original.status != JournalEntry.POSTED:
        raise EntryNotPosted(
            f"Only posted entries can be reversed ({original.journal_number} is {original.status})"
        )

    reason = (reason or "").strip()
    now = timezone.now()

    if reversal_date is None:
        journal_date = original.journal_date
        financial_year, period_month = original.financial_year, original.period_month
    else:
        journal_date = reversal_date
        period = fiscal_period(reversal_date)
        financial_year, period_month = period.financial_year, period.period_month

    description = f"Reversal of {original.journal_number}"
    if reason:
        description += f": {reason}"

    lines = [
        DraftLine(
            account=line.account,
            debit=line.credit_amount,
            credit=line.debit_amount,
            description=f"Reversal: {line.description}" if line.description else "Reversal",
            subledger_type=line.subledger_type,
            subledger_id=line.subledger_id,
            currency=line.currency,
            exchange_rate=line.exchange_rate,
        )
        for line in original.lines.select_related("account").order_by("line_number")
    ]

    draft = DraftEntry(
        company=original.company,
        journal_date=journal_date,
        financial_year=financial_year,
        period_month=period_month,
        entry_type=JournalEntry.REVERSAL,
        description=description,
        narration=original.narration,
        status=JournalEntry.POSTED,
        lines=lines,
        source_type=original.source_type,
        source_id=original.source_id,
        source_number=original.source_number,
        posted_at=now,
        posted_by=actor or "",
        created_by=actor or "",
        posting_rule=original.posting_rule,
        rule_code=original.rule_code,
        rule_pack_version=original.rule_pack_version,
    )

    reversal = persist_entry(draft, reversal_of=original)

    original.status = JournalEntry.REVERSED
    original.reversed_at = now
    original.reversed_by = actor or ""
    original.reversal_reason = reason
    original.save(update_fields=["status", "reversed_at", "reversed_by", "reversal_reason", "updated_at"])

    logger.info("Reversed journal entry %s with %s", original.journal_number, reversal.journal_number)
    return reversal


# ============================================================
# MANUAL / OPENING / ADJUSTMENT ENTRIES
# ============================================================

def _manual_line(raw) -> ResolvedLine:
    if isinstance(raw, ResolvedLine):
        return raw
    if not isinstance(raw, dict):
        raise JournalEntryCreationError("Each line must be an object/dict")

    account = raw.get("account")
    code = account.code if isinstance(account, Account) else raw.get("account_code") or account
    if not code:
        raise JournalEntryCreationError("Line missing account")

    try:
        debit = Decimal(str(raw.get("debit") or "0"))
        credit = Decimal(str(raw.get("credit") or "0"))
    except ArithmeticError as exc:
        raise JournalEntryCreationError(f"Invalid money value in line for {code}") from exc

    rate = raw.get("exchange_rate")
    return ResolvedLine(
        account_code=str(code).strip(),
        debit=debit,
        credit=credit,
        description=str(raw.get("description") or ""),
        subledger_type=str(raw.get("subledger_type") or ""),
        subledger_id=str(raw.get("subledger_id") or ""),
        currency=str(raw.get("currency") or ""),
        exchange_rate=Decimal(str(rate)) if rate is not None else None,
    )


def create_manual_entry(
    *,
    company: Company,
    journal_date: date,
    description: str,
    lines: list,
    actor: str = "",
    entry_type: str = JournalEntry.MANUAL,
    narration: str = "",
    auto_post: bool = True,
    source_type: str = "",
    source_id: str | None = None,
) -> JournalEntry:
    """
    Manual, opening and adjustment entries share the builder + store path
    with auto-posting; unknown accounts are an error here, not a drop.
    """
    if entry_type in (JournalEntry.REVERSAL, JournalEntry.AUTO_POST):
        raise JournalEntryCreationError(f"Use the posting engine for {entry_type} entries")

    resolved = [_manual_line(raw) for raw in lines or []]
    for line in resolved:
        if bool(line.subledger_type) != bool(line.subledger_id):
            raise JournalEntryCreationError("subledger_type and subledger_id must be set together")

    draft = build_entry(
        company=company,
        resolved_lines=resolved,
        journal_date=journal_date,
        description=description,
        narration=narration,
        source_type=source_type,
        source_id=source_id,
        actor=actor,
        auto_post=auto_post,
        entry_type=entry_type,
        strict_accounts=True,
    )
    if draft is None:
        raise JournalEntryCreationError("Journal entry must contain at least one line")

    return persist_entry(draft)
