# accounting/services/posting.py

"""
======================================================
PATH: accounting/services/posting.py
======================================================
AUTO-POSTING SERVICE (ORCHESTRATOR)

One business event -> at most one journal entry:

    adapter emits (source_type, source_id, source_data)
      -> posting_rules.select_rule        (which rule?)
      -> template_resolver.resolve        (which accounts / amounts / parties?)
      -> journal_entry_builder.build_entry (balanced draft, fiscal period)
      -> journal_entry_service.persist_entry (idempotent write + numbering)
      -> PostingRuleUsageLog              (audit link)

All of resolve -> build -> persist -> usage log runs in ONE transaction.

Outcomes (PostingResult.outcome):
- posted / drafted : entry created (auto_post True / False)
- duplicate        : event already has an entry; success no-op
- no_rule          : nothing configured for this event shape; not an error
- no_lines         : every template line dropped; not an error

Failures (UnbalancedEntryError, structural template errors, ...) raise.
Adapters should call post_from_source_safely(): it logs + reports the failure
and returns None, so posting never blocks the business action that fired it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from accounting.models.company import Company
from accounting.models.journal import JournalEntry
from accounting.models.posting_rule import PostingRule, PostingRuleUsageLog
from accounting.services.event_values import EventData, coerce_event_data
from accounting.services.exceptions import (
    AccountingServiceError,
    IdempotencyError,
    JournalEntryCreationError,
)
from accounting.services.journal_entry_builder import build_entry
from accounting.services.journal_entry_service import get_entry_for_source, persist_entry
from accounting.services.posting_rules import RuleMatch, select_rule
from accounting.services.template_resolver import DroppedLine, resolve

logger = logging.getLogger(__name__)

POSTED = "posted"
DRAFTED = "drafted"
DUPLICATE = "duplicate"
NO_RULE = "no_rule"
NO_LINES = "no_lines"

_DATE_FIELDS = ("journal_date", "transaction_date", "date")


@dataclass
class PostingResult:
    outcome: str
    entry: JournalEntry | None = None
    rule: PostingRule | None = None
    dropped: list[DroppedLine] = field(default_factory=list)

    @property
    def created(self) -> bool:
        return self.outcome in (POSTED, DRAFTED)


def _journal_date(entry_date, data: EventData) -> date:
    if isinstance(entry_date, datetime):
        return entry_date.date()
    if isinstance(entry_date, date):
        return entry_date

    for name in _DATE_FIELDS:
        value = data.get(name)
        if value is None or value.is_blank():
            continue
        text = value.as_text().strip()
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            logger.warning("Ignoring unparseable %s=%r in event data", name, text)

    return timezone.localdate()


def _rule_snapshot(match: RuleMatch, dropped: list[DroppedLine]) -> dict:
    rule = match.rule
    return {
        "rule_code": rule.rule_code,
        "rule_name": rule.rule_name,
        "financial_year": rule.financial_year,
        "priority": rule.priority,
        "matched_keys": match.matched_keys,
        "conditions": rule.conditions,
        "posting_template": rule.posting_template,
        "dropped_lines": [
            {"index": d.template_index, "reason": d.reason, "account_code": d.account_code}
            for d in dropped
        ],
    }


def _log_usage(
    *,
    company: Company,
    match: RuleMatch,
    source_type: str,
    source_id: str,
    actor: str,
    entry: JournalEntry | None = None,
    dropped: list[DroppedLine] | None = None,
    error: str = "",
) -> PostingRuleUsageLog:
    return PostingRuleUsageLog.objects.create(
        posting_rule=match.rule,
        journal_entry=entry,
        company=company,
        source_type=source_type,
        source_id=source_id,
        rule_snapshot=_rule_snapshot(match, dropped or []),
        computed_by=actor or "",
        success=not error,
        error_message=error,
    )


def post_from_source(
    *,
    company: Company,
    source_type: str,
    source_id,
    source_data,
    trigger_event: str = PostingRule.DEFAULT_TRIGGER,
    actor: str = "",
    auto_post: bool = True,
    entry_date: date | None = None,
) -> PostingResult:
    source_type = (source_type or "").strip()
    source_id = str(source_id or "").strip()
    if not source_type or not source_id:
        raise JournalEntryCreationError("source_type and source_id are required")

    existing = get_entry_for_source(company, source_type, source_id)
    if existing is not None:
        logger.info(
            "Journal entry already exists for %s %s (%s)",
            source_type,
            source_id,
            existing.journal_number,
        )
        return PostingResult(outcome=DUPLICATE, entry=existing)

    data = coerce_event_data(source_data)
    journal_date = _journal_date(entry_date, data)

    match = select_rule(
        company=company,
        source_type=source_type,
        trigger_event=trigger_event,
        event_data=data,
        on_date=journal_date,
    )
    if match is None:
        logger.warning("No posting rule found for %s %s", source_type, source_id)
        return PostingResult(outcome=NO_RULE)

    rule = match.rule
    source_number = data["source_number"].as_text() if "source_number" in data else ""
    dropped: list[DroppedLine] = []

    try:
        with transaction.atomic():
            resolution = resolve(rule.posting_template, data)
            dropped = list(resolution.dropped)

            draft = build_entry(
                company=company,
                resolved_lines=resolution.lines,
                journal_date=journal_date,
                description=resolution.description,
                narration=resolution.narration,
                source_type=source_type,
                source_id=source_id,
                source_number=source_number,
                rule=rule,
                actor=actor,
                auto_post=auto_post,
            )
            if draft is None:
                return PostingResult(outcome=NO_LINES, rule=rule, dropped=dropped)

            dropped.extend(draft.dropped)
            entry = persist_entry(draft)
            _log_usage(
                company=company,
                match=match,
                source_type=source_type,
                source_id=source_id,
                actor=actor,
                entry=entry,
                dropped=dropped,
            )
    except IdempotencyError:
        # Lost a race with a concurrent posting of the same event.
        existing = get_entry_for_source(company, source_type, source_id)
        logger.info("Concurrent duplicate posting for %s %s ignored", source_type, source_id)
        return PostingResult(outcome=DUPLICATE, entry=existing, rule=rule)
    except AccountingServiceError as exc:
        _log_usage(
            company=company,
            match=match,
            source_type=source_type,
            source_id=source_id,
            actor=actor,
            dropped=dropped,
            error=str(exc),
        )
        raise

    logger.info(
        "Created journal entry %s for %s %s via rule %s",
        entry.journal_number,
        source_type,
        source_id,
        rule.rule_code,
    )
    return PostingResult(
        outcome=POSTED if auto_post else DRAFTED,
        entry=entry,
        rule=rule,
        dropped=dropped,
    )


def post_from_source_safely(**kwargs) -> PostingResult | None:
    """
    Fire-and-report entrypoint for event adapters.

    - Returns None when ACCOUNTING_POSTING_ENABLED is off
    - Logs (and, with Sentry configured, reports) any posting failure
      and returns None instead of raising
    """
    if not getattr(settings, "ACCOUNTING_POSTING_ENABLED", True):
        logger.debug("Accounting posting disabled; skipping %s", kwargs.get("source_type"))
        return None

    try:
        return post_from_source(**kwargs)
    except (AccountingServiceError, DatabaseError):
        logger.exception(
            "Auto-posting failed for %s %s; event left un-posted for manual remediation",
            kwargs.get("source_type"),
            kwargs.get("source_id"),
        )
        return None
