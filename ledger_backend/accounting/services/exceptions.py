# accounting/services/exceptions.py

"""
ACCOUNTING SERVICE ERRORS

Centralized domain errors for accounting services.

Not errors (by contract, never raised):
- No matching posting rule
- A template line that cannot be resolved (dropped + logged)
- Duplicate posting for an already-posted source event
- Report-time integrity findings (returned as data-quality alerts)
"""

from __future__ import annotations

from decimal import Decimal


class AccountingServiceError(Exception):
    """Base exception for all accounting service failures."""


class PostingRuleError(AccountingServiceError):
    """Raised when a posting rule cannot be applied."""


class TemplateResolutionError(PostingRuleError):
    """Raised when a posting template is structurally invalid."""


class AccountResolutionError(AccountingServiceError):
    """Raised when an expected account cannot be resolved."""


class JournalEntryCreationError(AccountingServiceError):
    """Raised when a journal entry cannot be created."""


class UnbalancedEntryError(JournalEntryCreationError):
    """Raised when debits and credits of an entry do not agree."""

    def __init__(self, total_debit: Decimal, total_credit: Decimal, context: str = ""):
        self.total_debit = total_debit
        self.total_credit = total_credit
        prefix = f"{context}: " if context else ""
        super().__init__(
            f"{prefix}Journal entry not balanced: debits={total_debit} credits={total_credit}"
        )


class IdempotencyError(AccountingServiceError):
    """Raised on duplicate or retried accounting events."""


class ReversalError(AccountingServiceError):
    """Base for rejected reversals; subclasses name the reason."""


class EntryNotFound(ReversalError):
    """The entry to reverse does not exist (or belongs to another company)."""


class EntryAlreadyReversed(ReversalError):
    """The entry has already been reversed."""


class CannotReverseReversal(ReversalError):
    """Reversal entries cannot themselves be reversed; post a new entry instead."""


class EntryNotPosted(ReversalError):
    """Only posted entries can be reversed (drafts are simply not posted)."""
