# accounting/models/journal.py

"""
======================================================
PATH: accounting/models/journal.py
======================================================
JOURNAL ENTRY MODEL

Represents a single accounting transaction (journal header).

Guarantees:
- total_debit == total_credit (DB check constraint)
- One entry per business event: (company, source_type, source_id) is unique
  for non-reversal entries (partial unique constraint, race-safe)
- At most one reversal per entry (reversal_of is one-to-one)
- Journal numbers are unique per company
- Once posted, only the status/posting/reversal columns may change;
  lines and amounts are frozen. Entries are never deleted.
- journal_date is the accounting effective date (used for periods + reports)
"""

from __future__ import annotations

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q

from accounting.models.company import Company

# Columns a posted entry may still change (draft -> posted, posted -> reversed).
MUTABLE_STATUS_FIELDS = frozenset(
    {
        "status",
        "posted_at",
        "posted_by",
        "reversed_at",
        "reversed_by",
        "reversal_reason",
        "updated_at",
    }
)


class JournalEntry(models.Model):
    MANUAL = "manual"
    AUTO_POST = "auto_post"
    REVERSAL = "reversal"
    OPENING = "opening"
    ADJUSTMENT = "adjustment"

    ENTRY_TYPES = [
        (MANUAL, "Manual"),
        (AUTO_POST, "Auto Posted"),
        (REVERSAL, "Reversal"),
        (OPENING, "Opening Balance"),
        (ADJUSTMENT, "Adjustment"),
    ]

    DRAFT = "draft"
    POSTED = "posted"
    REVERSED = "reversed"

    STATUSES = [
        (DRAFT, "Draft"),
        (POSTED, "Posted"),
        (REVERSED, "Reversed"),
    ]

    # Statuses that count as ledger truth for reporting.
    COMMITTED_STATUSES = (POSTED, REVERSED)

    company = models.ForeignKey(
        Company,
        on_delete=models.PROTECT,
        related_name="journal_entries",
    )

    journal_number = models.CharField(max_length=40)
    journal_date = models.DateField(help_text="Accounting effective date")
    financial_year = models.CharField(max_length=7, help_text='e.g. "2024-25"')
    period_month = models.PositiveSmallIntegerField(help_text="1..12 from fiscal year start")

    entry_type = models.CharField(max_length=20, choices=ENTRY_TYPES, default=MANUAL)

    source_type = models.CharField(max_length=50, blank=True, default="")
    source_id = models.CharField(max_length=64, null=True, blank=True)
    source_number = models.CharField(max_length=100, blank=True, default="")

    description = models.TextField()
    narration = models.TextField(blank=True, default="")

    total_debit = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    total_credit = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))

    status = models.CharField(max_length=10, choices=STATUSES, default=DRAFT, db_index=True)

    # Rule provenance
    posting_rule = models.ForeignKey(
        "accounting.PostingRule",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="journal_entries",
    )
    rule_code = models.CharField(max_length=50, blank=True, default="")
    rule_pack_version = models.CharField(max_length=7, blank=True, default="")

    posted_at = models.DateTimeField(null=True, blank=True)
    posted_by = models.CharField(max_length=150, blank=True, default="")

    reversal_of = models.OneToOneField(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="reversed_by_entry",
    )
    reversed_at = models.DateTimeField(null=True, blank=True)
    reversed_by = models.CharField(max_length=150, blank=True, default="")
    reversal_reason = models.TextField(blank=True, default="")

    created_by = models.CharField(max_length=150, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-journal_date", "-created_at"]
        indexes = [
            models.Index(fields=["company", "journal_date"]),
            models.Index(fields=["company", "financial_year", "period_month"]),
            models.Index(fields=["company", "source_type", "source_id"]),
            models.Index(fields=["created_at"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "journal_number"],
                name="uniq_journal_company_number",
            ),
            models.UniqueConstraint(
                fields=["company", "source_type", "source_id"],
                condition=Q(source_id__isnull=False) & ~Q(entry_type="reversal"),
                name="uniq_journal_company_source",
            ),
            models.CheckConstraint(
                condition=Q(total_debit=F("total_credit")),
                name="chk_journal_totals_balanced",
            ),
            models.CheckConstraint(
                condition=Q(total_debit__gte=0) & Q(total_credit__gte=0),
                name="chk_journal_totals_non_negative",
            ),
            models.CheckConstraint(
                condition=~Q(entry_type="reversal") | Q(reversal_of__isnull=False),
                name="chk_journal_reversal_has_original",
            ),
        ]
        verbose_name = "Journal Entry"
        verbose_name_plural = "Journal Entries"

    def __str__(self):
        return f"{self.journal_number} – {self.journal_date}"

    @property
    def is_reversal(self) -> bool:
        return self.entry_type == self.REVERSAL

    def clean(self):
        self.source_type = (self.source_type or "").strip()
        if self.source_id is not None:
            self.source_id = str(self.source_id).strip() or None

        self.description = (self.description or "").strip()
        if not self.description:
            raise ValidationError("Journal entry description is required")

        if self.status in (self.POSTED, self.REVERSED) and self.posted_at is None:
            raise ValidationError({"posted_at": "Posted entries need posted_at"})

    def save(self, *args, **kwargs):
        if self.pk:
            update_fields = kwargs.get("update_fields")
            if not update_fields or not set(update_fields) <= MUTABLE_STATUS_FIELDS:
                raise ValidationError(
                    "JournalEntry records are immutable once created; only status columns may change"
                )
            return super().save(*args, **kwargs)

        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("JournalEntry records are immutable and cannot be deleted")
