# accounting/models/ledger.py

"""
======================================================
PATH: accounting/models/ledger.py
======================================================
JOURNAL ENTRY LINE MODEL

Debit or credit posting to a single account, owned by one JournalEntry.

Guarantees:
- Immutable once created (no updates, no deletes of their own)
- Amounts are never negative; at most one side is non-zero
- Subledger tag is all-or-nothing: subledger_type and subledger_id are
  both set or both empty
- Reporting uses journal_entry.journal_date as the accounting timeline
"""

from __future__ import annotations

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

from accounting.models.account import Account
from accounting.models.journal import JournalEntry


class JournalEntryLine(models.Model):
    SUBLEDGER_VENDOR = "vendor"
    SUBLEDGER_CUSTOMER = "customer"
    SUBLEDGER_EMPLOYEE = "employee"
    SUBLEDGER_BANK = "bank"

    SUBLEDGER_TYPES = [
        (SUBLEDGER_VENDOR, "Vendor"),
        (SUBLEDGER_CUSTOMER, "Customer"),
        (SUBLEDGER_EMPLOYEE, "Employee"),
        (SUBLEDGER_BANK, "Bank"),
    ]

    journal_entry = models.ForeignKey(
        JournalEntry,
        on_delete=models.CASCADE,
        related_name="lines",
    )

    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name="journal_lines",
    )

    line_number = models.PositiveIntegerField(default=1)

    debit_amount = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    credit_amount = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))

    description = models.CharField(max_length=500, blank=True, default="")

    currency = models.CharField(max_length=3, default="INR")
    exchange_rate = models.DecimalField(max_digits=18, decimal_places=6, default=Decimal("1"))

    subledger_type = models.CharField(max_length=20, choices=SUBLEDGER_TYPES, blank=True, default="")
    subledger_id = models.CharField(max_length=64, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Journal Entry Line"
        verbose_name_plural = "Journal Entry Lines"
        ordering = ["journal_entry_id", "line_number"]
        indexes = [
            models.Index(fields=["account"]),
            models.Index(fields=["journal_entry"]),
            models.Index(fields=["subledger_type", "subledger_id"]),
            models.Index(fields=["account", "subledger_type", "subledger_id"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(debit_amount__gte=0) & Q(credit_amount__gte=0),
                name="chk_line_amounts_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(debit_amount=0) | Q(credit_amount=0),
                name="chk_line_single_side",
            ),
            models.CheckConstraint(
                condition=(Q(subledger_type="") & Q(subledger_id=""))
                | (~Q(subledger_type="") & ~Q(subledger_id="")),
                name="chk_line_subledger_all_or_nothing",
            ),
        ]

    def __str__(self):
        side = "Dr" if self.debit_amount else "Cr"
        return f"{side} {self.debit_amount or self.credit_amount} → {self.account}"

    @property
    def signed_amount(self) -> Decimal:
        """Debit-positive amount of this line."""
        return (self.debit_amount or Decimal("0.00")) - (self.credit_amount or Decimal("0.00"))

    @property
    def has_subledger(self) -> bool:
        return bool(self.subledger_type and self.subledger_id)

    def clean(self):
        if self.debit_amount < 0 or self.credit_amount < 0:
            raise ValidationError("Debit or credit cannot be negative")
        if self.debit_amount > 0 and self.credit_amount > 0:
            raise ValidationError("A line cannot have both debit and credit")
        if bool(self.subledger_type) != bool(self.subledger_id):
            raise ValidationError("subledger_type and subledger_id must be set together")

    def save(self, *args, **kwargs):
        if self.pk:
            raise ValidationError("JournalEntryLine records are immutable and cannot be modified")

        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("JournalEntryLine records are immutable and cannot be deleted")
