# accounting/models/company.py

from __future__ import annotations

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models


def _default_currency() -> str:
    return getattr(settings, "ACCOUNTING_DEFAULT_CURRENCY", "INR")


class Company(models.Model):
    """
    Tenant boundary for the ledger.

    Enterprise rules:
    - A Company owns its Accounts, Posting Rules and Journal Entries.
    - A stable code exists so seeders/commands don't depend on name formatting.
    - Many companies may be active at once; every query is company-scoped.
    """

    name = models.CharField(max_length=150)

    code = models.SlugField(
        max_length=64,
        unique=True,
        help_text="Stable company key used by seeders/commands. Do not change after go-live.",
    )

    base_currency = models.CharField(max_length=3, default=_default_currency)

    is_active = models.BooleanField(default=True, db_index=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Company"
        verbose_name_plural = "Companies"
        ordering = ["name"]

    def __str__(self):
        return f"{self.name} ({self.code})"

    def clean(self):
        self.name = (self.name or "").strip()
        self.code = (self.code or "").strip().lower()
        self.base_currency = (self.base_currency or "").strip().upper()

        if not self.name:
            raise ValidationError({"name": "name is required"})
        if not self.code:
            raise ValidationError({"code": "code is required"})
        if len(self.base_currency) != 3:
            raise ValidationError({"base_currency": "Use a 3-letter ISO currency code"})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


class CompanySequence(models.Model):
    """
    Per-company counters for sequential identifiers (journal numbers).

    Allocated under select_for_update inside the posting transaction, so
    concurrent postings for one company serialize on this row only.
    """

    JOURNAL_NUMBER = "journal_number"

    company = models.ForeignKey(
        Company,
        on_delete=models.CASCADE,
        related_name="sequences",
    )
    name = models.CharField(max_length=100)
    next_value = models.BigIntegerField(default=1)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["company", "name"],
                name="uniq_company_sequence_name",
            ),
        ]

    def __str__(self):
        return f"{self.company_id}:{self.name}={self.next_value}"
