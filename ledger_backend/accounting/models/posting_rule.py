# accounting/models/posting_rule.py

"""
======================================================
PATH: accounting/models/posting_rule.py
======================================================
POSTING RULE MODELS

PostingRule:
- Configured mapping from a business-event shape to a journal template
- company NULL = global rule (applies to every company)
- financial_year NULL = applies to every fiscal year (rule-pack version)
- conditions: flat JSON object, {"field": scalar | [scalar, ...]}
- posting_template: {"description_template", "narration_template", "lines": [...]}
  Authored externally; the engine only reads it.

PostingRuleUsageLog:
- Audit link between a rule, the entry it produced (if any) and the source
  event, with a snapshot of what the rule looked like at the time.
"""

from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

from accounting.models.company import Company
from accounting.models.journal import JournalEntry


class PostingRule(models.Model):
    DEFAULT_TRIGGER = "on_finalize"

    company = models.ForeignKey(
        Company,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="posting_rules",
        help_text="Leave empty for a global rule",
    )

    rule_code = models.CharField(max_length=50)
    rule_name = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")

    source_type = models.CharField(max_length=50, db_index=True)
    trigger_event = models.CharField(max_length=50, default=DEFAULT_TRIGGER)

    conditions = models.JSONField(default=dict, blank=True)
    posting_template = models.JSONField(default=dict)

    financial_year = models.CharField(
        max_length=7,
        null=True,
        blank=True,
        help_text='Rule-pack version, e.g. "2024-25". Empty = every year.',
    )
    effective_from = models.DateField(null=True, blank=True)
    effective_to = models.DateField(null=True, blank=True)

    priority = models.IntegerField(default=100, help_text="Lower runs first")
    is_active = models.BooleanField(default=True)
    is_system_rule = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["source_type", "priority", "rule_code"]
        indexes = [
            models.Index(fields=["company", "source_type", "trigger_event"]),
            models.Index(fields=["is_active"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "rule_code", "financial_year"],
                name="uniq_posting_rule_code_version",
            ),
            models.CheckConstraint(
                condition=Q(effective_to__isnull=True)
                | Q(effective_from__isnull=True)
                | Q(effective_to__gte=models.F("effective_from")),
                name="chk_posting_rule_effective_range",
            ),
        ]

    def __str__(self):
        scope = self.company.code if self.company_id else "global"
        return f"{self.rule_code} [{scope}] {self.source_type}/{self.trigger_event}"

    def clean(self):
        self.rule_code = (self.rule_code or "").strip().upper()
        self.source_type = (self.source_type or "").strip()
        self.trigger_event = (self.trigger_event or "").strip() or self.DEFAULT_TRIGGER
        if self.financial_year is not None:
            self.financial_year = self.financial_year.strip() or None

        if not self.rule_code:
            raise ValidationError({"rule_code": "rule_code is required"})
        if not self.source_type:
            raise ValidationError({"source_type": "source_type is required"})

        if not isinstance(self.conditions, dict):
            raise ValidationError({"conditions": "conditions must be a JSON object"})

        template = self.posting_template
        if not isinstance(template, dict) or not isinstance(template.get("lines"), list):
            raise ValidationError({"posting_template": 'posting_template needs a "lines" list'})
        if not template["lines"]:
            raise ValidationError({"posting_template": "posting_template has no lines"})
        if not all(isinstance(line, dict) for line in template["lines"]):
            raise ValidationError({"posting_template": "Each template line must be a JSON object"})

        # NULL company / NULL year are not distinct for rule identity.
        clash = PostingRule.objects.filter(
            company_id=self.company_id,
            rule_code=self.rule_code,
            financial_year=self.financial_year,
        ).exclude(pk=self.pk)
        if clash.exists():
            raise ValidationError({"rule_code": "A rule with this code already exists for this company and year"})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


class PostingRuleUsageLog(models.Model):
    posting_rule = models.ForeignKey(
        PostingRule,
        on_delete=models.SET_NULL,
        null=True,
        related_name="usage_logs",
    )
    journal_entry = models.ForeignKey(
        JournalEntry,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="rule_usage_logs",
    )

    company = models.ForeignKey(
        Company,
        on_delete=models.CASCADE,
        related_name="posting_rule_usage_logs",
    )
    source_type = models.CharField(max_length=50)
    source_id = models.CharField(max_length=64)

    rule_snapshot = models.JSONField(default=dict)

    computed_by = models.CharField(max_length=150, blank=True, default="")
    success = models.BooleanField(default=True)
    error_message = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["source_type", "source_id"]),
            models.Index(fields=["success"]),
        ]

    def __str__(self):
        outcome = "ok" if self.success else "failed"
        return f"{self.source_type}:{self.source_id} via {self.posting_rule_id} ({outcome})"
