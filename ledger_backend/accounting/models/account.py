# accounting/models/account.py

from __future__ import annotations

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.db.models import Q

from accounting.models.company import Company


class Account(models.Model):
    """
    Represents a single account within a company's Chart of Accounts.

    Guarantees:
    - Account codes are unique per company
    - Code + name are normalized (trimmed)
    - normal_balance fixes the sign convention used by every report
    - opening_balance / current_balance are stored debit-positive
      (debit minus credit); reports flip them for credit-normal accounts

    Two party regimes coexist:
    - Control accounts (Trade Payables, Trade Receivables, ...) carry party
      detail on journal lines via subledger_type/subledger_id
    - Legacy party accounts are one ledger row per vendor/customer
    An account is never both.
    """

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    INCOME = "income"
    EXPENSE = "expense"

    ACCOUNT_TYPES = [
        (ASSET, "Asset"),
        (LIABILITY, "Liability"),
        (EQUITY, "Equity"),
        (INCOME, "Income"),
        (EXPENSE, "Expense"),
    ]

    DEBIT = "debit"
    CREDIT = "credit"

    NORMAL_BALANCES = [
        (DEBIT, "Debit"),
        (CREDIT, "Credit"),
    ]

    NORMAL_BALANCE_BY_TYPE = {
        ASSET: DEBIT,
        EXPENSE: DEBIT,
        LIABILITY: CREDIT,
        EQUITY: CREDIT,
        INCOME: CREDIT,
    }

    CONTROL_PAYABLES = "payables"
    CONTROL_RECEIVABLES = "receivables"
    CONTROL_BANK = "bank"
    CONTROL_TDS_PAYABLE = "tds_payable"
    CONTROL_TDS_RECEIVABLE = "tds_receivable"
    CONTROL_GST_INPUT = "gst_input"
    CONTROL_GST_OUTPUT = "gst_output"
    CONTROL_LOANS = "loans"
    CONTROL_SALARIES = "salaries"

    CONTROL_ACCOUNT_TYPES = [
        (CONTROL_PAYABLES, "Payables"),
        (CONTROL_RECEIVABLES, "Receivables"),
        (CONTROL_BANK, "Bank"),
        (CONTROL_TDS_PAYABLE, "TDS Payable"),
        (CONTROL_TDS_RECEIVABLE, "TDS Receivable"),
        (CONTROL_GST_INPUT, "GST Input"),
        (CONTROL_GST_OUTPUT, "GST Output"),
        (CONTROL_LOANS, "Loans"),
        (CONTROL_SALARIES, "Salaries Payable"),
    ]

    PARTY_VENDOR = "vendor"
    PARTY_CUSTOMER = "customer"
    PARTY_EMPLOYEE = "employee"

    LEGACY_PARTY_TYPES = [
        (PARTY_VENDOR, "Vendor"),
        (PARTY_CUSTOMER, "Customer"),
        (PARTY_EMPLOYEE, "Employee"),
    ]

    company = models.ForeignKey(
        Company,
        on_delete=models.PROTECT,
        related_name="accounts",
    )

    code = models.CharField(max_length=20)
    name = models.CharField(max_length=200)

    account_type = models.CharField(max_length=20, choices=ACCOUNT_TYPES)
    account_subtype = models.CharField(max_length=50, blank=True, default="")

    normal_balance = models.CharField(
        max_length=6,
        choices=NORMAL_BALANCES,
        blank=True,
        default="",
        help_text="Defaults from account_type when left blank",
    )

    parent = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="children",
    )
    depth_level = models.PositiveSmallIntegerField(default=0)

    # Control regime
    is_control_account = models.BooleanField(default=False)
    control_account_type = models.CharField(
        max_length=20,
        choices=CONTROL_ACCOUNT_TYPES,
        blank=True,
        default="",
    )

    # Legacy per-party regime
    is_legacy_party_account = models.BooleanField(default=False)
    legacy_party_type = models.CharField(
        max_length=20,
        choices=LEGACY_PARTY_TYPES,
        blank=True,
        default="",
    )
    legacy_party_id = models.CharField(max_length=64, blank=True, default="")

    is_contra_account = models.BooleanField(
        default=False,
        help_text="Legitimately carries a balance opposite to its type (e.g. accumulated depreciation)",
    )
    is_system_account = models.BooleanField(default=False)

    opening_balance = models.DecimalField(
        max_digits=18,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Signed, debit-positive",
    )
    current_balance = models.DecimalField(
        max_digits=18,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Signed, debit-positive; opening + posted debits - posted credits",
    )

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["code"]
        verbose_name = "Account"
        verbose_name_plural = "Accounts"
        indexes = [
            models.Index(fields=["company", "code"]),
            models.Index(fields=["company", "account_type"]),
            models.Index(fields=["company", "is_control_account"]),
            models.Index(fields=["legacy_party_type", "legacy_party_id"]),
            models.Index(fields=["is_active"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "code"],
                name="uniq_account_company_code",
            ),
            models.CheckConstraint(
                condition=~Q(code=""),
                name="chk_account_code_not_blank",
            ),
            models.CheckConstraint(
                condition=~Q(name=""),
                name="chk_account_name_not_blank",
            ),
            models.CheckConstraint(
                condition=~Q(is_control_account=True, is_legacy_party_account=True),
                name="chk_account_single_party_regime",
            ),
            models.CheckConstraint(
                condition=Q(is_control_account=False) | ~Q(control_account_type=""),
                name="chk_account_control_type_set",
            ),
        ]

    def __str__(self):
        return f"{self.code} – {self.name}"

    @property
    def is_debit_normal(self) -> bool:
        return (self.normal_balance or self.NORMAL_BALANCE_BY_TYPE.get(self.account_type)) == self.DEBIT

    def in_normal_direction(self, debit_positive: Decimal) -> Decimal:
        """Flip a debit-positive amount so that a 'normal' balance is positive."""
        return debit_positive if self.is_debit_normal else -debit_positive

    def clean(self):
        self.code = (self.code or "").strip()
        self.name = (self.name or "").strip()
        self.account_subtype = (self.account_subtype or "").strip()
        self.legacy_party_id = (self.legacy_party_id or "").strip()

        if not self.code:
            raise ValidationError("Account code is required")
        if not self.name:
            raise ValidationError("Account name is required")

        if not self.normal_balance:
            self.normal_balance = self.NORMAL_BALANCE_BY_TYPE.get(self.account_type, "")

        if self.parent_id is not None:
            if self.parent.company_id != self.company_id:
                raise ValidationError({"parent": "Parent account must belong to the same company"})
            if self.pk and self.parent_id == self.pk:
                raise ValidationError({"parent": "An account cannot be its own parent"})
            self.depth_level = self.parent.depth_level + 1
        else:
            self.depth_level = 0

        if self.is_control_account and self.is_legacy_party_account:
            raise ValidationError("An account cannot be both a control account and a legacy party account")

        if self.is_control_account and not self.control_account_type:
            raise ValidationError({"control_account_type": "Control accounts need a control_account_type"})
        if not self.is_control_account:
            self.control_account_type = ""

        if self.is_legacy_party_account:
            if not self.legacy_party_type or not self.legacy_party_id:
                raise ValidationError("Legacy party accounts need legacy_party_type and legacy_party_id")
        else:
            self.legacy_party_type = ""
            self.legacy_party_id = ""

    def save(self, *args, **kwargs):
        self.full_clean()

        if self._state.adding:
            self.current_balance = self.opening_balance
            return super().save(*args, **kwargs)

        # current_balance is moved with F() updates by the journal store; never
        # write back a stale in-memory copy. An opening change shifts it by the delta.
        with transaction.atomic():
            stored = (
                type(self)
                .objects.select_for_update()
                .filter(pk=self.pk)
                .values("opening_balance", "current_balance")
                .first()
            )
            if stored is not None:
                self.current_balance = stored["current_balance"] + (
                    self.opening_balance - stored["opening_balance"]
                )
            return super().save(*args, **kwargs)
