# accounting/admin.py

from django.contrib import admin

from accounting.models.account import Account
from accounting.models.company import Company
from accounting.models.journal import JournalEntry
from accounting.models.ledger import JournalEntryLine
from accounting.models.posting_rule import PostingRule, PostingRuleUsageLog

# ============================================================
# COMPANY
# ============================================================


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "base_currency", "is_active", "created_at")
    list_filter = ("is_active",)
    search_fields = ("code", "name")
    readonly_fields = ("created_at", "updated_at")
    ordering = ("name",)


# ============================================================
# ACCOUNT
# ============================================================


@admin.register(Account)
class AccountAdmin(admin.ModelAdmin):
    list_display = (
        "code",
        "name",
        "account_type",
        "company",
        "is_control_account",
        "is_legacy_party_account",
        "current_balance",
        "is_active",
    )
    list_filter = ("account_type", "is_control_account", "is_legacy_party_account", "is_active", "company")
    search_fields = ("code", "name")
    ordering = ("company", "code")
    readonly_fields = ("depth_level", "current_balance", "created_at", "updated_at")

    fieldsets = (
        (
            "Account Identity",
            {
                "fields": ("company", "code", "name", "account_type", "account_subtype", "normal_balance", "parent"),
            },
        ),
        (
            "Party Regime",
            {
                "fields": (
                    "is_control_account",
                    "control_account_type",
                    "is_legacy_party_account",
                    "legacy_party_type",
                    "legacy_party_id",
                ),
            },
        ),
        (
            "Balances",
            {
                "fields": ("opening_balance", "current_balance", "is_contra_account"),
            },
        ),
        (
            "Status",
            {
                "fields": ("is_active", "is_system_account"),
            },
        ),
        (
            "System Fields",
            {
                "fields": ("depth_level", "created_at", "updated_at"),
            },
        ),
    )


# ============================================================
# POSTING RULES
# ============================================================


@admin.register(PostingRule)
class PostingRuleAdmin(admin.ModelAdmin):
    list_display = (
        "rule_code",
        "company",
        "source_type",
        "trigger_event",
        "financial_year",
        "priority",
        "is_active",
    )
    list_filter = ("source_type", "trigger_event", "is_active", "company")
    search_fields = ("rule_code", "rule_name", "source_type")
    ordering = ("source_type", "priority", "rule_code")
    readonly_fields = ("created_at", "updated_at")


@admin.register(PostingRuleUsageLog)
class PostingRuleUsageLogAdmin(admin.ModelAdmin):
    list_display = ("id", "posting_rule", "source_type", "source_id", "journal_entry", "success", "created_at")
    list_filter = ("success", "source_type")
    search_fields = ("source_id", "posting_rule__rule_code")
    ordering = ("-created_at",)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# ============================================================
# JOURNAL ENTRY (READ-ONLY)
# ============================================================


class JournalEntryLineInline(admin.TabularInline):
    model = JournalEntryLine
    extra = 0
    can_delete = False
    fields = (
        "line_number",
        "account",
        "debit_amount",
        "credit_amount",
        "description",
        "subledger_type",
        "subledger_id",
    )
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(JournalEntry)
class JournalEntryAdmin(admin.ModelAdmin):
    list_display = (
        "journal_number",
        "company",
        "journal_date",
        "entry_type",
        "status",
        "source_type",
        "source_id",
        "total_debit",
        "total_credit",
    )
    list_filter = ("status", "entry_type", "company", "financial_year")
    search_fields = ("journal_number", "description", "source_type", "source_id", "source_number")
    ordering = ("-journal_date", "-journal_number")
    inlines = [JournalEntryLineInline]

    readonly_fields = (
        "company",
        "journal_number",
        "journal_date",
        "financial_year",
        "period_month",
        "entry_type",
        "source_type",
        "source_id",
        "source_number",
        "description",
        "narration",
        "total_debit",
        "total_credit",
        "status",
        "rule_code",
        "posted_at",
        "posted_by",
        "reversal_of",
        "reversed_at",
        "reversed_by",
        "reversal_reason",
        "created_at",
    )

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
