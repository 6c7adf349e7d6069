# accounting/apps.py

"""
ACCOUNTING APP CONFIG

Ledger core:
- Companies, chart of accounts (control + legacy party accounts)
- Posting rules engine + journal store
- Reporting (trial balance, statements, aging, reconciliation)
"""

from django.apps import AppConfig


class AccountingConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "accounting"
    verbose_name = "Accounting Ledger"
