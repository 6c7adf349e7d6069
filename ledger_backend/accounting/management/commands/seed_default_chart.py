# accounting/management/commands/seed_default_chart.py

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from accounting.models.account import Account
from accounting.models.company import Company
from accounting.models.posting_rule import PostingRule

A = Account

# code, name, type, subtype, extra flags
DEFAULT_ACCOUNTS = [
    # ASSETS
    ("1111", "Cash on Hand", A.ASSET, "Current Assets", {}),
    ("1112", "Bank Accounts - Current", A.ASSET, "Current Assets", {}),
    (
        "1120",
        "Trade Receivables",
        A.ASSET,
        "Current Assets",
        {"is_control_account": True, "control_account_type": A.CONTROL_RECEIVABLES},
    ),
    ("1141", "CGST Input", A.ASSET, "Current Assets", {"is_control_account": True, "control_account_type": A.CONTROL_GST_INPUT}),
    ("1142", "SGST Input", A.ASSET, "Current Assets", {"is_control_account": True, "control_account_type": A.CONTROL_GST_INPUT}),
    ("1143", "IGST Input", A.ASSET, "Current Assets", {"is_control_account": True, "control_account_type": A.CONTROL_GST_INPUT}),
    ("1710", "Plant and Machinery", A.ASSET, "Fixed Assets", {}),
    ("1720", "Accumulated Depreciation", A.ASSET, "Fixed Assets", {"is_contra_account": True}),
    # LIABILITIES
    (
        "2100",
        "Trade Payables",
        A.LIABILITY,
        "Current Liabilities",
        {"is_control_account": True, "control_account_type": A.CONTROL_PAYABLES},
    ),
    (
        "2110",
        "Salary and Wages Payable",
        A.LIABILITY,
        "Current Liabilities",
        {"is_control_account": True, "control_account_type": A.CONTROL_SALARIES},
    ),
    ("2251", "CGST Payable", A.LIABILITY, "Duties and Taxes", {"is_control_account": True, "control_account_type": A.CONTROL_GST_OUTPUT}),
    ("2252", "SGST Payable", A.LIABILITY, "Duties and Taxes", {"is_control_account": True, "control_account_type": A.CONTROL_GST_OUTPUT}),
    ("2253", "IGST Payable", A.LIABILITY, "Duties and Taxes", {"is_control_account": True, "control_account_type": A.CONTROL_GST_OUTPUT}),
    (
        "2510",
        "Long-Term Borrowings",
        A.LIABILITY,
        "Non-Current Liabilities",
        {"is_control_account": True, "control_account_type": A.CONTROL_LOANS},
    ),
    # EQUITY
    ("3100", "Share Capital", A.EQUITY, "Share Capital", {}),
    ("3200", "Retained Earnings", A.EQUITY, "Reserves and Surplus", {}),
    # INCOME
    ("4110", "Domestic Sales - Services", A.INCOME, "Revenue from Operations", {}),
    ("4900", "Other Income", A.INCOME, "Other Income", {}),
    # EXPENSES
    ("5020", "Contractor Payments", A.EXPENSE, "Direct Expenses", {}),
    ("5100", "General Expenses", A.EXPENSE, "Administrative Expenses", {}),
    ("5210", "Salaries", A.EXPENSE, "Employee Benefits", {}),
    ("5810", "Depreciation", A.EXPENSE, "Depreciation", {}),
]


def _camel(side, code, field, subledger_type=None, subledger_field=None):
    line = {"side": side, "accountCode": code, "amountField": field}
    if subledger_type:
        line["subledgerType"] = subledger_type
        line["subledgerField"] = subledger_field
    return line


# rule_code, name, source_type, conditions, template
DEFAULT_RULES = [
    (
        "INV_DEFAULT",
        "Customer invoice",
        "invoice",
        {},
        {
            "descriptionTemplate": "Invoice {invoice_number}",
            "lines": [
                _camel("debit", "1120", "total_amount", "customer", "customer_id"),
                _camel("credit", "4110", "subtotal"),
                _camel("credit", "2251", "cgst_amount"),
                _camel("credit", "2252", "sgst_amount"),
                _camel("credit", "2253", "igst_amount"),
            ],
        },
    ),
    (
        "PMT_DEFAULT",
        "Customer payment",
        "payment",
        {},
        {
            "descriptionTemplate": "Payment {payment_number}",
            "lines": [
                _camel("debit", "1112", "amount"),
                _camel("credit", "1120", "amount", "customer", "customer_id"),
            ],
        },
    ),
    (
        "VINV_DEFAULT",
        "Vendor invoice",
        "vendor_invoice",
        {},
        {
            "descriptionTemplate": "Vendor invoice {invoice_number}",
            "lines": [
                _camel("debit", "5020", "subtotal"),
                _camel("debit", "1141", "cgst_amount"),
                _camel("debit", "1142", "sgst_amount"),
                _camel("debit", "1143", "igst_amount"),
                _camel("credit", "2100", "total_amount", "vendor", "vendor_id"),
            ],
        },
    ),
    (
        "VPMT_DEFAULT",
        "Vendor payment",
        "vendor_payment",
        {},
        {
            "descriptionTemplate": "Vendor payment {payment_number}",
            "lines": [
                _camel("debit", "2100", "amount", "vendor", "vendor_id"),
                _camel("credit", "1112", "amount"),
            ],
        },
    ),
    (
        "EXP_DEFAULT",
        "Expense (no GST)",
        "expense",
        {},
        {
            "description_template": "Expense: {title}",
            "lines": [
                {
                    "account_code_field": "expense_account",
                    "account_code_fallback": "5100",
                    "debit_field": "total_amount",
                },
                {"account_code": "1112", "credit_field": "total_amount"},
            ],
        },
    ),
    (
        "EXP_GST_INTRA",
        "Expense with intra-state GST",
        "expense",
        {"is_gst_applicable": True, "supply_type": "intra_state"},
        {
            "description_template": "Expense: {title}",
            "lines": [
                {
                    "account_code_field": "expense_account",
                    "account_code_fallback": "5100",
                    "debit_field": "base_amount",
                },
                {"account_code": "1141", "debit_field": "cgst_amount"},
                {"account_code": "1142", "debit_field": "sgst_amount"},
                {"account_code": "1112", "credit_field": "total_amount"},
            ],
        },
    ),
    (
        "PAYROLL_DEFAULT",
        "Payroll run",
        "payroll",
        {"status": ["approved", "paid"]},
        {
            "description_template": "Payroll {period}",
            "lines": [
                {"account_code": "5210", "debit_field": "gross_salary"},
                {
                    "account_code": "2110",
                    "credit_field": "gross_salary",
                    "subledger_type": "employee",
                    "subledger_id_field": "employee_id",
                },
            ],
        },
    ),
]


class Command(BaseCommand):
    help = "Seed a company with the default chart of accounts and posting rules"

    def add_arguments(self, parser):
        parser.add_argument("company_code", help="Stable company code (slug)")
        parser.add_argument("--name", dest="name", help="Company display name (defaults to the code)")

    @transaction.atomic
    def handle(self, *args, **options):
        code = (options["company_code"] or "").strip().lower()
        if not code:
            raise CommandError("company_code is required")

        company, created = Company.objects.get_or_create(
            code=code,
            defaults={"name": options.get("name") or code.upper()},
        )
        if created:
            self.stdout.write(f"Created company {company.code}")
        elif options.get("name") and company.name != options["name"]:
            company.name = options["name"]
            company.save()

        created_count = 0
        updated_count = 0

        for acc_code, name, account_type, subtype, flags in DEFAULT_ACCOUNTS:
            acc, acc_created = Account.objects.get_or_create(
                company=company,
                code=acc_code,
                defaults={
                    "name": name,
                    "account_type": account_type,
                    "account_subtype": subtype,
                    "is_system_account": True,
                    "is_active": True,
                    **flags,
                },
            )

            if acc_created:
                created_count += 1
                continue

            needs_update = False
            if acc.name != name:
                acc.name = name
                needs_update = True
            if acc.account_type != account_type:
                acc.account_type = account_type
                needs_update = True
            if not acc.is_active:
                acc.is_active = True
                needs_update = True

            if needs_update:
                acc.save()
                updated_count += 1

        rules_created = 0
        for rule_code, rule_name, source_type, conditions, template in DEFAULT_RULES:
            _, rule_created = PostingRule.objects.get_or_create(
                company=company,
                rule_code=rule_code,
                financial_year=None,
                defaults={
                    "rule_name": rule_name,
                    "source_type": source_type,
                    "conditions": conditions,
                    "posting_template": template,
                    "priority": 100,
                    "is_system_rule": True,
                },
            )
            rules_created += int(rule_created)

        self.stdout.write(
            self.style.SUCCESS(
                f"Chart seeded for {company.code} ({created_count} new accounts, "
                f"{updated_count} updated, {rules_created} new posting rules)."
            )
        )
