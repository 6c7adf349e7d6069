# accounting/tests/test_financial_reports.py

from __future__ import annotations

from datetime import date
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.test import TestCase

from accounting.management.commands.seed_default_chart import DEFAULT_ACCOUNTS
from accounting.models.account import Account
from accounting.models.company import Company
from accounting.services.abnormal_balance_service import (
    SEVERITY_INFO,
    SEVERITY_WARNING,
    STATUS_ERROR,
    STATUS_SUCCESS,
    STATUS_WARNING,
    get_abnormal_balances,
    summary_status,
)
from accounting.services.account_ledger_service import get_account_ledger
from accounting.services.balance_sheet_service import CURRENT_EARNINGS_NAME, generate_balance_sheet
from accounting.services.journal_entry_service import create_manual_entry, reverse_entry
from accounting.services.posting import post_from_source
from accounting.services.profit_and_loss_service import get_profit_and_loss
from accounting.services.trial_balance_service import generate_trial_balance, trial_balance_for_period

APR_10 = date(2024, 4, 10)
MAY_01 = date(2024, 5, 1)
MAY_10 = date(2024, 5, 10)
MAY_31 = date(2024, 5, 31)
JUN_30 = date(2024, 6, 30)


def _seed(code="acme") -> Company:
    call_command("seed_default_chart", code, stdout=StringIO())
    return Company.objects.get(code=code)


def _manual(company, when, debit_code, credit_code, amount, description="Manual entry", **kwargs):
    return create_manual_entry(
        company=company,
        journal_date=when,
        description=description,
        lines=[
            {"account_code": debit_code, "debit": amount},
            {"account_code": credit_code, "credit": amount},
        ],
        **kwargs,
    )


def _invoice(company, when=MAY_10, source_id="INV-001"):
    return post_from_source(
        company=company,
        source_type="invoice",
        source_id=source_id,
        source_data={
            "invoice_number": source_id,
            "customer_id": "C-1",
            "subtotal": 10000,
            "cgst_amount": 900,
            "sgst_amount": 900,
            "total_amount": 11800,
        },
        entry_date=when,
    ).entry


def _expense(company, when=MAY_10, amount=2000, source_id="EXP-1"):
    return post_from_source(
        company=company,
        source_type="expense",
        source_id=source_id,
        source_data={"title": "Stationery", "total_amount": amount},
        entry_date=when,
    ).entry


def _row(report, code):
    return next(r for r in report["accounts"] if r["account_code"] == code)


class TrialBalanceTests(TestCase):
    def setUp(self):
        self.company = _seed()

    def test_empty_ledger(self):
        tb = generate_trial_balance(company=self.company, as_of=MAY_31)
        self.assertEqual(tb["accounts"], [])
        self.assertTrue(tb["totals"]["balanced"])
        self.assertEqual(tb["data_quality_alerts"], [])

        full = generate_trial_balance(company=self.company, as_of=MAY_31, include_zero=True)
        self.assertEqual(len(full["accounts"]), len(DEFAULT_ACCOUNTS))
        self.assertTrue(all(r["closing"] == 0.0 for r in full["accounts"]))

    def test_columns_and_totals(self):
        _manual(self.company, APR_10, "1112", "3100", "100000.00", description="Capital")
        _invoice(self.company)

        tb = generate_trial_balance(company=self.company, as_of=MAY_31)

        self.assertEqual(
            {r["account_code"] for r in tb["accounts"]},
            {"1112", "1120", "2251", "2252", "3100", "4110"},
        )
        self.assertEqual(_row(tb, "1120")["debit"], 11800.0)
        self.assertEqual(_row(tb, "1120")["debit_minor"], 1180000)

        capital = _row(tb, "3100")
        self.assertEqual(capital["credit"], 100000.0)
        self.assertEqual(capital["debit"], 0.0)
        self.assertEqual(capital["closing"], -100000.0)
        self.assertEqual(capital["balance"], 100000.0)
        self.assertEqual(capital["normal_balance"], Account.CREDIT)
        self.assertFalse(capital["is_abnormal"])

        totals = tb["totals"]
        self.assertEqual(totals["debit"], 111800.0)
        self.assertEqual(totals["credit"], 111800.0)
        self.assertEqual(totals["debit_minor"], totals["credit_minor"])
        self.assertTrue(totals["balanced"])
        self.assertEqual(sum(r["debit_minor"] for r in tb["accounts"]), totals["debit_minor"])

    def test_as_of_is_inclusive_and_filters_later_entries(self):
        _manual(self.company, APR_10, "1112", "3100", "100000.00")
        _invoice(self.company)

        april = generate_trial_balance(company=self.company, as_of=date(2024, 4, 30))
        self.assertEqual(april["totals"]["debit"], 100000.0)

        same_day = generate_trial_balance(company=self.company, as_of=MAY_10)
        self.assertEqual(same_day["totals"]["debit"], 111800.0)

    def test_period_helper(self):
        _manual(self.company, APR_10, "1112", "3100", "100000.00")
        _invoice(self.company)

        tb = trial_balance_for_period(company=self.company, financial_year="2024-25", period_month=1)
        self.assertEqual(tb["as_of"], "2024-04-30")
        self.assertEqual(tb["totals"]["debit"], 100000.0)

    def test_from_date_splits_opening_and_period(self):
        _manual(self.company, APR_10, "1112", "3100", "100000.00")
        _invoice(self.company)

        tb = generate_trial_balance(company=self.company, as_of=MAY_31, from_date=MAY_01)
        bank = _row(tb, "1112")
        self.assertEqual(bank["opening"], 100000.0)
        self.assertEqual(bank["period_debit"], 0.0)
        self.assertEqual(bank["closing"], 100000.0)

        receivables = _row(tb, "1120")
        self.assertEqual(receivables["opening"], 0.0)
        self.assertEqual(receivables["period_debit"], 11800.0)
        self.assertTrue(tb["totals"]["balanced"])

    def test_drafts_excluded_and_reversals_net_to_zero(self):
        _manual(self.company, APR_10, "1112", "3100", "500.00", auto_post=False)
        invoice = _invoice(self.company)
        reverse_entry(invoice.pk, reason="Raised in error")

        tb = generate_trial_balance(company=self.company, as_of=MAY_31)
        self.assertNotIn("1112", {r["account_code"] for r in tb["accounts"]})

        receivables = _row(tb, "1120")
        self.assertEqual(receivables["period_debit"], 11800.0)
        self.assertEqual(receivables["period_credit"], 11800.0)
        self.assertEqual(receivables["closing"], 0.0)
        self.assertEqual(tb["totals"]["debit"], 0.0)
        self.assertTrue(tb["totals"]["balanced"])

    def test_imbalance_is_reported_not_raised(self):
        _manual(self.company, APR_10, "1112", "3100", "1000.00")
        Account.objects.filter(company=self.company, code="1111").update(opening_balance=Decimal("500.00"))

        tb = generate_trial_balance(company=self.company, as_of=MAY_31)
        self.assertFalse(tb["totals"]["balanced"])
        self.assertEqual(tb["totals"]["difference"], 500.0)
        self.assertTrue(tb["data_quality_alerts"])

    def test_other_company_not_included(self):
        other = _seed("globex")
        _manual(other, APR_10, "1112", "3100", "100.00")
        tb = generate_trial_balance(company=self.company, as_of=MAY_31)
        self.assertEqual(tb["accounts"], [])


class AccountLedgerTests(TestCase):
    def setUp(self):
        self.company = _seed()
        _manual(self.company, APR_10, "1112", "3100", "100000.00", description="Capital")
        _expense(self.company)

    def test_opening_and_running_balance(self):
        bank = Account.objects.get(company=self.company, code="1112")
        ledger = get_account_ledger(account=bank, from_date=MAY_01, to_date=MAY_31)

        self.assertEqual(ledger["opening_balance"], 100000.0)
        self.assertEqual(len(ledger["lines"]), 1)
        self.assertEqual(ledger["lines"][0]["credit"], 2000.0)
        self.assertEqual(ledger["lines"][0]["running_balance"], 98000.0)
        self.assertEqual(ledger["closing_balance"], 98000.0)
        self.assertEqual(ledger["totals"]["credit"], 2000.0)

    def test_credit_normal_account_runs_positive(self):
        capital = Account.objects.get(company=self.company, code="3100")
        ledger = get_account_ledger(account=capital, to_date=MAY_31)

        self.assertEqual(ledger["opening_balance"], 0.0)
        self.assertEqual([ln["running_balance"] for ln in ledger["lines"]], [100000.0])
        self.assertEqual(ledger["closing_balance"], 100000.0)

    def test_lines_are_chronological(self):
        _manual(self.company, MAY_01, "1112", "3100", "50.00")
        bank = Account.objects.get(company=self.company, code="1112")
        ledger = get_account_ledger(account=bank, to_date=MAY_31)

        self.assertEqual(
            [ln["journal_date"] for ln in ledger["lines"]],
            ["2024-04-10", "2024-05-01", "2024-05-10"],
        )
        self.assertEqual(ledger["closing_balance"], 98050.0)


class IncomeStatementTests(TestCase):
    def setUp(self):
        self.company = _seed()
        _invoice(self.company)
        _expense(self.company)
        Account.objects.create(
            company=self.company,
            code="4999",
            name="Miscellaneous Receipts",
            account_type=Account.INCOME,
        )
        _manual(self.company, date(2024, 6, 5), "1112", "4999", "150.00")

    def test_period_totals(self):
        pl = get_profit_and_loss(company=self.company, start_date=MAY_01, end_date=MAY_31)
        self.assertEqual(pl["income"], 10000.0)
        self.assertEqual(pl["expenses"], 2000.0)
        self.assertEqual(pl["net_profit"], 8000.0)
        self.assertEqual(pl["net_profit_minor"], 800000)
        self.assertEqual([g["name"] for g in pl["income_groups"]], ["Revenue from Operations"])
        self.assertEqual([g["name"] for g in pl["expense_groups"]], ["Administrative Expenses"])

    def test_blank_subtype_goes_to_default_group(self):
        pl = get_profit_and_loss(company=self.company, start_date=MAY_01, end_date=JUN_30)
        self.assertEqual(pl["income"], 10150.0)
        groups = {g["name"]: g["total"] for g in pl["income_groups"]}
        self.assertEqual(groups, {"Other Income": 150.0, "Revenue from Operations": 10000.0})


class BalanceSheetTests(TestCase):
    def setUp(self):
        self.company = _seed()
        _manual(self.company, APR_10, "1112", "3100", "100000.00")
        _invoice(self.company)

    def test_balances_with_current_period_earnings(self):
        bs = generate_balance_sheet(company=self.company, as_of_date=MAY_31)

        totals = bs["totals"]
        self.assertEqual(totals["assets"], 111800.0)
        self.assertEqual(totals["liabilities"], 1800.0)
        self.assertEqual(totals["equity"], 110000.0)
        self.assertEqual(totals["liabilities_plus_equity"], 111800.0)
        self.assertTrue(totals["balanced"])
        self.assertEqual(bs["data_quality_alerts"], [])

        equity_groups = {g["name"]: g["total"] for g in bs["equity"]}
        self.assertEqual(equity_groups[CURRENT_EARNINGS_NAME], 10000.0)
        self.assertEqual(equity_groups["Share Capital"], 100000.0)

    def test_mismatch_reported_as_alert(self):
        Account.objects.filter(company=self.company, code="1111").update(opening_balance=Decimal("500.00"))

        bs = generate_balance_sheet(company=self.company, as_of_date=MAY_31)
        self.assertFalse(bs["totals"]["balanced"])
        self.assertEqual(bs["totals"]["difference"], 500.0)
        self.assertEqual(len(bs["data_quality_alerts"]), 1)


class AbnormalBalanceTests(TestCase):
    def setUp(self):
        self.company = _seed()
        _manual(self.company, APR_10, "1112", "3100", "100000.00")

    def test_vendor_advance_and_contra_account(self):
        post_from_source(
            company=self.company,
            source_type="vendor_payment",
            source_id="VP-1",
            source_data={"vendor_id": "V-1", "amount": 5000, "payment_number": "VP-1"},
            entry_date=MAY_10,
        )
        _manual(self.company, MAY_10, "5810", "1720", "1000.00", description="Depreciation")

        report = get_abnormal_balances(company=self.company, as_of=MAY_31)

        self.assertEqual([r["account_code"] for r in report["accounts"]], ["2100", "1720"])

        payables = report["accounts"][0]
        self.assertEqual(payables["category"], "Liability with Debit Balance")
        self.assertEqual(payables["possible_reason"], "Advance paid or overpayment to vendor")
        self.assertEqual(payables["actual_balance_side"], Account.DEBIT)
        self.assertEqual(payables["amount"], 5000.0)
        self.assertEqual(payables["severity"], SEVERITY_WARNING)

        contra = report["accounts"][1]
        self.assertTrue(contra["is_contra_account"])
        self.assertEqual(contra["severity"], SEVERITY_INFO)

        summary = report["summary"]
        self.assertEqual(summary["actionable_accounts"], 1)
        self.assertEqual(summary["contra_accounts"], 1)
        self.assertEqual(summary["liabilities_with_debit"], 1)
        self.assertEqual(summary["total_abnormal_amount"], 5000.0)
        self.assertEqual(summary["status"], STATUS_WARNING)

    def test_income_and_expense_reasons(self):
        _manual(self.company, MAY_10, "4110", "1112", "400.00", description="Sales return")
        _manual(self.company, MAY_10, "1112", "5100", "300.00", description="Refund")

        report = get_abnormal_balances(company=self.company, as_of=MAY_31)
        by_code = {r["account_code"]: r for r in report["accounts"]}

        self.assertEqual(by_code["4110"]["category"], "Income with Debit Balance")
        self.assertEqual(by_code["4110"]["possible_reason"], "Sales return or reversal")
        self.assertEqual(by_code["5100"]["category"], "Expense with Credit Balance")
        self.assertEqual(by_code["5100"]["possible_reason"], "Expense refund or reversal")

    def test_clean_ledger(self):
        report = get_abnormal_balances(company=self.company, as_of=MAY_31)
        self.assertEqual(report["accounts"], [])
        self.assertEqual(report["summary"]["status"], STATUS_SUCCESS)

    def test_summary_thresholds(self):
        self.assertEqual(summary_status(0), STATUS_SUCCESS)
        self.assertEqual(summary_status(3), STATUS_WARNING)
        self.assertEqual(summary_status(4), STATUS_ERROR)
