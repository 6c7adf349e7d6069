# accounting/tests/test_party_subledgers.py

from __future__ import annotations

from datetime import date
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.test import TestCase

from accounting.models.account import Account
from accounting.models.company import Company
from accounting.services.aging_service import bucket_for, get_ap_aging, get_aging, get_ar_aging, party_ledger
from accounting.services.journal_entry_service import create_manual_entry
from accounting.services.posting import post_from_source
from accounting.services.subledger_service import (
    ControlAccountSource,
    LegacyPartyAccountSource,
    party_sources,
    reconcile_control_accounts,
)

AS_OF = date(2024, 6, 30)


def _seed(code="acme") -> Company:
    call_command("seed_default_chart", code, stdout=StringIO())
    return Company.objects.get(code=code)


def _vendor_invoice(company, number, vendor_id, subtotal, when):
    tax = (Decimal(subtotal) * Decimal("0.09")).quantize(Decimal("0.01"))
    return post_from_source(
        company=company,
        source_type="vendor_invoice",
        source_id=number,
        source_data={
            "invoice_number": number,
            "vendor_id": vendor_id,
            "subtotal": subtotal,
            "cgst_amount": tax,
            "sgst_amount": tax,
            "total_amount": Decimal(subtotal) + tax + tax,
        },
        entry_date=when,
    ).entry


def _vendor_payment(company, number, vendor_id, amount, when):
    return post_from_source(
        company=company,
        source_type="vendor_payment",
        source_id=number,
        source_data={"payment_number": number, "vendor_id": vendor_id, "amount": amount},
        entry_date=when,
    ).entry


def _customer_invoice(company, number, customer_id, subtotal, when):
    tax = (Decimal(subtotal) * Decimal("0.09")).quantize(Decimal("0.01"))
    return post_from_source(
        company=company,
        source_type="invoice",
        source_id=number,
        source_data={
            "invoice_number": number,
            "customer_id": customer_id,
            "subtotal": subtotal,
            "cgst_amount": tax,
            "sgst_amount": tax,
            "total_amount": Decimal(subtotal) + tax + tax,
        },
        entry_date=when,
    ).entry


def _legacy_vendor(company, code="2199", party_id="V-9", opening="-250.00"):
    return Account.objects.create(
        company=company,
        code=code,
        name=f"Vendor {party_id}",
        account_type=Account.LIABILITY,
        account_subtype="Current Liabilities",
        is_legacy_party_account=True,
        legacy_party_type="vendor",
        legacy_party_id=party_id,
        opening_balance=Decimal(opening),
    )


def _party(report, party_id):
    return next(p for p in report["parties"] if p["party_id"] == party_id)


class ReconciliationTests(TestCase):
    def setUp(self):
        self.company = _seed()
        _vendor_invoice(self.company, "VI-1", "V-1", 1000, date(2024, 4, 1))
        _vendor_invoice(self.company, "VI-2", "V-2", 500, date(2024, 4, 15))

    def _payables(self, report):
        return next(r for r in report["accounts"] if r["account_code"] == "2100")

    def test_tagged_control_account_reconciles(self):
        report = reconcile_control_accounts(self.company, as_of=AS_OF)

        self.assertTrue(report["all_reconciled"])
        self.assertEqual(report["data_quality_alerts"], [])
        self.assertEqual({r["account_code"] for r in report["accounts"]}, {"1120", "2100", "2110"})

        payables = self._payables(report)
        self.assertEqual(payables["expected_subledger_type"], "vendor")
        self.assertEqual(payables["control_balance"], -1770.0)
        self.assertEqual(payables["subledger_total"], -1770.0)
        self.assertEqual(payables["difference"], 0.0)
        self.assertEqual(
            {p["subledger_id"]: p["balance"] for p in payables["parties"]},
            {"V-1": -1180.0, "V-2": -590.0},
        )

    def test_untagged_line_breaks_reconciliation(self):
        create_manual_entry(
            company=self.company,
            journal_date=date(2024, 5, 2),
            description="Accrual without vendor",
            lines=[
                {"account_code": "5100", "debit": "500.00"},
                {"account_code": "2100", "credit": "500.00"},
            ],
        )

        with self.assertLogs("accounting.services.subledger_service", level="WARNING"):
            report = reconcile_control_accounts(self.company, as_of=AS_OF)

        payables = self._payables(report)
        self.assertFalse(payables["is_reconciled"])
        self.assertEqual(payables["difference"], -500.0)
        self.assertEqual(payables["untagged_total"], -500.0)
        self.assertFalse(report["all_reconciled"])
        self.assertEqual(len(report["data_quality_alerts"]), 1)

    def test_line_tagged_with_wrong_party_kind_is_untagged(self):
        create_manual_entry(
            company=self.company,
            journal_date=date(2024, 5, 2),
            description="Mis-tagged accrual",
            lines=[
                {"account_code": "5100", "debit": "40.00"},
                {"account_code": "2100", "credit": "40.00", "subledger_type": "customer", "subledger_id": "C-1"},
            ],
        )
        payables = self._payables(reconcile_control_accounts(self.company, as_of=AS_OF))
        self.assertEqual(payables["untagged_total"], -40.0)
        self.assertEqual(payables["difference"], -40.0)


class PartySourceTests(TestCase):
    def setUp(self):
        self.company = _seed()
        self.legacy = _legacy_vendor(self.company)

    def test_sources_cover_both_regimes(self):
        sources = party_sources(self.company, "vendor")
        kinds = {s.account.code: type(s) for s in sources}

        self.assertIs(kinds["2100"], ControlAccountSource)
        self.assertIs(kinds["2199"], LegacyPartyAccountSource)
        self.assertNotIn("1120", kinds)

    def test_inactive_legacy_account_skipped(self):
        Account.objects.filter(pk=self.legacy.pk).update(is_active=False)
        codes = {s.account.code for s in party_sources(self.company, "vendor")}
        self.assertNotIn("2199", codes)

    def test_tax_and_loan_controls_are_not_party_ledgers(self):
        codes = {s.account.code for s in party_sources(self.company)}

        self.assertTrue({"1120", "2100", "2110", "2199"} <= codes)
        self.assertFalse(codes & {"1141", "2251", "2252", "2253"})

    def test_salaries_control_expects_employee_tags(self):
        sources = party_sources(self.company, "employee")
        self.assertEqual([s.account.code for s in sources], ["2110"])
        self.assertEqual(sources[0].subledger_type, "employee")


class PayablesAgingTests(TestCase):
    def setUp(self):
        self.company = _seed()
        _vendor_invoice(self.company, "VI-1", "V-1", 1000, date(2024, 4, 1))  # 1180
        _vendor_invoice(self.company, "VI-2", "V-1", 500, date(2024, 5, 20))  # 590
        _vendor_payment(self.company, "VP-1", "V-1", 1000, date(2024, 5, 25))

    def test_payments_settle_oldest_invoice_first(self):
        aging = get_ap_aging(company=self.company, as_of=AS_OF)
        v1 = _party(aging, "V-1")

        self.assertEqual(v1["days_61_90"], 180.0)
        self.assertEqual(v1["days_31_60"], 590.0)
        self.assertEqual(v1["current"], 0.0)
        self.assertEqual(v1["outstanding"], 770.0)
        self.assertEqual(v1["advance"], 0.0)
        self.assertEqual(v1["balance"], 770.0)

    def test_credit_days_shift_buckets(self):
        aging = get_ap_aging(company=self.company, as_of=AS_OF, credit_days=30)
        v1 = _party(aging, "V-1")

        self.assertEqual(aging["credit_days"], 30)
        self.assertEqual(v1["days_31_60"], 180.0)
        self.assertEqual(v1["days_1_30"], 590.0)

    def test_payment_without_invoice_is_an_advance(self):
        _vendor_payment(self.company, "VP-2", "V-2", 300, date(2024, 6, 1))
        aging = get_ap_aging(company=self.company, as_of=AS_OF)

        v2 = _party(aging, "V-2")
        self.assertEqual(v2["outstanding"], 0.0)
        self.assertEqual(v2["advance"], 300.0)
        self.assertEqual(v2["balance"], -300.0)

        self.assertEqual(aging["totals"]["outstanding"], 770.0)
        self.assertEqual(aging["totals"]["advance"], 300.0)
        self.assertEqual(aging["totals"]["balance"], 470.0)

    def test_as_of_excludes_later_activity(self):
        aging = get_ap_aging(company=self.company, as_of=date(2024, 4, 30))
        v1 = _party(aging, "V-1")
        self.assertEqual(v1["days_1_30"], 1180.0)
        self.assertEqual(v1["outstanding"], 1180.0)

    def test_legacy_account_opening_is_oldest(self):
        _legacy_vendor(self.company)
        create_manual_entry(
            company=self.company,
            journal_date=date(2024, 6, 20),
            description="Legacy vendor bill",
            lines=[
                {"account_code": "5100", "debit": "100.00"},
                {"account_code": "2199", "credit": "100.00"},
            ],
        )

        v9 = _party(get_ap_aging(company=self.company, as_of=AS_OF), "V-9")
        self.assertEqual(v9["over_90"], 250.0)
        self.assertEqual(v9["days_1_30"], 100.0)
        self.assertEqual(v9["outstanding"], 350.0)

    def test_vendor_tag_on_tax_control_is_ignored(self):
        create_manual_entry(
            company=self.company,
            journal_date=date(2024, 6, 10),
            description="Tax withheld for vendor",
            lines=[
                {"account_code": "5100", "debit": "100.00"},
                {"account_code": "2251", "credit": "100.00", "subledger_type": "vendor", "subledger_id": "V-1"},
            ],
        )

        aging = get_ap_aging(company=self.company, as_of=AS_OF)
        self.assertEqual(_party(aging, "V-1")["outstanding"], 770.0)
        self.assertEqual(aging["totals"]["balance"], 770.0)

    def test_bucket_boundaries(self):
        self.assertEqual(bucket_for(0), "current")
        self.assertEqual(bucket_for(-5), "current")
        self.assertEqual(bucket_for(30), "days_1_30")
        self.assertEqual(bucket_for(31), "days_31_60")
        self.assertEqual(bucket_for(90), "days_61_90")
        self.assertEqual(bucket_for(91), "over_90")
        self.assertEqual(bucket_for(None), "over_90")


class ReceivablesAgingTests(TestCase):
    def setUp(self):
        self.company = _seed()
        _customer_invoice(self.company, "INV-1", "C-1", 10000, date(2024, 5, 10))  # 11800
        _customer_invoice(self.company, "INV-2", "C-2", 1000, AS_OF)  # 1180
        post_from_source(
            company=self.company,
            source_type="payment",
            source_id="RCPT-1",
            source_data={"payment_number": "RCPT-1", "customer_id": "C-1", "amount": 5000},
            entry_date=date(2024, 6, 1),
        )

    def test_receivables_are_debit_positive(self):
        aging = get_ar_aging(company=self.company, as_of=AS_OF)

        c1 = _party(aging, "C-1")
        self.assertEqual(c1["days_31_60"], 6800.0)
        self.assertEqual(c1["outstanding"], 6800.0)

        c2 = _party(aging, "C-2")
        self.assertEqual(c2["current"], 1180.0)

        self.assertEqual(aging["totals"]["outstanding"], 7980.0)

    def test_vendors_not_in_receivables(self):
        _vendor_invoice(self.company, "VI-1", "V-1", 1000, date(2024, 6, 1))
        aging = get_ar_aging(company=self.company, as_of=AS_OF)
        self.assertEqual({p["party_id"] for p in aging["parties"]}, {"C-1", "C-2"})


class PartyLedgerTests(TestCase):
    def setUp(self):
        self.company = _seed()
        _vendor_invoice(self.company, "VI-1", "V-1", 1000, date(2024, 4, 1))
        _vendor_invoice(self.company, "VI-2", "V-1", 500, date(2024, 5, 20))
        _vendor_payment(self.company, "VP-1", "V-1", 1000, date(2024, 5, 25))
        _vendor_invoice(self.company, "VI-3", "V-2", 200, date(2024, 5, 21))

    def test_control_party_running_balance(self):
        ledger = party_ledger(company=self.company, subledger_type="vendor", subledger_id="V-1", to_date=AS_OF)

        self.assertEqual(ledger["opening_balance"], 0.0)
        self.assertEqual([ln["running_balance"] for ln in ledger["lines"]], [1180.0, 1770.0, 770.0])
        self.assertEqual({ln["account_code"] for ln in ledger["lines"]}, {"2100"})
        self.assertEqual(ledger["closing_balance"], 770.0)
        self.assertEqual(ledger["totals"]["debit"], 1000.0)
        self.assertEqual(ledger["totals"]["credit"], 1770.0)

    def test_from_date_rolls_earlier_lines_into_opening(self):
        ledger = party_ledger(
            company=self.company,
            subledger_type="vendor",
            subledger_id="V-1",
            from_date=date(2024, 5, 1),
            to_date=AS_OF,
        )
        self.assertEqual(ledger["opening_balance"], 1180.0)
        self.assertEqual(len(ledger["lines"]), 2)
        self.assertEqual(ledger["closing_balance"], 770.0)

    def test_legacy_party(self):
        _legacy_vendor(self.company)
        create_manual_entry(
            company=self.company,
            journal_date=date(2024, 6, 20),
            description="Legacy vendor bill",
            lines=[
                {"account_code": "5100", "debit": "100.00"},
                {"account_code": "2199", "credit": "100.00"},
            ],
        )

        ledger = party_ledger(company=self.company, subledger_type="vendor", subledger_id="V-9", to_date=AS_OF)
        self.assertEqual(ledger["opening_balance"], 250.0)
        self.assertEqual([ln["account_code"] for ln in ledger["lines"]], ["2199"])
        self.assertEqual(ledger["closing_balance"], 350.0)

        v1 = party_ledger(company=self.company, subledger_type="vendor", subledger_id="V-1", to_date=AS_OF)
        self.assertEqual(v1["opening_balance"], 0.0)
        self.assertEqual(v1["closing_balance"], 770.0)


class EmployeeSubledgerTests(TestCase):
    def setUp(self):
        self.company = _seed()
        post_from_source(
            company=self.company,
            source_type="payroll",
            source_id="PR-1",
            source_data={"period": "May 2024", "gross_salary": 50000, "employee_id": "E-1", "status": "paid"},
            entry_date=date(2024, 5, 31),
        )

    def test_payroll_reaches_employee_ledger(self):
        ledger = party_ledger(company=self.company, subledger_type="employee", subledger_id="E-1", to_date=AS_OF)

        self.assertEqual([ln["account_code"] for ln in ledger["lines"]], ["2110"])
        self.assertEqual(ledger["closing_balance"], 50000.0)
        self.assertEqual(ledger["totals"]["credit"], 50000.0)

    def test_salaries_payable_aging(self):
        aging = get_aging(company=self.company, party_type="employee", as_of=AS_OF)

        e1 = _party(aging, "E-1")
        self.assertEqual(e1["days_1_30"], 50000.0)
        self.assertEqual(e1["outstanding"], 50000.0)

    def test_salaries_control_reconciles(self):
        report = reconcile_control_accounts(self.company, as_of=AS_OF)
        salaries = next(r for r in report["accounts"] if r["account_code"] == "2110")

        self.assertTrue(salaries["is_reconciled"])
        self.assertEqual(salaries["expected_subledger_type"], "employee")
        self.assertEqual(salaries["control_balance"], -50000.0)
        self.assertEqual(salaries["parties"], [
            {"subledger_type": "employee", "subledger_id": "E-1", "balance": -50000.0, "balance_minor": -5000000},
        ])
