# accounting/tests/test_template_resolution.py

from __future__ import annotations

from decimal import Decimal

from django.test import SimpleTestCase

from accounting.services.exceptions import TemplateResolutionError
from accounting.services.template_resolver import (
    DEFAULT_DESCRIPTION,
    DROP_BAD_SIDE,
    DROP_NO_ACCOUNT,
    DROP_NO_AMOUNT,
    resolve,
)


def _one(template_line, data):
    return resolve({"lines": [template_line]}, data)


class AccountCodeResolutionTests(SimpleTestCase):
    LINE = {
        "account_code_field": "expense_account",
        "account_code": "5100",
        "debit_field": "amount",
    }

    def test_event_field_beats_static_code(self):
        result = _one(self.LINE, {"expense_account": "5300", "amount": 10})
        self.assertEqual(result.lines[0].account_code, "5300")

    def test_blank_field_falls_back_to_static(self):
        result = _one(self.LINE, {"expense_account": "  ", "amount": 10})
        self.assertEqual(result.lines[0].account_code, "5100")

    def test_fallback_used_last(self):
        line = {"account_code_field": "expense_account", "account_code_fallback": "5999", "debit_field": "amount"}
        result = _one(line, {"amount": 10})
        self.assertEqual(result.lines[0].account_code, "5999")

    def test_no_code_drops_line(self):
        result = _one({"account_code_field": "expense_account", "debit_field": "amount"}, {"amount": 10})
        self.assertEqual(result.lines, [])
        self.assertEqual(result.dropped[0].reason, DROP_NO_ACCOUNT)


class AmountResolutionTests(SimpleTestCase):
    def test_legacy_camel_case_line(self):
        line = {
            "side": "credit",
            "accountCode": "2100",
            "amountField": "total_amount",
            "subledgerType": "vendor",
            "subledgerField": "vendor_id",
        }
        result = _one(line, {"total_amount": "1180.00", "vendor_id": "V-1"})
        resolved = result.lines[0]
        self.assertEqual(resolved.account_code, "2100")
        self.assertEqual(resolved.credit, Decimal("1180.00"))
        self.assertEqual(resolved.debit, Decimal("0"))
        self.assertEqual((resolved.subledger_type, resolved.subledger_id), ("vendor", "V-1"))

    def test_unknown_side_dropped(self):
        result = _one({"side": "sideways", "accountCode": "2100", "amountField": "x"}, {"x": 1})
        self.assertEqual(result.dropped[0].reason, DROP_BAD_SIDE)

    def test_sum_expression(self):
        result = _one({"account_code": "1120", "debit_field": "subtotal + cgst_amount"}, {"subtotal": 100, "cgst_amount": 9})
        self.assertEqual(result.lines[0].debit, Decimal("109.00"))

    def test_zero_and_missing_amounts_drop(self):
        result = resolve(
            {
                "lines": [
                    {"account_code": "2251", "credit_field": "cgst_amount"},
                    {"account_code": "2253", "credit_field": "igst_amount"},
                ]
            },
            {"cgst_amount": 0},
        )
        self.assertEqual(result.lines, [])
        self.assertEqual([d.reason for d in result.dropped], [DROP_NO_AMOUNT, DROP_NO_AMOUNT])

    def test_negative_single_side_amount_is_not_flipped(self):
        result = _one({"account_code": "5100", "debit_field": "amount"}, {"amount": -50})
        self.assertEqual(result.lines, [])
        self.assertEqual(result.dropped[0].reason, DROP_NO_AMOUNT)

    def test_debit_and_credit_fields_net(self):
        line = {"account_code": "1112", "debit_field": "received", "credit_field": "refunded"}
        result = _one(line, {"received": 10, "refunded": 30})
        self.assertEqual(result.lines[0].credit, Decimal("20.00"))
        self.assertEqual(result.lines[0].debit, Decimal("0"))


class DescriptionAndSubledgerTests(SimpleTestCase):
    def test_default_description(self):
        result = _one({"account_code": "1112", "debit_field": "a"}, {"a": 1})
        self.assertEqual(result.description, DEFAULT_DESCRIPTION)
        self.assertEqual(result.lines[0].description, DEFAULT_DESCRIPTION)

    def test_rendered_descriptions(self):
        template = {
            "description_template": "Expense: {title}",
            "narration_template": "Ref {ref}",
            "lines": [
                {"account_code": "5100", "debit_field": "a", "description_template": "{title} cost"},
            ],
        }
        result = resolve(template, {"title": "Rent", "ref": "R-1", "a": 5})
        self.assertEqual(result.description, "Expense: Rent")
        self.assertEqual(result.narration, "Ref R-1")
        self.assertEqual(result.lines[0].description, "Rent cost")

    def test_subledger_only_when_id_present(self):
        line = {
            "account_code": "1120",
            "debit_field": "total",
            "subledger_type": "customer",
            "subledger_id_field": "customer_id",
        }
        untagged = _one(line, {"total": 10})
        self.assertFalse(untagged.lines[0].has_subledger)
        self.assertEqual(untagged.lines[0].subledger_type, "")

        tagged = _one(line, {"total": 10, "customer_id": 42})
        self.assertEqual(tagged.lines[0].subledger_id, "42")

    def test_template_order_preserved(self):
        template = {
            "lines": [
                {"account_code": "A", "debit_field": "x"},
                {"account_code": "B", "credit_field": "y"},
                {"account_code": "C", "credit_field": "z"},
            ]
        }
        result = resolve(template, {"x": 3, "y": 1, "z": 2})
        self.assertEqual([ln.account_code for ln in result.lines], ["A", "B", "C"])
        self.assertEqual([ln.template_index for ln in result.lines], [0, 1, 2])


class BrokenTemplateTests(SimpleTestCase):
    def test_structural_errors_raise(self):
        for template in (None, [], {"lines": []}, {"lines": "nope"}, {"lines": ["nope"]}):
            with self.assertRaises(TemplateResolutionError):
                resolve(template, {})

    def test_amount_too_large_for_money_columns(self):
        line = {"account_code": "1112", "debit_field": "amount"}
        for amount in ("1e30", "10000000000000000", "-1e17"):
            with self.assertRaises(TemplateResolutionError):
                _one(line, {"amount": amount})

    def test_largest_storable_amount_resolves(self):
        result = _one({"account_code": "1112", "debit_field": "amount"}, {"amount": "9999999999999999.99"})
        self.assertEqual(result.lines[0].debit, Decimal("9999999999999999.99"))
