# accounting/tests/test_fiscal_periods.py

from __future__ import annotations

from datetime import date

from django.test import SimpleTestCase, override_settings

from accounting.services.fiscal import (
    fiscal_period,
    fiscal_year_start,
    format_financial_year,
    parse_financial_year,
    period_end_date,
)


class FiscalPeriodTests(SimpleTestCase):
    def test_april_start_year_boundaries(self):
        first = fiscal_period(date(2024, 4, 1))
        self.assertEqual(first.financial_year, "2024-25")
        self.assertEqual(first.period_month, 1)

        last = fiscal_period(date(2025, 3, 31))
        self.assertEqual(last.financial_year, "2024-25")
        self.assertEqual(last.period_month, 12)

    def test_mid_year_dates(self):
        self.assertEqual(fiscal_period(date(2024, 5, 10)).period_month, 2)
        jan = fiscal_period(date(2025, 1, 15))
        self.assertEqual((jan.financial_year, jan.period_month), ("2024-25", 10))
        self.assertEqual(jan.start_year, 2024)

    def test_march_belongs_to_previous_year(self):
        self.assertEqual(fiscal_period(date(2024, 3, 31)).financial_year, "2023-24")

    @override_settings(ACCOUNTING_FISCAL_YEAR_START_MONTH=1)
    def test_calendar_fiscal_year(self):
        dec = fiscal_period(date(2024, 12, 31))
        self.assertEqual(dec.period_month, 12)
        self.assertEqual(dec.start_year, 2024)
        self.assertEqual(fiscal_year_start("2024-25"), date(2024, 1, 1))

    def test_period_end_dates(self):
        self.assertEqual(period_end_date("2024-25", 1), date(2024, 4, 30))
        self.assertEqual(period_end_date("2024-25", 11), date(2025, 2, 28))
        self.assertEqual(period_end_date("2023-24", 11), date(2024, 2, 29))
        self.assertEqual(period_end_date("2024-25"), date(2025, 3, 31))

    def test_period_end_rejects_bad_month(self):
        with self.assertRaises(ValueError):
            period_end_date("2024-25", 13)

    def test_financial_year_labels(self):
        self.assertEqual(format_financial_year(2024), "2024-25")
        self.assertEqual(format_financial_year(1999), "1999-00")
        self.assertEqual(parse_financial_year("1999-00"), 1999)
        self.assertEqual(fiscal_year_start("2024-25"), date(2024, 4, 1))

        for bad in ("2024-26", "2024", "abcd-ef"):
            with self.assertRaises(ValueError):
                parse_financial_year(bad)
