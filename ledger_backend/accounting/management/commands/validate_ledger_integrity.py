# accounting/management/commands/validate_ledger_integrity.py

from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError
from django.db.models import Count, DecimalField, F, Q, Sum, Value
from django.db.models.functions import Coalesce

from accounting.models.account import Account
from accounting.models.company import Company
from accounting.models.journal import JournalEntry
from accounting.services.ledger_queries import Movement, committed_lines, movements_by_account
from accounting.services.money import ZERO, q2
from accounting.services.subledger_service import reconcile_control_accounts
from accounting.services.trial_balance_service import generate_trial_balance

_MONEY = DecimalField(max_digits=18, decimal_places=2)


class Command(BaseCommand):
    help = "Validate ledger integrity (entry balance, reversal links, account balances, control accounts)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--company",
            dest="company",
            help="Company code (default: every active company)",
        )
        parser.add_argument(
            "--strict",
            action="store_true",
            help="Fail (non-zero exit) if any error is found.",
        )

    def handle(self, *args, **options):
        strict = bool(options.get("strict"))

        companies = Company.objects.filter(is_active=True).order_by("code")
        if options.get("company"):
            companies = Company.objects.filter(code=options["company"].strip().lower())
            if not companies.exists():
                raise CommandError(f"Unknown company: {options['company']}")

        errors = 0
        for company in companies:
            errors += self._validate_company(company)

        self.stdout.write("")
        if errors == 0:
            self.stdout.write(self.style.SUCCESS("VALIDATION PASSED"))
        else:
            self.stderr.write(self.style.ERROR(f"VALIDATION FOUND ISSUES: {errors} problem(s)"))

        return self._exit(strict and errors > 0)

    def _fail(self, msg: str) -> int:
        self.stderr.write(self.style.ERROR(f"[FAIL] {msg}"))
        return 1

    def _ok(self, msg: str) -> None:
        self.stdout.write(self.style.SUCCESS(f"[OK] {msg}"))

    def _validate_company(self, company: Company) -> int:
        self.stdout.write(self.style.MIGRATE_HEADING(f"Ledger validation: {company.code}"))
        errors = 0

        # -----------------------------
        # 1) Entry totals vs lines
        # -----------------------------
        entries = (
            JournalEntry.objects.filter(company=company)
            .annotate(
                line_count=Count("lines"),
                line_debit=Coalesce(Sum("lines__debit_amount"), Value(ZERO), output_field=_MONEY),
                line_credit=Coalesce(Sum("lines__credit_amount"), Value(ZERO), output_field=_MONEY),
            )
        )
        bad = entries.filter(
            Q(line_count=0)
            | ~Q(line_debit=F("line_credit"))
            | ~Q(line_debit=F("total_debit"))
            | ~Q(line_credit=F("total_credit"))
        )
        bad_numbers = list(bad.values_list("journal_number", flat=True)[:10])
        if bad_numbers:
            errors += self._fail(f"Entries with missing or unbalanced lines: {bad.count()}")
            self.stderr.write("  Examples: " + ", ".join(bad_numbers))
        else:
            self._ok("Every entry has balanced lines matching its header totals")

        # -----------------------------
        # 2) Reversal links
        # -----------------------------
        orphan_reversed = JournalEntry.objects.filter(
            company=company,
            status=JournalEntry.REVERSED,
            reversed_by_entry__isnull=True,
        )
        if orphan_reversed.exists():
            errors += self._fail(f"Reversed entries without a reversal entry: {orphan_reversed.count()}")
        else:
            self._ok("Reversal links look good")

        # -----------------------------
        # 3) Stored account balances
        # -----------------------------
        moved = movements_by_account(committed_lines(company))
        drift = []
        for acc in Account.objects.filter(company=company).order_by("code"):
            expected = q2(acc.opening_balance + moved.get(acc.id, Movement()).net)
            if q2(acc.current_balance) != expected:
                drift.append(f"{acc.code} stored={acc.current_balance} ledger={expected}")
        if drift:
            errors += self._fail(f"Accounts whose current_balance drifted from the ledger: {len(drift)}")
            for line in drift[:10]:
                self.stderr.write(f"  {line}")
        else:
            self._ok("Account current_balance matches the ledger")

        # -----------------------------
        # 4) Trial balance
        # -----------------------------
        tb = generate_trial_balance(company=company)
        if tb["totals"]["balanced"]:
            self._ok(f"Trial balance balanced: debit={tb['totals']['debit']} credit={tb['totals']['credit']}")
        else:
            errors += self._fail(
                f"Trial balance not balanced: debit={tb['totals']['debit']} credit={tb['totals']['credit']}"
            )

        # -----------------------------
        # 5) Control accounts vs subledger
        # -----------------------------
        recon = reconcile_control_accounts(company)
        if recon["all_reconciled"]:
            self._ok(f"Control accounts reconciled ({len(recon['accounts'])})")
        else:
            for alert in recon["data_quality_alerts"]:
                errors += self._fail(alert)

        return errors

    def _exit(self, fail: bool):
        if fail:
            raise SystemExit(1)
        return None
