# accounting/management/commands/reverse_journal_entry.py

from __future__ import annotations

from datetime import date

from django.core.management.base import BaseCommand, CommandError

from accounting.models.company import Company
from accounting.models.journal import JournalEntry
from accounting.services.exceptions import ReversalError
from accounting.services.journal_entry_service import reverse_entry


class Command(BaseCommand):
    help = "Reverse a posted journal entry (by id or journal number) with an exact negating entry."

    def add_arguments(self, parser):
        parser.add_argument("company_code", help="Company code")
        parser.add_argument("entry", help="Journal entry id or journal number (e.g. JV/2024-25/00012)")
        parser.add_argument("--reason", dest="reason", default="", help="Reason recorded on both entries")
        parser.add_argument("--actor", dest="actor", default="cli", help="Who is reversing")
        parser.add_argument("--date", dest="reversal_date", help="Reversal date YYYY-MM-DD (default: original date)")

    def handle(self, *args, **options):
        company = Company.objects.filter(code=options["company_code"].strip().lower()).first()
        if company is None:
            raise CommandError(f"Unknown company: {options['company_code']}")

        ref = options["entry"].strip()
        entry = JournalEntry.objects.filter(company=company, journal_number=ref).first()
        if entry is None and ref.isdigit():
            entry = JournalEntry.objects.filter(company=company, pk=int(ref)).first()
        if entry is None:
            raise CommandError(f"Journal entry {ref} not found for {company.code}")

        reversal_date = None
        if options.get("reversal_date"):
            try:
                reversal_date = date.fromisoformat(options["reversal_date"])
            except ValueError as exc:
                raise CommandError("Invalid --date. Use YYYY-MM-DD") from exc

        try:
            reversal = reverse_entry(
                entry.pk,
                actor=options["actor"],
                reason=options["reason"],
                company=company,
                reversal_date=reversal_date,
            )
        except ReversalError as exc:
            raise CommandError(str(exc)) from exc

        self.stdout.write(
            self.style.SUCCESS(f"Reversed {entry.journal_number} with {reversal.journal_number}")
        )
