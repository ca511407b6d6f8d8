"""
Management command to audit account ledgers.

The ledger is the source of truth for balances. This command replays each
account's entries from its initial balance and compares the result, and
every link of the balance chain, with what is stored.

Usage:
    # Audit every account
    python manage.py audit_ledger

    # Audit one account or one company's accounts
    python manage.py audit_ledger --account 3f2c...
    python manage.py audit_ledger --company 9a1b...

    # Freeze accounts that fail so nothing more is posted to them
    python manage.py audit_ledger --freeze

Exits with a non-zero status when any audited account is inconsistent.
"""

import logging

from django.core.management.base import BaseCommand, CommandError

from finance.ledger.services import ledger
from finance.models import Account

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Replay ledger entries and verify stored balances."""

    help = "Audit account ledgers against their stored balances"

    def add_arguments(self, parser):
        parser.add_argument(
            "--account",
            type=str,
            help="Account id to audit",
        )
        parser.add_argument(
            "--company",
            type=str,
            help="Audit all accounts of this company id",
        )
        parser.add_argument(
            "--freeze",
            action="store_true",
            help="Freeze accounts that fail the audit",
        )

    def handle(self, *args, **options):
        accounts = Account.objects.order_by("company_id", "name")
        if options["account"]:
            accounts = accounts.filter(id=options["account"])
        if options["company"]:
            accounts = accounts.filter(company_id=options["company"])

        account_ids = list(accounts.values_list("id", flat=True))
        if options["account"] and not account_ids:
            raise CommandError(f"Account {options['account']} not found")

        failed = []
        for account_id in account_ids:
            report = ledger.audit_account(account_id)
            if report.is_consistent:
                self.stdout.write(
                    f"OK    {account_id}  balance {report.stored_balance}  "
                    f"({report.entry_count} entries)"
                )
                continue

            failed.append(account_id)
            self.stdout.write(self.style.ERROR(
                f"FAIL  {account_id}  stored {report.stored_balance}  "
                f"replayed {report.replayed_balance}"
            ))
            for problem in report.problems:
                self.stdout.write(f"      - {problem}")

            if options["freeze"]:
                ledger.freeze_account(account_id, "Ledger audit failed")
                self.stdout.write(self.style.WARNING(f"      frozen {account_id}"))

        logger.info(
            "Ledger audit finished",
            extra={"audited": len(account_ids), "failed": len(failed)},
        )

        if failed:
            raise CommandError(f"{len(failed)} of {len(account_ids)} account(s) failed the audit")

        self.stdout.write(self.style.SUCCESS(f"{len(account_ids)} account(s) consistent"))
