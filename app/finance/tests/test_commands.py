"""
Tests for the audit_ledger management command.
"""

import uuid
from decimal import Decimal
from io import StringIO

import pytest
from django.core.management import CommandError, call_command

from finance.models import Account
from finance.tests.factories import AccountFactory


def run_audit(*args):
    out = StringIO()
    call_command("audit_ledger", *args, stdout=out)
    return out.getvalue()


class TestAuditLedgerCommand:
    def test_consistent_accounts_pass(self, account, funded_account, make_receipt):
        make_receipt(Decimal("100.00"))

        output = run_audit()

        assert f"OK    {account.id}" in output
        assert f"OK    {funded_account.id}" in output
        assert "2 account(s) consistent" in output

    def test_tampered_account_fails(self, account, make_receipt):
        make_receipt(Decimal("100.00"))
        Account.objects.filter(id=account.id).update(current_balance=Decimal("5000.00"))
        out = StringIO()

        with pytest.raises(CommandError, match="1 of 1"):
            call_command("audit_ledger", stdout=out)

        assert f"FAIL  {account.id}" in out.getvalue()
        assert "differs from replayed balance" in out.getvalue()
        account.refresh_from_db()
        assert not account.is_frozen

    def test_freeze_option(self, account):
        Account.objects.filter(id=account.id).update(current_balance=Decimal("1.00"))

        with pytest.raises(CommandError):
            run_audit("--freeze")

        account.refresh_from_db()
        assert account.is_frozen
        assert account.frozen_reason == "Ledger audit failed"

    def test_single_account(self, account, company):
        AccountFactory(company=company)

        output = run_audit("--account", str(account.id))

        assert "1 account(s) consistent" in output

    def test_company_filter(self, account, company):
        AccountFactory()

        output = run_audit("--company", str(company.id))

        assert str(account.id) in output
        assert "1 account(s) consistent" in output

    def test_unknown_account(self, db):
        with pytest.raises(CommandError, match="not found"):
            run_audit("--account", str(uuid.uuid4()))
