"""
Tests for completing payment vouchers.

complete_voucher() creates the statement of payment and deducts
voucher total + fee from the paying account in one transaction.
"""

import uuid
from decimal import Decimal

import pytest

from finance.exceptions import (
    CurrencyMismatch,
    DocumentNotFoundError,
    DocumentValidationError,
    InvalidStateTransitionError,
    VoucherAlreadySettled,
)
from finance.ledger.exceptions import AccountFrozen, InsufficientBalance
from finance.ledger.services import ledger
from finance.models import Document, DocumentCounter, LedgerEntry, StatementOfPayment
from finance.services import CompleteVoucherParams, complete_voucher, document_service
from finance.state_machines import (
    DocumentStatus,
    DocumentType,
    EntryDirection,
    FeeType,
)
from finance.tests.factories import AccountFactory


class TestCompleteVoucher:
    """Tests for the happy path."""

    def test_creates_statement_and_deducts_total_plus_fee(
        self, make_issued_voucher, funded_account
    ):
        voucher = make_issued_voucher(Decimal("450.00"))

        statement = complete_voucher(CompleteVoucherParams(
            voucher_id=voucher.id,
            account_id=funded_account.id,
            transaction_fee=Decimal("15.00"),
            transaction_fee_type=FeeType.BANK_CHARGE,
            transaction_reference="TT-88231",
        ))

        assert statement.total_deducted == Decimal("465.00")
        assert statement.transaction_fee == Decimal("15.00")
        assert statement.linked_voucher_id == voucher.id
        assert statement.payee_name == "Kyoto Ryokan KK"
        assert ledger.get_balance(funded_account.id).amount == Decimal("35.00")

    def test_statement_document_is_completed_with_sop_number(
        self, make_issued_voucher, funded_account
    ):
        voucher = make_issued_voucher(Decimal("100.00"))

        statement = complete_voucher(CompleteVoucherParams(
            voucher_id=voucher.id, account_id=funded_account.id
        ))

        document = Document.objects.get(pk=statement.pk)
        assert document.document_type == DocumentType.STATEMENT_OF_PAYMENT
        assert document.status == DocumentStatus.COMPLETED
        assert "-SOP-" in document.document_number
        assert document.account_id == funded_account.id
        assert document.currency == voucher.currency

    def test_posts_one_decrease_entry(self, make_issued_voucher, funded_account):
        voucher = make_issued_voucher(Decimal("200.00"))

        statement = complete_voucher(CompleteVoucherParams(
            voucher_id=voucher.id,
            account_id=funded_account.id,
            transaction_fee=Decimal("5.00"),
        ))

        entry = LedgerEntry.objects.get(document_id=statement.pk)
        assert entry.direction == EntryDirection.DECREASE
        assert entry.amount == Decimal("205.00")
        assert entry.balance_before == Decimal("500.00")
        assert entry.balance_after == Decimal("295.00")

    def test_copies_line_items_and_snapshot(self, make_issued_voucher, funded_account):
        voucher = make_issued_voucher(Decimal("120.00"))

        statement = complete_voucher(CompleteVoucherParams(
            voucher_id=voucher.id, account_id=funded_account.id
        ))

        items = list(statement.document.line_items.all())
        assert [(i.description, i.amount) for i in items] == [("Hotel block", Decimal("120.00"))]
        assert statement.voucher_snapshot["document_number"] == voucher.document_number
        assert statement.voucher_snapshot["total"] == "120.00"
        assert len(statement.voucher_snapshot["line_items"]) == 1

    def test_voucher_stays_issued_and_reports_settled(self, make_issued_voucher, funded_account):
        voucher = make_issued_voucher(Decimal("100.00"))

        complete_voucher(CompleteVoucherParams(voucher_id=voucher.id, account_id=funded_account.id))

        voucher = Document.objects.get(pk=voucher.pk)
        assert voucher.status == DocumentStatus.ISSUED
        assert voucher.payment_voucher.is_settled

    def test_negative_balance_allowed_when_company_permits(
        self, company, make_issued_voucher, account
    ):
        company.allow_negative_balance = True
        company.save()
        voucher = make_issued_voucher(Decimal("250.00"))

        complete_voucher(CompleteVoucherParams(voucher_id=voucher.id, account_id=account.id))

        assert ledger.get_balance(account.id).amount == Decimal("-250.00")


class TestCompleteVoucherRejections:
    """Every rejection leaves no statement, no entry and no consumed number."""

    def test_insufficient_balance_rolls_back_everything(
        self, make_issued_voucher, funded_account
    ):
        voucher = make_issued_voucher(Decimal("700.00"))
        counters_before = list(DocumentCounter.objects.values_list("document_type", "counter"))

        with pytest.raises(InsufficientBalance) as exc_info:
            complete_voucher(CompleteVoucherParams(
                voucher_id=voucher.id, account_id=funded_account.id
            ))

        assert exc_info.value.required == Decimal("700.00")
        assert exc_info.value.available == Decimal("500.00")
        assert ledger.get_balance(funded_account.id).amount == Decimal("500.00")
        assert not StatementOfPayment.objects.exists()
        assert not Document.all_objects.filter(
            document_type=DocumentType.STATEMENT_OF_PAYMENT
        ).exists()
        assert list(DocumentCounter.objects.values_list("document_type", "counter")) == counters_before
        assert Document.objects.get(pk=voucher.pk).status == DocumentStatus.ISSUED

    def test_double_completion_is_rejected(self, make_issued_voucher, funded_account):
        voucher = make_issued_voucher(Decimal("100.00"))
        params = CompleteVoucherParams(voucher_id=voucher.id, account_id=funded_account.id)
        complete_voucher(params)

        with pytest.raises(VoucherAlreadySettled):
            complete_voucher(params)

        assert StatementOfPayment.objects.count() == 1
        assert LedgerEntry.objects.filter(account=funded_account).count() == 1
        assert ledger.get_balance(funded_account.id).amount == Decimal("400.00")

    def test_draft_voucher_cannot_be_completed(self, make_voucher, funded_account):
        voucher = make_voucher(Decimal("100.00"))

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            complete_voucher(CompleteVoucherParams(
                voucher_id=voucher.id, account_id=funded_account.id
            ))

        assert exc_info.value.error_code == "VOUCHER_NOT_ISSUED"
        assert not StatementOfPayment.objects.exists()

    def test_currency_mismatch(self, make_issued_voucher, jpy_account):
        voucher = make_issued_voucher(Decimal("100.00"))

        with pytest.raises(CurrencyMismatch):
            complete_voucher(CompleteVoucherParams(voucher_id=voucher.id, account_id=jpy_account.id))

        assert not StatementOfPayment.objects.exists()

    def test_account_of_another_company(self, make_issued_voucher):
        voucher = make_issued_voucher(Decimal("100.00"))
        foreign = AccountFactory(initial_balance=Decimal("1000.00"))

        with pytest.raises(DocumentValidationError) as exc_info:
            complete_voucher(CompleteVoucherParams(voucher_id=voucher.id, account_id=foreign.id))

        assert exc_info.value.error_code == "ACCOUNT_COMPANY_MISMATCH"

    def test_negative_fee_is_rejected(self, make_issued_voucher, funded_account):
        voucher = make_issued_voucher(Decimal("100.00"))

        with pytest.raises(DocumentValidationError):
            complete_voucher(CompleteVoucherParams(
                voucher_id=voucher.id,
                account_id=funded_account.id,
                transaction_fee=Decimal("-1.00"),
            ))

    def test_unknown_voucher(self, funded_account):
        with pytest.raises(DocumentNotFoundError):
            complete_voucher(CompleteVoucherParams(
                voucher_id=uuid.uuid4(), account_id=funded_account.id
            ))

    def test_invoice_id_is_not_a_voucher(self, make_invoice, funded_account):
        invoice = make_invoice(Decimal("100.00"))

        with pytest.raises(DocumentNotFoundError):
            complete_voucher(CompleteVoucherParams(voucher_id=invoice.id, account_id=funded_account.id))

    def test_frozen_account_refuses_payment(self, make_issued_voucher, funded_account):
        voucher = make_issued_voucher(Decimal("100.00"))
        ledger.freeze_account(funded_account.id, "Audit pending")

        with pytest.raises(AccountFrozen):
            complete_voucher(CompleteVoucherParams(
                voucher_id=voucher.id, account_id=funded_account.id
            ))

        assert not StatementOfPayment.objects.exists()


class TestCompleteVoucherThroughService:
    """document_service.complete_voucher wraps outcomes in ServiceResult."""

    def test_success_result(self, make_issued_voucher, funded_account):
        voucher = make_issued_voucher(Decimal("100.00"))

        result = document_service.complete_voucher(CompleteVoucherParams(
            voucher_id=voucher.id, account_id=funded_account.id
        ))

        assert result.success
        assert isinstance(result.data, StatementOfPayment)

    def test_insufficient_balance_result(self, make_issued_voucher, funded_account):
        voucher = make_issued_voucher(Decimal("700.00"))

        result = document_service.complete_voucher(CompleteVoucherParams(
            voucher_id=voucher.id, account_id=funded_account.id
        ))

        assert not result.success
        assert result.error_code == "INSUFFICIENT_BALANCE"
        assert result.http_status == 422
        assert result.details["available"] == "500.00"
