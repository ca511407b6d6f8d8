"""
Tests for document state transitions using django-fsm.

Exercises the transitions on Document directly; permission checks and
ledger side effects are covered by the service tests.
"""

from decimal import Decimal

import pytest
from django_fsm import TransitionNotAllowed

from finance.ledger.services import ledger
from finance.models import Document
from finance.services import CompleteVoucherParams, complete_voucher
from finance.state_machines import DocumentStatus
from finance.tests.factories import (
    DocumentFactory,
    InvoiceFactory,
    PaymentVoucherFactory,
    ReceiptFactory,
)


@pytest.fixture
def draft_invoice(db):
    return InvoiceFactory().document


@pytest.fixture
def draft_voucher(db):
    return PaymentVoucherFactory().document


@pytest.fixture
def draft_receipt(db):
    return ReceiptFactory(document__status=DocumentStatus.DRAFT).document


# =============================================================================
# Invoice
# =============================================================================


class TestInvoiceTransitions:
    """Tests for invoice transitions."""

    def test_draft_to_issued(self, draft_invoice):
        """Should issue a draft invoice."""
        draft_invoice.issue()
        draft_invoice.save()

        assert Document.objects.get(pk=draft_invoice.pk).status == DocumentStatus.ISSUED

    def test_cannot_issue_twice(self, draft_invoice):
        draft_invoice.issue()
        draft_invoice.save()

        with pytest.raises(TransitionNotAllowed):
            draft_invoice.issue()

    def test_invoice_cannot_be_approved(self, draft_invoice):
        """approve() is reserved for payment vouchers."""
        with pytest.raises(TransitionNotAllowed):
            draft_invoice.approve()

    def test_invoice_cannot_be_completed(self, draft_invoice):
        with pytest.raises(TransitionNotAllowed):
            draft_invoice.complete()

    def test_cancel_records_reason_and_time(self, draft_invoice):
        draft_invoice.cancel(reason="Customer withdrew")
        draft_invoice.save()

        stored = Document.objects.get(pk=draft_invoice.pk)
        assert stored.status == DocumentStatus.CANCELLED
        assert stored.cancellation_reason == "Customer withdrew"
        assert stored.cancelled_at is not None

    def test_reopen_clears_cancellation(self, draft_invoice):
        draft_invoice.cancel(reason="Mistake")
        draft_invoice.save()

        draft_invoice.reopen()
        draft_invoice.save()

        assert draft_invoice.status == DocumentStatus.DRAFT
        assert draft_invoice.cancelled_at is None
        assert draft_invoice.cancellation_reason == ""

    def test_cannot_reopen_uncancelled(self, draft_invoice):
        with pytest.raises(TransitionNotAllowed):
            draft_invoice.reopen()


# =============================================================================
# Payment voucher
# =============================================================================


class TestVoucherTransitions:
    """Tests for payment voucher transitions."""

    def test_approve_records_approver(self, draft_voucher, approver):
        """Should move to issued and stamp the approver."""
        draft_voucher.approve(approver=approver)
        draft_voucher.save()

        assert draft_voucher.status == DocumentStatus.ISSUED
        assert draft_voucher.payment_voucher.approved_by == approver
        assert draft_voucher.payment_voucher.approval_date is not None

    def test_voucher_cannot_be_issued(self, draft_voucher):
        with pytest.raises(TransitionNotAllowed):
            draft_voucher.issue()

    def test_issued_voucher_can_be_cancelled_before_payment(self, draft_voucher):
        draft_voucher.approve()
        draft_voucher.save()

        draft_voucher.cancel()

        assert draft_voucher.status == DocumentStatus.CANCELLED

    def test_cancelled_voucher_reopens(self, draft_voucher):
        draft_voucher.cancel()
        draft_voucher.save()

        draft_voucher.reopen()

        assert draft_voucher.status == DocumentStatus.DRAFT

    def test_revise_withdraws_approval(self, draft_voucher, approver):
        draft_voucher.approve(approver=approver)
        draft_voucher.save()

        draft_voucher.revise()

        assert draft_voucher.status == DocumentStatus.DRAFT
        assert draft_voucher.payment_voucher.approved_by is None
        assert draft_voucher.payment_voucher.approval_date is None

    def test_draft_voucher_cannot_be_revised(self, draft_voucher):
        with pytest.raises(TransitionNotAllowed):
            draft_voucher.revise()

    def test_invoice_cannot_be_revised(self, draft_invoice):
        draft_invoice.issue()
        draft_invoice.save()

        with pytest.raises(TransitionNotAllowed):
            draft_invoice.revise()


class TestSettledVoucher:
    """A voucher with a statement of payment is fulfilled and stays issued."""

    def test_settled_voucher_cannot_be_cancelled(self, make_issued_voucher, funded_account):
        voucher = make_issued_voucher(Decimal("100.00"))
        complete_voucher(CompleteVoucherParams(voucher_id=voucher.id, account_id=funded_account.id))

        voucher = Document.objects.get(pk=voucher.pk)
        with pytest.raises(TransitionNotAllowed):
            voucher.cancel()

    def test_posted_statement_cannot_be_cancelled_until_reversed(
        self, make_issued_voucher, funded_account
    ):
        voucher = make_issued_voucher(Decimal("100.00"))
        statement = complete_voucher(CompleteVoucherParams(
            voucher_id=voucher.id, account_id=funded_account.id
        ))
        document = Document.objects.get(pk=statement.pk)

        with pytest.raises(TransitionNotAllowed):
            document.cancel()

        entry = document.ledger_entries.get()
        ledger.reverse(entry.id, reason="Payment returned by bank")
        document = Document.objects.get(pk=statement.pk)
        document.cancel(reason="Payment returned by bank")

        assert document.status == DocumentStatus.CANCELLED

    def test_settled_voucher_cannot_be_revised(self, make_issued_voucher, funded_account):
        voucher = make_issued_voucher(Decimal("100.00"))
        complete_voucher(CompleteVoucherParams(voucher_id=voucher.id, account_id=funded_account.id))

        voucher = Document.objects.get(pk=voucher.pk)
        with pytest.raises(TransitionNotAllowed):
            voucher.revise()


# =============================================================================
# Receipt
# =============================================================================


class TestReceiptTransitions:
    """Tests for receipt transitions."""

    def test_draft_to_completed(self, draft_receipt):
        draft_receipt.complete()
        draft_receipt.save()

        assert Document.objects.get(pk=draft_receipt.pk).status == DocumentStatus.COMPLETED

    def test_completed_receipt_can_be_cancelled(self, db):
        receipt = ReceiptFactory().document

        receipt.cancel(reason="Bounced")

        assert receipt.status == DocumentStatus.CANCELLED

    def test_cancelled_receipt_never_reopens(self, db):
        receipt = ReceiptFactory().document
        receipt.cancel()
        receipt.save()

        with pytest.raises(TransitionNotAllowed):
            receipt.reopen()


# =============================================================================
# Protected status field
# =============================================================================


class TestProtectedStatus:
    def test_direct_assignment_rejected(self, db):
        document = DocumentFactory()

        with pytest.raises(AttributeError):
            document.status = DocumentStatus.PAID

    def test_save_bumps_version(self, draft_invoice):
        assert draft_invoice.version == 1

        draft_invoice.issue()
        draft_invoice.save()

        assert draft_invoice.version == 2
