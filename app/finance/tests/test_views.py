"""
Tests for the finance API.

Requests go through JWT-authenticated APIClient instances; documents are
created either through the API or through the service fixtures.
"""

from decimal import Decimal

import pytest
from django.urls import reverse
from rest_framework import status

from finance.ledger.services import ledger
from finance.models import Document, LedgerEntry
from finance.state_machines import DocumentStatus, DocumentType
from finance.tests.factories import AccountFactory


def list_url():
    return reverse("finance:document-list")


def document_url(document, action=None):
    if action is None:
        return reverse("finance:document-detail", args=[document.id])
    return reverse(f"finance:document-{action}", args=[document.id])


def invoice_payload(company, **overrides):
    payload = {
        "company_id": str(company.id),
        "document_type": DocumentType.INVOICE,
        "currency": "MYR",
        "customer_name": "Tanaka Holdings",
        "due_date": "2026-02-28",
        "line_items": [
            {"description": "Tour package", "quantity": "2", "unit_price": "500.00"},
        ],
    }
    payload.update(overrides)
    return payload


def receipt_payload(company, account, **overrides):
    payload = {
        "company_id": str(company.id),
        "document_type": DocumentType.RECEIPT,
        "currency": "MYR",
        "amount": "400.00",
        "account_id": str(account.id),
        "payer_name": "Tanaka Holdings",
        "payment_method": "bank_transfer",
        "received_by": "Front desk",
    }
    payload.update(overrides)
    return payload


# =============================================================================
# Documents
# =============================================================================


class TestDocumentCreate:
    def test_requires_authentication(self, api_client, db):
        response = api_client.get(list_url())

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_create_invoice(self, authenticated_client, company):
        response = authenticated_client.post(list_url(), invoice_payload(company), format="json")

        assert response.status_code == status.HTTP_201_CREATED
        data = response.data
        assert data["document_number"].startswith("WIF-INV-")
        assert data["status"] == DocumentStatus.DRAFT
        assert data["amount"] == "1000.00"
        assert data["version"] == 1
        assert data["details"]["customer_name"] == "Tanaka Holdings"
        assert data["line_items"][0]["amount"] == "1000.00"
        assert data["has_postings"] is False

    def test_create_receipt_posts_to_account(self, authenticated_client, company, account):
        response = authenticated_client.post(
            list_url(), receipt_payload(company, account), format="json"
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["status"] == DocumentStatus.COMPLETED
        assert response.data["has_postings"] is True
        assert ledger.get_balance(account.id).amount == Decimal("400.00")

    def test_create_draft_receipt(self, authenticated_client, company, account):
        response = authenticated_client.post(
            list_url(), receipt_payload(company, account, status="draft"), format="json"
        )

        assert response.data["status"] == DocumentStatus.DRAFT
        assert ledger.get_balance(account.id).amount == Decimal("0.00")

    def test_missing_variant_fields(self, authenticated_client, company):
        payload = invoice_payload(company)
        del payload["customer_name"]

        response = authenticated_client.post(list_url(), payload, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "DOCUMENT_VALIDATION_ERROR"
        assert "customer_name" in response.data["errors"]

    def test_statement_type_not_accepted(self, authenticated_client, company):
        payload = invoice_payload(company, document_type=DocumentType.STATEMENT_OF_PAYMENT)

        response = authenticated_client.post(list_url(), payload, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "document_type" in response.data

    def test_currency_mismatch(self, authenticated_client, company, jpy_account):
        response = authenticated_client.post(
            list_url(), receipt_payload(company, jpy_account), format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "CURRENCY_MISMATCH"


class TestDocumentList:
    def test_filters(self, authenticated_client, company, make_invoice, make_receipt):
        make_invoice(Decimal("100.00"))
        make_receipt(Decimal("50.00"))

        response = authenticated_client.get(
            list_url(), {"company": str(company.id), "document_type": DocumentType.RECEIPT}
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["count"] == 1
        assert response.data["results"][0]["document_type"] == DocumentType.RECEIPT

    def test_other_company_filtered_out(self, authenticated_client, make_invoice):
        make_invoice(Decimal("100.00"))
        other = AccountFactory().company

        response = authenticated_client.get(list_url(), {"company": str(other.id)})

        assert response.data["count"] == 0

    def test_deleted_hidden_unless_requested(self, authenticated_client, make_invoice):
        invoice = make_invoice(Decimal("100.00"))
        authenticated_client.delete(document_url(invoice))

        assert authenticated_client.get(list_url()).data["count"] == 0
        assert authenticated_client.get(list_url(), {"include_deleted": "true"}).data["count"] == 1


class TestDocumentUpdate:
    def test_patch_with_version(self, authenticated_client, make_invoice):
        invoice = make_invoice(Decimal("100.00"))

        response = authenticated_client.patch(
            document_url(invoice), {"version": 1, "notes": "Send by post"}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["notes"] == "Send by post"
        assert response.data["version"] == 2

    def test_stale_version_conflict(self, authenticated_client, make_invoice):
        invoice = make_invoice(Decimal("100.00"))
        authenticated_client.patch(document_url(invoice), {"version": 1, "notes": "A"}, format="json")

        response = authenticated_client.patch(
            document_url(invoice), {"version": 1, "notes": "B"}, format="json"
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "STALE_RECORD"

    def test_version_required(self, authenticated_client, make_invoice):
        invoice = make_invoice(Decimal("100.00"))

        response = authenticated_client.patch(document_url(invoice), {"notes": "A"}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "version" in response.data

    def test_posted_amount_locked(self, authenticated_client, make_receipt):
        receipt = make_receipt(Decimal("400.00"))

        response = authenticated_client.patch(
            document_url(receipt), {"version": receipt.version, "amount": "450.00"}, format="json"
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "DOCUMENT_LOCKED"


class TestDocumentDelete:
    def test_soft_delete(self, authenticated_client, account, make_receipt):
        receipt = make_receipt(Decimal("400.00"))

        response = authenticated_client.delete(document_url(receipt))

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert Document.all_objects.get(pk=receipt.pk).is_deleted
        assert authenticated_client.get(document_url(receipt)).status_code == status.HTTP_404_NOT_FOUND
        assert ledger.get_balance(account.id).amount == Decimal("400.00")

    def test_put_not_allowed(self, authenticated_client, make_invoice):
        invoice = make_invoice(Decimal("100.00"))

        response = authenticated_client.put(document_url(invoice), {}, format="json")

        assert response.status_code == status.HTTP_405_METHOD_NOT_ALLOWED


class TestDocumentActions:
    def test_issue(self, authenticated_client, make_invoice):
        invoice = make_invoice(Decimal("100.00"))

        response = authenticated_client.post(document_url(invoice, "issue"), {}, format="json")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["status"] == DocumentStatus.ISSUED

    def test_issue_twice_conflicts(self, authenticated_client, make_invoice):
        invoice = make_invoice(Decimal("100.00"))
        authenticated_client.post(document_url(invoice, "issue"), {}, format="json")

        response = authenticated_client.post(document_url(invoice, "issue"), {}, format="json")

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "INVALID_STATE_TRANSITION"

    def test_approve_requires_permission(self, authenticated_client, make_voucher):
        voucher = make_voucher(Decimal("100.00"))

        response = authenticated_client.post(document_url(voucher, "approve"), {}, format="json")

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data["error_code"] == "APPROVAL_NOT_PERMITTED"

    def test_approve(self, approver_client, approver, make_voucher):
        voucher = make_voucher(Decimal("100.00"))

        response = approver_client.post(document_url(voucher, "approve"), {}, format="json")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["status"] == DocumentStatus.ISSUED
        assert response.data["details"]["approved_by"] == approver.id

    def test_complete_voucher(self, authenticated_client, make_issued_voucher, funded_account):
        voucher = make_issued_voucher(Decimal("450.00"))

        response = authenticated_client.post(
            document_url(voucher, "complete"),
            {
                "account_id": str(funded_account.id),
                "transaction_fee": "15.00",
                "transaction_fee_type": "bank_charge",
                "transaction_reference": "TT-88231",
            },
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["total_deducted"] == "465.00"
        assert response.data["document"]["document_type"] == DocumentType.STATEMENT_OF_PAYMENT
        assert ledger.get_balance(funded_account.id).amount == Decimal("35.00")

    def test_complete_voucher_insufficient_balance(
        self, authenticated_client, make_issued_voucher, funded_account
    ):
        voucher = make_issued_voucher(Decimal("700.00"))

        response = authenticated_client.post(
            document_url(voucher, "complete"),
            {"account_id": str(funded_account.id)},
            format="json",
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.data["error_code"] == "INSUFFICIENT_BALANCE"
        assert response.data["details"]["available"] == "500.00"
        assert ledger.get_balance(funded_account.id).amount == Decimal("500.00")

    def test_complete_voucher_twice(self, authenticated_client, make_issued_voucher, funded_account):
        voucher = make_issued_voucher(Decimal("100.00"))
        payload = {"account_id": str(funded_account.id)}
        authenticated_client.post(document_url(voucher, "complete"), payload, format="json")

        response = authenticated_client.post(document_url(voucher, "complete"), payload, format="json")

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "VOUCHER_ALREADY_SETTLED"

    def test_negative_fee_rejected(self, authenticated_client, make_issued_voucher, funded_account):
        voucher = make_issued_voucher(Decimal("100.00"))

        response = authenticated_client.post(
            document_url(voucher, "complete"),
            {"account_id": str(funded_account.id), "transaction_fee": "-1.00"},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "transaction_fee" in response.data

    def test_complete_draft_receipt(self, authenticated_client, account, make_receipt):
        receipt = make_receipt(Decimal("400.00"), status=DocumentStatus.DRAFT)

        response = authenticated_client.post(document_url(receipt, "complete"), {}, format="json")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["status"] == DocumentStatus.COMPLETED
        assert ledger.get_balance(account.id).amount == Decimal("400.00")

    def test_cancel_and_reopen(self, authenticated_client, make_invoice):
        invoice = make_invoice(Decimal("100.00"))

        cancelled = authenticated_client.post(
            document_url(invoice, "cancel"), {"reason": "Duplicate"}, format="json"
        )
        reopened = authenticated_client.post(document_url(invoice, "reopen"), {}, format="json")

        assert cancelled.data["status"] == DocumentStatus.CANCELLED
        assert cancelled.data["cancellation_reason"] == "Duplicate"
        assert reopened.data["status"] == DocumentStatus.DRAFT

    def test_payment_status(self, authenticated_client, make_invoice, make_receipt):
        invoice = make_invoice(Decimal("1000.00"))
        make_receipt(Decimal("400.00"), invoice=invoice)

        response = authenticated_client.get(document_url(invoice, "payment-status"))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["amount_paid"] == "400.00"
        assert response.data["balance_due"] == "600.00"
        assert response.data["payment_status"] == "partially_paid"
        assert response.data["percent_paid"] == "40.0"

    def test_payment_status_of_non_invoice(self, authenticated_client, make_receipt):
        receipt = make_receipt(Decimal("400.00"))

        response = authenticated_client.get(document_url(receipt, "payment-status"))

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_document_entries(self, authenticated_client, make_receipt):
        receipt = make_receipt(Decimal("400.00"))

        response = authenticated_client.get(document_url(receipt, "entries"))

        assert response.status_code == status.HTTP_200_OK
        assert len(response.data) == 1
        assert response.data[0]["document_number"] == receipt.document_number
        assert response.data[0]["direction"] == "increase"


# =============================================================================
# Accounts
# =============================================================================


class TestAccounts:
    def test_list_by_company(self, authenticated_client, company, account):
        AccountFactory()

        response = authenticated_client.get(
            reverse("finance:account-list"), {"company": str(company.id)}
        )

        assert response.data["count"] == 1
        assert response.data["results"][0]["id"] == str(account.id)

    def test_balance(self, authenticated_client, funded_account):
        response = authenticated_client.get(
            reverse("finance:account-balance", args=[funded_account.id])
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["amount"] == "500.00"
        assert response.data["currency"] == "MYR"
        assert response.data["formatted"] == "MYR 500.00"

    def test_entries_paginated_oldest_first(self, authenticated_client, account, make_receipt):
        make_receipt(Decimal("10.00"))
        make_receipt(Decimal("20.00"))

        response = authenticated_client.get(reverse("finance:account-entries", args=[account.id]))

        assert response.data["count"] == 2
        assert [e["sequence"] for e in response.data["results"]] == [1, 2]
        assert response.data["results"][1]["balance_after"] == "30.00"

    def test_audit_is_staff_only(self, authenticated_client, account):
        response = authenticated_client.get(reverse("finance:account-audit", args=[account.id]))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_audit(self, staff_client, account, make_receipt):
        make_receipt(Decimal("10.00"))

        response = staff_client.get(reverse("finance:account-audit", args=[account.id]))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["is_consistent"] is True
        assert response.data["entry_count"] == 1

    def test_no_write_endpoints(self, authenticated_client, company):
        response = authenticated_client.post(
            reverse("finance:account-list"), {"company": str(company.id)}, format="json"
        )

        assert response.status_code == status.HTTP_405_METHOD_NOT_ALLOWED


# =============================================================================
# Ledger entries
# =============================================================================


class TestLedgerEntryReverse:
    @pytest.fixture
    def entry(self, make_receipt):
        receipt = make_receipt(Decimal("400.00"))
        return LedgerEntry.objects.get(document_id=receipt.id)

    def test_staff_only(self, authenticated_client, entry):
        response = authenticated_client.post(
            reverse("finance:ledger-entry-reverse", args=[entry.id]),
            {"reason": "Duplicate"},
            format="json",
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_reverse(self, staff_client, staff_user, account, entry):
        response = staff_client.post(
            reverse("finance:ledger-entry-reverse", args=[entry.id]),
            {"reason": "Receipt entered twice"},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["is_compensating"] is True
        assert response.data["reverses"] == str(entry.id)
        assert response.data["created_by"] == staff_user.username
        assert ledger.get_balance(account.id).amount == Decimal("0.00")

    def test_reason_required(self, staff_client, entry):
        response = staff_client.post(
            reverse("finance:ledger-entry-reverse", args=[entry.id]), {}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_reversal_cannot_be_reversed(self, staff_client, entry):
        first = staff_client.post(
            reverse("finance:ledger-entry-reverse", args=[entry.id]),
            {"reason": "Duplicate"},
            format="json",
        )

        response = staff_client.post(
            reverse("finance:ledger-entry-reverse", args=[first.data["id"]]),
            {"reason": "Undo"},
            format="json",
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "IRREVERSIBLE_ENTRY"
