"""
Pytest fixtures for finance tests.

Fixtures build documents through document_service so numbering, posting
and settlement run the same way they do for API callers.

Usage:
    def test_partial_payment(company, account, make_invoice, make_receipt):
        invoice = make_invoice(Decimal("1000.00"))
        make_receipt(Decimal("400.00"), invoice=invoice)
"""

import datetime
import logging
from decimal import Decimal

import pytest
from django.contrib.auth.models import Permission
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from finance.services import LineItemInput, SaveDocumentParams, document_service
from finance.state_machines import Currency, DocumentType, PaymentMethod
from finance.tests.factories import AccountFactory, CompanyFactory, UserFactory

# =============================================================================
# Users
# =============================================================================


@pytest.fixture
def user(db):
    """A finance clerk without approval rights."""
    return UserFactory()


@pytest.fixture
def approver(db):
    """A user holding the voucher approval permission."""
    approver = UserFactory(username="approver")
    approver.user_permissions.add(
        Permission.objects.get(
            codename="approve_paymentvoucher",
            content_type__app_label="finance",
        )
    )
    return approver


@pytest.fixture
def staff_user(db):
    return UserFactory(username="controller", is_staff=True)


# =============================================================================
# Companies and accounts
# =============================================================================


@pytest.fixture
def company(db):
    return CompanyFactory()


@pytest.fixture
def account(company):
    """MYR bank account with a zero opening balance."""
    return AccountFactory(company=company)


@pytest.fixture
def funded_account(company):
    """MYR bank account opened with 500.00."""
    return AccountFactory(company=company, initial_balance=Decimal("500.00"))


@pytest.fixture
def jpy_account(company):
    return AccountFactory(
        company=company,
        name="MUFG Tokyo",
        bank_name="MUFG",
        currency=Currency.JPY,
        country="Japan",
    )


# =============================================================================
# Document builders
# =============================================================================


def _unwrap(result):
    assert result.success, result.to_response()
    return result.data


@pytest.fixture
def make_invoice(company, user):
    """Create a draft invoice whose single line totals ``total``."""

    def _make(total=Decimal("1000.00"), currency=Currency.MYR, **details):
        details.setdefault("customer_name", "Tanaka Holdings")
        details.setdefault("due_date", timezone.localdate() + datetime.timedelta(days=30))
        return _unwrap(document_service.save_document(SaveDocumentParams(
            company_id=company.id,
            document_type=DocumentType.INVOICE,
            currency=currency,
            line_items=[LineItemInput("Tour package", Decimal("1"), Decimal(total))],
            details=details,
            actor=user,
        )))

    return _make


@pytest.fixture
def make_receipt(company, account, user):
    """Create a receipt (completed and posted unless status is draft)."""

    def _make(amount=Decimal("100.00"), invoice=None, to_account=None, status=None, **details):
        target = to_account or account
        details.setdefault("payer_name", "Tanaka Holdings")
        details.setdefault("payment_method", PaymentMethod.BANK_TRANSFER)
        details.setdefault("received_by", "Front desk")
        return _unwrap(document_service.save_document(SaveDocumentParams(
            company_id=company.id,
            document_type=DocumentType.RECEIPT,
            currency=target.currency,
            amount=Decimal(amount),
            account_id=target.id,
            linked_invoice_id=invoice.id if invoice is not None else None,
            status=status,
            details=details,
            actor=user,
        )))

    return _make


@pytest.fixture
def make_voucher(company, user):
    """Create a draft payment voucher whose single line totals ``total``."""

    def _make(total=Decimal("700.00"), currency=Currency.MYR, **details):
        details.setdefault("payee_name", "Kyoto Ryokan KK")
        details.setdefault("requested_by", "Operations")
        return _unwrap(document_service.save_document(SaveDocumentParams(
            company_id=company.id,
            document_type=DocumentType.PAYMENT_VOUCHER,
            currency=currency,
            line_items=[LineItemInput("Hotel block", Decimal("1"), Decimal(total))],
            details=details,
            actor=user,
        )))

    return _make


@pytest.fixture
def make_issued_voucher(make_voucher, approver):
    """Create and approve a payment voucher."""

    def _make(total=Decimal("700.00"), **kwargs):
        voucher = make_voucher(total, **kwargs)
        return _unwrap(document_service.approve_voucher(voucher.id, approver=approver))

    return _make


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture
def finance_logs(caplog, monkeypatch):
    """caplog that also sees the finance logger, which does not propagate."""
    monkeypatch.setattr(logging.getLogger("finance"), "propagate", True)
    caplog.set_level(logging.INFO, logger="finance")
    return caplog


# =============================================================================
# API clients
# =============================================================================


def _client_for(user) -> APIClient:
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
    return client


@pytest.fixture
def api_client() -> APIClient:
    """Return unauthenticated API client."""
    return APIClient()


@pytest.fixture
def authenticated_client(user) -> APIClient:
    """Return API client authenticated with JWT token."""
    return _client_for(user)


@pytest.fixture
def approver_client(approver) -> APIClient:
    return _client_for(approver)


@pytest.fixture
def staff_client(staff_user) -> APIClient:
    return _client_for(staff_user)
