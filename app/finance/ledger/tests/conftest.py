"""
Pytest fixtures for ledger tests.

Documents here are bare headers from DocumentFactory; the ledger only
needs a document id with the right company and currency.
"""

from decimal import Decimal

import pytest

from finance.ledger.services import ledger
from finance.ledger.types import PostEntryParams
from finance.state_machines import DocumentStatus, DocumentType, EntryDirection
from finance.tests.factories import AccountFactory, CompanyFactory, DocumentFactory


@pytest.fixture
def company(db):
    return CompanyFactory()


@pytest.fixture
def account(company):
    """MYR account opened with 1000.00."""
    return AccountFactory(company=company, initial_balance=Decimal("1000.00"))


@pytest.fixture
def make_document(company):
    """Create a completed receipt header in the account's company."""

    def _make(**kwargs):
        kwargs.setdefault("company", company)
        kwargs.setdefault("document_type", DocumentType.RECEIPT)
        kwargs.setdefault("status", DocumentStatus.COMPLETED)
        return DocumentFactory(**kwargs)

    return _make


@pytest.fixture
def post(account, make_document):
    """Post an entry for a fresh document and return it."""

    def _post(amount, direction=EntryDirection.INCREASE, to_account=None, document=None):
        target = to_account or account
        document = document or make_document(company=target.company, currency=target.currency)
        return ledger.post(PostEntryParams(
            account_id=target.id,
            document_id=document.id,
            direction=direction,
            amount=Decimal(amount),
            description="Test posting",
            created_by="tests",
        ))

    return _post
