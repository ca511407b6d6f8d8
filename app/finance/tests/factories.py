"""
Factory Boy factories for finance test data.

Factories write rows directly and skip the service layer, so they suit
model and guard tests. Tests of numbering, posting or settlement should
build documents through document_service (see conftest fixtures) so the
sequencer and ledger run as they do in production.

Usage:
    from finance.tests.factories import AccountFactory, InvoiceFactory

    account = AccountFactory(initial_balance=Decimal("500.00"))
    invoice = InvoiceFactory(document__amount=Decimal("1000.00"))
    invoice.document.status  # "draft"
"""

import datetime
from decimal import Decimal

import factory
from django.utils import timezone

from finance.models import (
    Account,
    Company,
    Document,
    Invoice,
    LineItem,
    PaymentVoucher,
    Receipt,
)
from finance.state_machines import (
    AccountType,
    Country,
    Currency,
    DocumentStatus,
    DocumentType,
    PaymentMethod,
)


class UserFactory(factory.django.DjangoModelFactory):
    """Factory for django.contrib.auth users."""

    class Meta:
        model = "auth.User"
        skip_postgeneration_save = True

    username = factory.Sequence(lambda n: f"clerk{n}")
    email = factory.LazyAttribute(lambda o: f"{o.username}@example.com")
    password = factory.PostGenerationMethodCall("set_password", "testpass123")
    is_active = True


class CompanyFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Company

    name = factory.Sequence(lambda n: f"WIF Travel {n} Sdn Bhd")
    registration_no = factory.Sequence(lambda n: f"2019{n:08d}")
    allow_negative_balance = False


class AccountFactory(factory.django.DjangoModelFactory):
    """
    Factory for a MYR main bank account.

    current_balance starts at initial_balance (Account.save copies it).
    """

    class Meta:
        model = Account

    company = factory.SubFactory(CompanyFactory)
    name = factory.Sequence(lambda n: f"Maybank Operating {n}")
    account_type = AccountType.MAIN_BANK
    bank_name = "Maybank"
    account_number = factory.Sequence(lambda n: f"5140{n:08d}")
    currency = Currency.MYR
    country = Country.MALAYSIA
    initial_balance = Decimal("0.00")


class PettyCashAccountFactory(AccountFactory):
    account_type = AccountType.PETTY_CASH
    bank_name = ""
    account_number = ""
    custodian = "Office Manager"


class DocumentFactory(factory.django.DjangoModelFactory):
    """Document header; pair with a variant factory for a full document."""

    class Meta:
        model = Document

    company = factory.SubFactory(CompanyFactory)
    document_type = DocumentType.INVOICE
    document_number = factory.Sequence(lambda n: f"WIF-TST-20260131-{n:03d}")
    status = DocumentStatus.DRAFT
    currency = Currency.MYR
    country = Country.MALAYSIA
    document_date = factory.LazyFunction(timezone.localdate)
    amount = Decimal("100.00")


class InvoiceFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Invoice

    document = factory.SubFactory(DocumentFactory, document_type=DocumentType.INVOICE)
    customer_name = "Tanaka Holdings"
    invoice_date = factory.LazyFunction(timezone.localdate)
    due_date = factory.LazyFunction(lambda: timezone.localdate() + datetime.timedelta(days=30))


class ReceiptFactory(factory.django.DjangoModelFactory):
    """
    Receipt row without a ledger entry.

    Use document_service to get a posted receipt.
    """

    class Meta:
        model = Receipt

    document = factory.SubFactory(
        DocumentFactory,
        document_type=DocumentType.RECEIPT,
        status=DocumentStatus.COMPLETED,
    )
    payer_name = "Tanaka Holdings"
    receipt_date = factory.LazyFunction(timezone.localdate)
    payment_method = PaymentMethod.BANK_TRANSFER
    received_by = "Front desk"


class PaymentVoucherFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = PaymentVoucher

    document = factory.SubFactory(DocumentFactory, document_type=DocumentType.PAYMENT_VOUCHER)
    payee_name = "Kyoto Ryokan KK"
    voucher_date = factory.LazyFunction(timezone.localdate)
    requested_by = "Operations"


class LineItemFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = LineItem

    document = factory.SubFactory(DocumentFactory)
    line_number = factory.Sequence(lambda n: n + 1)
    description = "Tour package"
    quantity = Decimal("1")
    unit_price = Decimal("100.00")
    amount = factory.LazyAttribute(lambda o: o.quantity * o.unit_price)
