"""
Variant detail tables for the four document types.

Each variant is a one-to-one extension of the Document header. The header
carries everything the engine reasons about (status, amount, account); the
variant rows carry the party identity and dates shown on the document.

Relationships:
    Receipt.linked_invoice -> Invoice          many-to-one, optional
    StatementOfPayment.linked_voucher -> PaymentVoucher
                                               one-to-one, unique on the reference
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q

from finance.state_machines import FeeType, PaymentMethod


class Invoice(models.Model):
    """Customer invoice details."""

    document = models.OneToOneField(
        "finance.Document",
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="invoice",
    )
    customer_name = models.CharField(max_length=255)
    customer_address = models.TextField(blank=True)
    customer_email = models.EmailField(blank=True)
    invoice_date = models.DateField()
    due_date = models.DateField(null=True, blank=True)
    payment_terms = models.CharField(max_length=255, blank=True)

    def __str__(self) -> str:
        return f"Invoice for {self.customer_name}"


class Receipt(models.Model):
    """
    Money received from a payer.

    A receipt may settle part or all of an invoice; many receipts can point
    at the same invoice.
    """

    document = models.OneToOneField(
        "finance.Document",
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="receipt",
    )
    linked_invoice = models.ForeignKey(
        Invoice,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="receipts",
    )
    payer_name = models.CharField(max_length=255)
    payer_contact = models.CharField(max_length=255, blank=True)
    receipt_date = models.DateField()
    payment_method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        default=PaymentMethod.BANK_TRANSFER,
    )
    received_by = models.CharField(max_length=255, blank=True)

    class Meta:
        indexes = [
            models.Index(fields=["linked_invoice"], name="finance_rec_linked__3e9b70_idx"),
        ]

    def __str__(self) -> str:
        return f"Receipt from {self.payer_name}"


class PaymentVoucher(models.Model):
    """
    Request to pay a payee, approved before money leaves an account.

    A voucher is fulfilled by exactly one StatementOfPayment; it never posts
    to the ledger itself.
    """

    document = models.OneToOneField(
        "finance.Document",
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="payment_voucher",
    )
    payee_name = models.CharField(max_length=255)
    payee_address = models.TextField(blank=True)
    payee_bank_account = models.CharField(max_length=100, blank=True)
    payee_bank_name = models.CharField(max_length=255, blank=True)
    voucher_date = models.DateField()
    payment_due_date = models.DateField(null=True, blank=True)
    requested_by = models.CharField(max_length=255)
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    approval_date = models.DateField(null=True, blank=True)

    def __str__(self) -> str:
        return f"Voucher to {self.payee_name}"

    @property
    def is_settled(self) -> bool:
        return hasattr(self, "statement")


class StatementOfPayment(models.Model):
    """
    Proof that a payment voucher was paid.

    total_deducted = voucher total + transaction_fee, and is the amount the
    ledger takes out of the paying account. voucher_snapshot freezes the
    voucher's line items, currency and payee at completion time so the
    statement stays a correct record if the voucher is edited later.
    """

    document = models.OneToOneField(
        "finance.Document",
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="statement_of_payment",
    )
    linked_voucher = models.OneToOneField(
        PaymentVoucher,
        on_delete=models.PROTECT,
        related_name="statement",
    )
    payment_date = models.DateField()
    payment_method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        default=PaymentMethod.BANK_TRANSFER,
    )
    transaction_reference = models.CharField(max_length=255, blank=True)
    confirmed_by = models.CharField(max_length=255, blank=True)
    payee_name = models.CharField(max_length=255)
    transaction_fee = models.DecimalField(
        max_digits=15, decimal_places=2, default=Decimal("0.00")
    )
    transaction_fee_type = models.CharField(
        max_length=20, choices=FeeType.choices, blank=True
    )
    total_deducted = models.DecimalField(max_digits=15, decimal_places=2)
    voucher_snapshot = models.JSONField(default=dict, blank=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=Q(transaction_fee__gte=0),
                name="statement_fee_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"Statement for {self.payee_name}"
