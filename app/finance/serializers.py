"""
Serializers for finance API.

Serializer Hierarchy:
    AccountSerializer: Account with materialized balance
    BalanceSerializer: Money as returned by the balance endpoint

    LineItemSerializer: Stored line item
    LineItemInputSerializer: Submitted line item
    DocumentSerializer: Header, variant details and line items
    DocumentCreateSerializer: New document (any type but statements)
    DocumentUpdateSerializer: Partial update, version required
    TransitionSerializer / CancelSerializer: Lifecycle actions
    CompleteVoucherSerializer: Voucher settlement
    StatementOfPaymentSerializer: Statement created by settlement
    PaymentStatusSerializer: Invoice payment position

    LedgerEntrySerializer: Immutable ledger entry
    ReverseEntrySerializer: Compensating entry request
    LedgerAuditSerializer: Account audit report

Design Decisions:
    - Read and write serializers are separate
    - Variant fields are flat on the write serializers and nested under
      "details" on the read serializer
    - Money is rendered as strings (COERCE_DECIMAL_TO_STRING)
"""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from core.serializer_mixins import TimestampMixin
from finance.models import (
    Account,
    Document,
    Invoice,
    LedgerEntry,
    LineItem,
    PaymentVoucher,
    Receipt,
    StatementOfPayment,
)
from finance.services.documents import VARIANT_FIELDS, LineItemInput
from finance.state_machines import (
    Country,
    Currency,
    DocumentStatus,
    DocumentType,
    FeeType,
    PaymentMethod,
)

# Every variant field accepted by the write serializers
ALL_VARIANT_FIELDS = sorted({name for names in VARIANT_FIELDS.values() for name in names})


# =============================================================================
# Accounts
# =============================================================================


class AccountSerializer(TimestampMixin, serializers.ModelSerializer):
    class Meta:
        model = Account
        fields = [
            "id",
            "company",
            "name",
            "account_type",
            "currency",
            "country",
            "bank_name",
            "account_number",
            "custodian",
            "initial_balance",
            "current_balance",
            "is_active",
            "is_frozen",
            "frozen_reason",
            "notes",
        ]
        read_only_fields = fields


class BalanceSerializer(serializers.Serializer):
    account_id = serializers.UUIDField()
    amount = serializers.DecimalField(max_digits=15, decimal_places=2)
    currency = serializers.CharField()
    formatted = serializers.CharField()


# =============================================================================
# Variant details (read)
# =============================================================================


class InvoiceDetailSerializer(serializers.ModelSerializer):
    class Meta:
        model = Invoice
        exclude = ["document"]


class ReceiptDetailSerializer(serializers.ModelSerializer):
    linked_invoice_number = serializers.CharField(
        source="linked_invoice.document.document_number",
        default=None,
        read_only=True,
    )

    class Meta:
        model = Receipt
        exclude = ["document"]


class PaymentVoucherDetailSerializer(serializers.ModelSerializer):
    is_settled = serializers.BooleanField(read_only=True)

    class Meta:
        model = PaymentVoucher
        exclude = ["document"]


class StatementDetailSerializer(serializers.ModelSerializer):
    class Meta:
        model = StatementOfPayment
        exclude = ["document"]


VARIANT_SERIALIZERS = {
    DocumentType.INVOICE: InvoiceDetailSerializer,
    DocumentType.RECEIPT: ReceiptDetailSerializer,
    DocumentType.PAYMENT_VOUCHER: PaymentVoucherDetailSerializer,
    DocumentType.STATEMENT_OF_PAYMENT: StatementDetailSerializer,
}


# =============================================================================
# Documents (read)
# =============================================================================


class LineItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = LineItem
        fields = ["line_number", "description", "quantity", "unit_price", "amount"]
        read_only_fields = fields


class DocumentSerializer(TimestampMixin, serializers.ModelSerializer):
    """Full document: header, variant details and line items."""

    details = serializers.SerializerMethodField()
    line_items = LineItemSerializer(many=True, read_only=True)
    has_postings = serializers.SerializerMethodField()

    class Meta:
        model = Document
        fields = [
            "id",
            "company",
            "document_type",
            "document_number",
            "status",
            "currency",
            "country",
            "document_date",
            "amount",
            "subtotal",
            "tax_rate",
            "tax_amount",
            "account",
            "notes",
            "version",
            "cancelled_at",
            "cancellation_reason",
            "is_deleted",
            "details",
            "line_items",
            "has_postings",
        ]
        read_only_fields = fields

    def get_details(self, obj: Document) -> dict | None:
        serializer_class = VARIANT_SERIALIZERS.get(obj.document_type)
        if serializer_class is None:
            return None
        try:
            variant = obj.variant
        except (
            Invoice.DoesNotExist,
            Receipt.DoesNotExist,
            PaymentVoucher.DoesNotExist,
            StatementOfPayment.DoesNotExist,
        ):
            return None
        return serializer_class(variant).data

    def get_has_postings(self, obj: Document) -> bool:
        return obj.has_postings()


class StatementOfPaymentSerializer(serializers.ModelSerializer):
    document = DocumentSerializer(read_only=True)
    linked_voucher = serializers.UUIDField(source="linked_voucher_id", read_only=True)

    class Meta:
        model = StatementOfPayment
        fields = [
            "document",
            "linked_voucher",
            "payment_date",
            "payment_method",
            "transaction_reference",
            "confirmed_by",
            "payee_name",
            "transaction_fee",
            "transaction_fee_type",
            "total_deducted",
            "voucher_snapshot",
        ]
        read_only_fields = fields


# =============================================================================
# Documents (write)
# =============================================================================


class LineItemInputSerializer(serializers.Serializer):
    description = serializers.CharField(max_length=500)
    quantity = serializers.DecimalField(max_digits=10, decimal_places=2, default=Decimal("1"))
    unit_price = serializers.DecimalField(max_digits=15, decimal_places=2)
    amount = serializers.DecimalField(max_digits=15, decimal_places=2, required=False)

    def to_line_item(self, data: dict) -> LineItemInput:
        return LineItemInput(
            description=data["description"],
            quantity=data["quantity"],
            unit_price=data["unit_price"],
            amount=data.get("amount"),
        )


class _DocumentFieldsSerializer(serializers.Serializer):
    """Header and variant fields shared by create and update."""

    currency = serializers.ChoiceField(choices=Currency.choices, required=False)
    country = serializers.ChoiceField(choices=Country.choices, required=False)
    document_date = serializers.DateField(required=False)
    amount = serializers.DecimalField(max_digits=15, decimal_places=2, required=False)
    tax_rate = serializers.DecimalField(max_digits=5, decimal_places=2, required=False)
    account_id = serializers.UUIDField(required=False)
    linked_invoice_id = serializers.UUIDField(required=False)
    line_items = LineItemInputSerializer(many=True, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)

    # Invoice
    customer_name = serializers.CharField(max_length=255, required=False)
    customer_address = serializers.CharField(required=False, allow_blank=True)
    customer_email = serializers.EmailField(required=False, allow_blank=True)
    invoice_date = serializers.DateField(required=False)
    due_date = serializers.DateField(required=False)
    payment_terms = serializers.CharField(max_length=255, required=False, allow_blank=True)

    # Receipt
    payer_name = serializers.CharField(max_length=255, required=False)
    payer_contact = serializers.CharField(max_length=255, required=False, allow_blank=True)
    receipt_date = serializers.DateField(required=False)
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices, required=False)
    received_by = serializers.CharField(max_length=255, required=False)

    # Payment voucher
    payee_name = serializers.CharField(max_length=255, required=False)
    payee_address = serializers.CharField(required=False, allow_blank=True)
    payee_bank_account = serializers.CharField(max_length=100, required=False, allow_blank=True)
    payee_bank_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    voucher_date = serializers.DateField(required=False)
    payment_due_date = serializers.DateField(required=False)
    requested_by = serializers.CharField(max_length=255, required=False)

    def params_kwargs(self) -> dict:
        """Split validated data into SaveDocumentParams keyword arguments."""
        data = dict(self.validated_data)
        details = {name: data.pop(name) for name in ALL_VARIANT_FIELDS if name in data}
        line_items = data.pop("line_items", None)
        if line_items is not None:
            data["line_items"] = [
                LineItemInputSerializer().to_line_item(item) for item in line_items
            ]
        data["details"] = details
        return data


class DocumentCreateSerializer(_DocumentFieldsSerializer):
    """
    Create an invoice, receipt or payment voucher.

    Receipts are completed (and posted) on creation unless status is
    "draft". Statements of payment come from POST documents/{id}/complete/.
    """

    company_id = serializers.UUIDField()
    document_type = serializers.ChoiceField(
        choices=[
            (DocumentType.INVOICE, DocumentType.INVOICE.label),
            (DocumentType.RECEIPT, DocumentType.RECEIPT.label),
            (DocumentType.PAYMENT_VOUCHER, DocumentType.PAYMENT_VOUCHER.label),
        ],
    )
    currency = serializers.ChoiceField(choices=Currency.choices)
    status = serializers.ChoiceField(
        choices=[
            (DocumentStatus.DRAFT, DocumentStatus.DRAFT.label),
            (DocumentStatus.COMPLETED, DocumentStatus.COMPLETED.label),
        ],
        required=False,
    )


class DocumentUpdateSerializer(_DocumentFieldsSerializer):
    """Partial update; version must match the stored version."""

    version = serializers.IntegerField(min_value=1)


class TransitionSerializer(serializers.Serializer):
    version = serializers.IntegerField(min_value=1, required=False)


class CancelSerializer(TransitionSerializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class CompleteVoucherSerializer(serializers.Serializer):
    account_id = serializers.UUIDField()
    transaction_fee = serializers.DecimalField(
        max_digits=15, decimal_places=2, min_value=Decimal("0"), default=Decimal("0.00")
    )
    transaction_fee_type = serializers.ChoiceField(
        choices=FeeType.choices, required=False, allow_blank=True, default=""
    )
    payment_date = serializers.DateField(required=False)
    payment_method = serializers.ChoiceField(
        choices=PaymentMethod.choices, default=PaymentMethod.BANK_TRANSFER
    )
    transaction_reference = serializers.CharField(
        max_length=255, required=False, allow_blank=True, default=""
    )
    confirmed_by = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class PaymentStatusSerializer(serializers.Serializer):
    total = serializers.DecimalField(max_digits=15, decimal_places=2)
    amount_paid = serializers.DecimalField(max_digits=15, decimal_places=2)
    balance_due = serializers.DecimalField(max_digits=15, decimal_places=2)
    payment_status = serializers.CharField()
    receipt_count = serializers.IntegerField()
    percent_paid = serializers.DecimalField(max_digits=7, decimal_places=1)
    display_percent = serializers.DecimalField(max_digits=7, decimal_places=1)
    is_overpaid = serializers.BooleanField()


# =============================================================================
# Ledger
# =============================================================================


class LedgerEntrySerializer(serializers.ModelSerializer):
    document_number = serializers.CharField(source="document.document_number", read_only=True)
    reverses = serializers.UUIDField(source="reverses_id", read_only=True, allow_null=True)

    class Meta:
        model = LedgerEntry
        fields = [
            "id",
            "created_at",
            "account",
            "document",
            "document_number",
            "sequence",
            "direction",
            "amount",
            "balance_before",
            "balance_after",
            "is_compensating",
            "reverses",
            "reason",
            "description",
            "created_by",
        ]
        read_only_fields = fields


class ReverseEntrySerializer(serializers.Serializer):
    reason = serializers.CharField()


class LedgerAuditSerializer(serializers.Serializer):
    account_id = serializers.UUIDField()
    stored_balance = serializers.DecimalField(max_digits=15, decimal_places=2)
    replayed_balance = serializers.DecimalField(max_digits=15, decimal_places=2)
    entry_count = serializers.IntegerField()
    is_consistent = serializers.BooleanField()
    problems = serializers.ListField(child=serializers.CharField())
