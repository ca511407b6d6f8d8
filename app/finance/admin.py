"""
Finance admin configuration.

This file imports the ledger admin from the ledger submodule and registers
the document and account models with the Django admin.

Balances and statuses are read-only here. Status changes go through the
document service, and balances move only through the ledger.
"""

from django.contrib import admin

from finance.ledger.admin import LedgerEntryAdmin
from finance.models import (
    Account,
    Company,
    Document,
    DocumentCounter,
    Invoice,
    LineItem,
    PaymentVoucher,
    Receipt,
    StatementOfPayment,
)

__all__ = [
    "LedgerEntryAdmin",
    "CompanyAdmin",
    "AccountAdmin",
    "DocumentAdmin",
    "DocumentCounterAdmin",
]


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    list_display = ["name", "registration_no", "allow_negative_balance", "created_at"]
    list_filter = ["allow_negative_balance"]
    search_fields = ["name", "registration_no", "email"]
    readonly_fields = ["id", "created_at", "updated_at"]


@admin.register(Account)
class AccountAdmin(admin.ModelAdmin):
    """
    Admin configuration for Account.

    current_balance is maintained by the ledger and never editable.
    Frozen accounts are unfrozen with LedgerService.unfreeze_account after
    the audit has been resolved.
    """

    list_display = [
        "name",
        "company",
        "account_type",
        "currency",
        "current_balance",
        "is_active",
        "is_frozen",
    ]
    list_filter = ["account_type", "currency", "is_active", "is_frozen"]
    search_fields = ["id", "name", "bank_name", "account_number", "custodian"]
    readonly_fields = [
        "id",
        "initial_balance",
        "current_balance",
        "is_frozen",
        "frozen_reason",
        "created_at",
        "updated_at",
    ]
    ordering = ["company", "name"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "company", "name", "account_type", "currency", "country"),
            },
        ),
        (
            "Details",
            {
                "fields": ("bank_name", "account_number", "custodian", "notes"),
            },
        ),
        (
            "Balance",
            {
                "fields": ("initial_balance", "current_balance"),
            },
        ),
        (
            "Status",
            {
                "fields": ("is_active", "is_frozen", "frozen_reason"),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    def has_delete_permission(self, request, obj=None) -> bool:
        """Accounts are deactivated, never deleted."""
        return False


class LineItemInline(admin.TabularInline):
    model = LineItem
    extra = 0
    can_delete = False
    readonly_fields = ["line_number", "description", "quantity", "unit_price", "amount"]

    def has_add_permission(self, request, obj=None) -> bool:
        return False


class InvoiceInline(admin.StackedInline):
    model = Invoice
    can_delete = False


class ReceiptInline(admin.StackedInline):
    model = Receipt
    can_delete = False
    fk_name = "document"


class PaymentVoucherInline(admin.StackedInline):
    model = PaymentVoucher
    can_delete = False
    readonly_fields = ["approved_by", "approval_date"]


class StatementOfPaymentInline(admin.StackedInline):
    model = StatementOfPayment
    fk_name = "document"
    can_delete = False
    readonly_fields = ["linked_voucher", "transaction_fee", "total_deducted", "voucher_snapshot"]


@admin.register(Document)
class DocumentAdmin(admin.ModelAdmin):
    """
    Admin configuration for Document.

    Shows soft-deleted documents too. Money fields and status are
    read-only; lifecycle changes are made through the service layer.
    """

    list_display = [
        "document_number",
        "document_type",
        "status",
        "company",
        "currency",
        "amount",
        "document_date",
        "is_deleted",
    ]
    list_filter = ["document_type", "status", "currency", "is_deleted", "document_date"]
    search_fields = ["id", "document_number", "notes"]
    readonly_fields = [
        "id",
        "document_type",
        "document_number",
        "status",
        "currency",
        "amount",
        "subtotal",
        "tax_rate",
        "tax_amount",
        "account",
        "version",
        "cancelled_at",
        "cancellation_reason",
        "is_deleted",
        "deleted_at",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "document_date"
    ordering = ["-created_at"]
    inlines = [
        InvoiceInline,
        ReceiptInline,
        PaymentVoucherInline,
        StatementOfPaymentInline,
        LineItemInline,
    ]

    def get_queryset(self, request):
        return Document.all_objects.select_related("company")

    def get_inline_instances(self, request, obj=None):
        """Only show the inline for this document's variant."""
        inlines = super().get_inline_instances(request, obj)
        if obj is None:
            return []
        variant_model = type(obj.variant)
        return [
            inline for inline in inlines
            if inline.model in (variant_model, LineItem)
        ]

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(DocumentCounter)
class DocumentCounterAdmin(admin.ModelAdmin):
    list_display = ["company", "document_type", "date_key", "counter", "updated_at"]
    list_filter = ["document_type"]
    search_fields = ["date_key"]
    readonly_fields = ["company", "document_type", "date_key", "counter", "created_at", "updated_at"]

    def has_add_permission(self, request) -> bool:
        return False
