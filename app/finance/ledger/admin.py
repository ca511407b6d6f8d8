"""
Django admin configuration for the ledger.

Ledger entries are shown read-only: they cannot be added, edited or
deleted through the admin. Corrections are compensating entries posted
through LedgerService.reverse.
"""

from django.contrib import admin

from .models import LedgerEntry


@admin.register(LedgerEntry)
class LedgerEntryAdmin(admin.ModelAdmin):
    """Read-only view of the append-only ledger."""

    list_display = [
        "account",
        "sequence",
        "direction",
        "amount",
        "balance_before",
        "balance_after",
        "document",
        "is_compensating",
        "created_at",
        "created_by",
    ]
    list_filter = ["direction", "is_compensating", "account__currency", "created_at"]
    search_fields = [
        "id",
        "document__document_number",
        "account__name",
        "description",
        "created_by",
    ]
    readonly_fields = [
        "id",
        "created_at",
        "account",
        "document",
        "sequence",
        "direction",
        "amount",
        "balance_before",
        "balance_after",
        "is_compensating",
        "reverses",
        "reason",
        "description",
        "metadata",
        "created_by",
    ]
    list_select_related = ["account", "document"]
    date_hierarchy = "created_at"
    ordering = ["account", "-sequence"]

    fieldsets = (
        (
            "Entry Details",
            {
                "fields": ("id", "account", "sequence", "direction", "amount", "created_at"),
            },
        ),
        (
            "Balance",
            {
                "fields": ("balance_before", "balance_after"),
            },
        ),
        (
            "Reference",
            {
                "fields": ("document", "is_compensating", "reverses", "reason"),
            },
        ),
        (
            "Additional Info",
            {
                "fields": ("description", "metadata", "created_by"),
            },
        ),
    )

    def has_delete_permission(self, request, obj=None) -> bool:
        """Entries are corrected by compensating entries, never deleted."""
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_add_permission(self, request) -> bool:
        """Entries are only created through LedgerService."""
        return False
