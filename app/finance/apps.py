"""
Finance app configuration.

This app provides the document-to-ledger reconciliation engine:
- Collision-free document numbering
- Append-only account ledger
- Invoice payment status derived from receipts
- Voucher settlement through statements of payment
"""

from django.apps import AppConfig


class FinanceConfig(AppConfig):
    """Configuration for the finance application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "finance"
    verbose_name = "Finance"
