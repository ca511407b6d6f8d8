"""
Finance domain models.

This module exposes all finance models:
- Company: Issuing entity with the overdraft switch
- Account: Bank or petty cash account with a ledger-maintained balance
- Document: Shared header for all four document variants
- Invoice, Receipt, PaymentVoucher, StatementOfPayment: Variant details
- LineItem: Priced lines on itemized documents
- DocumentCounter: Sequencer state per (company, type, day)
- LedgerEntry: Append-only balance history
"""

from finance.ledger.models import LedgerEntry
from finance.models.company import Account, Company
from finance.models.document import Document, DocumentCounter, LineItem
from finance.models.variants import (
    Invoice,
    PaymentVoucher,
    Receipt,
    StatementOfPayment,
)

__all__ = [
    "Account",
    "Company",
    "Document",
    "DocumentCounter",
    "Invoice",
    "LedgerEntry",
    "LineItem",
    "PaymentVoucher",
    "Receipt",
    "StatementOfPayment",
]
