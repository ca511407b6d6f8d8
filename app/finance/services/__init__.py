"""
Finance services for documents, numbering, accounts and reconciliation.

This module provides:
- DocumentSequencer: Atomic per-day document numbers
- WorkflowGuard: Lifecycle and consistency rules for documents
- DocumentService: Create, update and transition documents
- complete_voucher: Settle an issued voucher with a Statement of Payment
- ReconciliationService: Invoice payment status from linked receipts
- AccountService: Open, read and retire accounts

Usage:
    from finance.services import document_service, SaveDocumentParams

    result = document_service.save_document(SaveDocumentParams(...))

    from finance.services import reconciliation

    reconciliation.payment_status(invoice.id).balance_due
"""

from finance.services.accounts import AccountService, CreateAccountParams, account_service
from finance.services.documents import (
    DocumentService,
    LineItemInput,
    SaveDocumentParams,
    document_service,
)
from finance.services.reconciliation import (
    PaymentStatusView,
    ReconciliationService,
    compute_payment_status,
    reconciliation,
)
from finance.services.sequencer import DocumentSequencer, sequencer
from finance.services.voucher_linker import CompleteVoucherParams, complete_voucher
from finance.services.workflow_guard import LedgerInstruction, WorkflowGuard, guard

__all__ = [
    # Accounts
    "AccountService",
    "CreateAccountParams",
    "account_service",
    # Documents
    "DocumentService",
    "LineItemInput",
    "SaveDocumentParams",
    "document_service",
    # Reconciliation
    "PaymentStatusView",
    "ReconciliationService",
    "compute_payment_status",
    "reconciliation",
    # Sequencer
    "DocumentSequencer",
    "sequencer",
    # Voucher settlement
    "CompleteVoucherParams",
    "complete_voucher",
    # Workflow
    "LedgerInstruction",
    "WorkflowGuard",
    "guard",
]
