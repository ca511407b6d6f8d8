"""
Finance-specific exceptions for document operations.

Ledger errors live in finance.ledger.exceptions; this module covers the
document workflow, numbering and concurrency control.

Exception Hierarchy:
    FinanceError (base for finance domain)
    ├── DocumentNotFoundError - Document lookup failures (404)
    ├── DocumentValidationError - Missing or inconsistent document fields (400)
    │   └── CurrencyMismatch - Account currency differs from document (400)
    └── ApprovalNotPermitted - Actor cannot approve vouchers (403)

    ConcurrencyConflict - Lost a race after bounded retries (ConflictError)
    StaleRecordError - Optimistic locking conflict (ConflictError)
    InvalidStateTransitionError - FSM transition not allowed (ConflictError)
    DocumentLockedError - Edit or delete blocked by a posted entry (ConflictError)
    VoucherAlreadySettled - Voucher already has a statement (ConflictError)

Usage:
    from finance.exceptions import InvalidStateTransitionError

    raise InvalidStateTransitionError(
        "Cannot complete a voucher in 'draft' status",
        details={"current_status": "draft", "action": "complete"},
    )
"""

from __future__ import annotations

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)


# =============================================================================
# Finance Domain Exceptions
# =============================================================================


class FinanceError(BaseApplicationError):
    """Base exception for finance operations that fit no narrower class."""

    default_error_code: str = "FINANCE_ERROR"


class DocumentNotFoundError(NotFoundError):
    """
    Raised when a document cannot be found.

    Example:
        document = Document.objects.filter(id=document_id).first()
        if not document:
            raise DocumentNotFoundError(
                f"Document {document_id} not found",
                details={"document_id": str(document_id)},
            )
    """

    default_error_code: str = "DOCUMENT_NOT_FOUND"


class DocumentValidationError(ValidationError):
    """
    Raised when a document fails validation before it is saved.

    Field errors are carried in details as {field: [messages]}.
    """

    default_error_code: str = "DOCUMENT_VALIDATION_ERROR"


class CurrencyMismatch(DocumentValidationError):
    """Raised when an account's currency differs from the document's."""

    default_error_code: str = "CURRENCY_MISMATCH"


class ApprovalNotPermitted(PermissionDeniedError):
    """Raised when a user without approval rights tries to approve a voucher."""

    default_error_code: str = "APPROVAL_NOT_PERMITTED"


# =============================================================================
# Concurrency and Workflow Exceptions
# =============================================================================


class ConcurrencyConflict(ConflictError):
    """
    Raised when a counter or balance update keeps losing a race.

    Raised only after the bounded retry in finance.locks.retry_on_conflict
    is exhausted, or immediately when the conflict happens inside an outer
    transaction that cannot be retried from here.
    """

    default_error_code: str = "CONCURRENCY_CONFLICT"


class StaleRecordError(ConflictError):
    """
    Raised when optimistic locking detects a concurrent modification.

    The caller sent a version that no longer matches the stored one.
    Clients should reload the document and reapply their changes.
    """

    default_error_code: str = "STALE_RECORD"


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a document transition is not allowed from its current status.

    Example:
        if not can_proceed(document.approve):
            raise InvalidStateTransitionError(
                f"Cannot approve document in '{document.status}' status",
                details={"current_status": document.status, "action": "approve"},
            )
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


class DocumentLockedError(ConflictError):
    """
    Raised when a change would detach a document from its posted ledger entry.

    Once a document has posted, its amount, account, currency and line
    items are fixed; corrections go through a compensating entry.
    """

    default_error_code: str = "DOCUMENT_LOCKED"


class VoucherAlreadySettled(ConflictError):
    """Raised when a voucher already has a statement of payment."""

    default_error_code: str = "VOUCHER_ALREADY_SETTLED"
