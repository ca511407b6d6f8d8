"""
Ledger-specific exceptions for balance operations.

Exception Hierarchy:
    LedgerError (base)
    ├── AccountNotFound - Account lookup failures (404)
    ├── EntryNotFound - Entry lookup failures (404)
    ├── IrreversibleEntry - Reversing a compensating entry (409)
    ├── InactiveAccount - Posting to a deactivated account
    ├── AccountFrozen - Posting halted after a broken invariant (409)
    ├── InsufficientBalance - Decrease would overdraw the account (422)
    ├── DuplicatePosting - Entry already exists for (account, document)
    └── BrokenInvariant - Ledger data is inconsistent (500)

DuplicatePosting is a no-op signal: LedgerService.post() catches it and
returns the existing entry. BrokenInvariant is fatal and never converted
into a ServiceResult.

Usage:
    from finance.ledger.exceptions import InsufficientBalance

    if new_balance < 0 and not company.allow_negative_balance:
        raise InsufficientBalance(account.id, required=amount, available=balance)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError

if TYPE_CHECKING:
    import uuid
    from decimal import Decimal
    from typing import Any

    from finance.ledger.models import LedgerEntry


class LedgerError(BaseApplicationError):
    """
    Base exception for all ledger operations.

    Example:
        try:
            ledger.post(params)
        except LedgerError as e:
            return Response(e.to_dict(), status=e.http_status)
    """

    default_error_code: str = "LEDGER_ERROR"


class AccountNotFound(LedgerError):
    """Raised when an account cannot be found."""

    default_error_code: str = "ACCOUNT_NOT_FOUND"
    http_status: int = 404


class EntryNotFound(LedgerError):
    """Raised when a ledger entry cannot be found."""

    default_error_code: str = "ENTRY_NOT_FOUND"
    http_status: int = 404


class IrreversibleEntry(LedgerError):
    """Raised when reversing an entry that is itself a compensating entry."""

    default_error_code: str = "IRREVERSIBLE_ENTRY"
    http_status: int = 409


class InactiveAccount(LedgerError):
    """
    Raised when posting to an inactive account.

    Deactivated accounts keep their history but accept no new entries.
    """

    default_error_code: str = "INACTIVE_ACCOUNT"


class AccountFrozen(LedgerError):
    """
    Raised when posting to an account frozen by a failed audit.

    Posting resumes only after an operator unfreezes the account.
    """

    default_error_code: str = "ACCOUNT_FROZEN"
    http_status: int = 409


class InsufficientBalance(LedgerError):
    """
    Raised when a decrease would take a balance below zero.

    Attributes:
        account_id: The account that would be overdrawn
        required: The amount the decrease needs
        available: The balance at the time of the check
    """

    default_error_code: str = "INSUFFICIENT_BALANCE"
    http_status: int = 422

    def __init__(
        self,
        account_id: uuid.UUID,
        required: Decimal,
        available: Decimal,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.account_id = account_id
        self.required = required
        self.available = available

        message = (
            f"Account {account_id} has insufficient balance: "
            f"required {required}, available {available}"
        )

        full_details = {
            "account_id": str(account_id),
            "required": str(required),
            "available": str(available),
        }
        if details:
            full_details.update(details)

        super().__init__(
            message=message,
            error_code=error_code,
            details=full_details,
        )


class DuplicatePosting(LedgerError):
    """
    Raised when an entry already exists for (account, document).

    Carries the existing entry so callers can treat the repeat as success.
    """

    default_error_code: str = "DUPLICATE_POSTING"
    http_status: int = 409

    def __init__(self, entry: LedgerEntry):
        self.entry = entry
        super().__init__(
            f"Document {entry.document_id} already posted to account {entry.account_id}",
            details={
                "entry_id": str(entry.pk),
                "account_id": str(entry.account_id),
                "document_id": str(entry.document_id),
            },
        )


class BrokenInvariant(LedgerError):
    """
    Raised when ledger data contradicts itself.

    Examples: two normal entries for the same (account, document), or a
    stored balance that differs from the entry chain. Automated posting to
    the account halts until a manual audit.
    """

    default_error_code: str = "BROKEN_INVARIANT"
    http_status: int = 500

    def __init__(
        self,
        message: str,
        account_id: uuid.UUID | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.account_id = account_id
        full_details = {"account_id": str(account_id)} if account_id else {}
        if details:
            full_details.update(details)
        super().__init__(message, error_code=error_code, details=full_details)
