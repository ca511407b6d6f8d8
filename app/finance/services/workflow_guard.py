"""
Workflow guard for document lifecycle rules.

The guard is the single place that answers "may this happen?" for a
document: whether a new document is complete and internally consistent,
whether an account may be used with it, whether a transition is allowed,
whether an edit is still permitted once the document has posted, and
which ledger entry (if any) a document in a given status implies.

It never writes. Services call it before they open their transaction's
write phase, so a rejected request persists nothing.

Usage:
    from finance.services.workflow_guard import guard

    guard.validate_new(params)
    guard.validate_account(document, account)
    guard.check_transition(document, "approve", user=request.user)
    instruction = guard.ledger_instruction(document)
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any

from django_fsm import can_proceed, has_transition_perm

from finance.exceptions import (
    ApprovalNotPermitted,
    CurrencyMismatch,
    DocumentLockedError,
    DocumentValidationError,
    InvalidStateTransitionError,
)
from finance.state_machines import Country, Currency, DocumentStatus, DocumentType, EntryDirection

if TYPE_CHECKING:
    from finance.models import Account, Document
    from finance.services.documents import LineItemInput, SaveDocumentParams

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

CURRENCY_BY_COUNTRY = {
    Country.MALAYSIA: Currency.MYR,
    Country.JAPAN: Currency.JPY,
}

# Types whose total is built from line items
ITEMIZED_TYPES = frozenset({
    DocumentType.INVOICE,
    DocumentType.PAYMENT_VOUCHER,
    DocumentType.STATEMENT_OF_PAYMENT,
})

# Fields frozen once a document has a ledger entry
POSTING_LOCKED_FIELDS = frozenset({
    "amount",
    "total",
    "subtotal",
    "tax_rate",
    "tax_amount",
    "account",
    "account_id",
    "currency",
    "line_items",
})

# Edits that change what an approved voucher pays out
APPROVAL_RESET_FIELDS = frozenset({
    "amount",
    "tax_rate",
    "currency",
    "line_items",
})

# Variant fields that must be present on a new document
REQUIRED_DETAILS = {
    DocumentType.INVOICE: ("customer_name", "due_date"),
    DocumentType.RECEIPT: ("payer_name", "payment_method", "received_by"),
    DocumentType.PAYMENT_VOUCHER: ("payee_name", "requested_by"),
    DocumentType.STATEMENT_OF_PAYMENT: (),
}

TRANSITIONS = ("issue", "approve", "complete", "cancel", "reopen")


def quantize_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def line_amount(quantity: Decimal, unit_price: Decimal) -> Decimal:
    return quantize_money(Decimal(quantity) * Decimal(unit_price))


def compute_totals(
    line_items: Sequence[LineItemInput],
    tax_rate: Decimal | None = None,
) -> tuple[Decimal, Decimal, Decimal]:
    """
    Return (subtotal, tax_amount, total) for a list of line items.

    tax_rate is a percentage; tax is rounded half-up to cents.
    """
    subtotal = sum(
        (line_amount(item.quantity, item.unit_price) for item in line_items),
        Decimal("0.00"),
    )
    tax_amount = quantize_money(subtotal * Decimal(tax_rate) / 100) if tax_rate else Decimal("0.00")
    return subtotal, tax_amount, subtotal + tax_amount


@dataclass(frozen=True)
class LedgerInstruction:
    """The ledger entry a document implies in its current status."""

    account_id: uuid.UUID
    direction: str
    amount: Decimal
    description: str


class WorkflowGuard:
    """Stateless rule checks for documents. All methods are static."""

    # ==========================================================================
    # Creation
    # ==========================================================================

    @staticmethod
    def validate_new(params: SaveDocumentParams) -> None:
        """
        Validate a new document before anything is written.

        Checks required variant fields, country/currency consistency, line
        item arithmetic and the total (total = subtotal + tax_amount).

        Raises:
            DocumentValidationError: With {field: [messages]} in details
        """
        errors: dict[str, list[str]] = {}

        def add(field_name: str, message: str) -> None:
            errors.setdefault(field_name, []).append(message)

        if params.document_type not in DocumentType.values:
            add("document_type", f"Must be one of {list(DocumentType.values)}.")
            raise DocumentValidationError("Validation failed", details=errors)
        if params.document_type == DocumentType.STATEMENT_OF_PAYMENT:
            add("document_type", "Statements of payment are created by completing a voucher.")
            raise DocumentValidationError("Validation failed", details=errors)

        for field_name in REQUIRED_DETAILS[params.document_type]:
            value = params.details.get(field_name)
            if value is None or (isinstance(value, str) and not value.strip()):
                add(field_name, "This field is required.")

        if params.currency not in Currency.values:
            add("currency", f"Must be one of {list(Currency.values)}.")
        elif params.country and CURRENCY_BY_COUNTRY.get(params.country) != params.currency:
            add("country", f"{params.country} documents are not issued in {params.currency}.")

        if params.document_type in ITEMIZED_TYPES:
            WorkflowGuard._validate_line_items(params, add)
        else:
            if params.amount is None or Decimal(params.amount) <= 0:
                add("amount", "A positive amount is required.")
            if params.document_type == DocumentType.RECEIPT and params.account_id is None:
                add("account_id", "Receipts must name the account that received the money.")

        if errors:
            raise DocumentValidationError("Validation failed", details=errors)

    @staticmethod
    def _validate_line_items(params: SaveDocumentParams, add) -> None:
        items = params.line_items or []
        if not items:
            add("line_items", "At least one line item is required.")
            return

        for index, item in enumerate(items, start=1):
            if not item.description or not item.description.strip():
                add("line_items", f"Line {index}: description is required.")
            if Decimal(item.quantity) <= 0:
                add("line_items", f"Line {index}: quantity must be positive.")
            if Decimal(item.unit_price) < 0:
                add("line_items", f"Line {index}: unit price cannot be negative.")
            expected = line_amount(item.quantity, item.unit_price)
            if item.amount is not None and quantize_money(item.amount) != expected:
                add(
                    "line_items",
                    f"Line {index}: amount {item.amount} != quantity x unit price ({expected}).",
                )

        if params.tax_rate is not None and not (0 <= Decimal(params.tax_rate) <= 100):
            add("tax_rate", "Tax rate must be between 0 and 100.")
            return

        _, _, total = compute_totals(items, params.tax_rate)
        if params.amount is not None and quantize_money(params.amount) != total:
            add("amount", f"Total {params.amount} != subtotal + tax ({total}).")

    # ==========================================================================
    # Accounts
    # ==========================================================================

    @staticmethod
    def validate_account(document_like: Any, account: Account | None) -> None:
        """
        Check an account can carry a document's money.

        document_like is anything with company_id and currency (a Document
        or SaveDocumentParams).

        Raises:
            DocumentValidationError: Missing, inactive or foreign account
            CurrencyMismatch: Account currency differs from the document's
        """
        if account is None:
            raise DocumentValidationError(
                "Account is required",
                details={"account_id": ["This field is required."]},
            )
        if account.company_id != document_like.company_id:
            raise DocumentValidationError(
                "Account belongs to a different company",
                error_code="ACCOUNT_COMPANY_MISMATCH",
                details={"account_id": ["Account belongs to a different company."]},
            )
        if not account.is_active:
            raise DocumentValidationError(
                f"Account {account.name} is inactive",
                error_code="INACTIVE_ACCOUNT",
                details={"account_id": ["Account is inactive."]},
            )
        if account.currency != document_like.currency:
            raise CurrencyMismatch(
                f"Account currency {account.currency} does not match "
                f"document currency {document_like.currency}",
                details={
                    "account_currency": account.currency,
                    "document_currency": document_like.currency,
                },
            )

    # ==========================================================================
    # Transitions and edits
    # ==========================================================================

    @staticmethod
    def check_transition(document: Document, name: str, user=None) -> None:
        """
        Ensure the named FSM transition can run now.

        Raises:
            InvalidStateTransitionError: Unknown transition, wrong source
                status or failed condition
            ApprovalNotPermitted: user lacks the transition's permission
        """
        if name not in TRANSITIONS:
            raise InvalidStateTransitionError(
                f"Unknown transition '{name}'",
                details={"action": name},
            )
        method = getattr(document, name)
        if not can_proceed(method):
            raise InvalidStateTransitionError(
                f"Cannot {name} {document.get_document_type_display().lower()} "
                f"in '{document.status}' status",
                details={
                    "current_status": document.status,
                    "document_type": document.document_type,
                    "action": name,
                },
            )
        if user is not None and not has_transition_perm(method, user):
            raise ApprovalNotPermitted(
                f"User {user} may not {name} this document",
                details={"action": name},
            )

    @staticmethod
    def check_editable(document: Document, changes: Iterable[str]) -> None:
        """
        Reject edits that would detach a posted document from its entry.

        Header fields such as notes stay editable after posting.

        Raises:
            DocumentLockedError: Locked fields changed on a posted document
                or a paid voucher
        """
        locked = sorted(set(changes) & POSTING_LOCKED_FIELDS)
        if (
            locked
            and document.document_type == DocumentType.PAYMENT_VOUCHER
            and document.payment_voucher.is_settled
        ):
            raise DocumentLockedError(
                f"Voucher {document.document_number} has been paid; "
                f"{', '.join(locked)} can no longer change",
                details={"document_id": str(document.id), "locked_fields": locked},
            )
        if locked and document.has_postings():
            raise DocumentLockedError(
                f"Document {document.document_number} has posted to the ledger; "
                f"{', '.join(locked)} can no longer change",
                details={"document_id": str(document.id), "locked_fields": locked},
            )

    @staticmethod
    def requires_reapproval(document: Document, changes: Iterable[str]) -> bool:
        """Whether an edit changes what an approved voucher will pay."""
        return (
            document.document_type == DocumentType.PAYMENT_VOUCHER
            and document.status == DocumentStatus.ISSUED
            and bool(set(changes) & APPROVAL_RESET_FIELDS)
        )

    # ==========================================================================
    # Ledger mapping
    # ==========================================================================

    @staticmethod
    def is_balance_affecting(document_type: str, status: str) -> bool:
        """Whether a document of this type in this status moves money."""
        if document_type == DocumentType.RECEIPT:
            return status in (DocumentStatus.COMPLETED, DocumentStatus.PAID)
        if document_type == DocumentType.STATEMENT_OF_PAYMENT:
            return status == DocumentStatus.COMPLETED
        if document_type in (DocumentType.INVOICE, DocumentType.PAYMENT_VOUCHER):
            return False
        raise ValueError(f"Unknown document type: {document_type!r}")

    @staticmethod
    def ledger_instruction(document: Document) -> LedgerInstruction | None:
        """
        The entry a document implies, or None.

        Receipt (completed/paid): increase the receiving account by amount
        StatementOfPayment (completed): decrease the paying account by
            total_deducted
        Invoice, PaymentVoucher: never post
        """
        if not WorkflowGuard.is_balance_affecting(document.document_type, document.status):
            return None

        if document.document_type == DocumentType.RECEIPT:
            return LedgerInstruction(
                account_id=document.account_id,
                direction=EntryDirection.INCREASE,
                amount=document.amount,
                description=f"Payment received - {document.document_number}",
            )
        if document.document_type == DocumentType.STATEMENT_OF_PAYMENT:
            return LedgerInstruction(
                account_id=document.account_id,
                direction=EntryDirection.DECREASE,
                amount=document.statement_of_payment.total_deducted,
                description=f"Payment made - {document.document_number}",
            )
        raise ValueError(f"Unhandled balance-affecting type: {document.document_type!r}")


# Singleton instance for convenience
# Usage: from finance.services.workflow_guard import guard
guard = WorkflowGuard()
