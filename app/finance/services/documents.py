"""
Document service: the write path for every financial document.

DocumentService is the facade the API and other callers use. Each
operation is one atomic unit that validates through the workflow guard,
mints a number when creating, writes the header, variant and line items,
and posts to the ledger when the resulting status is balance-affecting.

Expected failures come back as ServiceResult.failure; BrokenInvariant is
never converted and propagates after the account has been frozen.

Usage:
    from finance.services.documents import (
        LineItemInput, SaveDocumentParams, document_service,
    )

    result = document_service.save_document(SaveDocumentParams(
        company_id=company.id,
        document_type=DocumentType.INVOICE,
        currency=Currency.MYR,
        line_items=[LineItemInput("Tour package", Decimal("2"), Decimal("500"))],
        details={"customer_name": "Tanaka", "due_date": date(2026, 2, 28)},
    ))
    if result:
        invoice = result.data

    document_service.issue(invoice.id, actor=user)
    document_service.cancel(receipt.id, reason="Entered twice", actor=user)
"""

from __future__ import annotations

import datetime
import logging
import uuid
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import TYPE_CHECKING

from django.db import transaction
from django.utils import timezone

from core.exceptions import BaseApplicationError, NotFoundError, ValidationError
from core.services import BaseService, ServiceResult
from finance.exceptions import (
    ApprovalNotPermitted,
    CurrencyMismatch,
    DocumentNotFoundError,
    DocumentValidationError,
)
from finance.ledger.exceptions import BrokenInvariant
from finance.ledger.services import ledger
from finance.ledger.types import PostEntryParams
from finance.locks import check_version, retry_on_conflict
from finance.models import (
    Account,
    Company,
    Document,
    Invoice,
    LineItem,
    PaymentVoucher,
    Receipt,
    StatementOfPayment,
)
from finance.services import voucher_linker
from finance.services.sequencer import sequencer
from finance.services.workflow_guard import (
    CURRENCY_BY_COUNTRY,
    ITEMIZED_TYPES,
    compute_totals,
    guard,
    line_amount,
)
from finance.state_machines import DocumentStatus, DocumentType

if TYPE_CHECKING:
    from typing import Any

    from finance.services.voucher_linker import CompleteVoucherParams


# Variant fields accepted in SaveDocumentParams.details, per type
VARIANT_FIELDS = {
    DocumentType.INVOICE: (
        "customer_name",
        "customer_address",
        "customer_email",
        "invoice_date",
        "due_date",
        "payment_terms",
    ),
    DocumentType.RECEIPT: (
        "payer_name",
        "payer_contact",
        "receipt_date",
        "payment_method",
        "received_by",
    ),
    DocumentType.PAYMENT_VOUCHER: (
        "payee_name",
        "payee_address",
        "payee_bank_account",
        "payee_bank_name",
        "voucher_date",
        "payment_due_date",
        "requested_by",
    ),
    DocumentType.STATEMENT_OF_PAYMENT: (
        "payment_method",
        "transaction_reference",
        "confirmed_by",
    ),
}

# Variant date fields that default to the document date
VARIANT_DATE_FIELD = {
    DocumentType.INVOICE: "invoice_date",
    DocumentType.RECEIPT: "receipt_date",
    DocumentType.PAYMENT_VOUCHER: "voucher_date",
}

VARIANT_MODELS = {
    DocumentType.INVOICE: Invoice,
    DocumentType.RECEIPT: Receipt,
    DocumentType.PAYMENT_VOUCHER: PaymentVoucher,
    DocumentType.STATEMENT_OF_PAYMENT: StatementOfPayment,
}


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class LineItemInput:
    """One line as submitted; amount defaults to quantity x unit_price."""

    description: str
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal | None = None

    @property
    def computed_amount(self) -> Decimal:
        return line_amount(self.quantity, self.unit_price)


@dataclass
class SaveDocumentParams:
    """
    Parameters for creating or updating a document.

    document_id None means create. On update, fields left as None keep
    their stored value and expected_version is required.

    Required Attributes:
        company_id: Issuing company
        document_type: DocumentType value

    Optional Attributes:
        currency / country: Country defaults from the currency on create
        amount: Receipt amount; for itemized types, checked against the
            line item total when given
        tax_rate: Percentage applied to the line item subtotal
        account_id: Account the money moves through (required for receipts)
        linked_invoice_id: Invoice a receipt pays towards
        line_items: Lines for invoices and vouchers
        details: Variant fields (customer_name, payee_name, due_date, ...)
        status: DocumentStatus.DRAFT to save a receipt without posting
        actor: User performing the save
    """

    company_id: uuid.UUID
    document_type: str
    document_id: uuid.UUID | None = None
    expected_version: int | None = None

    currency: str | None = None
    country: str | None = None
    document_date: datetime.date | None = None
    amount: Decimal | None = None
    tax_rate: Decimal | None = None
    account_id: uuid.UUID | None = None
    linked_invoice_id: uuid.UUID | None = None
    line_items: list[LineItemInput] | None = None
    notes: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    status: str | None = None
    actor: Any = None

    @property
    def is_update(self) -> bool:
        return self.document_id is not None


# =============================================================================
# Service
# =============================================================================


class DocumentService(BaseService):
    """
    Facade for document writes.

    All public methods return ServiceResult. Internal _methods raise and
    own their transaction; retry_on_conflict re-runs them whole when they
    lose a database race.
    """

    @classmethod
    def _run(cls, context: str, func, *args, **kwargs) -> ServiceResult:
        try:
            return ServiceResult.success(func(*args, **kwargs))
        except BrokenInvariant as exc:
            # Freeze again outside the unit that rolled back
            ledger.halt_account(exc)
            raise
        except BaseApplicationError as exc:
            return cls.handle_exception(exc, context)

    # ==========================================================================
    # Save
    # ==========================================================================

    @classmethod
    def save_document(cls, params: SaveDocumentParams) -> ServiceResult[Document]:
        """
        Create a document (document_id None) or update an existing one.

        Create:
            validate -> mint number -> write header, variant, line items
            -> post if balance-affecting (completed receipts)

        Update:
            optimistic version check -> reject locked-field changes on
            posted documents and paid vouchers -> send an approved voucher
            back to draft when its payable amount changes -> write changes
        """
        if params.is_update:
            return cls._run("Document update failed", cls._update, params)
        return cls._run("Document creation failed", cls._create, params)

    @staticmethod
    @retry_on_conflict
    def _create(params: SaveDocumentParams) -> Document:
        if params.currency and not params.country:
            params.country = next(
                (country for country, currency in CURRENCY_BY_COUNTRY.items()
                 if currency == params.currency),
                None,
            )
        guard.validate_new(params)

        with transaction.atomic():
            if not Company.objects.filter(id=params.company_id).exists():
                raise NotFoundError(
                    f"Company {params.company_id} not found",
                    error_code="COMPANY_NOT_FOUND",
                    details={"company_id": str(params.company_id)},
                )

            account = None
            if params.account_id is not None:
                account = Account.objects.filter(id=params.account_id).first()
                guard.validate_account(params, account)

            linked_invoice = DocumentService._resolve_linked_invoice(params)

            subtotal = tax_amount = None
            amount = params.amount
            if params.document_type in ITEMIZED_TYPES:
                subtotal, tax_amount, amount = compute_totals(params.line_items, params.tax_rate)

            status = DocumentStatus.DRAFT
            if params.document_type == DocumentType.RECEIPT and params.status != DocumentStatus.DRAFT:
                status = DocumentStatus.COMPLETED

            document_date = params.document_date or timezone.localdate()
            document = Document(
                company_id=params.company_id,
                document_type=params.document_type,
                document_number=sequencer.next_number(params.company_id, params.document_type),
                status=status,
                currency=params.currency,
                country=params.country,
                document_date=document_date,
                amount=amount,
                subtotal=subtotal,
                tax_rate=params.tax_rate,
                tax_amount=tax_amount,
                account=account,
                notes=params.notes or "",
                created_by=params.actor,
                updated_by=params.actor,
            )
            document.save()

            variant_fields = DocumentService._variant_values(params.document_type, params.details)
            date_field = VARIANT_DATE_FIELD.get(params.document_type)
            if date_field and not variant_fields.get(date_field):
                variant_fields[date_field] = document_date
            if params.document_type == DocumentType.RECEIPT:
                variant_fields["linked_invoice"] = linked_invoice
            VARIANT_MODELS[params.document_type].objects.create(document=document, **variant_fields)

            DocumentService._write_line_items(document, params.line_items or [])
            DocumentService._post_if_needed(document, params.actor)

        DocumentService.get_logger().info(
            "Document created",
            extra={
                "document_id": str(document.id),
                "document_number": document.document_number,
                "document_type": document.document_type,
                "status": document.status,
            },
        )
        return document

    @staticmethod
    @retry_on_conflict
    def _update(params: SaveDocumentParams) -> Document:
        if params.expected_version is None:
            raise ValidationError(
                "version is required when updating a document",
                details={"version": ["This field is required."]},
            )

        with transaction.atomic():
            document = check_version(Document, params.document_id, params.expected_version)
            if document.document_type != params.document_type or (
                document.company_id != params.company_id
            ):
                raise DocumentValidationError(
                    "Company and document type cannot change",
                    details={"document_type": ["Company and document type cannot change."]},
                )
            if params.currency is None:
                params = replace(params, currency=document.currency)

            changes = DocumentService._changed_fields(document, params)
            guard.check_editable(document, changes)

            if guard.requires_reapproval(document, changes):
                document.revise()
                document.payment_voucher.save(update_fields=["approved_by", "approval_date"])
                DocumentService.get_logger().info(
                    "Voucher approval withdrawn after edit",
                    extra={
                        "document_id": str(document.id),
                        "changes": sorted(changes),
                    },
                )

            if "currency" in changes:
                DocumentService._check_linked_currency(document, params.currency, changes)
                document.currency = params.currency
                document.country = params.country or next(
                    (c for c, cur in CURRENCY_BY_COUNTRY.items() if cur == params.currency),
                    document.country,
                )
            elif "country" in changes:
                if CURRENCY_BY_COUNTRY.get(params.country) != document.currency:
                    raise CurrencyMismatch(
                        f"{params.country} documents are not issued in {document.currency}",
                        details={"country": [f"Does not match currency {document.currency}."]},
                    )
                document.country = params.country

            if "account_id" in changes:
                account = Account.objects.filter(id=params.account_id).first()
                guard.validate_account(document, account)
                document.account = account
            elif "currency" in changes and document.account_id is not None:
                guard.validate_account(document, document.account)

            itemized = params.document_type in ITEMIZED_TYPES
            if itemized and ("line_items" in changes or "tax_rate" in changes):
                if "line_items" in changes:
                    items = params.line_items
                else:
                    items = [
                        LineItemInput(i.description, i.quantity, i.unit_price)
                        for i in document.line_items.all()
                    ]
                if not items:
                    raise DocumentValidationError(
                        "At least one line item is required",
                        details={"line_items": ["At least one line item is required."]},
                    )
                tax_rate = params.tax_rate if "tax_rate" in changes else document.tax_rate
                subtotal, tax_amount, total = compute_totals(items, tax_rate)
                document.subtotal = subtotal
                document.tax_rate = tax_rate
                document.tax_amount = tax_amount
                document.amount = total
                if "line_items" in changes:
                    document.line_items.all().delete()
                    DocumentService._write_line_items(document, items)
            if itemized and params.amount is not None and Decimal(params.amount) != document.amount:
                raise DocumentValidationError(
                    "Amount of an itemized document follows its line items",
                    details={"amount": [f"Total is {document.amount}."]},
                )
            if not itemized and "amount" in changes:
                if Decimal(params.amount) <= 0:
                    raise DocumentValidationError(
                        "A positive amount is required",
                        details={"amount": ["A positive amount is required."]},
                    )
                document.amount = params.amount

            if "document_date" in changes:
                document.document_date = params.document_date
            if "notes" in changes:
                document.notes = params.notes
            if "linked_invoice_id" in changes:
                document.receipt.linked_invoice = DocumentService._resolve_linked_invoice(params)
                document.receipt.save(update_fields=["linked_invoice"])

            variant_fields = DocumentService._variant_values(document.document_type, params.details)
            if variant_fields:
                variant = document.variant
                for name, value in variant_fields.items():
                    setattr(variant, name, value)
                variant.save(update_fields=list(variant_fields))

            document.updated_by = params.actor
            document.save()

        DocumentService.get_logger().info(
            "Document updated",
            extra={
                "document_id": str(document.id),
                "changes": sorted(changes),
                "version": document.version,
            },
        )
        return document

    @staticmethod
    def _changed_fields(document: Document, params: SaveDocumentParams) -> set[str]:
        changes: set[str] = set()
        if params.currency is not None and params.currency != document.currency:
            changes.add("currency")
        if params.country is not None and params.country != document.country:
            changes.add("country")
        if params.account_id is not None and params.account_id != document.account_id:
            changes.add("account_id")
        if params.amount is not None and Decimal(params.amount) != document.amount:
            changes.add("amount")
        if params.tax_rate is not None and params.tax_rate != document.tax_rate:
            changes.add("tax_rate")
        if params.document_date is not None and params.document_date != document.document_date:
            changes.add("document_date")
        if params.notes is not None and params.notes != document.notes:
            changes.add("notes")
        if params.line_items is not None:
            current = [
                (i.description, i.quantity, i.unit_price)
                for i in document.line_items.all()
            ]
            submitted = [
                (i.description, Decimal(i.quantity), Decimal(i.unit_price))
                for i in params.line_items
            ]
            if current != submitted:
                changes.add("line_items")
        if (
            params.linked_invoice_id is not None
            and document.document_type == DocumentType.RECEIPT
            and params.linked_invoice_id != document.receipt.linked_invoice_id
        ):
            changes.add("linked_invoice_id")
        return changes

    @staticmethod
    def _variant_values(document_type: str, details: dict[str, Any]) -> dict[str, Any]:
        allowed = VARIANT_FIELDS[document_type]
        return {name: value for name, value in details.items() if name in allowed}

    @staticmethod
    def _check_linked_currency(document: Document, currency: str, changes: set[str]) -> None:
        """Keep an invoice and the receipts paying it in one currency."""
        if document.document_type == DocumentType.INVOICE:
            linked = Receipt.objects.filter(
                linked_invoice__document=document,
                document__is_deleted=False,
            )
            if linked.exists():
                raise CurrencyMismatch(
                    f"Invoice {document.document_number} has receipts in {document.currency}",
                    details={"currency": ["Receipts are linked to this invoice."]},
                )
        elif document.document_type == DocumentType.RECEIPT and "linked_invoice_id" not in changes:
            invoice = document.receipt.linked_invoice
            if invoice is not None and invoice.document.currency != currency:
                raise CurrencyMismatch(
                    f"Receipt currency {currency} does not match "
                    f"invoice currency {invoice.document.currency}",
                    details={"currency": ["Linked invoice is in a different currency."]},
                )

    @staticmethod
    def _resolve_linked_invoice(params: SaveDocumentParams) -> Invoice | None:
        if params.linked_invoice_id is None:
            return None
        if params.document_type != DocumentType.RECEIPT:
            raise DocumentValidationError(
                "Only receipts can be linked to an invoice",
                details={"linked_invoice_id": ["Only receipts can be linked to an invoice."]},
            )
        invoice = (
            Invoice.objects.select_related("document")
            .filter(
                document_id=params.linked_invoice_id,
                document__company_id=params.company_id,
                document__is_deleted=False,
            )
            .first()
        )
        if invoice is None:
            raise DocumentNotFoundError(
                f"Invoice {params.linked_invoice_id} not found",
                details={"linked_invoice_id": str(params.linked_invoice_id)},
            )
        if params.currency and invoice.document.currency != params.currency:
            raise CurrencyMismatch(
                f"Receipt currency {params.currency} does not match "
                f"invoice currency {invoice.document.currency}",
                details={"linked_invoice_id": ["Invoice is in a different currency."]},
            )
        if invoice.document.status == DocumentStatus.CANCELLED:
            raise DocumentValidationError(
                "Cannot record a receipt against a cancelled invoice",
                details={"linked_invoice_id": ["Invoice is cancelled."]},
            )
        return invoice

    @staticmethod
    def _write_line_items(document: Document, items: list[LineItemInput]) -> None:
        LineItem.objects.bulk_create([
            LineItem(
                document=document,
                line_number=number,
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                amount=item.computed_amount,
            )
            for number, item in enumerate(items, start=1)
        ])

    @staticmethod
    def _post_if_needed(document: Document, actor=None) -> None:
        instruction = guard.ledger_instruction(document)
        if instruction is None:
            return
        ledger.post(PostEntryParams(
            account_id=instruction.account_id,
            document_id=document.id,
            direction=instruction.direction,
            amount=instruction.amount,
            description=instruction.description,
            created_by=str(actor or "document_service"),
        ))

    @staticmethod
    def _load(document_id: uuid.UUID, expected_version: int | None) -> Document:
        """Lock a document, checking its version when one is supplied."""
        if expected_version is not None:
            return check_version(Document, document_id, expected_version)
        document = Document.objects.select_for_update().filter(id=document_id).first()
        if document is None:
            raise DocumentNotFoundError(
                f"Document {document_id} not found",
                details={"document_id": str(document_id)},
            )
        return document

    # ==========================================================================
    # Transitions
    # ==========================================================================

    @classmethod
    def issue(cls, document_id, actor=None, expected_version=None) -> ServiceResult[Document]:
        """Issue a draft invoice."""
        return cls._run("Issue failed", cls._issue, document_id, actor, expected_version)

    @staticmethod
    @retry_on_conflict
    def _issue(document_id, actor, expected_version) -> Document:
        with transaction.atomic():
            document = DocumentService._load(document_id, expected_version)
            guard.check_transition(document, "issue")
            document.issue()
            document.updated_by = actor
            document.save()
        return document

    @classmethod
    def approve_voucher(cls, document_id, approver, expected_version=None) -> ServiceResult[Document]:
        """
        Approve a draft payment voucher (draft -> issued).

        The approver needs the finance.approve_paymentvoucher permission.
        """
        return cls._run("Approval failed", cls._approve, document_id, approver, expected_version)

    @staticmethod
    @retry_on_conflict
    def _approve(document_id, approver, expected_version) -> Document:
        if approver is None:
            raise ApprovalNotPermitted(
                "Voucher approval requires an approving user",
                details={"document_id": str(document_id)},
            )
        with transaction.atomic():
            document = DocumentService._load(document_id, expected_version)
            guard.check_transition(document, "approve", user=approver)
            document.approve(approver=approver)
            document.payment_voucher.save(update_fields=["approved_by", "approval_date"])
            document.updated_by = approver
            document.save()

        DocumentService.get_logger().info(
            "Payment voucher approved",
            extra={"document_id": str(document.id), "approver": str(approver)},
        )
        return document

    @classmethod
    def complete_receipt(cls, document_id, actor=None, expected_version=None) -> ServiceResult[Document]:
        """Complete a draft receipt and post it to its account."""
        return cls._run("Receipt completion failed", cls._complete_receipt, document_id, actor, expected_version)

    @staticmethod
    @retry_on_conflict
    def _complete_receipt(document_id, actor, expected_version) -> Document:
        with transaction.atomic():
            document = DocumentService._load(document_id, expected_version)
            guard.check_transition(document, "complete")
            guard.validate_account(document, document.account)
            document.complete()
            document.updated_by = actor
            document.save()
            DocumentService._post_if_needed(document, actor)
        return document

    @classmethod
    def cancel(cls, document_id, reason: str = "", actor=None, expected_version=None) -> ServiceResult[Document]:
        """
        Cancel a document.

        Posted entries are not reversed; a warning is logged so an operator
        can author a compensating entry if the money did not actually move.
        """
        return cls._run("Cancellation failed", cls._cancel, document_id, reason, actor, expected_version)

    @staticmethod
    @retry_on_conflict
    def _cancel(document_id, reason, actor, expected_version) -> Document:
        with transaction.atomic():
            document = DocumentService._load(document_id, expected_version)
            guard.check_transition(document, "cancel")
            posted = document.has_unreversed_postings()
            document.cancel(reason=reason or "")
            document.updated_by = actor
            document.save()

        if posted:
            DocumentService.get_logger().warning(
                "Cancelled document keeps its ledger entry",
                extra={
                    "document_id": str(document.id),
                    "document_number": document.document_number,
                    "reason": reason,
                },
            )
        return document

    @classmethod
    def reopen(cls, document_id, actor=None, expected_version=None) -> ServiceResult[Document]:
        """Return a cancelled, never-posted invoice or voucher to draft."""
        return cls._run("Reopen failed", cls._reopen, document_id, actor, expected_version)

    @staticmethod
    @retry_on_conflict
    def _reopen(document_id, actor, expected_version) -> Document:
        with transaction.atomic():
            document = DocumentService._load(document_id, expected_version)
            guard.check_transition(document, "reopen")
            document.reopen()
            document.updated_by = actor
            document.save()
        return document

    @classmethod
    def delete(cls, document_id, actor=None) -> ServiceResult[Document]:
        """
        Soft-delete a document.

        Ledger entries keep referencing the row; the account balance is
        unchanged.
        """
        return cls._run("Delete failed", cls._delete, document_id, actor)

    @staticmethod
    def _delete(document_id, actor) -> Document:
        with transaction.atomic():
            document = DocumentService._load(document_id, None)
            posted = document.has_unreversed_postings()
            document.soft_delete()

        log = DocumentService.get_logger()
        log.log(
            logging.WARNING if posted else logging.INFO,
            "Document deleted",
            extra={
                "document_id": str(document.id),
                "document_number": document.document_number,
                "has_ledger_entry": posted,
                "actor": str(actor),
            },
        )
        return document

    # ==========================================================================
    # Voucher settlement
    # ==========================================================================

    @classmethod
    def complete_voucher(cls, params: CompleteVoucherParams) -> ServiceResult[StatementOfPayment]:
        """Create and post the Statement of Payment for an issued voucher."""
        return cls._run("Voucher completion failed", voucher_linker.complete_voucher, params)


# Singleton instance for convenience
# Usage: from finance.services.documents import document_service
document_service = DocumentService()
