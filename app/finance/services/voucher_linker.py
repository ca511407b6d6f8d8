"""
Voucher-to-statement linker.

Completing a payment voucher creates its Statement of Payment and takes
the money out of the paying account, all in one transaction:

    1. Lock the voucher header
    2. Voucher must be issued (approved) and not yet settled
    3. Account must belong to the company and match the currency
    4. Mint the SOP number
    5. Create the SOP header (completed), statement row and line item copies
    6. Post a decrease of total_deducted = voucher total + fee

If any step fails (insufficient balance included) the whole unit rolls
back: no statement, no number consumed, voucher still issued.

Usage:
    from finance.services.voucher_linker import CompleteVoucherParams, complete_voucher

    statement = complete_voucher(CompleteVoucherParams(
        voucher_id=voucher.id,
        account_id=account.id,
        transaction_fee=Decimal("15.00"),
        transaction_fee_type=FeeType.BANK_CHARGE,
    ))
"""

from __future__ import annotations

import datetime
import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction
from django.utils import timezone

from finance.exceptions import (
    DocumentNotFoundError,
    DocumentValidationError,
    InvalidStateTransitionError,
    VoucherAlreadySettled,
)
from finance.ledger.exceptions import BrokenInvariant
from finance.ledger.services import ledger
from finance.ledger.types import PostEntryParams
from finance.locks import retry_on_conflict
from finance.models import Account, Document, LineItem, StatementOfPayment
from finance.services.sequencer import sequencer
from finance.services.workflow_guard import guard
from finance.state_machines import DocumentStatus, DocumentType, EntryDirection, PaymentMethod

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class CompleteVoucherParams:
    """
    Parameters for completing a payment voucher.

    Required Attributes:
        voucher_id: Header id of the issued payment voucher
        account_id: Account the payment leaves from

    Optional Attributes:
        transaction_fee: Bank or transfer fee added to the deduction
        transaction_fee_type: FeeType of the fee
        payment_date: Defaults to today
        payment_method, transaction_reference, confirmed_by: Printed on
            the statement
        actor: User completing the voucher
    """

    voucher_id: uuid.UUID
    account_id: uuid.UUID
    transaction_fee: Decimal = Decimal("0.00")
    transaction_fee_type: str = ""
    payment_date: datetime.date | None = None
    payment_method: str = PaymentMethod.BANK_TRANSFER
    transaction_reference: str = ""
    confirmed_by: str = ""
    notes: str = ""
    actor: Any = None


def _voucher_snapshot(voucher_doc: Document) -> dict[str, Any]:
    voucher = voucher_doc.payment_voucher
    return {
        "document_number": voucher_doc.document_number,
        "currency": voucher_doc.currency,
        "total": str(voucher_doc.amount),
        "payee_name": voucher.payee_name,
        "payee_bank_name": voucher.payee_bank_name,
        "payee_bank_account": voucher.payee_bank_account,
        "line_items": [
            {
                "line_number": item.line_number,
                "description": item.description,
                "quantity": str(item.quantity),
                "unit_price": str(item.unit_price),
                "amount": str(item.amount),
            }
            for item in voucher_doc.line_items.all()
        ],
    }


@retry_on_conflict
def complete_voucher(params: CompleteVoucherParams) -> StatementOfPayment:
    """
    Create the Statement of Payment for an issued voucher and post it.

    Raises:
        DocumentNotFoundError: No such voucher
        InvalidStateTransitionError: Voucher is not issued
        VoucherAlreadySettled: Voucher already has a statement
        DocumentValidationError / CurrencyMismatch: Bad fee or account
        InsufficientBalance: Paying account would be overdrawn
    """
    fee = Decimal(params.transaction_fee or 0)
    if fee < 0:
        raise DocumentValidationError(
            "Transaction fee cannot be negative",
            details={"transaction_fee": ["Must be zero or more."]},
        )

    try:
        statement, entry = _complete_locked(params, fee)
    except BrokenInvariant as exc:
        # The failed unit rolled back the freeze applied inside it
        ledger.halt_account(exc)
        raise

    logger.info(
        "Voucher completed",
        extra={
            "voucher_id": str(params.voucher_id),
            "statement_id": str(statement.pk),
            "document_number": statement.document.document_number,
            "total_deducted": str(statement.total_deducted),
            "entry_id": str(entry.id),
        },
    )
    return statement


def _complete_locked(params: CompleteVoucherParams, fee: Decimal):
    with transaction.atomic():
        # Step 1: Lock the voucher so two completions serialize here
        voucher_doc = (
            Document.objects.select_for_update()
            .filter(id=params.voucher_id, document_type=DocumentType.PAYMENT_VOUCHER)
            .first()
        )
        if voucher_doc is None:
            raise DocumentNotFoundError(
                f"Payment voucher {params.voucher_id} not found",
                details={"voucher_id": str(params.voucher_id)},
            )

        # Step 2: Settlement preconditions
        if StatementOfPayment.objects.filter(linked_voucher_id=voucher_doc.id).exists():
            raise VoucherAlreadySettled(
                f"Voucher {voucher_doc.document_number} already has a statement of payment",
                details={"voucher_id": str(voucher_doc.id)},
            )
        if voucher_doc.status != DocumentStatus.ISSUED:
            raise InvalidStateTransitionError(
                f"Voucher {voucher_doc.document_number} must be approved before payment "
                f"(status '{voucher_doc.status}')",
                error_code="VOUCHER_NOT_ISSUED",
                details={"voucher_id": str(voucher_doc.id), "current_status": voucher_doc.status},
            )

        # Step 3: Account
        account = Account.objects.filter(id=params.account_id).first()
        guard.validate_account(voucher_doc, account)

        # Step 4: Number
        total_deducted = voucher_doc.amount + fee
        number = sequencer.next_number(voucher_doc.company_id, DocumentType.STATEMENT_OF_PAYMENT)

        # Step 5: Statement
        statement_doc = Document(
            company_id=voucher_doc.company_id,
            document_type=DocumentType.STATEMENT_OF_PAYMENT,
            document_number=number,
            status=DocumentStatus.COMPLETED,
            currency=voucher_doc.currency,
            country=voucher_doc.country,
            document_date=params.payment_date or timezone.localdate(),
            amount=voucher_doc.amount,
            subtotal=voucher_doc.subtotal,
            tax_rate=voucher_doc.tax_rate,
            tax_amount=voucher_doc.tax_amount,
            account=account,
            notes=params.notes,
            created_by=params.actor,
            updated_by=params.actor,
        )
        statement_doc.save()

        try:
            with transaction.atomic():
                statement = StatementOfPayment.objects.create(
                    document=statement_doc,
                    linked_voucher=voucher_doc.payment_voucher,
                    payment_date=statement_doc.document_date,
                    payment_method=params.payment_method,
                    transaction_reference=params.transaction_reference,
                    confirmed_by=params.confirmed_by,
                    payee_name=voucher_doc.payment_voucher.payee_name,
                    transaction_fee=fee,
                    transaction_fee_type=params.transaction_fee_type,
                    total_deducted=total_deducted,
                    voucher_snapshot=_voucher_snapshot(voucher_doc),
                )
        except IntegrityError:
            raise VoucherAlreadySettled(
                f"Voucher {voucher_doc.document_number} already has a statement of payment",
                details={"voucher_id": str(voucher_doc.id)},
            ) from None

        LineItem.objects.bulk_create([
            LineItem(
                document=statement_doc,
                line_number=item.line_number,
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                amount=item.amount,
            )
            for item in voucher_doc.line_items.all()
        ])

        # Step 6: Money out
        instruction = guard.ledger_instruction(statement_doc)
        entry = ledger.post(PostEntryParams(
            account_id=instruction.account_id,
            document_id=statement_doc.id,
            direction=EntryDirection.DECREASE,
            amount=instruction.amount,
            description=instruction.description,
            created_by=str(params.actor or "voucher_linker"),
            metadata={"voucher_id": str(voucher_doc.id)},
        ))

    return statement, entry
