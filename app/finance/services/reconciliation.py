"""
Invoice payment status, computed on demand from linked receipts.

Nothing here is stored. An invoice's amount paid is the sum of its linked
receipts that are completed or paid (soft-deleted receipts excluded), so
completing, cancelling or deleting a receipt is reflected immediately.

The rule lives in one pure function, compute_payment_status(); the service
only gathers receipt amounts and delegates.

Usage:
    from finance.services.reconciliation import reconciliation

    view = reconciliation.payment_status(invoice.id)
    view.payment_status   # "partially_paid"
    view.balance_due      # Decimal("600.00")
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from finance.exceptions import DocumentNotFoundError
from finance.models import Document, Receipt
from finance.models.document import SETTLED_STATUSES
from finance.state_machines import DocumentType, PaymentStatus

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")
ONE_PLACE = Decimal("0.1")


# =============================================================================
# Data Types
# =============================================================================


@dataclass(frozen=True)
class PaymentStatusView:
    """Read-only payment position of one invoice."""

    total: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    payment_status: str
    receipt_count: int
    percent_paid: Decimal
    display_percent: Decimal
    is_overpaid: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": str(self.total),
            "amount_paid": str(self.amount_paid),
            "balance_due": str(self.balance_due),
            "payment_status": self.payment_status,
            "receipt_count": self.receipt_count,
            "percent_paid": str(self.percent_paid),
            "display_percent": str(self.display_percent),
            "is_overpaid": self.is_overpaid,
        }


def compute_payment_status(
    invoice_total: Decimal,
    receipt_amounts: Iterable[Decimal],
) -> PaymentStatusView:
    """
    Derive an invoice's payment position from its settled receipt amounts.

    balance_due = total - amount_paid, and goes negative on overpayment.
    percent_paid is rounded half-up to one decimal; display_percent is the
    same value capped at 100. An invoice with a zero total counts as 100%
    paid.
    """
    amounts = list(receipt_amounts)
    paid = sum(amounts, Decimal("0.00"))

    if paid == 0:
        status = PaymentStatus.UNPAID
    elif paid >= invoice_total:
        status = PaymentStatus.FULLY_PAID
    else:
        status = PaymentStatus.PARTIALLY_PAID

    if invoice_total > 0:
        percent = (paid / invoice_total * HUNDRED).quantize(ONE_PLACE, rounding=ROUND_HALF_UP)
    else:
        percent = HUNDRED.quantize(ONE_PLACE)

    return PaymentStatusView(
        total=invoice_total,
        amount_paid=paid,
        balance_due=invoice_total - paid,
        payment_status=status,
        receipt_count=len(amounts),
        percent_paid=percent,
        display_percent=min(percent, HUNDRED.quantize(ONE_PLACE)),
        is_overpaid=paid > invoice_total,
    )


# =============================================================================
# Service
# =============================================================================


class ReconciliationService:
    """Reads receipts linked to invoices and applies compute_payment_status()."""

    @staticmethod
    def _settled_receipts():
        return Receipt.objects.filter(
            document__status__in=SETTLED_STATUSES,
            document__is_deleted=False,
        )

    @staticmethod
    def payment_status(invoice_id: uuid.UUID) -> PaymentStatusView:
        """
        Payment position of one invoice.

        Raises:
            DocumentNotFoundError: If no live invoice has this id
        """
        invoice = (
            Document.objects.of_type(DocumentType.INVOICE)
            .filter(id=invoice_id)
            .values("id", "amount")
            .first()
        )
        if invoice is None:
            raise DocumentNotFoundError(
                f"Invoice {invoice_id} not found",
                details={"invoice_id": str(invoice_id)},
            )

        amounts = ReconciliationService._settled_receipts().filter(
            linked_invoice_id=invoice_id
        ).values_list("document__amount", flat=True)
        return compute_payment_status(invoice["amount"], amounts)

    @staticmethod
    def payment_statuses(invoice_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, PaymentStatusView]:
        """
        Payment positions for many invoices with two queries.

        Unknown or deleted invoice ids are left out of the result.
        """
        ids = list(invoice_ids)
        totals = dict(
            Document.objects.of_type(DocumentType.INVOICE)
            .filter(id__in=ids)
            .values_list("id", "amount")
        )

        by_invoice: dict[uuid.UUID, list[Decimal]] = defaultdict(list)
        for invoice_id, amount in (
            ReconciliationService._settled_receipts()
            .filter(linked_invoice_id__in=totals.keys())
            .values_list("linked_invoice_id", "document__amount")
        ):
            by_invoice[invoice_id].append(amount)

        return {
            invoice_id: compute_payment_status(total, by_invoice.get(invoice_id, []))
            for invoice_id, total in totals.items()
        }


# Singleton instance for convenience
# Usage: from finance.services.reconciliation import reconciliation
reconciliation = ReconciliationService()
