"""
Document header, line items and numbering counters.

Every financial document shares one header row (Document) carrying the type
tag, number, status, money and audit fields. Variant-specific fields live in
one-to-one detail tables (see finance.models.variants); Document.variant
returns the right one by switching on the tag.

Usage:
    from finance.models import Document
    from finance.state_machines import DocumentStatus, DocumentType

    invoice = Document.objects.of_type(DocumentType.INVOICE).get(
        document_number="WIF-INV-20260131-001"
    )
    invoice.variant.customer_name

    # State transitions using django-fsm
    invoice.issue()  # draft -> issued
    invoice.save()
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from django_fsm import FSMField, transition

from core.managers import SoftDeleteManager, SoftDeleteQuerySet
from core.model_mixins import SoftDeleteMixin, UUIDPrimaryKeyMixin
from core.models import BaseModel
from finance.state_machines import Country, Currency, DocumentStatus, DocumentType

# Statuses in which a receipt counts towards an invoice's amount paid
SETTLED_STATUSES = (DocumentStatus.COMPLETED, DocumentStatus.PAID)


# =============================================================================
# Transition conditions
# =============================================================================


def is_invoice(document: Document) -> bool:
    return document.document_type == DocumentType.INVOICE


def is_receipt(document: Document) -> bool:
    return document.document_type == DocumentType.RECEIPT


def is_payment_voucher(document: Document) -> bool:
    return document.document_type == DocumentType.PAYMENT_VOUCHER


def can_be_cancelled(document: Document) -> bool:
    """
    Vouchers with a statement and statements whose entry still stands stay put.

    A settled voucher is fulfilled by its statement; cancelling it would leave
    a statement pointing at a cancelled voucher. A statement can only be
    cancelled once its ledger entry has been compensated.
    """
    if document.document_type == DocumentType.PAYMENT_VOUCHER:
        return not hasattr(document.payment_voucher, "statement")
    if document.document_type == DocumentType.STATEMENT_OF_PAYMENT:
        return not document.has_unreversed_postings()
    return True


def can_be_reopened(document: Document) -> bool:
    """Only invoices and vouchers that never posted may go back to draft."""
    if document.document_type not in (
        DocumentType.INVOICE,
        DocumentType.PAYMENT_VOUCHER,
    ):
        return False
    return not document.has_postings()


def is_unsettled_voucher(document: Document) -> bool:
    return is_payment_voucher(document) and not document.payment_voucher.is_settled


# =============================================================================
# Manager
# =============================================================================


class DocumentQuerySet(SoftDeleteQuerySet):
    """Chainable filters used by services, views and reconciliation."""

    def of_type(self, document_type: str) -> DocumentQuerySet:
        return self.filter(document_type=document_type)

    def for_company(self, company_id) -> DocumentQuerySet:
        return self.filter(company_id=company_id)

    def settled(self) -> DocumentQuerySet:
        return self.filter(status__in=SETTLED_STATUSES)


DocumentManager = SoftDeleteManager.from_queryset(DocumentQuerySet)


# =============================================================================
# Document
# =============================================================================


class Document(UUIDPrimaryKeyMixin, SoftDeleteMixin, BaseModel):
    """
    Shared header for invoices, receipts, payment vouchers and statements.

    Uses django-fsm for status management and optimistic locking via the
    version field for concurrent edits.

    State Flow:
        Invoice:            DRAFT -> ISSUED
        Receipt:            created COMPLETED (or DRAFT -> COMPLETED)
        PaymentVoucher:     DRAFT -> ISSUED (approve), ISSUED -> DRAFT (revise,
                            amount edited before settlement)
        StatementOfPayment: created COMPLETED

    Cancellation Flow:
        DRAFT/ISSUED/PAID/COMPLETED -> CANCELLED
        CANCELLED -> DRAFT (reopen, unposted invoices and vouchers only)

    Fields:
        company: Issuing company
        document_type: Variant tag
        document_number: WIF-{PREFIX}-{YYYYMMDD}-{seq}, unique per company
        status: Current FSM state (protected)
        currency / country: Must match the linked account
        amount: Document total (receipt amount, invoice/voucher total)
        subtotal / tax_rate / tax_amount: Breakdown for itemized documents
        account: Account the money moves through (receipts, statements)
        version: Optimistic locking version

    Note:
        Cancelling a posted document does not reverse its ledger entry;
        reversal is an explicit compensating entry.
    """

    # ==========================================================================
    # Identity
    # ==========================================================================

    company = models.ForeignKey(
        "finance.Company",
        on_delete=models.PROTECT,
        related_name="documents",
    )
    document_type = models.CharField(
        max_length=30,
        choices=DocumentType.choices,
        db_index=True,
    )
    document_number = models.CharField(
        max_length=50,
        help_text="Assigned by the sequencer when the document is first saved",
    )
    status = FSMField(
        default=DocumentStatus.DRAFT,
        choices=DocumentStatus.choices,
        db_index=True,
        protected=True,  # Prevent direct assignment outside transitions
    )

    # ==========================================================================
    # Money
    # ==========================================================================

    currency = models.CharField(max_length=3, choices=Currency.choices)
    country = models.CharField(max_length=20, choices=Country.choices)
    document_date = models.DateField(default=timezone.localdate)

    amount = models.DecimalField(max_digits=15, decimal_places=2)
    subtotal = models.DecimalField(
        max_digits=15, decimal_places=2, null=True, blank=True
    )
    tax_rate = models.DecimalField(
        max_digits=5, decimal_places=2, null=True, blank=True,
        help_text="Tax rate as a percentage",
    )
    tax_amount = models.DecimalField(
        max_digits=15, decimal_places=2, null=True, blank=True
    )

    account = models.ForeignKey(
        "finance.Account",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="documents",
    )
    notes = models.TextField(blank=True)

    # ==========================================================================
    # Audit
    # ==========================================================================

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True)

    version = models.PositiveIntegerField(
        default=1,
        help_text="Optimistic locking version, incremented on every save",
    )

    objects = DocumentManager()
    all_objects = models.Manager()

    class Meta:
        ordering = ["-document_date", "-created_at"]
        indexes = [
            models.Index(
                fields=["company", "document_type", "status"],
                name="finance_doc_company_8a2f41_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "document_number"],
                name="unique_document_number_per_company",
            ),
            models.CheckConstraint(
                condition=Q(amount__gte=0),
                name="document_amount_non_negative",
            ),
        ]
        permissions = [
            ("approve_paymentvoucher", "Can approve payment vouchers"),
        ]

    def __str__(self) -> str:
        return f"{self.document_number} ({self.get_status_display()})"

    def save(self, *args, **kwargs):
        """
        Save with version auto-increment for optimistic locking.

        On update, atomically increments the version field so a caller
        holding an older copy is detected by check_version().
        """
        is_update = not self._state.adding and not kwargs.get("force_insert", False)
        if is_update:
            self.version = F("version") + 1
            update_fields = kwargs.get("update_fields")
            if update_fields is not None and "version" not in update_fields:
                kwargs["update_fields"] = [*update_fields, "version"]
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])

    # ==========================================================================
    # Variant access
    # ==========================================================================

    @property
    def total(self) -> Decimal:
        return self.amount

    @property
    def variant(self):
        """
        Return the variant detail row for this document.

        Raises:
            ValueError: If the type tag is not one of the four variants
        """
        if self.document_type == DocumentType.INVOICE:
            return self.invoice
        if self.document_type == DocumentType.RECEIPT:
            return self.receipt
        if self.document_type == DocumentType.PAYMENT_VOUCHER:
            return self.payment_voucher
        if self.document_type == DocumentType.STATEMENT_OF_PAYMENT:
            return self.statement_of_payment
        raise ValueError(f"Unknown document type: {self.document_type!r}")

    # ==========================================================================
    # Ledger relationship
    # ==========================================================================

    def has_postings(self) -> bool:
        """Whether any ledger entry (normal or compensating) references this document."""
        return self.ledger_entries.exists()

    def has_unreversed_postings(self) -> bool:
        return self.ledger_entries.filter(
            is_compensating=False, reversal__isnull=True
        ).exists()

    def on_soft_delete(self) -> None:
        """Soft delete is always allowed; entries keep pointing at the row."""

    def hard_delete(self) -> None:
        """
        Permanently delete this document.

        Raises:
            DocumentLockedError: If any ledger entry references the document
        """
        from finance.exceptions import DocumentLockedError

        if self.has_postings():
            raise DocumentLockedError(
                f"Document {self.document_number} has ledger entries and cannot be deleted",
                details={"document_id": str(self.pk)},
            )
        super().hard_delete()

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=DocumentStatus.DRAFT,
        target=DocumentStatus.ISSUED,
        conditions=[is_invoice],
    )
    def issue(self):
        """
        Issue an invoice to the customer.

        Transition: DRAFT -> ISSUED
        """

    @transition(
        field=status,
        source=DocumentStatus.DRAFT,
        target=DocumentStatus.ISSUED,
        conditions=[is_payment_voucher],
        permission="finance.approve_paymentvoucher",
    )
    def approve(self, approver=None):
        """
        Approve a payment voucher, making it payable.

        Transition: DRAFT -> ISSUED

        Records the approver on the voucher row; the caller saves both rows.
        """
        voucher = self.payment_voucher
        voucher.approved_by = approver
        voucher.approval_date = timezone.localdate()

    @transition(
        field=status,
        source=[DocumentStatus.DRAFT, DocumentStatus.ISSUED],
        target=DocumentStatus.COMPLETED,
        conditions=[is_receipt],
    )
    def complete(self):
        """
        Mark a draft receipt as received.

        Transition: DRAFT/ISSUED -> COMPLETED

        Entering COMPLETED is balance-affecting; the caller posts the entry.
        """

    @transition(
        field=status,
        source=[
            DocumentStatus.DRAFT,
            DocumentStatus.ISSUED,
            DocumentStatus.PAID,
            DocumentStatus.COMPLETED,
        ],
        target=DocumentStatus.CANCELLED,
        conditions=[can_be_cancelled],
    )
    def cancel(self, reason: str = ""):
        """
        Cancel the document.

        Transition: DRAFT/ISSUED/PAID/COMPLETED -> CANCELLED

        Any ledger entry already posted stays in place.
        """
        self.cancelled_at = timezone.now()
        self.cancellation_reason = reason

    @transition(
        field=status,
        source=DocumentStatus.CANCELLED,
        target=DocumentStatus.DRAFT,
        conditions=[can_be_reopened],
    )
    def reopen(self):
        """
        Return a cancelled, never-posted invoice or voucher to draft.

        Transition: CANCELLED -> DRAFT
        """
        self.cancelled_at = None
        self.cancellation_reason = ""

    @transition(
        field=status,
        source=DocumentStatus.ISSUED,
        target=DocumentStatus.DRAFT,
        conditions=[is_unsettled_voucher],
    )
    def revise(self):
        """
        Withdraw the approval of a voucher whose payable amount changed.

        Transition: ISSUED -> DRAFT

        Clears the approver on the voucher row; the caller saves both rows.
        """
        voucher = self.payment_voucher
        voucher.approved_by = None
        voucher.approval_date = None


# =============================================================================
# Line items
# =============================================================================


class LineItem(UUIDPrimaryKeyMixin, BaseModel):
    """
    One priced line on an invoice, voucher or statement.

    amount must equal quantity * unit_price; WorkflowGuard enforces this
    before items are written.
    """

    document = models.ForeignKey(
        Document,
        on_delete=models.CASCADE,
        related_name="line_items",
    )
    line_number = models.PositiveIntegerField()
    description = models.CharField(max_length=500)
    quantity = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("1"))
    unit_price = models.DecimalField(max_digits=15, decimal_places=2)
    amount = models.DecimalField(max_digits=15, decimal_places=2)

    class Meta:
        ordering = ["line_number"]
        constraints = [
            models.UniqueConstraint(
                fields=["document", "line_number"],
                name="unique_line_number_per_document",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.line_number}. {self.description}"


# =============================================================================
# Document counters
# =============================================================================


class DocumentCounter(UUIDPrimaryKeyMixin, BaseModel):
    """
    Persisted state of the sequencer.

    One row per (company, document_type, date_key). Created lazily on the
    first number request of the day and incremented atomically; never reset.
    """

    company = models.ForeignKey(
        "finance.Company",
        on_delete=models.CASCADE,
        related_name="document_counters",
    )
    document_type = models.CharField(max_length=30, choices=DocumentType.choices)
    date_key = models.CharField(max_length=8, help_text="YYYYMMDD")
    counter = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["-date_key", "document_type"]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "document_type", "date_key"],
                name="unique_counter_per_company_type_day",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.document_type}/{self.date_key}: {self.counter}"
