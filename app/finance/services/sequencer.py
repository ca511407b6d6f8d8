"""
Document number sequencer.

Mints human-readable document numbers of the form

    WIF-{PREFIX}-{YYYYMMDD}-{seq:03d}

from a counter row keyed by (company, document type, business date). The
counter increment and the read-back happen in one transaction, and the
UPDATE's row lock serializes concurrent callers on the same key only.

Counters are never reset; a new day simply starts a new row at 1. A number
minted inside a transaction that later rolls back is released with it,
so committed numbers stay gapless.

Usage:
    from finance.services.sequencer import sequencer

    number = sequencer.next_number(company.id, DocumentType.INVOICE)
    # "WIF-INV-20260131-001"
"""

from __future__ import annotations

import datetime
import logging
import uuid
from zoneinfo import ZoneInfo

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from core.exceptions import ValidationError
from finance.locks import retry_on_conflict
from finance.models import DocumentCounter
from finance.state_machines import DocumentType

logger = logging.getLogger(__name__)

TYPE_PREFIXES = {
    DocumentType.INVOICE: "INV",
    DocumentType.RECEIPT: "RCP",
    DocumentType.PAYMENT_VOUCHER: "PV",
    DocumentType.STATEMENT_OF_PAYMENT: "SOP",
}


class DocumentSequencer:
    """
    Atomic per-day document counters.

    All methods are static - the counter rows are the only state.
    """

    @staticmethod
    def business_date() -> datetime.date:
        """Today's date in the configured numbering timezone."""
        tz = ZoneInfo(settings.DOCUMENT_NUMBER_TIMEZONE)
        return timezone.now().astimezone(tz).date()

    @staticmethod
    def date_key(on_date: datetime.date | None = None) -> str:
        if on_date is None:
            on_date = DocumentSequencer.business_date()
        return on_date.strftime("%Y%m%d")

    @staticmethod
    def type_prefix(document_type: str) -> str:
        try:
            return TYPE_PREFIXES[document_type]
        except KeyError:
            raise ValidationError(
                f"Unknown document type: {document_type!r}",
                error_code="UNKNOWN_DOCUMENT_TYPE",
                details={"document_type": [f"Must be one of {list(DocumentType.values)}"]},
            )

    @staticmethod
    def format_number(document_type: str, date_key: str, counter: int) -> str:
        """
        Build a document number.

        Counters past 999 keep growing ("WIF-INV-20260131-1000").
        """
        prefix = DocumentSequencer.type_prefix(document_type)
        return f"{settings.DOCUMENT_NUMBER_PREFIX}-{prefix}-{date_key}-{counter:03d}"

    @staticmethod
    @retry_on_conflict
    def next_number(
        company_id: uuid.UUID,
        document_type: str,
        *,
        on_date: datetime.date | None = None,
    ) -> str:
        """
        Reserve the next number for (company, type, day).

        Called inside an enclosing transaction (the document save), the
        reservation commits or rolls back with that transaction.

        Raises:
            ValidationError: Unknown document type
            ConcurrencyConflict: Counter row stayed contended after retries
        """
        DocumentSequencer.type_prefix(document_type)
        key = DocumentSequencer.date_key(on_date)

        with transaction.atomic():
            counter, created = DocumentCounter.objects.get_or_create(
                company_id=company_id,
                document_type=document_type,
                date_key=key,
            )
            DocumentCounter.objects.filter(pk=counter.pk).update(
                counter=F("counter") + 1,
                updated_at=timezone.now(),
            )
            value = (
                DocumentCounter.objects.filter(pk=counter.pk)
                .values_list("counter", flat=True)
                .get()
            )

        number = DocumentSequencer.format_number(document_type, key, value)
        logger.debug(
            "Document number minted",
            extra={
                "company_id": str(company_id),
                "document_type": document_type,
                "document_number": number,
                "new_counter_row": created,
            },
        )
        return number

    @staticmethod
    def current_count(
        company_id: uuid.UUID,
        document_type: str,
        on_date: datetime.date | None = None,
    ) -> int:
        """Numbers minted so far for (company, type, day); 0 if none."""
        return (
            DocumentCounter.objects.filter(
                company_id=company_id,
                document_type=document_type,
                date_key=DocumentSequencer.date_key(on_date),
            )
            .values_list("counter", flat=True)
            .first()
            or 0
        )


# Singleton instance for convenience
# Usage: from finance.services.sequencer import sequencer
sequencer = DocumentSequencer()
