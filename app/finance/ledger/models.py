"""
Ledger model for account balance history.

LedgerEntry is the append-only log behind every account balance. Each entry
records one balance-affecting event (a completed receipt, a completed
statement of payment, or an explicit compensating entry) together with the
balance before and after it, so the log can be replayed and audited.

Usage:
    from finance.ledger.models import LedgerEntry

    LedgerEntry.objects.for_account(account.id)       # Oldest first
    LedgerEntry.objects.for_account(account.id).last().balance_after
"""

from __future__ import annotations

from django.db import models
from django.db.models import Q

from core.model_mixins import UUIDPrimaryKeyMixin
from finance.state_machines import EntryDirection


class LedgerEntryQuerySet(models.QuerySet):
    def for_account(self, account_id) -> LedgerEntryQuerySet:
        """Entries for one account in commit order."""
        return self.filter(account_id=account_id).order_by("sequence")

    def postings(self) -> LedgerEntryQuerySet:
        """Normal (non-compensating) entries."""
        return self.filter(is_compensating=False)


class LedgerEntry(UUIDPrimaryKeyMixin, models.Model):
    """
    Immutable record of one balance-affecting event on one account.

    Entries are never updated or deleted; a mis-posted entry is corrected
    by a compensating entry that references it through ``reverses``.

    Fields:
        account: Account whose balance changed
        document: Document that caused the change
        sequence: Per-account position in commit order, starting at 1
        direction: increase or decrease
        amount: Positive amount moved
        balance_before / balance_after: Account balance around this entry
        is_compensating: True for explicit reversals
        reverses: Entry this one compensates (at most one reversal each)
        reason: Why a compensating entry was authored
        description: Human-readable description
        metadata: Arbitrary JSON context
        created_by: Identifier of the user or service that posted

    Constraints:
        - amount must be positive
        - one normal entry per (account, document)
        - one entry per (account, sequence), so no two entries can start
          from the same balance
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this entry was recorded",
    )

    account = models.ForeignKey(
        "finance.Account",
        on_delete=models.PROTECT,
        related_name="ledger_entries",
    )
    document = models.ForeignKey(
        "finance.Document",
        on_delete=models.PROTECT,
        related_name="ledger_entries",
    )
    sequence = models.PositiveBigIntegerField(
        help_text="Position of this entry in the account's history",
    )

    direction = models.CharField(max_length=10, choices=EntryDirection.choices)
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    balance_before = models.DecimalField(max_digits=15, decimal_places=2)
    balance_after = models.DecimalField(max_digits=15, decimal_places=2)

    is_compensating = models.BooleanField(default=False)
    reverses = models.OneToOneField(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="reversal",
    )
    reason = models.TextField(blank=True)

    description = models.CharField(max_length=500, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_by = models.CharField(
        max_length=255,
        blank=True,
        help_text="Identifier of service/user that created this entry",
    )

    objects = LedgerEntryQuerySet.as_manager()

    class Meta:
        ordering = ["account", "sequence"]
        verbose_name_plural = "ledger entries"
        indexes = [
            models.Index(fields=["document"], name="finance_led_documen_7c4d19_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["account", "document"],
                condition=Q(is_compensating=False),
                name="unique_posting_per_account_document",
            ),
            models.UniqueConstraint(
                fields=["account", "sequence"],
                name="unique_sequence_per_account",
            ),
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="ledger_entry_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        sign = "+" if self.direction == EntryDirection.INCREASE else "-"
        return f"#{self.sequence} {sign}{self.amount} -> {self.balance_after}"

    @property
    def signed_amount(self):
        if self.direction == EntryDirection.INCREASE:
            return self.amount
        return -self.amount

    def save(self, *args, **kwargs):
        """Insert only; posted entries are immutable."""
        if not self._state.adding:
            raise ValueError("Ledger entries are immutable once posted")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Ledger entries cannot be deleted; post a compensating entry")
