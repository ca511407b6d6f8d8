"""
Ledger service layer for account balances.

All balance changes go through LedgerService so that every change is an
entry in the append-only log, the materialized balance moves in the same
transaction as the entry, and overdraft and idempotency rules are applied
in one place.

Usage:
    from finance.ledger.services import ledger
    from finance.ledger.types import PostEntryParams

    entry = ledger.post(PostEntryParams(
        account_id=account.id,
        document_id=receipt.id,
        direction=EntryDirection.INCREASE,
        amount=Decimal("400.00"),
        description="Payment received - WIF-RCP-20260131-001",
    ))
    ledger.get_balance(account.id)   # Money(amount=Decimal('900.00'), currency='MYR')
    ledger.audit_account(account.id).is_consistent
"""

from __future__ import annotations

import logging
import uuid
from collections import Counter
from decimal import Decimal
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction
from django.utils import timezone

from core.exceptions import ValidationError
from finance.exceptions import ConcurrencyConflict, CurrencyMismatch, DocumentNotFoundError
from finance.locks import lock_timeout, retry_on_conflict
from finance.models import Account, Document
from finance.state_machines import EntryDirection

from .exceptions import (
    AccountFrozen,
    AccountNotFound,
    BrokenInvariant,
    DuplicatePosting,
    EntryNotFound,
    InactiveAccount,
    InsufficientBalance,
    IrreversibleEntry,
)
from .models import LedgerEntry
from .types import LedgerAuditReport, Money, PostEntryParams

if TYPE_CHECKING:
    from django.db.models import QuerySet

logger = logging.getLogger(__name__)


def _opposite(direction: str) -> str:
    if direction == EntryDirection.INCREASE:
        return EntryDirection.DECREASE
    return EntryDirection.INCREASE


class LedgerService:
    """
    Service class for ledger operations.

    Key features:
    - One atomic unit per post: entry insert plus balance update
    - Per-account serialization via a row lock on the account
    - Idempotency on (account, document) for normal entries
    - Overdraft check against the company's allow_negative_balance switch
    - Explicit compensating entries instead of edits or deletes

    All methods are static - no instance state is maintained.
    """

    # ==========================================================================
    # Accounts
    # ==========================================================================

    @staticmethod
    def get_account(account_id: uuid.UUID) -> Account:
        """
        Get account by ID.

        Raises:
            AccountNotFound: If account doesn't exist
        """
        try:
            return Account.objects.get(id=account_id)
        except Account.DoesNotExist:
            raise AccountNotFound(
                f"Account {account_id} not found",
                details={"account_id": str(account_id)},
            )

    @staticmethod
    def _lock_account(account_id: uuid.UUID) -> Account:
        """
        Lock the account row and make sure it can take a new entry.

        Must be called inside transaction.atomic(); the lock is held until
        the transaction ends, which serializes all posts to this account.
        """
        account = (
            Account.objects.select_for_update(of=("self",))
            .select_related("company")
            .filter(id=account_id)
            .first()
        )
        if account is None:
            raise AccountNotFound(
                f"Account {account_id} not found",
                details={"account_id": str(account_id)},
            )
        if not account.is_active:
            raise InactiveAccount(
                f"Account {account.id} is inactive",
                details={"account_id": str(account.id)},
            )
        if account.is_frozen:
            raise AccountFrozen(
                f"Account {account.id} is frozen: {account.frozen_reason}",
                details={"account_id": str(account.id), "reason": account.frozen_reason},
            )
        return account

    # ==========================================================================
    # Posting
    # ==========================================================================

    @staticmethod
    @retry_on_conflict
    def post(params: PostEntryParams) -> LedgerEntry:
        """
        Post one entry and move the account balance.

        Idempotent - if a normal entry already exists for
        (account, document), that entry is returned and nothing changes.

        Args:
            params: Account, document, direction and amount to post

        Returns:
            The created or existing LedgerEntry

        Raises:
            AccountNotFound / InactiveAccount / AccountFrozen: Account unusable
            DocumentNotFoundError: Document doesn't exist
            CurrencyMismatch: Document currency differs from the account's
            InsufficientBalance: Decrease would overdraw the account
            BrokenInvariant: Ledger data is inconsistent; the account is frozen
            ConcurrencyConflict: Lost a race after bounded retries
        """
        try:
            with transaction.atomic(), lock_timeout():
                return LedgerService._post_locked(params)
        except DuplicatePosting as dup:
            logger.info(
                "Ledger post already applied",
                extra={
                    "entry_id": str(dup.entry.pk),
                    "account_id": str(params.account_id),
                    "document_id": str(params.document_id),
                },
            )
            return dup.entry
        except BrokenInvariant as exc:
            LedgerService.halt_account(exc)
            raise

    @staticmethod
    def _post_locked(params: PostEntryParams) -> LedgerEntry:
        account = LedgerService._lock_account(params.account_id)

        # Step 1: Idempotency check before touching the balance
        existing = list(
            LedgerEntry.objects.postings().filter(
                account_id=account.id, document_id=params.document_id
            )[:2]
        )
        if len(existing) > 1:
            raise BrokenInvariant(
                f"Document {params.document_id} has more than one entry on account {account.id}",
                account_id=account.id,
                details={"document_id": str(params.document_id)},
            )
        if existing:
            raise DuplicatePosting(existing[0])

        # Step 2: The document must belong with the account
        document = (
            Document.all_objects.filter(id=params.document_id)
            .values("id", "company_id", "currency")
            .first()
        )
        if document is None:
            raise DocumentNotFoundError(
                f"Document {params.document_id} not found",
                details={"document_id": str(params.document_id)},
            )
        if document["company_id"] != account.company_id:
            raise ValidationError(
                "Document and account belong to different companies",
                error_code="COMPANY_MISMATCH",
                details={
                    "document_id": str(document["id"]),
                    "account_id": str(account.id),
                },
            )
        if document["currency"] != account.currency:
            raise CurrencyMismatch(
                f"Document currency {document['currency']} does not match "
                f"account currency {account.currency}",
                details={
                    "document_currency": document["currency"],
                    "account_currency": account.currency,
                },
            )

        # Step 3: Append
        return LedgerService._append(
            account,
            document_id=document["id"],
            direction=params.direction,
            amount=params.amount,
            description=params.description,
            metadata=params.metadata,
            created_by=params.created_by,
        )

    @staticmethod
    def _append(
        account: Account,
        document_id: uuid.UUID,
        direction: str,
        amount: Decimal,
        description: str = "",
        metadata: dict | None = None,
        created_by: str = "",
        reverses: LedgerEntry | None = None,
        reason: str = "",
    ) -> LedgerEntry:
        """
        Insert an entry for a locked account and move its balance.

        Checks that the stored balance continues the entry chain and that a
        decrease respects the overdraft rule.
        """
        last = (
            LedgerEntry.objects.filter(account_id=account.id)
            .order_by("-sequence")
            .values_list("sequence", "balance_after")
            .first()
        )
        last_sequence, chain_balance = last if last else (0, account.initial_balance)
        balance_before = account.current_balance
        if balance_before != chain_balance:
            raise BrokenInvariant(
                f"Account {account.id} balance {balance_before} does not continue "
                f"its ledger ({chain_balance})",
                account_id=account.id,
                details={
                    "stored_balance": str(balance_before),
                    "ledger_balance": str(chain_balance),
                },
            )

        signed = amount if direction == EntryDirection.INCREASE else -amount
        balance_after = balance_before + signed

        if (
            direction == EntryDirection.DECREASE
            and balance_after < 0
            and not account.company.allow_negative_balance
        ):
            logger.warning(
                "Ledger post rejected: insufficient balance",
                extra={
                    "account_id": str(account.id),
                    "document_id": str(document_id),
                    "required": str(amount),
                    "available": str(balance_before),
                },
            )
            raise InsufficientBalance(
                account_id=account.id,
                required=amount,
                available=balance_before,
            )

        # Savepoint keeps the enclosing transaction usable after a
        # constraint violation
        try:
            with transaction.atomic():
                entry = LedgerEntry.objects.create(
                    account=account,
                    document_id=document_id,
                    sequence=last_sequence + 1,
                    direction=direction,
                    amount=amount,
                    balance_before=balance_before,
                    balance_after=balance_after,
                    is_compensating=reverses is not None,
                    reverses=reverses,
                    reason=reason,
                    description=description,
                    metadata=metadata or {},
                    created_by=created_by,
                )
        except IntegrityError as exc:
            if reverses is None:
                duplicate = (
                    LedgerEntry.objects.postings()
                    .filter(account_id=account.id, document_id=document_id)
                    .first()
                )
                if duplicate is not None:
                    raise DuplicatePosting(duplicate) from None
            raise ConcurrencyConflict(
                f"Concurrent write to account {account.id}",
                details={"account_id": str(account.id)},
            ) from exc

        Account.objects.filter(id=account.id).update(
            current_balance=balance_after,
            updated_at=timezone.now(),
        )
        account.current_balance = balance_after

        logger.info(
            "Ledger entry posted",
            extra={
                "entry_id": str(entry.id),
                "account_id": str(account.id),
                "document_id": str(document_id),
                "direction": direction,
                "amount": str(amount),
                "balance_after": str(balance_after),
                "is_compensating": entry.is_compensating,
            },
        )
        return entry

    @staticmethod
    @retry_on_conflict
    def reverse(
        entry_id: uuid.UUID,
        reason: str,
        created_by: str = "",
    ) -> LedgerEntry:
        """
        Post a compensating entry that undoes a normal entry.

        The compensating entry moves the same amount in the opposite
        direction on the same account and references the original.
        Idempotent - reversing an already reversed entry returns the
        existing compensating entry.

        Raises:
            EntryNotFound: If the entry doesn't exist
            IrreversibleEntry: If the entry is itself compensating
            ValidationError: If no reason is given
            InsufficientBalance: If undoing an increase would overdraw
        """
        if not reason or not reason.strip():
            raise ValidationError(
                "A reason is required to reverse a ledger entry",
                details={"reason": ["This field is required."]},
            )

        try:
            with transaction.atomic(), lock_timeout():
                original = LedgerEntry.objects.filter(id=entry_id).first()
                if original is None:
                    raise EntryNotFound(
                        f"Ledger entry {entry_id} not found",
                        details={"entry_id": str(entry_id)},
                    )
                if original.is_compensating:
                    raise IrreversibleEntry(
                        "Compensating entries cannot be reversed",
                        details={"entry_id": str(entry_id)},
                    )

                account = LedgerService._lock_account(original.account_id)

                existing = LedgerEntry.objects.filter(reverses=original).first()
                if existing is not None:
                    logger.info(
                        "Ledger entry already reversed",
                        extra={"entry_id": str(original.id), "reversal_id": str(existing.id)},
                    )
                    return existing

                return LedgerService._append(
                    account,
                    document_id=original.document_id,
                    direction=_opposite(original.direction),
                    amount=original.amount,
                    description=f"Reversal of entry #{original.sequence}",
                    metadata={"reverses": str(original.id)},
                    created_by=created_by,
                    reverses=original,
                    reason=reason,
                )
        except BrokenInvariant as exc:
            LedgerService.halt_account(exc)
            raise

    # ==========================================================================
    # Reads
    # ==========================================================================

    @staticmethod
    def get_balance(account_id: uuid.UUID) -> Money:
        """
        Current balance from the account row.

        Raises:
            AccountNotFound: If account doesn't exist
        """
        account = LedgerService.get_account(account_id)
        return Money(amount=account.current_balance, currency=account.currency)

    @staticmethod
    def replay_balance(account_id: uuid.UUID) -> Decimal:
        """Recompute the balance from the initial balance and every entry."""
        account = LedgerService.get_account(account_id)
        balance = account.initial_balance
        for direction, amount in LedgerEntry.objects.for_account(account_id).values_list(
            "direction", "amount"
        ):
            balance += amount if direction == EntryDirection.INCREASE else -amount
        return balance

    @staticmethod
    def get_entries(account_id: uuid.UUID) -> QuerySet[LedgerEntry]:
        """Entries for an account in commit order."""
        return LedgerEntry.objects.for_account(account_id).select_related("document")

    @staticmethod
    def get_document_entries(document_id: uuid.UUID) -> list[LedgerEntry]:
        """All entries, normal and compensating, caused by a document."""
        return list(
            LedgerEntry.objects.filter(document_id=document_id).order_by("created_at", "sequence")
        )

    # ==========================================================================
    # Audit
    # ==========================================================================

    @staticmethod
    def audit_account(account_id: uuid.UUID) -> LedgerAuditReport:
        """
        Replay an account's entries and report every inconsistency.

        Checks:
        1. Sequences run 1..N without gaps
        2. Each entry starts from the previous entry's balance_after
        3. balance_after == balance_before +/- amount for every entry
        4. At most one normal entry per document
        5. The replayed balance equals the stored balance
        """
        account = LedgerService.get_account(account_id)
        entries = list(LedgerEntry.objects.for_account(account_id))

        problems: list[str] = []
        running = account.initial_balance
        for expected_sequence, entry in enumerate(entries, start=1):
            if entry.sequence != expected_sequence:
                problems.append(
                    f"Entry {entry.id} has sequence {entry.sequence}, expected {expected_sequence}"
                )
            if entry.balance_before != running:
                problems.append(
                    f"Entry #{entry.sequence} starts at {entry.balance_before}, "
                    f"previous balance was {running}"
                )
            if entry.balance_after != entry.balance_before + entry.signed_amount:
                problems.append(
                    f"Entry #{entry.sequence} arithmetic is wrong: {entry.balance_before} "
                    f"{'+' if entry.direction == EntryDirection.INCREASE else '-'} "
                    f"{entry.amount} != {entry.balance_after}"
                )
            running += entry.signed_amount

        postings = Counter(e.document_id for e in entries if not e.is_compensating)
        for document_id, count in postings.items():
            if count > 1:
                problems.append(f"Document {document_id} has {count} normal entries")

        if running != account.current_balance:
            problems.append(
                f"Stored balance {account.current_balance} differs from replayed balance {running}"
            )

        report = LedgerAuditReport(
            account_id=account.id,
            stored_balance=account.current_balance,
            replayed_balance=running,
            entry_count=len(entries),
            problems=problems,
        )
        if problems:
            logger.warning(
                "Ledger audit found inconsistencies",
                extra={"account_id": str(account.id), "problems": problems},
            )
        return report

    # ==========================================================================
    # Freezing
    # ==========================================================================

    @staticmethod
    def freeze_account(account_id: uuid.UUID, reason: str) -> None:
        """Stop all posting to an account until it is unfrozen."""
        updated = Account.objects.filter(id=account_id).update(
            is_frozen=True,
            frozen_reason=reason,
            updated_at=timezone.now(),
        )
        if not updated:
            raise AccountNotFound(
                f"Account {account_id} not found",
                details={"account_id": str(account_id)},
            )
        logger.critical(
            "Account frozen",
            extra={"account_id": str(account_id), "reason": reason},
        )

    @staticmethod
    def unfreeze_account(account_id: uuid.UUID, actor: str = "") -> Account:
        """Resume posting after a manual audit."""
        account = LedgerService.get_account(account_id)
        Account.objects.filter(id=account_id).update(
            is_frozen=False,
            frozen_reason="",
            updated_at=timezone.now(),
        )
        account.is_frozen = False
        account.frozen_reason = ""
        logger.warning(
            "Account unfrozen",
            extra={"account_id": str(account_id), "actor": actor},
        )
        return account

    @staticmethod
    def halt_account(exc: BrokenInvariant) -> None:
        """
        Freeze the account named by a BrokenInvariant.

        Runs after the failing unit has rolled back. Outer units that roll
        back further call this again once they are outside their own
        transaction; freezing is idempotent.
        """
        logger.critical(
            "Ledger invariant broken",
            extra={"account_id": str(exc.account_id), "error": exc.message},
        )
        if exc.account_id is not None:
            LedgerService.freeze_account(exc.account_id, exc.message)


# Singleton instance for convenience
# Usage: from finance.ledger.services import ledger
ledger = LedgerService()
