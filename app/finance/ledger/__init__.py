"""
Ledger - Append-only balance history for company accounts.

Every change to an account's balance is an immutable LedgerEntry holding
the balance before and after it. The account row caches the latest value;
the entry log is the source of truth and can be replayed at any time.

Public API:
    Model (finance.ledger.models):
        LedgerEntry - One balance-affecting event on one account

    Service (finance.ledger.services):
        ledger - Singleton instance of LedgerService
        LedgerService - Posting, reversal, balance reads and audits

    Types:
        Money - Decimal amount with currency
        PostEntryParams - Parameters for posting an entry
        LedgerAuditReport - Result of an account audit

    Exceptions:
        LedgerError, AccountNotFound, EntryNotFound, InactiveAccount,
        AccountFrozen, InsufficientBalance, IrreversibleEntry,
        DuplicatePosting, BrokenInvariant

Models and services are imported from their modules directly; this package
is imported while the finance models are still loading.

Usage:
    from finance.ledger import PostEntryParams, InsufficientBalance
    from finance.ledger.services import ledger

    try:
        ledger.post(PostEntryParams(
            account_id=account.id,
            document_id=statement.id,
            direction=EntryDirection.DECREASE,
            amount=Decimal("700.00"),
        ))
    except InsufficientBalance as e:
        print(f"Need {e.required}, have {e.available}")
"""

from .exceptions import (
    AccountFrozen,
    AccountNotFound,
    BrokenInvariant,
    DuplicatePosting,
    EntryNotFound,
    InactiveAccount,
    InsufficientBalance,
    IrreversibleEntry,
    LedgerError,
)
from .types import LedgerAuditReport, Money, PostEntryParams

__all__ = [
    # Types
    "LedgerAuditReport",
    "Money",
    "PostEntryParams",
    # Exceptions
    "AccountFrozen",
    "AccountNotFound",
    "BrokenInvariant",
    "DuplicatePosting",
    "EntryNotFound",
    "InactiveAccount",
    "InsufficientBalance",
    "IrreversibleEntry",
    "LedgerError",
]
