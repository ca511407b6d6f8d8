"""
Data types for ledger operations.

Types:
    Money: A decimal amount with its currency
    PostEntryParams: Parameters for posting one ledger entry
    LedgerAuditReport: Result of replaying one account's entries

Usage:
    from finance.ledger.types import Money, PostEntryParams

    balance = Money(amount=Decimal("1000.00"), currency="MYR")
    print(balance)  # "MYR 1,000.00"

    params = PostEntryParams(
        account_id=account.id,
        document_id=receipt.id,
        direction=EntryDirection.INCREASE,
        amount=Decimal("400.00"),
        description="Payment received - WIF-RCP-20260131-001",
        created_by="document_service",
    )
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from finance.state_machines import EntryDirection

CENT = Decimal("0.01")


@dataclass
class Money:
    """
    A monetary amount in a single currency.

    Amounts are Decimals quantized to two places; currencies are the ISO
    codes used by accounts (MYR, JPY).

    Example:
        Money(amount=Decimal("1000"), currency="MYR")  # "MYR 1,000.00"
    """

    amount: Decimal
    currency: str

    def __post_init__(self) -> None:
        self.amount = Decimal(self.amount).quantize(CENT)

    def __str__(self) -> str:
        return f"{self.currency} {self.amount:,.2f}"

    def __repr__(self) -> str:
        return f"Money(amount={self.amount!r}, currency={self.currency!r})"

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        if self.currency != other.currency:
            raise ValueError(
                f"Cannot add Money with different currencies: "
                f"{self.currency} and {other.currency}"
            )
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        if self.currency != other.currency:
            raise ValueError(
                f"Cannot subtract Money with different currencies: "
                f"{self.currency} and {other.currency}"
            )
        return Money(amount=self.amount - other.amount, currency=self.currency)


@dataclass
class PostEntryParams:
    """
    Parameters for posting a single ledger entry.

    Required Attributes:
        account_id: Account whose balance changes
        document_id: Document causing the change; (account, document) is the
            idempotency key for normal entries
        direction: EntryDirection.INCREASE or EntryDirection.DECREASE
        amount: Positive amount to move

    Optional Attributes:
        description: Human-readable description
        created_by: Identifier of the service/user posting the entry
        metadata: Arbitrary JSON-serializable data
    """

    account_id: uuid.UUID
    document_id: uuid.UUID
    direction: str
    amount: Decimal

    description: str = ""
    created_by: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate params after initialization."""
        if self.direction not in EntryDirection.values:
            raise ValueError(f"direction must be one of {EntryDirection.values}")
        self.amount = Decimal(self.amount)
        if self.amount <= 0:
            raise ValueError("amount must be positive")
        if self.amount != self.amount.quantize(CENT):
            raise ValueError("amount must have at most two decimal places")


@dataclass
class LedgerAuditReport:
    """
    Outcome of replaying an account's entries against its stored balance.

    problems lists human-readable descriptions of every inconsistency found;
    an account is healthy when the list is empty.
    """

    account_id: uuid.UUID
    stored_balance: Decimal
    replayed_balance: Decimal
    entry_count: int
    problems: list[str] = field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        return not self.problems

    def to_dict(self) -> dict[str, Any]:
        return {
            "account_id": str(self.account_id),
            "stored_balance": str(self.stored_balance),
            "replayed_balance": str(self.replayed_balance),
            "entry_count": self.entry_count,
            "is_consistent": self.is_consistent,
            "problems": list(self.problems),
        }
