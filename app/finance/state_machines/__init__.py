"""
State machine enums for finance models.

This module defines the state and choice enums used by finance models
with django-fsm.
"""

from finance.state_machines.states import (
    AccountType,
    Country,
    Currency,
    DocumentStatus,
    DocumentType,
    EntryDirection,
    FeeType,
    PaymentMethod,
    PaymentStatus,
)

__all__ = [
    "AccountType",
    "Country",
    "Currency",
    "DocumentStatus",
    "DocumentType",
    "EntryDirection",
    "FeeType",
    "PaymentMethod",
    "PaymentStatus",
]
