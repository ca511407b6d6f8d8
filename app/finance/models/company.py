"""
Company and Account models.

A Company owns accounts and documents and decides whether its accounts may
go negative. An Account is a store of value (bank account or cash float) in
a single currency whose balance is maintained exclusively by the ledger.

Usage:
    from finance.models import Account, Company
    from finance.state_machines import AccountType, Currency, Country

    company = Company.objects.create(name="WIF Japan")
    account = Account.objects.create(
        company=company,
        name="Maybank Operating",
        account_type=AccountType.MAIN_BANK,
        bank_name="Maybank",
        currency=Currency.MYR,
        country=Country.MALAYSIA,
        initial_balance=Decimal("500.00"),
    )
    account.current_balance  # Decimal("500.00")
"""

from __future__ import annotations

from decimal import Decimal

from django.db import models
from django.db.models import Q

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from finance.state_machines import AccountType, Country, Currency

# Fields that only the ledger (or account creation) may write
LEDGER_MANAGED_FIELDS = frozenset({"current_balance", "initial_balance"})

# Fields written only by LedgerService.freeze_account and unfreeze_account
FREEZE_FIELDS = frozenset({"is_frozen", "frozen_reason"})


class Company(UUIDPrimaryKeyMixin, BaseModel):
    """
    Legal entity that issues documents and owns accounts.

    Fields:
        name: Registered company name
        registration_no: Company registration number
        address, email, tel: Contact details printed on documents
        allow_negative_balance: Overdraft switch for all company accounts
    """

    name = models.CharField(max_length=255)
    registration_no = models.CharField(max_length=100, blank=True)
    address = models.TextField(blank=True)
    email = models.EmailField(blank=True)
    tel = models.CharField(max_length=50, blank=True)
    allow_negative_balance = models.BooleanField(
        default=False,
        help_text="Allow account balances to go negative",
    )

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "companies"

    def __str__(self) -> str:
        return self.name


class Account(UUIDPrimaryKeyMixin, BaseModel):
    """
    A bank account or petty cash float in one currency.

    Invariant:
        current_balance == initial_balance + signed sum of ledger entries

    current_balance is written on creation (copied from initial_balance) and
    afterwards only by LedgerService through a queryset update. Ordinary
    saves of an existing account skip both balance columns, so an admin form
    or stale instance can never overwrite the ledger's value.

    Accounts are never hard-deleted while ledger entries reference them
    (PROTECT); use deactivate() instead.

    A frozen account refuses all postings until an operator clears the
    freeze after a manual audit.
    """

    company = models.ForeignKey(
        Company,
        on_delete=models.PROTECT,
        related_name="accounts",
    )
    name = models.CharField(max_length=255)
    account_type = models.CharField(
        max_length=20,
        choices=AccountType.choices,
        default=AccountType.MAIN_BANK,
    )
    currency = models.CharField(max_length=3, choices=Currency.choices)
    country = models.CharField(max_length=20, choices=Country.choices)

    bank_name = models.CharField(max_length=255, blank=True)
    account_number = models.CharField(max_length=100, blank=True)
    custodian = models.CharField(max_length=255, blank=True)

    initial_balance = models.DecimalField(
        max_digits=15,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    current_balance = models.DecimalField(
        max_digits=15,
        decimal_places=2,
        default=Decimal("0.00"),
        editable=False,
        help_text="Materialized balance maintained by the ledger",
    )

    is_active = models.BooleanField(default=True, db_index=True)
    is_frozen = models.BooleanField(
        default=False,
        help_text="Posting halted pending manual audit",
    )
    frozen_reason = models.TextField(blank=True)
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ["company", "name"]
        indexes = [
            models.Index(
                fields=["company", "currency", "is_active"],
                name="finance_acc_company_5d1c2e_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~Q(account_type=AccountType.MAIN_BANK) | ~Q(bank_name=""),
                name="account_main_bank_requires_bank_name",
            ),
            models.CheckConstraint(
                condition=~Q(account_type=AccountType.PETTY_CASH) | ~Q(custodian=""),
                name="account_petty_cash_requires_custodian",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.currency})"

    def save(self, *args, **kwargs):
        """
        Save without touching ledger-managed balance or freeze columns.

        On creation the current balance starts at the initial balance.
        """
        if self._state.adding:
            self.current_balance = self.initial_balance
        else:
            update_fields = kwargs.get("update_fields")
            if update_fields is None:
                update_fields = [
                    f.attname
                    for f in self._meta.concrete_fields
                    if not f.primary_key
                ]
            kwargs["update_fields"] = [
                name
                for name in update_fields
                if name not in LEDGER_MANAGED_FIELDS and name not in FREEZE_FIELDS
            ]
        super().save(*args, **kwargs)

    def deactivate(self) -> None:
        """Soft-deactivate the account; existing entries stay intact."""
        self.is_active = False
        self.save(update_fields=["is_active", "updated_at"])

    def activate(self) -> None:
        self.is_active = True
        self.save(update_fields=["is_active", "updated_at"])
