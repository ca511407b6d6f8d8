"""
Account service: opening, reading and retiring company accounts.

Balances are never written here. An account's current balance starts at
its initial balance and afterwards moves only through the ledger.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal

from django.db import transaction

from core.exceptions import BaseApplicationError, NotFoundError, ValidationError
from core.services import BaseService, ServiceResult
from finance.ledger.services import ledger
from finance.ledger.types import Money
from finance.models import Account, Company
from finance.services.workflow_guard import CURRENCY_BY_COUNTRY
from finance.state_machines import AccountType, Currency


@dataclass
class CreateAccountParams:
    """
    Parameters for opening an account.

    Main bank accounts need bank_name; petty cash floats need custodian.
    """

    company_id: uuid.UUID
    name: str
    account_type: str
    currency: str
    country: str
    initial_balance: Decimal = Decimal("0.00")
    bank_name: str = ""
    account_number: str = ""
    custodian: str = ""
    notes: str = ""


class AccountService(BaseService):
    """Account lifecycle operations returning ServiceResult."""

    @classmethod
    def create_account(cls, params: CreateAccountParams) -> ServiceResult[Account]:
        errors: dict[str, list[str]] = {}
        if not params.name or not params.name.strip():
            errors["name"] = ["This field is required."]
        if params.account_type not in AccountType.values:
            errors["account_type"] = [f"Must be one of {list(AccountType.values)}."]
        elif params.account_type == AccountType.MAIN_BANK and not params.bank_name.strip():
            errors["bank_name"] = ["Bank accounts need a bank name."]
        elif params.account_type == AccountType.PETTY_CASH and not params.custodian.strip():
            errors["custodian"] = ["Petty cash accounts need a custodian."]
        if params.currency not in Currency.values:
            errors["currency"] = [f"Must be one of {list(Currency.values)}."]
        elif CURRENCY_BY_COUNTRY.get(params.country) != params.currency:
            errors["country"] = [f"{params.country} accounts are not held in {params.currency}."]

        if errors:
            return ServiceResult.failure(
                "Validation failed",
                error_code="VALIDATION_ERROR",
                errors=errors,
                details=errors,
            )

        company = Company.objects.filter(id=params.company_id).first()
        if company is None:
            return cls.handle_exception(
                NotFoundError(
                    f"Company {params.company_id} not found",
                    error_code="COMPANY_NOT_FOUND",
                    details={"company_id": str(params.company_id)},
                ),
                "Account creation failed",
            )
        initial = Decimal(params.initial_balance)
        if initial < 0 and not company.allow_negative_balance:
            return cls.handle_exception(
                ValidationError(
                    "Initial balance cannot be negative",
                    details={"initial_balance": ["Must be zero or more."]},
                ),
                "Account creation failed",
            )

        with cls.atomic():
            account = Account.objects.create(
                company=company,
                name=params.name.strip(),
                account_type=params.account_type,
                currency=params.currency,
                country=params.country,
                initial_balance=initial,
                bank_name=params.bank_name,
                account_number=params.account_number,
                custodian=params.custodian,
                notes=params.notes,
            )

        cls.get_logger().info(
            "Account created",
            extra={
                "account_id": str(account.id),
                "company_id": str(company.id),
                "currency": account.currency,
                "initial_balance": str(account.initial_balance),
            },
        )
        return ServiceResult.success(account)

    @staticmethod
    def get_account_balance(account_id: uuid.UUID) -> Money:
        """
        Materialized balance of an account.

        Raises:
            AccountNotFound: If account doesn't exist
        """
        return ledger.get_balance(account_id)

    @classmethod
    def deactivate(cls, account_id: uuid.UUID) -> ServiceResult[Account]:
        """Stop new postings; history and balance stay as they are."""
        return cls._set_active(account_id, active=False)

    @classmethod
    def reactivate(cls, account_id: uuid.UUID) -> ServiceResult[Account]:
        return cls._set_active(account_id, active=True)

    @classmethod
    def _set_active(cls, account_id: uuid.UUID, active: bool) -> ServiceResult[Account]:
        try:
            with transaction.atomic():
                account = ledger.get_account(account_id)
                if active:
                    account.activate()
                else:
                    account.deactivate()
        except BaseApplicationError as exc:
            return cls.handle_exception(exc, "Account status change failed")

        cls.get_logger().info(
            "Account activated" if active else "Account deactivated",
            extra={"account_id": str(account_id)},
        )
        return ServiceResult.success(account)


# Singleton instance for convenience
# Usage: from finance.services.accounts import account_service
account_service = AccountService()
