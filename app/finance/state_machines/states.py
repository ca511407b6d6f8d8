"""
State and choice enums for finance models.

This module defines the enums used by finance models with django-fsm.
These are Django TextChoices for database storage and admin integration.

State Machines Overview:

Invoice:
    draft → issued
    draft/issued → cancelled → draft (reopen, only if never posted)
    "paid" is displayed from the reconciliation view, never stored

Receipt:
    created completed (recorded after the money arrived)
    draft → completed (when saved as a draft first)
    completed → cancelled (ledger entry stays; reversal is explicit)

PaymentVoucher:
    draft → issued (approval by a privileged user)
    issued → draft (amount edited before settlement; needs approval again)
    draft/issued → cancelled (only while no statement exists)

StatementOfPayment:
    created completed (records a settlement that already happened)
"""

from django.db import models


class DocumentType(models.TextChoices):
    """
    The four document variants.

    Each variant has its own detail table; the Document header carries the
    tag and every behavior that differs by variant switches on it.
    """

    INVOICE = "invoice", "Invoice"
    RECEIPT = "receipt", "Receipt"
    PAYMENT_VOUCHER = "payment_voucher", "Payment Voucher"
    STATEMENT_OF_PAYMENT = "statement_of_payment", "Statement of Payment"


class DocumentStatus(models.TextChoices):
    """
    Lifecycle states shared by all document variants.

    Terminal states: COMPLETED, CANCELLED

    State Flow:
        DRAFT → ISSUED → PAID/COMPLETED
        DRAFT/ISSUED/PAID/COMPLETED → CANCELLED
        CANCELLED → DRAFT (reopen, unposted documents only)
    """

    DRAFT = "draft", "Draft"
    ISSUED = "issued", "Issued"
    PAID = "paid", "Paid"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"


class Currency(models.TextChoices):
    """Supported currencies."""

    MYR = "MYR", "Malaysian Ringgit"
    JPY = "JPY", "Japanese Yen"


class Country(models.TextChoices):
    """Countries the operator trades in."""

    MALAYSIA = "Malaysia", "Malaysia"
    JAPAN = "Japan", "Japan"


class AccountType(models.TextChoices):
    """
    Kinds of account a company holds.

    MAIN_BANK accounts require a bank name; PETTY_CASH accounts require a
    custodian.
    """

    MAIN_BANK = "main_bank", "Main Bank"
    PETTY_CASH = "petty_cash", "Petty Cash"


class EntryDirection(models.TextChoices):
    """Direction of a ledger entry relative to the account balance."""

    INCREASE = "increase", "Increase"
    DECREASE = "decrease", "Decrease"


class PaymentStatus(models.TextChoices):
    """
    Invoice payment status derived from linked receipts.

    Computed on every read by the reconciliation view; never stored.
    """

    UNPAID = "unpaid", "Unpaid"
    PARTIALLY_PAID = "partially_paid", "Partially Paid"
    FULLY_PAID = "fully_paid", "Fully Paid"


class PaymentMethod(models.TextChoices):
    """How money moved for receipts and statements of payment."""

    BANK_TRANSFER = "bank_transfer", "Bank Transfer"
    CASH = "cash", "Cash"
    CHEQUE = "cheque", "Cheque"
    CREDIT_CARD = "credit_card", "Credit Card"
    ONLINE = "online", "Online Payment"
    OTHER = "other", "Other"


class FeeType(models.TextChoices):
    """Kinds of transaction fee charged when settling a voucher."""

    BANK_CHARGE = "bank_charge", "Bank Charge"
    WIRE_FEE = "wire_fee", "Wire Transfer Fee"
    FX_FEE = "fx_fee", "Currency Conversion Fee"
    OTHER = "other", "Other"
