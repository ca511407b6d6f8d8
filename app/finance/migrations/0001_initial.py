"""
Initial migration for finance app.

Creates:
- Company, Account: Issuing entities and their accounts
- Document: Shared document header with the FSM status
- Invoice, Receipt, PaymentVoucher, StatementOfPayment: Variant details
- LineItem: Priced lines on itemized documents
- DocumentCounter: Sequencer state per (company, type, day)
- LedgerEntry: Append-only account history
"""

import uuid
from decimal import Decimal

import django.db.models.deletion
import django.utils.timezone
import django_fsm
from django.conf import settings
from django.db import migrations, models

CURRENCY_CHOICES = [("MYR", "Malaysian Ringgit"), ("JPY", "Japanese Yen")]
COUNTRY_CHOICES = [("Malaysia", "Malaysia"), ("Japan", "Japan")]
DOCUMENT_TYPE_CHOICES = [
    ("invoice", "Invoice"),
    ("receipt", "Receipt"),
    ("payment_voucher", "Payment Voucher"),
    ("statement_of_payment", "Statement of Payment"),
]
PAYMENT_METHOD_CHOICES = [
    ("bank_transfer", "Bank Transfer"),
    ("cash", "Cash"),
    ("cheque", "Cheque"),
    ("credit_card", "Credit Card"),
    ("online", "Online Payment"),
    ("other", "Other"),
]


def uuid_pk():
    return (
        "id",
        models.UUIDField(
            default=uuid.uuid4,
            editable=False,
            help_text="Unique identifier for this record",
            primary_key=True,
            serialize=False,
        ),
    )


def timestamps():
    return [
        (
            "created_at",
            models.DateTimeField(
                auto_now_add=True,
                db_index=True,
                help_text="Timestamp when this record was created",
            ),
        ),
        (
            "updated_at",
            models.DateTimeField(
                auto_now=True,
                help_text="Timestamp when this record was last modified",
            ),
        ),
    ]


def money(**kwargs):
    return models.DecimalField(decimal_places=2, max_digits=15, **kwargs)


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        # =====================================================================
        # Company / Account
        # =====================================================================
        migrations.CreateModel(
            name="Company",
            fields=[
                uuid_pk(),
                *timestamps(),
                ("name", models.CharField(max_length=255)),
                ("registration_no", models.CharField(blank=True, max_length=100)),
                ("address", models.TextField(blank=True)),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("tel", models.CharField(blank=True, max_length=50)),
                (
                    "allow_negative_balance",
                    models.BooleanField(
                        default=False,
                        help_text="Allow account balances to go negative",
                    ),
                ),
            ],
            options={
                "ordering": ["name"],
                "verbose_name_plural": "companies",
            },
        ),
        migrations.CreateModel(
            name="Account",
            fields=[
                uuid_pk(),
                *timestamps(),
                ("name", models.CharField(max_length=255)),
                (
                    "account_type",
                    models.CharField(
                        choices=[("main_bank", "Main Bank"), ("petty_cash", "Petty Cash")],
                        default="main_bank",
                        max_length=20,
                    ),
                ),
                ("currency", models.CharField(choices=CURRENCY_CHOICES, max_length=3)),
                ("country", models.CharField(choices=COUNTRY_CHOICES, max_length=20)),
                ("bank_name", models.CharField(blank=True, max_length=255)),
                ("account_number", models.CharField(blank=True, max_length=100)),
                ("custodian", models.CharField(blank=True, max_length=255)),
                ("initial_balance", money(default=Decimal("0.00"))),
                (
                    "current_balance",
                    money(
                        default=Decimal("0.00"),
                        editable=False,
                        help_text="Materialized balance maintained by the ledger",
                    ),
                ),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                (
                    "is_frozen",
                    models.BooleanField(
                        default=False,
                        help_text="Posting halted pending manual audit",
                    ),
                ),
                ("frozen_reason", models.TextField(blank=True)),
                ("notes", models.TextField(blank=True)),
                (
                    "company",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="accounts",
                        to="finance.company",
                    ),
                ),
            ],
            options={
                "ordering": ["company", "name"],
                "indexes": [
                    models.Index(
                        fields=["company", "currency", "is_active"],
                        name="finance_acc_company_5d1c2e_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=~models.Q(account_type="main_bank") | ~models.Q(bank_name=""),
                        name="account_main_bank_requires_bank_name",
                    ),
                    models.CheckConstraint(
                        condition=~models.Q(account_type="petty_cash") | ~models.Q(custodian=""),
                        name="account_petty_cash_requires_custodian",
                    ),
                ],
            },
        ),
        # =====================================================================
        # Document header
        # =====================================================================
        migrations.CreateModel(
            name="Document",
            fields=[
                uuid_pk(),
                *timestamps(),
                (
                    "is_deleted",
                    models.BooleanField(
                        db_index=True,
                        default=False,
                        help_text="Whether this record has been soft deleted",
                    ),
                ),
                (
                    "deleted_at",
                    models.DateTimeField(
                        blank=True,
                        null=True,
                        help_text="Timestamp when this record was soft deleted",
                    ),
                ),
                (
                    "document_type",
                    models.CharField(choices=DOCUMENT_TYPE_CHOICES, db_index=True, max_length=30),
                ),
                (
                    "document_number",
                    models.CharField(
                        help_text="Assigned by the sequencer when the document is first saved",
                        max_length=50,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("draft", "Draft"),
                            ("issued", "Issued"),
                            ("paid", "Paid"),
                            ("completed", "Completed"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="draft",
                        max_length=50,
                        protected=True,
                    ),
                ),
                ("currency", models.CharField(choices=CURRENCY_CHOICES, max_length=3)),
                ("country", models.CharField(choices=COUNTRY_CHOICES, max_length=20)),
                ("document_date", models.DateField(default=django.utils.timezone.localdate)),
                ("amount", money()),
                ("subtotal", money(blank=True, null=True)),
                (
                    "tax_rate",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Tax rate as a percentage",
                        max_digits=5,
                        null=True,
                    ),
                ),
                ("tax_amount", money(blank=True, null=True)),
                ("notes", models.TextField(blank=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("cancellation_reason", models.TextField(blank=True)),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Optimistic locking version, incremented on every save",
                    ),
                ),
                (
                    "company",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="documents",
                        to="finance.company",
                    ),
                ),
                (
                    "account",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="documents",
                        to="finance.account",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "updated_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-document_date", "-created_at"],
                "permissions": [("approve_paymentvoucher", "Can approve payment vouchers")],
                "indexes": [
                    models.Index(
                        fields=["company", "document_type", "status"],
                        name="finance_doc_company_8a2f41_idx",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("company", "document_number"),
                        name="unique_document_number_per_company",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(amount__gte=0),
                        name="document_amount_non_negative",
                    ),
                ],
            },
        ),
        # =====================================================================
        # Variants
        # =====================================================================
        migrations.CreateModel(
            name="Invoice",
            fields=[
                (
                    "document",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        primary_key=True,
                        related_name="invoice",
                        serialize=False,
                        to="finance.document",
                    ),
                ),
                ("customer_name", models.CharField(max_length=255)),
                ("customer_address", models.TextField(blank=True)),
                ("customer_email", models.EmailField(blank=True, max_length=254)),
                ("invoice_date", models.DateField()),
                ("due_date", models.DateField(blank=True, null=True)),
                ("payment_terms", models.CharField(blank=True, max_length=255)),
            ],
        ),
        migrations.CreateModel(
            name="Receipt",
            fields=[
                (
                    "document",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        primary_key=True,
                        related_name="receipt",
                        serialize=False,
                        to="finance.document",
                    ),
                ),
                ("payer_name", models.CharField(max_length=255)),
                ("payer_contact", models.CharField(blank=True, max_length=255)),
                ("receipt_date", models.DateField()),
                (
                    "payment_method",
                    models.CharField(
                        choices=PAYMENT_METHOD_CHOICES,
                        default="bank_transfer",
                        max_length=20,
                    ),
                ),
                ("received_by", models.CharField(blank=True, max_length=255)),
                (
                    "linked_invoice",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="receipts",
                        to="finance.invoice",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["linked_invoice"], name="finance_rec_linked__3e9b70_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentVoucher",
            fields=[
                (
                    "document",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        primary_key=True,
                        related_name="payment_voucher",
                        serialize=False,
                        to="finance.document",
                    ),
                ),
                ("payee_name", models.CharField(max_length=255)),
                ("payee_address", models.TextField(blank=True)),
                ("payee_bank_account", models.CharField(blank=True, max_length=100)),
                ("payee_bank_name", models.CharField(blank=True, max_length=255)),
                ("voucher_date", models.DateField()),
                ("payment_due_date", models.DateField(blank=True, null=True)),
                ("requested_by", models.CharField(max_length=255)),
                ("approval_date", models.DateField(blank=True, null=True)),
                (
                    "approved_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="StatementOfPayment",
            fields=[
                (
                    "document",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        primary_key=True,
                        related_name="statement_of_payment",
                        serialize=False,
                        to="finance.document",
                    ),
                ),
                ("payment_date", models.DateField()),
                (
                    "payment_method",
                    models.CharField(
                        choices=PAYMENT_METHOD_CHOICES,
                        default="bank_transfer",
                        max_length=20,
                    ),
                ),
                ("transaction_reference", models.CharField(blank=True, max_length=255)),
                ("confirmed_by", models.CharField(blank=True, max_length=255)),
                ("payee_name", models.CharField(max_length=255)),
                ("transaction_fee", money(default=Decimal("0.00"))),
                (
                    "transaction_fee_type",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("bank_charge", "Bank Charge"),
                            ("wire_fee", "Wire Transfer Fee"),
                            ("fx_fee", "Currency Conversion Fee"),
                            ("other", "Other"),
                        ],
                        max_length=20,
                    ),
                ),
                ("total_deducted", money()),
                ("voucher_snapshot", models.JSONField(blank=True, default=dict)),
                (
                    "linked_voucher",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="statement",
                        to="finance.paymentvoucher",
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(transaction_fee__gte=0),
                        name="statement_fee_non_negative",
                    ),
                ],
            },
        ),
        # =====================================================================
        # Line items / counters
        # =====================================================================
        migrations.CreateModel(
            name="LineItem",
            fields=[
                uuid_pk(),
                *timestamps(),
                ("line_number", models.PositiveIntegerField()),
                ("description", models.CharField(max_length=500)),
                (
                    "quantity",
                    models.DecimalField(decimal_places=2, default=Decimal("1"), max_digits=10),
                ),
                ("unit_price", money()),
                ("amount", money()),
                (
                    "document",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="line_items",
                        to="finance.document",
                    ),
                ),
            ],
            options={
                "ordering": ["line_number"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("document", "line_number"),
                        name="unique_line_number_per_document",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="DocumentCounter",
            fields=[
                uuid_pk(),
                *timestamps(),
                ("document_type", models.CharField(choices=DOCUMENT_TYPE_CHOICES, max_length=30)),
                ("date_key", models.CharField(help_text="YYYYMMDD", max_length=8)),
                ("counter", models.PositiveIntegerField(default=0)),
                (
                    "company",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="document_counters",
                        to="finance.company",
                    ),
                ),
            ],
            options={
                "ordering": ["-date_key", "document_type"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("company", "document_type", "date_key"),
                        name="unique_counter_per_company_type_day",
                    ),
                ],
            },
        ),
        # =====================================================================
        # Ledger
        # =====================================================================
        migrations.CreateModel(
            name="LedgerEntry",
            fields=[
                uuid_pk(),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this entry was recorded",
                    ),
                ),
                (
                    "sequence",
                    models.PositiveBigIntegerField(
                        help_text="Position of this entry in the account's history",
                    ),
                ),
                (
                    "direction",
                    models.CharField(
                        choices=[("increase", "Increase"), ("decrease", "Decrease")],
                        max_length=10,
                    ),
                ),
                ("amount", money()),
                ("balance_before", money()),
                ("balance_after", money()),
                ("is_compensating", models.BooleanField(default=False)),
                ("reason", models.TextField(blank=True)),
                ("description", models.CharField(blank=True, max_length=500)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                (
                    "created_by",
                    models.CharField(
                        blank=True,
                        help_text="Identifier of service/user that created this entry",
                        max_length=255,
                    ),
                ),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="ledger_entries",
                        to="finance.account",
                    ),
                ),
                (
                    "document",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="ledger_entries",
                        to="finance.document",
                    ),
                ),
                (
                    "reverses",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="reversal",
                        to="finance.ledgerentry",
                    ),
                ),
            ],
            options={
                "ordering": ["account", "sequence"],
                "verbose_name_plural": "ledger entries",
                "indexes": [
                    models.Index(fields=["document"], name="finance_led_documen_7c4d19_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(is_compensating=False),
                        fields=("account", "document"),
                        name="unique_posting_per_account_document",
                    ),
                    models.UniqueConstraint(
                        fields=("account", "sequence"),
                        name="unique_sequence_per_account",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(amount__gt=0),
                        name="ledger_entry_amount_positive",
                    ),
                ],
            },
        ),
    ]
