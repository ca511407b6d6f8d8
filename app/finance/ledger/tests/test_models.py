"""
Tests for the LedgerEntry model.

Entries are append-only: they can be inserted but never changed or
deleted, and the database rejects duplicate postings and sequences.
"""

from decimal import Decimal

import pytest
from django.db import IntegrityError, transaction

from finance.ledger.models import LedgerEntry
from finance.state_machines import EntryDirection


def _entry(account, document, sequence=1, **kwargs):
    values = {
        "account": account,
        "document": document,
        "sequence": sequence,
        "direction": EntryDirection.INCREASE,
        "amount": Decimal("10.00"),
        "balance_before": Decimal("1000.00"),
        "balance_after": Decimal("1010.00"),
    }
    values.update(kwargs)
    return LedgerEntry(**values)


class TestImmutability:
    def test_saving_an_existing_entry_raises(self, post):
        entry = post("10.00")
        entry.amount = Decimal("99.00")

        with pytest.raises(ValueError, match="immutable"):
            entry.save()

        assert LedgerEntry.objects.get(pk=entry.pk).amount == Decimal("10.00")

    def test_delete_raises(self, post):
        entry = post("10.00")

        with pytest.raises(ValueError):
            entry.delete()

        assert LedgerEntry.objects.filter(pk=entry.pk).exists()


class TestConstraints:
    def test_one_normal_entry_per_account_document(self, account, make_document):
        document = make_document()
        _entry(account, document).save()

        with pytest.raises(IntegrityError), transaction.atomic():
            _entry(account, document, sequence=2).save()

    def test_compensating_entries_share_the_document(self, account, make_document):
        document = make_document()
        original = _entry(account, document)
        original.save()

        _entry(
            account,
            document,
            sequence=2,
            direction=EntryDirection.DECREASE,
            balance_before=Decimal("1010.00"),
            balance_after=Decimal("1000.00"),
            is_compensating=True,
            reverses=original,
        ).save()

        assert LedgerEntry.objects.filter(document=document).count() == 2

    def test_sequence_unique_per_account(self, account, make_document):
        _entry(account, make_document()).save()

        with pytest.raises(IntegrityError), transaction.atomic():
            _entry(account, make_document()).save()

    def test_amount_must_be_positive(self, account, make_document):
        with pytest.raises(IntegrityError), transaction.atomic():
            _entry(account, make_document(), amount=Decimal("0.00")).save()


class TestSignedAmount:
    @pytest.mark.parametrize(
        "direction,expected",
        [
            (EntryDirection.INCREASE, Decimal("10.00")),
            (EntryDirection.DECREASE, Decimal("-10.00")),
        ],
    )
    def test_sign_follows_direction(self, direction, expected):
        entry = LedgerEntry(direction=direction, amount=Decimal("10.00"))

        assert entry.signed_amount == expected

    def test_str(self):
        entry = LedgerEntry(
            sequence=3,
            direction=EntryDirection.DECREASE,
            amount=Decimal("5.00"),
            balance_after=Decimal("95.00"),
        )

        assert str(entry) == "#3 -5.00 -> 95.00"
