"""
Tests for SoftDeleteManager and SoftDeleteQuerySet.

These tests verify that:
- SoftDeleteManager filters out soft-deleted records by default
- all_objects and with_deleted() still see them
- QuerySet operations (delete, restore, deleted, active) work in bulk
- Domain querysets built with from_queryset keep the default filtering
"""

from __future__ import annotations

from unittest.mock import patch

import pytest

from finance.models import Document
from finance.state_machines import DocumentStatus, DocumentType
from finance.tests.factories import CompanyFactory, DocumentFactory


@pytest.fixture
def documents(db) -> list[Document]:
    company = CompanyFactory()
    return [DocumentFactory(company=company) for _ in range(3)]


@pytest.mark.django_db
class TestSoftDeleteManager:
    """Tests for the default manager filtering."""

    def test_excludes_deleted(self, documents):
        documents[0].soft_delete()

        assert Document.objects.count() == 2
        assert not Document.objects.filter(pk=documents[0].pk).exists()

    def test_all_objects_includes_deleted(self, documents):
        documents[0].soft_delete()

        assert Document.all_objects.count() == 3

    def test_deleted_and_with_deleted(self, documents):
        documents[0].soft_delete()

        assert list(Document.objects.deleted().values_list("pk", flat=True)) == [documents[0].pk]
        assert Document.objects.with_deleted().count() == 3


@pytest.mark.django_db
class TestSoftDeleteQuerySet:
    """Tests for bulk queryset operations."""

    def test_queryset_delete_is_soft(self, documents):
        count, by_model = Document.objects.filter(pk__in=[d.pk for d in documents[:2]]).delete()

        assert count == 2
        assert by_model == {"finance.Document": 2}
        assert Document.objects.count() == 1
        assert Document.all_objects.filter(is_deleted=True).count() == 2

    def test_queryset_delete_calls_hook_per_instance(self, documents):
        with patch.object(Document, "on_soft_delete") as hook:
            Document.objects.all().delete()

        assert hook.call_count == 3

    def test_queryset_restore(self, documents):
        Document.objects.all().delete()

        restored = Document.objects.with_deleted().restore()

        assert restored == 3
        assert Document.objects.count() == 3

    def test_active_filter(self, documents):
        documents[1].soft_delete()

        assert Document.all_objects.count() == 3
        assert Document.objects.with_deleted().active().count() == 2


@pytest.mark.django_db
class TestDocumentQuerySet:
    """Domain filters chained on top of the soft delete manager."""

    def test_of_type_and_settled(self, db):
        company = CompanyFactory()
        DocumentFactory(company=company, document_type=DocumentType.INVOICE)
        DocumentFactory(
            company=company,
            document_type=DocumentType.RECEIPT,
            status=DocumentStatus.COMPLETED,
        )
        deleted = DocumentFactory(
            company=company,
            document_type=DocumentType.RECEIPT,
            status=DocumentStatus.COMPLETED,
        )
        deleted.soft_delete()

        receipts = Document.objects.for_company(company.id).of_type(DocumentType.RECEIPT)

        assert receipts.count() == 1
        assert receipts.settled().count() == 1
        assert Document.objects.for_company(company.id).settled().count() == 1

    def test_for_company(self, documents):
        DocumentFactory()

        assert Document.objects.for_company(documents[0].company_id).count() == 3
