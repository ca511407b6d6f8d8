"""
Custom QuerySet and Manager classes for common patterns.

This module provides the soft delete manager pattern used by documents:
financial records are never removed from the database, only hidden.

Manager vs QuerySet:
    - QuerySet: Defines chainable methods (filter, exclude, etc.)
    - Manager: Attaches QuerySet to model, defines table-level operations

Usage:
    from core.managers import SoftDeleteManager

    class Document(SoftDeleteMixin, BaseModel):
        objects = SoftDeleteManager()  # Default: excludes deleted
        all_objects = models.Manager()  # Includes deleted

    Document.objects.all()        # Only live documents
    Document.objects.deleted()    # Only soft-deleted documents
    Document.all_objects.all()    # Everything, for audits and admin

    # Domain querysets extend SoftDeleteQuerySet and attach via from_queryset
    DocumentManager = SoftDeleteManager.from_queryset(DocumentQuerySet)
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone


class SoftDeleteQuerySet(models.QuerySet):
    """
    QuerySet that provides soft delete operations.

    Methods:
        delete(): Soft delete (marks is_deleted=True)
        hard_delete(): Permanent delete
        restore(): Restore soft-deleted records
        deleted(): Filter to only deleted records
        active(): Filter to only active records

    Note:
        The default filtering of deleted records happens in SoftDeleteManager,
        not in this QuerySet. This allows all_objects to use the same QuerySet
        without filtering.
    """

    def delete(self) -> tuple[int, dict[str, int]]:
        """
        Soft delete all objects in queryset.

        Calls the on_soft_delete() hook on each instance before marking it,
        so models can refuse or record the deletion.

        Returns:
            Tuple of (count, {model_name: count}) matching Django's delete()
        """
        instances = list(self.filter(is_deleted=False))
        for instance in instances:
            if hasattr(instance, "on_soft_delete"):
                instance.on_soft_delete()

        count = self.filter(is_deleted=False).update(
            is_deleted=True, deleted_at=timezone.now()
        )
        return count, {self.model._meta.label: count}

    def hard_delete(self) -> tuple[int, dict[str, int]]:
        """
        Permanently delete all objects in queryset.

        Warning:
            Protected foreign keys (ledger entries) still block this.
        """
        return super().delete()

    def restore(self) -> int:
        """
        Restore all soft-deleted objects in queryset.

        Returns:
            Number of restored records
        """
        instances = list(self.filter(is_deleted=True))
        for instance in instances:
            if hasattr(instance, "on_restore"):
                instance.on_restore()

        return self.filter(is_deleted=True).update(is_deleted=False, deleted_at=None)

    def deleted(self) -> SoftDeleteQuerySet:
        """Filter to only soft-deleted records."""
        return self.filter(is_deleted=True)

    def active(self) -> SoftDeleteQuerySet:
        """Filter to only active (non-deleted) records."""
        return self.filter(is_deleted=False)


class SoftDeleteManager(models.Manager):
    """
    Manager that filters out soft-deleted records by default.

    Use as the default manager on models with SoftDeleteMixin.
    Always pair with a standard Manager for accessing deleted records.
    """

    _queryset_class = SoftDeleteQuerySet

    def get_queryset(self) -> SoftDeleteQuerySet:
        """Return queryset excluding soft-deleted records."""
        return super().get_queryset().filter(is_deleted=False)

    def deleted(self) -> SoftDeleteQuerySet:
        """Shortcut to get only deleted records."""
        return self._queryset_class(self.model, using=self._db).filter(is_deleted=True)

    def with_deleted(self) -> SoftDeleteQuerySet:
        """Get queryset including deleted records."""
        return self._queryset_class(self.model, using=self._db)
