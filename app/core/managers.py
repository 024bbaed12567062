"""
Custom QuerySet and Manager classes for soft-deleted models.

Manager vs QuerySet:
    - QuerySet: Defines chainable methods (filter, exclude, etc.)
    - Manager: Attaches QuerySet to model, defines table-level operations

Usage:
    from core.managers import SoftDeleteManager

    class Message(SoftDeleteMixin, BaseModel):
        objects = SoftDeleteManager()  # Default: excludes deleted
        all_objects = models.Manager()  # Includes deleted

    # Queries automatically exclude deleted
    Message.objects.filter(conversation=conversation)

    # Include deleted when needed
    Message.all_objects.filter(conversation=conversation)

    # Soft delete; the count tells whether anything was still live
    deleted, _ = Message.objects.filter(pk=message_id).delete()

Related:
    - core.model_mixins.SoftDeleteMixin: Model mixin for soft delete fields
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone


class SoftDeleteQuerySet(models.QuerySet):
    """
    QuerySet whose delete() marks rows deleted instead of removing them.

    Note:
        The default filtering of deleted records happens in SoftDeleteManager,
        not in this QuerySet.
    """

    def delete(self) -> tuple[int, dict[str, int]]:
        """
        Soft delete all objects in queryset.

        Records that are already deleted keep their original deleted_at.
        The update is a single conditional statement, so of two concurrent
        deletes of the same row only one counts it.

        Returns:
            Tuple of (count, {model_name: count}) matching Django's delete()
        """
        now = timezone.now()
        count = self.filter(is_deleted=False).update(
            is_deleted=True, deleted_at=now, updated_at=now
        )
        return count, {self.model._meta.label: count}


class SoftDeleteManager(models.Manager):
    """
    Manager that filters out soft-deleted records by default.

    Use as the default manager on models with SoftDeleteMixin.
    Always pair with a standard Manager for accessing deleted records.
    """

    def get_queryset(self) -> SoftDeleteQuerySet:
        """Return queryset excluding soft-deleted records."""
        return SoftDeleteQuerySet(self.model, using=self._db).filter(is_deleted=False)
