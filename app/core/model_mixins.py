"""
Model mixins providing reusable functionality for Django models.

Available Mixins:
    SoftDeleteMixin: Tombstone support (is_deleted, deleted_at)

Usage:
    from core.models import BaseModel
    from core.model_mixins import SoftDeleteMixin

    class Message(SoftDeleteMixin, BaseModel):
        content = models.TextField()

Note:
    - Always list mixins before BaseModel in inheritance
    - Mixins are abstract and don't create database tables
    - Tombstoned rows stay in the default manager on purpose; callers that
      want to hide them filter on ``is_deleted`` explicitly
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone


class SoftDeleteMixin(models.Model):
    """
    Soft delete support for models.

    Instead of removing records, marks them as deleted. Subclasses can
    override ``get_soft_delete_update_fields`` to add columns they clear at the
    same time (e.g. message content).

    Fields:
        is_deleted: Boolean flag indicating soft delete status
        deleted_at: Timestamp when the record was soft deleted
    """

    is_deleted = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether this record has been soft deleted",
    )
    deleted_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Timestamp when this record was soft deleted",
    )

    class Meta:
        abstract = True

    def get_soft_delete_update_fields(self) -> list[str]:
        """Columns written by soft_delete(); override to add more."""
        return ["is_deleted", "deleted_at", "updated_at"]

    def soft_delete(self) -> None:
        """
        Mark this record as deleted.

        Idempotent: an already deleted record keeps its original deleted_at.

        Example:
            message.soft_delete()
            assert message.is_deleted
        """
        if self.is_deleted:
            return
        self.is_deleted = True
        self.deleted_at = timezone.now()
        self.save(update_fields=self.get_soft_delete_update_fields())
