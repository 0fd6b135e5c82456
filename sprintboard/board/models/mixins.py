# ============================================
# board/models/mixins.py
# ============================================
from django.db import models


class AliveManager(models.Manager):
    """Default manager: hides soft-deleted rows from every read path."""

    def get_queryset(self):
        return super().get_queryset().filter(deleted_at__isnull=True)


class SoftDeleteModel(models.Model):
    deleted_at = models.DateTimeField(null=True, blank=True, db_index=True)

    objects = AliveManager()
    all_objects = models.Manager()

    class Meta:
        abstract = True
