# ============================================
# board/models/history.py
# ============================================
from django.db import models
from django.utils import timezone


class ChangeLogEntry(models.Model):
    """One field transition of an issue. Rows are append-only."""

    CREATED = 'created'
    DELETED = 'deleted'
    STATUS = 'status'
    SPRINT = 'sprint'
    RANK = 'rank'
    EPIC = 'epic'
    PARENT = 'parent'
    RESOLUTION = 'resolution'
    LINK = 'link'

    issue = models.ForeignKey(
        'Issue',
        on_delete=models.CASCADE,
        related_name='changelog'
    )
    actor_id = models.CharField(max_length=64, db_index=True)
    field = models.CharField(max_length=50)
    old_value = models.TextField(blank=True)
    new_value = models.TextField(blank=True)
    at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        db_table = 'issue_changelog'
        ordering = ['at', 'id']
        indexes = [
            models.Index(fields=['issue', 'at']),
            models.Index(fields=['field', 'new_value']),
        ]

    def __str__(self):
        return f"{self.issue_id} - {self.field}: {self.old_value!r} -> {self.new_value!r}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Changelog entries are append-only")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Changelog entries are append-only")
