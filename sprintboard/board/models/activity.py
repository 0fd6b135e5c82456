# ============================================
# board/models/activity.py
# ============================================
from django.db import models
from django.utils import timezone


class ActivityLog(models.Model):
    class Action(models.TextChoices):
        CREATED = 'created', 'Created'
        UPDATED = 'updated', 'Updated'
        MOVED = 'moved', 'Moved'
        STATUS_CHANGED = 'status-changed', 'Status changed'
        DELETED = 'deleted', 'Deleted'
        REVIEW_REQUESTED = 'review:requested', 'Review requested'
        REVIEW_APPROVED = 'review:approved', 'Review approved'
        REVIEW_CHANGES_REQUESTED = 'review:changes_requested', 'Review changes requested'
        REVIEW_CANCELLED = 'review:cancelled', 'Review cancelled'
        REVIEW_EXPIRED = 'review:expired', 'Review expired'
        REVIEW_REVIEWER_ADDED = 'review:reviewer_added', 'Reviewer added'
        REVIEW_REVIEWER_REMOVED = 'review:reviewer_removed', 'Reviewer removed'
        REVIEW_CHECKLIST_TOGGLED = 'review:checklist_toggled', 'Checklist toggled'

    issue = models.ForeignKey(
        'Issue',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='activities'
    )
    actor_id = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    action = models.CharField(max_length=64, choices=Action.choices)
    from_value = models.CharField(max_length=255, blank=True)
    to_value = models.CharField(max_length=255, blank=True)
    meta = models.JSONField(default=dict, blank=True)
    at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'activity_log'
        ordering = ['-at']
        indexes = [
            models.Index(fields=['issue', '-at']),
            models.Index(fields=['actor_id', '-at']),
            models.Index(fields=['action', '-at']),
        ]

    def __str__(self):
        return f"{self.action} issue#{self.issue_id} by {self.actor_id}"
