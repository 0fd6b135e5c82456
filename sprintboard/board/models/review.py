# ============================================
# board/models/review.py
# ============================================
from typing import Iterable

from django.core.validators import MinValueValidator
from django.db import models

from .mixins import SoftDeleteModel


class ReviewStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    APPROVED = 'approved', 'Approved'
    CHANGES_REQUESTED = 'changes_requested', 'Changes requested'
    CANCELLED = 'cancelled', 'Cancelled'
    EXPIRED = 'expired', 'Expired'


TERMINAL_REVIEW_STATUSES = frozenset({ReviewStatus.CANCELLED, ReviewStatus.EXPIRED})
OPEN_REVIEW_STATUSES = (ReviewStatus.PENDING, ReviewStatus.CHANGES_REQUESTED)


def compute_overall_status(reviewer_statuses: Iterable[str], required_approvals: int) -> str:
    """Overall review status as a function of the reviewers' own statuses."""
    statuses = list(reviewer_statuses)
    if ReviewStatus.CHANGES_REQUESTED in statuses:
        return ReviewStatus.CHANGES_REQUESTED
    approvals = sum(1 for s in statuses if s == ReviewStatus.APPROVED)
    if approvals >= required_approvals:
        return ReviewStatus.APPROVED
    return ReviewStatus.PENDING


class Review(SoftDeleteModel):
    issue = models.ForeignKey(
        'Issue',
        on_delete=models.CASCADE,
        related_name='reviews'
    )
    requested_by = models.CharField(max_length=64, db_index=True)
    required_approvals = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)]
    )
    due_date = models.DateTimeField(null=True, blank=True)
    status = models.CharField(
        max_length=20,
        choices=ReviewStatus.choices,
        default=ReviewStatus.PENDING,
        db_index=True
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'reviews'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['issue', 'status']),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(required_approvals__gte=1),
                name='review_required_approvals_min_1',
            ),
        ]

    def __str__(self):
        return f"Review #{self.pk} on issue#{self.issue_id} ({self.status})"

    @property
    def is_closed(self) -> bool:
        return self.status in TERMINAL_REVIEW_STATUSES

    def compute_status(self) -> str:
        return compute_overall_status(
            self.reviewers.values_list('status', flat=True),
            self.required_approvals,
        )

    def refresh_status(self) -> None:
        """Re-derive the overall status unless the review is already closed."""
        if self.is_closed:
            return
        self.status = self.compute_status()
        self.save(update_fields=['status', 'updated_at'])


class ReviewReviewer(models.Model):
    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        APPROVED = 'approved', 'Approved'
        CHANGES_REQUESTED = 'changes_requested', 'Changes requested'

    review = models.ForeignKey(
        'Review',
        on_delete=models.CASCADE,
        related_name='reviewers'
    )
    user_id = models.CharField(max_length=64)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING
    )
    comment = models.TextField(blank=True)
    acted_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'review_reviewers'
        ordering = ['id']
        constraints = [
            models.UniqueConstraint(fields=['review', 'user_id'], name='uniq_reviewer_per_review'),
        ]

    def __str__(self):
        return f"{self.user_id} ({self.status})"


class ReviewChecklistItem(models.Model):
    review = models.ForeignKey(
        'Review',
        on_delete=models.CASCADE,
        related_name='checklist'
    )
    position = models.PositiveIntegerField()
    label = models.CharField(max_length=255)
    done = models.BooleanField(default=False)
    done_by = models.CharField(max_length=64, null=True, blank=True)
    done_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'review_checklist_items'
        ordering = ['position']
        constraints = [
            models.UniqueConstraint(fields=['review', 'position'], name='uniq_checklist_position'),
        ]

    def __str__(self):
        return f"[{'x' if self.done else ' '}] {self.label}"
