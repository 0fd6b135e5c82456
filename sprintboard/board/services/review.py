# ============================================
# board/services/review.py
# ============================================
import logging
from typing import Iterable, List, Optional

from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone

from board.exceptions import AuthorizationError, NotFound, ValidationError
from board.models import (
    ActivityLog,
    Review,
    ReviewChecklistItem,
    ReviewReviewer,
    ReviewStatus,
)
from board.models.review import OPEN_REVIEW_STATUSES
from board.services.activity import log_activity
from board.services.issue import IssueRef, IssueService

logger = logging.getLogger(__name__)


def _review_qs() -> QuerySet[Review]:
    return Review.objects.select_related('issue').prefetch_related('reviewers', 'checklist')


class ReviewService:

    @staticmethod
    def get(review_id: int) -> Review:
        review = _review_qs().filter(id=review_id).first()
        if review is None:
            raise NotFound(f"Review {review_id} not found")
        return review

    @staticmethod
    def _lock(review_id: int) -> Review:
        review = Review.objects.select_for_update().filter(id=review_id).first()
        if review is None:
            raise NotFound(f"Review {review_id} not found")
        return review

    @staticmethod
    def _ensure_open(review: Review, message: str = "Review is cancelled or expired") -> None:
        if review.is_closed:
            raise ValidationError(message)

    @staticmethod
    def _activity(review: Review, actor_id: str, action: str, **meta) -> None:
        log_activity(
            issue=review.issue, actor_id=actor_id, action=action,
            to_value=review.status, meta={'review_id': review.pk, **meta},
        )

    @staticmethod
    def list_for_issue(issue: IssueRef) -> QuerySet[Review]:
        obj = IssueService.resolve(issue)
        return _review_qs().filter(issue=obj).order_by('-created_at', '-id')

    @staticmethod
    @transaction.atomic
    def request_review(
        *,
        issue: IssueRef,
        requested_by: str,
        reviewer_ids: Iterable[str],
        required_approvals: int = 1,
        due_date=None,
        checklist: Optional[List[str]] = None,
    ) -> Review:
        obj = IssueService.resolve(issue)
        reviewers = list(dict.fromkeys(str(r) for r in reviewer_ids))
        if not reviewers:
            raise ValidationError("At least one reviewer is required")
        if required_approvals < 1:
            raise ValidationError("required_approvals must be at least 1")

        review = Review.objects.create(
            issue=obj,
            requested_by=requested_by,
            required_approvals=required_approvals,
            due_date=due_date,
        )
        ReviewReviewer.objects.bulk_create(
            [ReviewReviewer(review=review, user_id=user_id) for user_id in reviewers]
        )
        ReviewChecklistItem.objects.bulk_create([
            ReviewChecklistItem(review=review, position=i, label=label)
            for i, label in enumerate(checklist or [])
        ])

        ReviewService._activity(
            review, requested_by, ActivityLog.Action.REVIEW_REQUESTED,
            reviewers=reviewers, required_approvals=required_approvals,
        )
        logger.info("[board] review #%s requested on %s by %s", review.pk, obj.key, requested_by)
        return ReviewService.get(review.pk)

    @staticmethod
    def _set_reviewer_status(*, review_id: int, actor_id: str, status: str, comment: str, closed_message: str) -> Review:
        review = ReviewService._lock(review_id)
        ReviewService._ensure_open(review, closed_message)
        reviewer = review.reviewers.filter(user_id=actor_id).first()
        if reviewer is None:
            raise AuthorizationError("Only assigned reviewers can perform this action")

        reviewer.status = status
        reviewer.comment = comment or ''
        reviewer.acted_at = timezone.now()
        reviewer.save(update_fields=['status', 'comment', 'acted_at'])
        review.refresh_status()
        return review

    @staticmethod
    @transaction.atomic
    def approve(*, review_id: int, actor_id: str, comment: str = '') -> Review:
        review = ReviewService._set_reviewer_status(
            review_id=review_id, actor_id=actor_id,
            status=ReviewReviewer.Status.APPROVED, comment=comment,
            closed_message="Cannot approve a cancelled or expired review",
        )
        ReviewService._activity(review, actor_id, ActivityLog.Action.REVIEW_APPROVED, comment=comment)
        return ReviewService.get(review.pk)

    @staticmethod
    @transaction.atomic
    def request_changes(*, review_id: int, actor_id: str, comment: str = '') -> Review:
        review = ReviewService._set_reviewer_status(
            review_id=review_id, actor_id=actor_id,
            status=ReviewReviewer.Status.CHANGES_REQUESTED, comment=comment,
            closed_message="Cannot request changes on a cancelled or expired review",
        )
        ReviewService._activity(review, actor_id, ActivityLog.Action.REVIEW_CHANGES_REQUESTED, comment=comment)
        return ReviewService.get(review.pk)

    @staticmethod
    @transaction.atomic
    def cancel(*, review_id: int, actor_id: str) -> Review:
        review = ReviewService._lock(review_id)
        if review.requested_by != actor_id:
            raise AuthorizationError("Only the review requester can cancel a review")
        ReviewService._ensure_open(review, "Review is already cancelled or expired")

        review.status = ReviewStatus.CANCELLED
        review.save(update_fields=['status', 'updated_at'])
        ReviewService._activity(review, actor_id, ActivityLog.Action.REVIEW_CANCELLED)
        return ReviewService.get(review.pk)

    @staticmethod
    @transaction.atomic
    def toggle_checklist_item(*, review_id: int, index: int, done: bool, actor_id: str) -> Review:
        review = ReviewService._lock(review_id)
        ReviewService._ensure_open(review)
        items = list(review.checklist.order_by('position'))
        if index < 0 or index >= len(items):
            raise ValidationError("Invalid checklist item index")

        item = items[index]
        item.done = done
        item.done_by = actor_id if done else None
        item.done_at = timezone.now() if done else None
        item.save(update_fields=['done', 'done_by', 'done_at'])

        ReviewService._activity(
            review, actor_id, ActivityLog.Action.REVIEW_CHECKLIST_TOGGLED,
            item_index=index, item_label=item.label, done=done,
        )
        return ReviewService.get(review.pk)

    @staticmethod
    @transaction.atomic
    def add_reviewer(*, review_id: int, user_id: str, actor_id: str) -> Review:
        review = ReviewService._lock(review_id)
        ReviewService._ensure_open(review)
        if review.reviewers.filter(user_id=user_id).exists():
            raise ValidationError("User is already a reviewer")

        ReviewReviewer.objects.create(review=review, user_id=user_id)
        review.refresh_status()
        ReviewService._activity(review, actor_id, ActivityLog.Action.REVIEW_REVIEWER_ADDED, added_user_id=user_id)
        return ReviewService.get(review.pk)

    @staticmethod
    @transaction.atomic
    def remove_reviewer(*, review_id: int, user_id: str, actor_id: str) -> Review:
        review = ReviewService._lock(review_id)
        ReviewService._ensure_open(review)
        deleted, _ = review.reviewers.filter(user_id=user_id).delete()
        if not deleted:
            raise ValidationError("User is not a reviewer")

        review.refresh_status()
        ReviewService._activity(review, actor_id, ActivityLog.Action.REVIEW_REVIEWER_REMOVED, removed_user_id=user_id)
        return ReviewService.get(review.pk)

    @staticmethod
    @transaction.atomic
    def expire_overdue(*, now=None, actor_id: Optional[str] = None) -> int:
        """Mark open reviews whose due date has passed as expired."""
        now = now or timezone.now()
        overdue = list(
            Review.objects.select_for_update()
            .filter(
                status__in=OPEN_REVIEW_STATUSES,
                due_date__isnull=False,
                due_date__lt=now,
            )
        )
        for review in overdue:
            review.status = ReviewStatus.EXPIRED
            review.save(update_fields=['status', 'updated_at'])
            ReviewService._activity(review, actor_id, ActivityLog.Action.REVIEW_EXPIRED)
        if overdue:
            logger.info("[board] expired %d overdue review(s)", len(overdue))
        return len(overdue)
