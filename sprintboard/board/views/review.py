# ============================================
# board/views/review.py
# ============================================
from typing import Iterable

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from board.clients.user_client import UserServiceClient
from board.models import Review
from board.serializers.review import (
    ChecklistToggleSerializer,
    ReviewActionSerializer,
    ReviewCreateSerializer,
    ReviewerAddSerializer,
    ReviewOutputSerializer,
)
from board.services.review import ReviewService
from board.views.utils import ISSUE_REF, REVIEW_ID, actor_id, path_str, responses_ok


def _serialize(reviews: Iterable[Review], many: bool = False):
    items = list(reviews) if many else [reviews]
    user_ids = {r.user_id for review in items for r in review.reviewers.all()}
    users = UserServiceClient.get_users_by_ids(list(user_ids))
    return ReviewOutputSerializer(items if many else reviews, many=many, context={'users': users}).data


class IssueReviewListCreateAPIView(APIView):
    """
    GET: Reviews of an issue, newest first
    POST: Request a review
    """

    @extend_schema(tags=["Reviews"], parameters=[ISSUE_REF], responses=responses_ok(ReviewOutputSerializer, many=True))
    def get(self, request, ref):
        reviews = ReviewService.list_for_issue(ref)
        return Response(_serialize(reviews, many=True))

    @extend_schema(
        tags=["Reviews"],
        parameters=[ISSUE_REF],
        request=ReviewCreateSerializer,
        responses=responses_ok(ReviewOutputSerializer, code=201),
    )
    def post(self, request, ref):
        serializer = ReviewCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        review = ReviewService.request_review(
            issue=ref,
            requested_by=actor_id(request),
            reviewer_ids=data['reviewers'],
            required_approvals=data['required_approvals'],
            due_date=data.get('due_date'),
            checklist=data.get('checklist'),
        )
        return Response(_serialize(review), status=status.HTTP_201_CREATED)


class ReviewApproveAPIView(APIView):

    @extend_schema(
        tags=["Reviews"],
        parameters=[REVIEW_ID],
        request=ReviewActionSerializer,
        responses=responses_ok(ReviewOutputSerializer),
    )
    def post(self, request, review_id):
        serializer = ReviewActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        review = ReviewService.approve(
            review_id=review_id,
            actor_id=actor_id(request),
            comment=serializer.validated_data['comment'],
        )
        return Response(_serialize(review))


class ReviewRequestChangesAPIView(APIView):

    @extend_schema(
        tags=["Reviews"],
        parameters=[REVIEW_ID],
        request=ReviewActionSerializer,
        responses=responses_ok(ReviewOutputSerializer),
    )
    def post(self, request, review_id):
        serializer = ReviewActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        review = ReviewService.request_changes(
            review_id=review_id,
            actor_id=actor_id(request),
            comment=serializer.validated_data['comment'],
        )
        return Response(_serialize(review))


class ReviewCancelAPIView(APIView):

    @extend_schema(tags=["Reviews"], parameters=[REVIEW_ID], request=None, responses=responses_ok(ReviewOutputSerializer))
    def post(self, request, review_id):
        review = ReviewService.cancel(review_id=review_id, actor_id=actor_id(request))
        return Response(_serialize(review))


class ReviewChecklistAPIView(APIView):

    @extend_schema(
        tags=["Reviews"],
        parameters=[REVIEW_ID],
        request=ChecklistToggleSerializer,
        responses=responses_ok(ReviewOutputSerializer),
    )
    def post(self, request, review_id):
        serializer = ChecklistToggleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        review = ReviewService.toggle_checklist_item(
            review_id=review_id,
            index=serializer.validated_data['index'],
            done=serializer.validated_data['done'],
            actor_id=actor_id(request),
        )
        return Response(_serialize(review))


class ReviewReviewerAddAPIView(APIView):

    @extend_schema(
        tags=["Reviews"],
        parameters=[REVIEW_ID],
        request=ReviewerAddSerializer,
        responses=responses_ok(ReviewOutputSerializer, code=201),
    )
    def post(self, request, review_id):
        serializer = ReviewerAddSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        review = ReviewService.add_reviewer(
            review_id=review_id,
            user_id=serializer.validated_data['user_id'],
            actor_id=actor_id(request),
        )
        return Response(_serialize(review), status=status.HTTP_201_CREATED)


class ReviewReviewerRemoveAPIView(APIView):

    @extend_schema(
        tags=["Reviews"],
        parameters=[REVIEW_ID, path_str("user_id", "Reviewer to remove")],
        responses=responses_ok(ReviewOutputSerializer),
    )
    def delete(self, request, review_id, user_id):
        review = ReviewService.remove_reviewer(
            review_id=review_id, user_id=user_id, actor_id=actor_id(request)
        )
        return Response(_serialize(review))
