# ============================================
# board/views/issue.py
# ============================================
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response
from rest_framework.views import APIView

from board.models import Issue
from board.selectors.issue import IssueSelector
from board.selectors.project import ProjectSelector
from board.serializers.issue import (
    ActivityLogSerializer,
    ChangeLogEntrySerializer,
    IssueCreateSerializer,
    IssueEpicSerializer,
    IssueLinkSerializer,
    IssueListOutputSerializer,
    IssueMoveSerializer,
    IssueOutputSerializer,
    IssueParentSerializer,
    IssueSprintSerializer,
    IssueTransitionSerializer,
    IssueUpdateSerializer,
)
from board.services.issue import IssueService
from board.views.utils import (
    CONFLICT,
    ISSUE_REF,
    actor_id,
    path_str,
    q_int,
    q_str,
    responses_ok,
    std_errors,
)


class IssuePagination(PageNumberPagination):
    page_size = 50
    page_size_query_param = 'page_size'
    max_page_size = 200


def _issue_response(issue: Issue, code: int = status.HTTP_200_OK) -> Response:
    enriched = IssueSelector.enrich_issues_with_users([issue])[0]
    return Response(IssueOutputSerializer(enriched).data, status=code)


class IssueListCreateAPIView(APIView):
    """
    GET: Issues in board order (status column, then rank)
    POST: Create an issue at the bottom of the backlog
    """

    @extend_schema(
        tags=["Issues"],
        parameters=[
            q_str("project", "Project key"),
            q_str("status", "Column: backlog / todo / in-progress / done"),
            q_str("assignee_id", "Assignee id"),
            q_int("sprint_id", "Sprint id"),
            q_str("issue_type", "task / bug / story / epic / subtask"),
            q_str("search", "Matches title, description or key"),
        ],
        responses=responses_ok(IssueListOutputSerializer, many=True),
    )
    def get(self, request):
        params = request.query_params
        project_key = params.get('project')
        issues = IssueSelector.get_issues_list(
            project_id=ProjectSelector.get_project_by_key(project_key).pk if project_key else None,
            status=params.get('status'),
            assignee_id=params.get('assignee_id'),
            sprint_id=params.get('sprint_id'),
            issue_type=params.get('issue_type'),
            search=params.get('search'),
        )

        paginator = IssuePagination()
        page = paginator.paginate_queryset(issues, request)
        serializer = IssueListOutputSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    @extend_schema(
        tags=["Issues"],
        request=IssueCreateSerializer,
        responses=responses_ok(IssueOutputSerializer, code=201, extra=CONFLICT),
    )
    def post(self, request):
        serializer = IssueCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)

        project = ProjectSelector.get_project_by_key(data.pop('project'))
        issue = IssueService.create_issue(
            project_id=project.pk,
            reporter_id=actor_id(request),
            **data
        )
        return _issue_response(issue, status.HTTP_201_CREATED)


class IssueDetailAPIView(APIView):
    """
    GET: Retrieve issue details
    PATCH: Update fields (status and sprint changes are logged as transitions)
    DELETE: Soft delete
    """

    @extend_schema(tags=["Issues"], parameters=[ISSUE_REF], responses=responses_ok(IssueOutputSerializer))
    def get(self, request, ref):
        return _issue_response(IssueService.resolve(ref))

    @extend_schema(
        tags=["Issues"],
        parameters=[ISSUE_REF],
        request=IssueUpdateSerializer,
        responses=responses_ok(IssueOutputSerializer, extra=CONFLICT),
    )
    def patch(self, request, ref):
        serializer = IssueUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        issue = IssueService.update_issue(
            issue=ref,
            actor_id=actor_id(request),
            **serializer.validated_data
        )
        return _issue_response(issue)

    @extend_schema(
        tags=["Issues"],
        parameters=[ISSUE_REF],
        responses={204: OpenApiResponse(description="Deleted"), **std_errors()},
    )
    def delete(self, request, ref):
        IssueService.delete_issue(issue=ref, actor_id=actor_id(request))
        return Response(status=status.HTTP_204_NO_CONTENT)


class IssueMoveAPIView(APIView):
    """POST: Move to a column and/or position (after / before a neighbour)"""

    @extend_schema(
        tags=["Issues"],
        parameters=[ISSUE_REF],
        request=IssueMoveSerializer,
        responses=responses_ok(IssueOutputSerializer, extra=CONFLICT),
    )
    def post(self, request, ref):
        serializer = IssueMoveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        issue = IssueService.move_issue(
            issue=ref,
            status=data['status'],
            after=data.get('after'),
            before=data.get('before'),
            actor_id=actor_id(request),
        )
        return _issue_response(issue)


class IssueTransitionAPIView(APIView):
    """POST: Status-only transition, gated by open reviews when entering done"""

    @extend_schema(
        tags=["Issues"],
        parameters=[ISSUE_REF],
        request=IssueTransitionSerializer,
        responses=responses_ok(IssueOutputSerializer, extra=CONFLICT),
    )
    def post(self, request, ref):
        serializer = IssueTransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        issue = IssueService.transition_status(
            issue=ref,
            to_status=serializer.validated_data['status'],
            actor_id=actor_id(request),
        )
        return _issue_response(issue)


class IssueEpicAPIView(APIView):

    @extend_schema(
        tags=["Issues"],
        parameters=[ISSUE_REF],
        request=IssueEpicSerializer,
        responses=responses_ok(IssueOutputSerializer),
    )
    def put(self, request, ref):
        serializer = IssueEpicSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        issue = IssueService.set_epic(
            issue=ref, epic=serializer.validated_data['epic'], actor_id=actor_id(request)
        )
        return _issue_response(issue)


class IssueParentAPIView(APIView):

    @extend_schema(
        tags=["Issues"],
        parameters=[ISSUE_REF],
        request=IssueParentSerializer,
        responses=responses_ok(IssueOutputSerializer),
    )
    def put(self, request, ref):
        serializer = IssueParentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        issue = IssueService.set_parent(
            issue=ref, parent=serializer.validated_data['parent'], actor_id=actor_id(request)
        )
        return _issue_response(issue)


class IssueSprintAPIView(APIView):

    @extend_schema(
        tags=["Issues"],
        parameters=[ISSUE_REF],
        request=IssueSprintSerializer,
        responses=responses_ok(IssueOutputSerializer),
    )
    def put(self, request, ref):
        serializer = IssueSprintSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        issue = IssueService.assign_sprint(
            issue=ref, sprint_id=serializer.validated_data['sprint_id'], actor_id=actor_id(request)
        )
        return _issue_response(issue)


class IssueLinkCreateAPIView(APIView):

    @extend_schema(
        tags=["Issues"],
        parameters=[ISSUE_REF],
        request=IssueLinkSerializer,
        responses=responses_ok(IssueOutputSerializer, code=201),
    )
    def post(self, request, ref):
        serializer = IssueLinkSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        issue = IssueService.add_linked_issue(
            issue=ref, other=serializer.validated_data['other'], actor_id=actor_id(request)
        )
        return _issue_response(issue, status.HTTP_201_CREATED)


class IssueLinkDeleteAPIView(APIView):

    @extend_schema(
        tags=["Issues"],
        parameters=[ISSUE_REF, path_str("other", "Linked issue key or id")],
        responses={204: OpenApiResponse(description="Unlinked"), **std_errors()},
    )
    def delete(self, request, ref, other):
        IssueService.remove_linked_issue(issue=ref, other=other, actor_id=actor_id(request))
        return Response(status=status.HTTP_204_NO_CONTENT)


class IssueChangeLogAPIView(APIView):
    """GET: Field transitions, oldest first"""

    @extend_schema(tags=["Issues"], parameters=[ISSUE_REF], responses=responses_ok(ChangeLogEntrySerializer, many=True))
    def get(self, request, ref):
        issue = IssueService.resolve(ref)
        entries = IssueSelector.get_changelog(issue)
        return Response(ChangeLogEntrySerializer(entries, many=True).data)


class IssueActivityAPIView(APIView):
    """GET: Activity feed, newest first"""

    @extend_schema(
        tags=["Issues"],
        parameters=[ISSUE_REF, q_str("action", "Only this action, e.g. moved")],
        responses=responses_ok(ActivityLogSerializer, many=True),
    )
    def get(self, request, ref):
        issue = IssueService.resolve(ref)
        activities = IssueSelector.get_activities(issue, action=request.query_params.get('action'))
        return Response(ActivityLogSerializer(activities, many=True).data)
