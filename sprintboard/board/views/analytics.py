# ============================================
# board/views/analytics.py
# ============================================
from drf_spectacular.utils import extend_schema
from rest_framework.response import Response
from rest_framework.views import APIView

from board.analytics.sprints import AnalyticsFilter
from board.selectors.analytics import AnalyticsSelector
from board.serializers.analytics import (
    AnalyticsFilterSerializer,
    BurndownSerializer,
    CFDSerializer,
    SprintAnalyticsSerializer,
    VelocitySeriesSerializer,
)
from board.views.utils import path_int, path_str, q_date, q_str, responses_ok

PROJECT_KEY = path_str("project_key", "Project key")
SPRINT_ID = path_int("sprint_id", "Sprint id")


class SprintBurndownAPIView(APIView):
    """GET: Ideal vs. actual remaining points per sprint day"""

    @extend_schema(tags=["Analytics"], parameters=[PROJECT_KEY, SPRINT_ID], responses=responses_ok(BurndownSerializer))
    def get(self, request, project_key, sprint_id):
        data = AnalyticsSelector.burndown_for_sprint(project_key, sprint_id)
        return Response(BurndownSerializer(data).data)


class SprintCFDAPIView(APIView):
    """GET: Points per status bucket per sprint day"""

    @extend_schema(tags=["Analytics"], parameters=[PROJECT_KEY, SPRINT_ID], responses=responses_ok(CFDSerializer))
    def get(self, request, project_key, sprint_id):
        data = AnalyticsSelector.cfd_for_sprint(project_key, sprint_id)
        return Response(CFDSerializer(data).data)


class SprintAnalyticsAPIView(APIView):
    """GET: Per-sprint KPIs, velocity statistics and next-sprint forecast"""

    @extend_schema(
        tags=["Analytics"],
        parameters=[
            PROJECT_KEY,
            q_date("from", "Sprints starting on or after"),
            q_date("to", "Sprints starting on or before"),
            q_str("status", "Sprint statuses, comma separated"),
            q_str("assignee_ids", "Assignee ids, comma separated"),
            q_str("labels", "Labels, comma separated"),
            q_str("epic_ids", "Epic ids, comma separated"),
        ],
        responses=responses_ok(SprintAnalyticsSerializer),
    )
    def get(self, request, project_key):
        params = AnalyticsFilterSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        filters = AnalyticsFilter(**params.validated_data)

        data = AnalyticsSelector.sprint_analytics(project_key, filters)
        return Response(SprintAnalyticsSerializer(data).data)


class SprintVelocityAPIView(APIView):
    """GET: Completed points of every completed sprint, oldest first"""

    @extend_schema(tags=["Analytics"], parameters=[PROJECT_KEY], responses=responses_ok(VelocitySeriesSerializer))
    def get(self, request, project_key):
        data = AnalyticsSelector.velocity_for_project(project_key)
        return Response(VelocitySeriesSerializer(data).data)
