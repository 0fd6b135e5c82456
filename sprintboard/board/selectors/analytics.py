# ============================================
# board/selectors/analytics.py
# ============================================
"""
Loaders turning ORM rows into analytics snapshots, plus the per-endpoint
entry points. Read-only, no locks.
"""
from typing import Dict, List

from django.db.models import Q

from board.analytics.burndown import burndown
from board.analytics.cfd import cfd
from board.analytics.history import ChangeEntry, IssueSnapshot, SprintSnapshot
from board.analytics.sprints import AnalyticsFilter, compute_sprint_kpis
from board.analytics.velocity import forecast_next_sprint, to_velocity_stats, velocity_series
from board.models import ChangeLogEntry, Issue, Sprint
from board.selectors.project import ProjectSelector
from board.utils.conf import board_setting


def _id(value):
    return str(value) if value is not None else None


def issue_snapshot(issue: Issue) -> IssueSnapshot:
    return IssueSnapshot(
        id=str(issue.pk),
        key=issue.key,
        status=issue.status,
        story_points=float(issue.story_points or 0),
        sprint_id=_id(issue.sprint_id),
        created_at=issue.created_at,
        assignee_id=issue.assignee_id,
        labels=tuple(issue.labels or ()),
        epic_id=_id(issue.epic_id),
        changelog=tuple(
            ChangeEntry(e.field, e.old_value, e.new_value, e.at)
            for e in issue.changelog.all()
        ),
    )


def sprint_snapshot(sprint: Sprint) -> SprintSnapshot:
    return SprintSnapshot(
        id=str(sprint.pk),
        key=sprint.display_key,
        name=sprint.name,
        status=sprint.status,
        start_date=sprint.start_date,
        end_date=sprint.end_date,
    )


def issues_ever_in_sprint(sprint: Sprint) -> List[IssueSnapshot]:
    """Current members plus every issue whose changelog ever put it in the sprint."""
    queryset = (
        Issue.objects.filter(project_id=sprint.project_id)
        .filter(
            Q(sprint=sprint) |
            Q(changelog__field=ChangeLogEntry.SPRINT, changelog__new_value=str(sprint.pk))
        )
        .distinct()
        .prefetch_related('changelog')
    )
    return [issue_snapshot(issue) for issue in queryset]


class AnalyticsSelector:

    @staticmethod
    def burndown_for_sprint(project_key: str, sprint_id: int) -> Dict:
        project = ProjectSelector.get_project_by_key(project_key)
        sprint = ProjectSelector.get_sprint(project, sprint_id)
        return burndown(sprint_snapshot(sprint), issues_ever_in_sprint(sprint))

    @staticmethod
    def cfd_for_sprint(project_key: str, sprint_id: int) -> Dict:
        project = ProjectSelector.get_project_by_key(project_key)
        sprint = ProjectSelector.get_sprint(project, sprint_id)
        return cfd(sprint_snapshot(sprint), issues_ever_in_sprint(sprint))

    @staticmethod
    def sprint_analytics(project_key: str, filters: AnalyticsFilter = None) -> Dict:
        """Per-sprint KPIs, velocity stats and the next-sprint forecast."""
        filters = filters or AnalyticsFilter()
        project = ProjectSelector.get_project_by_key(project_key)
        sprints = [
            s for s in Sprint.objects.filter(project=project).order_by('start_date', 'id')
            if filters.matches_sprint(sprint_snapshot(s))
        ]
        snapshots = [sprint_snapshot(s) for s in sprints]
        issues_by_sprint = {str(s.pk): issues_ever_in_sprint(s) for s in sprints}

        result = compute_sprint_kpis(snapshots, issues_by_sprint, filters)
        velocity = result['velocity']
        return {
            'per_sprint': result['per_sprint'],
            'velocity': to_velocity_stats(velocity),
            'forecast': forecast_next_sprint(velocity, board_setting('FORECAST_WINDOW')),
        }

    @staticmethod
    def velocity_for_project(project_key: str) -> Dict:
        project = ProjectSelector.get_project_by_key(project_key)
        sprints = Sprint.objects.filter(
            project=project, status=Sprint.SprintStatus.COMPLETED
        ).order_by('start_date', 'id')
        snapshots = [sprint_snapshot(s) for s in sprints]
        issues_by_sprint = {str(s.pk): issues_ever_in_sprint(s) for s in sprints}
        result = compute_sprint_kpis(snapshots, issues_by_sprint)
        return {'series': velocity_series(result['per_sprint'])}
