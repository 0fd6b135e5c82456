# ============================================
# board/analytics/sprints.py
# ============================================
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from board.analytics.dates import days_between, end_of_day, start_of_day
from board.analytics.history import (
    IssueSnapshot,
    SprintSnapshot,
    first_transition,
    sprint_scope_changes,
    was_member_of_sprint_as_of,
)

COMPLETED = 'completed'


@dataclass(frozen=True)
class AnalyticsFilter:
    """Sprint-level (dates, status) and item-level (assignee, labels, epic) narrowing."""
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    status: Tuple[str, ...] = ()
    assignee_ids: Tuple[str, ...] = ()
    labels: Tuple[str, ...] = ()
    epic_ids: Tuple[str, ...] = ()

    def matches_sprint(self, sprint: SprintSnapshot) -> bool:
        if self.from_date and sprint.start_date < self.from_date:
            return False
        if self.to_date and sprint.start_date > self.to_date:
            return False
        if self.status and sprint.status not in self.status:
            return False
        return True

    def matches_issue(self, issue: IssueSnapshot) -> bool:
        if self.assignee_ids and issue.assignee_id not in self.assignee_ids:
            return False
        if self.labels and not set(issue.labels) & set(self.labels):
            return False
        if self.epic_ids and issue.epic_id not in self.epic_ids:
            return False
        return True


def _average(total: float, count: int) -> float:
    return total / count if count else 0.0


def sprint_kpis(sprint: SprintSnapshot, issues: Sequence[IssueSnapshot], tz=None) -> Dict:
    start = start_of_day(sprint.start_date, tz)
    end = end_of_day(sprint.end_date, tz)

    committed = completed = added = removed = spillover = 0.0
    throughput = 0
    cycle_total = lead_total = 0.0
    cycle_count = lead_count = 0

    for issue in issues:
        points = issue.story_points
        was_committed = was_member_of_sprint_as_of(issue, sprint.id, start)
        if was_committed:
            committed += points

        done_at = first_transition(issue, 'status', 'done', start, end)
        if done_at is not None:
            completed += points
            throughput += 1
            started_at = first_transition(issue, 'status', 'in-progress', None, done_at)
            if started_at is not None:
                cycle_total += days_between(started_at, done_at)
                cycle_count += 1
            if issue.created_at is not None:
                lead_total += days_between(issue.created_at, done_at)
                lead_count += 1
        elif was_committed:
            spillover += points

        n_added, n_removed = sprint_scope_changes(issue, sprint.id, start, end)
        added += n_added * points
        removed += n_removed * points

    return {
        'sprint_id': sprint.id,
        'key': sprint.key,
        'name': sprint.name,
        'status': sprint.status,
        'start_date': sprint.start_date,
        'end_date': sprint.end_date,
        'committed_points': committed,
        'completed_points': completed,
        'added_scope_points': added,
        'removed_scope_points': removed,
        'spillover_points': spillover,
        'commitment_reliability': completed / committed if committed else 0.0,
        'throughput_issues': throughput,
        'cycle_time_days': _average(cycle_total, cycle_count),
        'lead_time_days': _average(lead_total, lead_count),
    }


def compute_sprint_kpis(
    sprints: Sequence[SprintSnapshot],
    issues_by_sprint: Mapping[str, Sequence[IssueSnapshot]],
    filters: Optional[AnalyticsFilter] = None,
    tz=None,
) -> Dict[str, List]:
    """KPIs for every matching sprint (start date ascending) plus the velocity
    series built from the completed ones."""
    filters = filters or AnalyticsFilter()
    selected = sorted((s for s in sprints if filters.matches_sprint(s)), key=lambda s: s.start_date)

    per_sprint = []
    velocity = []
    for sprint in selected:
        issues = [i for i in issues_by_sprint.get(sprint.id, ()) if filters.matches_issue(i)]
        kpi = sprint_kpis(sprint, issues, tz)
        per_sprint.append(kpi)
        if sprint.status == COMPLETED:
            velocity.append(kpi['completed_points'])
    return {'per_sprint': per_sprint, 'velocity': velocity}
