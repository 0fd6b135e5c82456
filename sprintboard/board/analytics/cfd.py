# ============================================
# board/analytics/cfd.py
# ============================================
from typing import Dict, Sequence

from board.analytics.dates import daily_range, end_of_day
from board.analytics.history import (
    IssueSnapshot,
    SprintSnapshot,
    status_as_of,
    was_member_of_sprint_as_of,
)

BUCKETS = ('todo', 'in-progress', 'review', 'done')

STATUS_BUCKETS = {
    'backlog': 'todo',
    'selected': 'todo',
    'to-do': 'todo',
    'in-progress': 'in-progress',
    'in-review': 'review',
    'testing': 'review',
    'completed': 'done',
    'closed': 'done',
}


def bucket_for(status: str) -> str:
    if status in BUCKETS:
        return status
    return STATUS_BUCKETS.get(status, 'todo')


def cfd(sprint: SprintSnapshot, issues: Sequence[IssueSnapshot], tz=None) -> Dict:
    """Story points per status bucket for every day of the sprint."""
    days = []
    for day in daily_range(sprint.start_date, sprint.end_date):
        cutoff = end_of_day(day, tz)
        row = {'day': day, **{bucket: 0 for bucket in BUCKETS}}
        for issue in issues:
            if was_member_of_sprint_as_of(issue, sprint.id, cutoff):
                row[bucket_for(status_as_of(issue, cutoff))] += issue.story_points
        days.append(row)
    return {'buckets': list(BUCKETS), 'days': days}
