# ============================================
# board/analytics/burndown.py
# ============================================
import math
from typing import Dict, List, Sequence

from board.analytics.dates import daily_range, end_of_day, start_of_day
from board.analytics.history import (
    IssueSnapshot,
    SprintSnapshot,
    first_transition,
    sprint_scope_changes,
    was_member_of_sprint_as_of,
)

DONE = 'done'


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def committed_points(sprint: SprintSnapshot, issues: Sequence[IssueSnapshot], tz=None) -> float:
    start = start_of_day(sprint.start_date, tz)
    return sum(i.story_points for i in issues if was_member_of_sprint_as_of(i, sprint.id, start))


def sprint_summary(sprint: SprintSnapshot) -> Dict:
    return {
        'id': sprint.id,
        'key': sprint.key,
        'name': sprint.name,
        'start_date': sprint.start_date,
        'end_date': sprint.end_date,
    }


def burndown(sprint: SprintSnapshot, issues: Sequence[IssueSnapshot], tz=None) -> Dict:
    """Ideal vs. actual remaining points for every day of the sprint."""
    days = daily_range(sprint.start_date, sprint.end_date)
    start = start_of_day(sprint.start_date, tz)
    committed = committed_points(sprint, issues, tz)
    last = len(days) - 1

    points: List[Dict] = []
    for i, day in enumerate(days):
        cutoff = end_of_day(day, tz)
        ideal = committed if last == 0 else committed * (1 - i / last)

        actual = committed
        for issue in issues:
            if first_transition(issue, 'status', DONE, start, cutoff) is not None:
                actual -= issue.story_points
            added, removed = sprint_scope_changes(issue, sprint.id, start, cutoff)
            actual += (added - removed) * issue.story_points

        points.append({
            'day': day,
            'ideal': round_half_up(ideal),
            'actual': max(0, actual),
        })

    return {'sprint': sprint_summary(sprint), 'points': points}
