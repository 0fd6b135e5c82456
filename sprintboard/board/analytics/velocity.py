# ============================================
# board/analytics/velocity.py
# ============================================
from typing import Dict, List, Sequence

COMPLETED = 'completed'
TRAILING = 5


def average(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0


def median(values: Sequence[float]) -> float:
    if not values:
        return 0
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / 2
    return ordered[mid]


def to_velocity_stats(series: Sequence[float]) -> Dict:
    series = list(series)
    trailing = series[-TRAILING:]
    return {
        'series': series,
        'avg': average(series),
        'median': median(series),
        'last5_avg': average(trailing),
        'last5_median': median(trailing),
    }


def forecast_next_sprint(series: Sequence[float], window: int = TRAILING) -> float:
    """Median of the trailing ``window`` completed sprints; 0 without history."""
    return median(list(series)[-window:]) if window > 0 else 0


def velocity_series(per_sprint: Sequence[Dict]) -> List[Dict]:
    """Completed sprints' points, oldest first, for charting."""
    completed = sorted(
        (k for k in per_sprint if k['status'] == COMPLETED),
        key=lambda k: k['start_date'],
    )
    return [
        {
            'sprint': k['key'],
            'sprint_name': k['name'],
            'points': k['completed_points'],
            'start_date': k['start_date'],
            'end_date': k['end_date'],
        }
        for k in completed
    ]
