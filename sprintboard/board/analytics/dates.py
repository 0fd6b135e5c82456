# ============================================
# board/analytics/dates.py
# ============================================
from datetime import date, datetime, time, timedelta
from typing import List

from django.utils import timezone

SECONDS_PER_DAY = 24 * 60 * 60


def start_of_day(day: date, tz=None) -> datetime:
    return timezone.make_aware(datetime.combine(day, time.min), tz or timezone.get_current_timezone())


def end_of_day(day: date, tz=None) -> datetime:
    return timezone.make_aware(datetime.combine(day, time.max), tz or timezone.get_current_timezone())


def daily_range(start: date, end: date) -> List[date]:
    """Every calendar day from ``start`` to ``end`` inclusive."""
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]


def days_between(earlier: datetime, later: datetime) -> float:
    return (later - earlier).total_seconds() / SECONDS_PER_DAY
