# ============================================
# board/analytics/history.py
# ============================================
"""
Point-in-time reconstruction of issue fields from the changelog.

Current issue fields only hold the latest value; anything "as of" a past
moment is read back from the changelog entries. Everything here is a pure
function over an ``IssueSnapshot`` so it can be tested without a database.
"""
from dataclasses import dataclass, field as dc_field
from datetime import date, datetime
from operator import attrgetter
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class ChangeEntry:
    field: str
    old_value: str
    new_value: str
    at: datetime


@dataclass(frozen=True)
class IssueSnapshot:
    id: str
    key: str
    status: str
    story_points: float = 0.0
    sprint_id: Optional[str] = None
    created_at: Optional[datetime] = None
    assignee_id: Optional[str] = None
    labels: Tuple[str, ...] = ()
    epic_id: Optional[str] = None
    changelog: Tuple[ChangeEntry, ...] = dc_field(default=())


@dataclass(frozen=True)
class SprintSnapshot:
    id: str
    key: str
    name: str
    status: str
    start_date: date
    end_date: date


def transitions(snapshot: IssueSnapshot, field: str) -> List[ChangeEntry]:
    """Entries for ``field`` oldest first. Storage order is never trusted."""
    return sorted((e for e in snapshot.changelog if e.field == field), key=attrgetter('at'))


def field_value_as_of(snapshot: IssueSnapshot, field: str, at: datetime) -> Optional[str]:
    value = None
    for entry in transitions(snapshot, field):
        if entry.at > at:
            break
        value = entry.new_value
    return value


def was_member_of_sprint_as_of(snapshot: IssueSnapshot, sprint_id, at: datetime) -> bool:
    sprint_id = str(sprint_id)
    if snapshot.sprint_id == sprint_id:
        # currently in the sprint: a member unless it was (re)added after ``at``
        return not any(
            e.new_value == sprint_id and e.at > at
            for e in transitions(snapshot, 'sprint')
        )
    return field_value_as_of(snapshot, 'sprint', at) == sprint_id


def status_as_of(snapshot: IssueSnapshot, at: datetime) -> str:
    """Status at ``at``.

    Falls back to the current status when no status entry precedes ``at``.
    That is an approximation: issues created by the board always carry a
    creation-time status entry, imported ones might not.
    """
    return field_value_as_of(snapshot, 'status', at) or snapshot.status


def first_transition(
    snapshot: IssueSnapshot,
    field: str,
    value: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> Optional[datetime]:
    for entry in transitions(snapshot, field):
        if entry.new_value != value:
            continue
        if start is not None and entry.at < start:
            continue
        if end is not None and entry.at > end:
            continue
        return entry.at
    return None


def sprint_scope_changes(snapshot: IssueSnapshot, sprint_id, after: datetime, until: datetime) -> Tuple[int, int]:
    """(added, removed) sprint-field events with ``after < at <= until``."""
    sprint_id = str(sprint_id)
    added = removed = 0
    for entry in transitions(snapshot, 'sprint'):
        if not (after < entry.at <= until):
            continue
        if entry.new_value == sprint_id:
            added += 1
        elif entry.old_value == sprint_id:
            removed += 1
    return added, removed
