# ============================================
# board/repositories/issue_repository.py
# ============================================
"""
Repository layer for Issue (pure DB):
- lookups, row/column locks, atomic counter allocation
- changelog appends and bulk rank writes
- no business rules: the service decides what to write
"""
from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

from django.db.models import F, QuerySet
from django.utils import timezone

from board.models import ChangeLogEntry, Issue, Project

Change = Tuple[str, object, object]


# ============================
# Base queries
# ============================
def base_qs() -> QuerySet[Issue]:
    return Issue.objects.select_related('project', 'sprint', 'epic', 'parent')


def get_or_none(issue_id: int) -> Optional[Issue]:
    return base_qs().filter(id=issue_id).first()


def get_by_key(key: str) -> Optional[Issue]:
    return base_qs().filter(key__iexact=key).first()


def lock(issue_id: int) -> Optional[Issue]:
    # no select_related: FOR UPDATE cannot cover the nullable side of an outer join
    return Issue.objects.select_for_update().filter(id=issue_id).first()


def lock_project(project_id: int) -> Optional[Project]:
    return Project.objects.select_for_update().filter(id=project_id).first()


def column_qs(project_id: int, status: str) -> QuerySet[Issue]:
    return Issue.objects.filter(project_id=project_id, status=status).order_by('rank', 'id')


def lock_column(project_id: int, status: str) -> List[Issue]:
    return list(column_qs(project_id, status).select_for_update())


def last_rank(project_id: int, status: str, exclude_id: Optional[int] = None) -> Optional[str]:
    qs = column_qs(project_id, status)
    if exclude_id is not None:
        qs = qs.exclude(id=exclude_id)
    return qs.values_list('rank', flat=True).last()


def column_ranks(project_id: int, status: str) -> List[str]:
    return list(column_qs(project_id, status).values_list('rank', flat=True))


# ============================
# Mutations (pure DB)
# ============================
def allocate_number(project_id: int) -> int:
    """Bump the project's issue counter and return the new value.

    Must run inside the caller's transaction: the UPDATE takes the row lock
    so the read that follows sees this writer's value.
    """
    updated = Project.objects.filter(id=project_id).update(issue_counter=F('issue_counter') + 1)
    if not updated:
        raise Project.DoesNotExist(f"Project {project_id} does not exist")
    return Project.objects.filter(id=project_id).values_list('issue_counter', flat=True).get()


def save_fields(issue: Issue, fields: Iterable[str]) -> Issue:
    issue.save(update_fields=list(fields) + ['updated_at'])
    return issue


def _stringify(value) -> str:
    if value is None:
        return ''
    if isinstance(value, (list, tuple)):
        return ','.join(str(v) for v in value)
    return str(value)


def append_changes(issue: Issue, actor_id: str, changes: Iterable[Change], at=None) -> List[ChangeLogEntry]:
    at = at or timezone.now()
    entries = [
        ChangeLogEntry(
            issue=issue,
            actor_id=actor_id,
            field=field,
            old_value=_stringify(old),
            new_value=_stringify(new),
            at=at,
        )
        for field, old, new in changes
    ]
    return ChangeLogEntry.objects.bulk_create(entries)


def apply_ranks(issues: Sequence[Issue], ranks: Sequence[str]) -> None:
    """Write new ranks in two passes so no intermediate state breaks the
    (project, status, rank) uniqueness constraint."""
    if not issues:
        return
    for issue in issues:
        issue.rank = f"~{issue.pk}"
    Issue.objects.bulk_update(issues, ['rank'])
    for issue, rank in zip(issues, ranks):
        issue.rank = rank
    Issue.objects.bulk_update(issues, ['rank'])


def changelog_for(issue_id: int) -> QuerySet[ChangeLogEntry]:
    return ChangeLogEntry.objects.filter(issue_id=issue_id).order_by('at', 'id')
