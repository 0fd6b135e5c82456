# ============================================
# board/services/issue.py
# ============================================
import logging
from decimal import Decimal
from typing import List, Optional, Tuple, Union

from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone

from board.exceptions import GateBlocked, NotFound, ParentChainTooDeep, ValidationError
from board.models import ActivityLog, ChangeLogEntry, Issue, Project, Review, ReviewStatus, Sprint
from board.repositories import issue_repository as repo
from board.services import ranking
from board.services.activity import log_activity
from board.utils import lexorank
from board.utils.concurrency import conflict_guard, retry_on_conflict
from board.utils.conf import board_setting

logger = logging.getLogger(__name__)

IssueRef = Union[int, str, Issue]

# fields update_issue writes directly; status and sprint have their own paths
UPDATABLE_FIELDS = (
    'title', 'description', 'priority', 'assignee_id',
    'labels', 'story_points', 'due_date',
)


class IssueService:

    # ---------- lookups ----------

    @staticmethod
    def resolve(ref: IssueRef) -> Issue:
        """Resolve an issue by primary key or by its key (``PROJ-12``)."""
        if isinstance(ref, Issue):
            ref = ref.pk
        issue = None
        if isinstance(ref, int) or (isinstance(ref, str) and ref.isdigit()):
            issue = repo.get_or_none(int(ref))
        elif isinstance(ref, str) and ref:
            issue = repo.get_by_key(ref)
        if issue is None:
            raise NotFound(f"Issue {ref} not found")
        return issue

    @staticmethod
    def _resolve_epic(ref: IssueRef) -> Issue:
        epic = IssueService.resolve(ref)
        if not epic.is_epic:
            raise ValidationError(f"{epic.key} is not an epic")
        return epic

    @staticmethod
    def _resolve_parent(ref: IssueRef) -> Issue:
        parent = IssueService.resolve(ref)
        if parent.is_epic:
            raise ValidationError("Parent issue cannot be an epic")
        return parent

    @staticmethod
    def _resolve_sprint(project_id: int, sprint_id: Optional[int]) -> Optional[Sprint]:
        if sprint_id is None:
            return None
        sprint = Sprint.objects.filter(id=sprint_id, project_id=project_id).first()
        if sprint is None:
            raise NotFound(f"Sprint {sprint_id} not found")
        return sprint

    @staticmethod
    def _check_parent_chain(issue_id: Optional[int], parent: Issue) -> None:
        """Walk up from ``parent``; reject cycles back to ``issue_id`` and over-deep chains."""
        max_depth = board_setting('PARENT_MAX_DEPTH')
        current_id = parent.pk
        hops = 0
        while current_id is not None:
            if issue_id is not None and current_id == issue_id:
                raise ValidationError("Circular parent relationship detected")
            if hops >= max_depth:
                raise ParentChainTooDeep(f"Parent chain too deep (max {max_depth} levels)")
            current_id = (
                Issue.all_objects.filter(id=current_id)
                .values_list('parent_id', flat=True)
                .first()
            )
            hops += 1

    @staticmethod
    def _lock(issue: Issue) -> Issue:
        locked = repo.lock(issue.pk)
        if locked is None:
            raise NotFound(f"Issue {issue.key} not found")
        return locked

    @staticmethod
    def _lock_for_ranking(issue: Issue) -> Issue:
        """Project row first, then the issue: every rank writer takes locks in this order."""
        with conflict_guard("locking project"):
            repo.lock_project(issue.project_id)
            return IssueService._lock(issue)

    @staticmethod
    def _lock_column(project_id: int, status: str) -> List[Issue]:
        with conflict_guard("locking column"):
            return repo.lock_column(project_id, status)

    # ---------- rules ----------

    @staticmethod
    def outstanding_reviews(issue: Issue) -> Tuple[int, int]:
        counts = Review.objects.filter(issue=issue).aggregate(
            pending=Count('id', filter=Q(status=ReviewStatus.PENDING)),
            changes=Count('id', filter=Q(status=ReviewStatus.CHANGES_REQUESTED)),
        )
        return counts['pending'], counts['changes']

    @staticmethod
    def _check_review_gate(issue: Issue) -> None:
        pending, changes = IssueService.outstanding_reviews(issue)
        if pending or changes:
            logger.info(
                "[board] %s blocked from done: %d pending, %d changes requested",
                issue.key, pending, changes,
            )
            raise GateBlocked(pending_count=pending, changes_requested_count=changes)

    @staticmethod
    def _apply_resolution(issue: Issue, old_status: str, new_status: str) -> List[repo.Change]:
        """Keep resolution in step with the done column. Returns changelog tuples."""
        done = Issue.Status.DONE
        old_resolution = issue.resolution
        if new_status == done and old_status != done:
            if issue.resolution == Issue.Resolution.UNRESOLVED:
                issue.resolution = Issue.Resolution.DONE
                issue.resolution_date = timezone.now()
        elif old_status == done and new_status != done:
            issue.resolution = Issue.Resolution.UNRESOLVED
            issue.resolution_date = None
        if issue.resolution != old_resolution:
            return [(ChangeLogEntry.RESOLUTION, old_resolution, issue.resolution)]
        return []

    @staticmethod
    def _append_rank(project_id: int, status: str, exclude_id: Optional[int] = None) -> str:
        last = repo.last_rank(project_id, status, exclude_id=exclude_id)
        return lexorank.between(last, None) if last else lexorank.initial()

    @staticmethod
    def _neighbours(column: List[Issue], issue_id: int, after: Optional[Issue], before: Optional[Issue]):
        others = [i for i in column if i.pk != issue_id]
        ids = [i.pk for i in others]
        if after is not None:
            if after.pk not in ids:
                raise ValidationError(f"{after.key} is not in the target column")
            idx = ids.index(after.pk)
            nxt = others[idx + 1].rank if idx + 1 < len(others) else None
            return others[idx].rank, nxt
        if before is not None:
            if before.pk not in ids:
                raise ValidationError(f"{before.key} is not in the target column")
            idx = ids.index(before.pk)
            prev = others[idx - 1].rank if idx > 0 else None
            return prev, others[idx].rank
        return (others[-1].rank if others else None), None

    # ---------- mutations ----------

    @staticmethod
    @retry_on_conflict
    @transaction.atomic
    def create_issue(
        *,
        project_id: int,
        title: str,
        reporter_id: str,
        issue_type: str = Issue.IssueType.TASK,
        description: str = '',
        priority: str = Issue.Priority.MEDIUM,
        assignee_id: Optional[str] = None,
        labels: Optional[List[str]] = None,
        story_points: Optional[Decimal] = None,
        due_date=None,
        sprint_id: Optional[int] = None,
        epic: Optional[IssueRef] = None,
        parent: Optional[IssueRef] = None,
    ) -> Issue:
        """Create an issue at the bottom of the backlog column."""
        project = Project.objects.filter(id=project_id).first()
        if project is None:
            raise NotFound(f"Project {project_id} not found")

        sprint = IssueService._resolve_sprint(project.pk, sprint_id)
        epic_obj = IssueService._resolve_epic(epic) if epic else None
        parent_obj = IssueService._resolve_parent(parent) if parent else None
        if parent_obj is not None:
            IssueService._check_parent_chain(None, parent_obj)

        status = Issue.Status.BACKLOG
        with conflict_guard("allocating issue number"):
            number = repo.allocate_number(project.pk)
            rank = IssueService._append_rank(project.pk, status)
            issue = Issue.objects.create(
                project=project,
                number=number,
                key=f"{project.key}-{number}",
                title=title,
                description=description,
                issue_type=issue_type,
                priority=priority,
                status=status,
                rank=rank,
                labels=list(labels or []),
                story_points=story_points,
                due_date=due_date,
                sprint=sprint,
                assignee_id=assignee_id,
                reporter_id=reporter_id,
                epic=epic_obj,
                parent=parent_obj,
            )

        changes = [
            (ChangeLogEntry.CREATED, '', issue.key),
            (ChangeLogEntry.STATUS, '', status),
        ]
        if sprint is not None:
            changes.append((ChangeLogEntry.SPRINT, '', sprint.pk))
        repo.append_changes(issue, reporter_id, changes)

        log_activity(
            issue=issue, actor_id=reporter_id, action=ActivityLog.Action.CREATED,
            to_value=issue.key, meta={'rank': rank},
        )
        logger.info("[board] created %s (rank %s)", issue.key, rank)
        ranking.schedule_column_check(project_id=project.pk, status=status)
        return repo.base_qs().get(id=issue.pk)

    @staticmethod
    @retry_on_conflict
    @transaction.atomic
    def move_issue(
        *,
        issue: IssueRef,
        status: str,
        actor_id: str,
        after: Optional[IssueRef] = None,
        before: Optional[IssueRef] = None,
    ) -> Issue:
        """Place an issue in ``status`` directly after ``after`` or before ``before``.

        With neither neighbour the issue goes to the bottom of the column.
        """
        if status not in Issue.Status.values:
            raise ValidationError(f"Unknown status {status!r}")
        target = IssueService.resolve(issue)
        after_obj = IssueService.resolve(after) if after else None
        before_obj = IssueService.resolve(before) if after is None and before else None

        obj = IssueService._lock_for_ranking(target)
        old_status, old_rank = obj.status, obj.rank
        if status == Issue.Status.DONE and old_status != Issue.Status.DONE:
            IssueService._check_review_gate(obj)

        column = lexorank.sort_by_rank(IssueService._lock_column(obj.project_id, status))
        prev, nxt = IssueService._neighbours(column, obj.pk, after_obj, before_obj)
        try:
            rank = lexorank.between(prev, nxt)
        except lexorank.RankCollision:
            logger.warning(
                "[board] rank collision in project#%s/%s, renormalizing before retry",
                obj.project_id, status,
            )
            ranking.renormalize_column(project_id=obj.project_id, status=status)
            column = lexorank.sort_by_rank(IssueService._lock_column(obj.project_id, status))
            prev, nxt = IssueService._neighbours(column, obj.pk, after_obj, before_obj)
            try:
                rank = lexorank.between(prev, nxt)
            except lexorank.RankCollision:
                raise ValidationError("Cannot place the issue between the given neighbours")

        changes = []
        if status != old_status:
            changes.append((ChangeLogEntry.STATUS, old_status, status))
        changes += IssueService._apply_resolution(obj, old_status, status)
        changes.append((ChangeLogEntry.RANK, old_rank, rank))

        obj.status = status
        obj.rank = rank
        with conflict_guard("writing rank"):
            repo.save_fields(obj, ['status', 'rank', 'resolution', 'resolution_date'])
        repo.append_changes(obj, actor_id, changes)

        log_activity(
            issue=obj, actor_id=actor_id, action=ActivityLog.Action.MOVED,
            from_value=old_status, to_value=status,
            meta={
                'rank': rank,
                'after': after_obj.pk if after_obj else None,
                'before': before_obj.pk if before_obj else None,
            },
        )
        ranking.schedule_column_check(project_id=obj.project_id, status=status)
        return repo.base_qs().get(id=obj.pk)

    @staticmethod
    @retry_on_conflict
    @transaction.atomic
    def transition_status(*, issue: IssueRef, to_status: str, actor_id: str) -> Issue:
        """Status-only change; the issue lands at the bottom of the new column."""
        if to_status not in Issue.Status.values:
            raise ValidationError(f"Unknown status {to_status!r}")
        obj = IssueService._lock_for_ranking(IssueService.resolve(issue))
        old_status = obj.status
        if to_status == old_status:
            return repo.base_qs().get(id=obj.pk)
        if to_status == Issue.Status.DONE:
            IssueService._check_review_gate(obj)

        old_rank = obj.rank
        rank = IssueService._append_rank(obj.project_id, to_status, exclude_id=obj.pk)
        changes = [(ChangeLogEntry.STATUS, old_status, to_status)]
        changes += IssueService._apply_resolution(obj, old_status, to_status)
        changes.append((ChangeLogEntry.RANK, old_rank, rank))

        obj.status = to_status
        obj.rank = rank
        with conflict_guard("writing rank"):
            repo.save_fields(obj, ['status', 'rank', 'resolution', 'resolution_date'])
        repo.append_changes(obj, actor_id, changes)

        log_activity(
            issue=obj, actor_id=actor_id, action=ActivityLog.Action.STATUS_CHANGED,
            from_value=old_status, to_value=to_status,
        )
        ranking.schedule_column_check(project_id=obj.project_id, status=to_status)
        return repo.base_qs().get(id=obj.pk)

    @staticmethod
    @transaction.atomic
    def set_epic(*, issue: IssueRef, epic: Optional[IssueRef], actor_id: str) -> Issue:
        obj = IssueService._lock(IssueService.resolve(issue))
        epic_obj = IssueService._resolve_epic(epic) if epic else None
        if epic_obj is not None and obj.is_epic:
            raise ValidationError("An epic cannot belong to another epic")

        old_epic_id = obj.epic_id
        new_epic_id = epic_obj.pk if epic_obj else None
        if old_epic_id == new_epic_id:
            return repo.base_qs().get(id=obj.pk)

        obj.epic = epic_obj
        repo.save_fields(obj, ['epic'])
        repo.append_changes(obj, actor_id, [(ChangeLogEntry.EPIC, old_epic_id, new_epic_id)])
        log_activity(
            issue=obj, actor_id=actor_id, action=ActivityLog.Action.UPDATED,
            from_value=str(old_epic_id or ''), to_value=str(new_epic_id or ''),
            meta={'action': 'linked-epic', 'epic': epic_obj.key if epic_obj else None},
        )
        return repo.base_qs().get(id=obj.pk)

    @staticmethod
    @transaction.atomic
    def set_parent(*, issue: IssueRef, parent: Optional[IssueRef], actor_id: str) -> Issue:
        obj = IssueService._lock(IssueService.resolve(issue))
        parent_obj = IssueService._resolve_parent(parent) if parent else None
        if parent_obj is not None:
            IssueService._check_parent_chain(obj.pk, parent_obj)

        old_parent_id = obj.parent_id
        new_parent_id = parent_obj.pk if parent_obj else None
        if old_parent_id == new_parent_id:
            return repo.base_qs().get(id=obj.pk)

        obj.parent = parent_obj
        repo.save_fields(obj, ['parent'])
        repo.append_changes(obj, actor_id, [(ChangeLogEntry.PARENT, old_parent_id, new_parent_id)])
        log_activity(
            issue=obj, actor_id=actor_id, action=ActivityLog.Action.UPDATED,
            from_value=str(old_parent_id or ''), to_value=str(new_parent_id or ''),
            meta={'action': 'linked-parent', 'parent': parent_obj.key if parent_obj else None},
        )
        return repo.base_qs().get(id=obj.pk)

    @staticmethod
    @transaction.atomic
    def add_linked_issue(*, issue: IssueRef, other: IssueRef, actor_id: str) -> Issue:
        obj = IssueService.resolve(issue)
        other_obj = IssueService.resolve(other)
        if obj.pk == other_obj.pk:
            raise ValidationError("Cannot link an issue to itself")
        if obj.linked_issues.filter(id=other_obj.pk).exists():
            return obj

        # symmetrical M2M: both directions are written together
        obj.linked_issues.add(other_obj)
        repo.append_changes(obj, actor_id, [(ChangeLogEntry.LINK, '', other_obj.pk)])
        repo.append_changes(other_obj, actor_id, [(ChangeLogEntry.LINK, '', obj.pk)])
        log_activity(
            issue=obj, actor_id=actor_id, action=ActivityLog.Action.UPDATED,
            to_value=other_obj.key, meta={'action': 'linked-issue', 'other': other_obj.key},
        )
        return obj

    @staticmethod
    @transaction.atomic
    def remove_linked_issue(*, issue: IssueRef, other: IssueRef, actor_id: str) -> Issue:
        obj = IssueService.resolve(issue)
        other_obj = IssueService.resolve(other)
        if not obj.linked_issues.filter(id=other_obj.pk).exists():
            raise ValidationError(f"{obj.key} is not linked to {other_obj.key}")

        obj.linked_issues.remove(other_obj)
        repo.append_changes(obj, actor_id, [(ChangeLogEntry.LINK, other_obj.pk, '')])
        repo.append_changes(other_obj, actor_id, [(ChangeLogEntry.LINK, obj.pk, '')])
        log_activity(
            issue=obj, actor_id=actor_id, action=ActivityLog.Action.UPDATED,
            from_value=other_obj.key, meta={'action': 'unlinked-issue', 'other': other_obj.key},
        )
        return obj

    @staticmethod
    @transaction.atomic
    def assign_sprint(*, issue: IssueRef, sprint_id: Optional[int], actor_id: str) -> Issue:
        obj = IssueService._lock(IssueService.resolve(issue))
        sprint = IssueService._resolve_sprint(obj.project_id, sprint_id)
        old_sprint_id = obj.sprint_id
        new_sprint_id = sprint.pk if sprint else None
        if old_sprint_id == new_sprint_id:
            return repo.base_qs().get(id=obj.pk)

        obj.sprint = sprint
        repo.save_fields(obj, ['sprint'])
        repo.append_changes(obj, actor_id, [(ChangeLogEntry.SPRINT, old_sprint_id, new_sprint_id)])
        log_activity(
            issue=obj, actor_id=actor_id, action=ActivityLog.Action.UPDATED,
            from_value=str(old_sprint_id or ''), to_value=str(new_sprint_id or ''),
            meta={'field': 'sprint'},
        )
        return repo.base_qs().get(id=obj.pk)

    @staticmethod
    @transaction.atomic
    def update_issue(*, issue: IssueRef, actor_id: str, **data) -> Issue:
        """Generic field update. ``status`` and ``sprint_id`` go through their own paths."""
        obj = IssueService._lock(IssueService.resolve(issue))

        unknown = set(data) - set(UPDATABLE_FIELDS) - {'status', 'sprint_id'}
        if unknown:
            raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
        if data.get('story_points') is not None and data['story_points'] < 0:
            raise ValidationError("story_points must not be negative")

        changes = []
        for field in UPDATABLE_FIELDS:
            if field not in data:
                continue
            old_value, new_value = getattr(obj, field), data[field]
            if field == 'labels':
                new_value = list(new_value or [])
            if old_value != new_value:
                changes.append((field, old_value, new_value))
                setattr(obj, field, new_value)

        if changes:
            repo.save_fields(obj, [field for field, _, _ in changes])
            repo.append_changes(obj, actor_id, changes)
            log_activity(
                issue=obj, actor_id=actor_id, action=ActivityLog.Action.UPDATED,
                meta={'fields': [field for field, _, _ in changes]},
            )

        if 'sprint_id' in data:
            IssueService.assign_sprint(issue=obj.pk, sprint_id=data['sprint_id'], actor_id=actor_id)
        if data.get('status'):
            IssueService.transition_status(issue=obj.pk, to_status=data['status'], actor_id=actor_id)
        return repo.base_qs().get(id=obj.pk)

    @staticmethod
    @transaction.atomic
    def delete_issue(*, issue: IssueRef, actor_id: str) -> None:
        """Soft delete: the row and its history stay, every read path hides it."""
        obj = IssueService._lock(IssueService.resolve(issue))
        obj.deleted_at = timezone.now()
        repo.save_fields(obj, ['deleted_at'])
        repo.append_changes(obj, actor_id, [(ChangeLogEntry.DELETED, '', obj.key)])
        log_activity(
            issue=obj, actor_id=actor_id, action=ActivityLog.Action.DELETED,
            from_value=obj.key,
        )
        logger.info("[board] %s soft-deleted by %s", obj.key, actor_id)
