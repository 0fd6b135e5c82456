import threading
from datetime import timedelta

import pytest
from django.db import OperationalError, connection
from django.test.utils import CaptureQueriesContext
from django.utils import timezone

from board.exceptions import (
    ConcurrencyConflict,
    GateBlocked,
    NotFound,
    ParentChainTooDeep,
    ValidationError,
)
from board.models import ActivityLog, ChangeLogEntry, Issue
from board.repositories import issue_repository as repo
from board.services import ranking
from board.services.issue import IssueService
from board.services.review import ReviewService
from board.utils import lexorank
from board.utils.concurrency import retry_on_conflict


def column(project, status):
    return list(Issue.objects.filter(project=project, status=status).order_by('rank'))


def keys(issues):
    return [i.key for i in issues]


@pytest.mark.django_db
class TestCreateIssue:

    def test_keys_are_sequential_and_appended(self, project, make_issue):
        a, b, c = make_issue("A"), make_issue("B"), make_issue("C")

        assert keys([a, b, c]) == ["P-1", "P-2", "P-3"]
        assert [i.number for i in (a, b, c)] == [1, 2, 3]
        assert a.status == Issue.Status.BACKLOG
        assert a.resolution == Issue.Resolution.UNRESOLVED
        assert keys(column(project, "backlog")) == ["P-1", "P-2", "P-3"]
        project.refresh_from_db()
        assert project.issue_counter == 3

    def test_creation_is_recorded(self, make_issue, sprint):
        issue = make_issue("A", actor="u9", sprint_id=sprint.pk)

        fields = list(ChangeLogEntry.objects.filter(issue=issue).values_list('field', 'new_value'))
        assert ('created', 'P-1') in fields
        assert ('status', 'backlog') in fields
        assert ('sprint', str(sprint.pk)) in fields
        activity = ActivityLog.objects.get(issue=issue)
        assert activity.action == ActivityLog.Action.CREATED
        assert activity.actor_id == "u9"

    def test_epic_and_parent_validation(self, make_issue):
        task = make_issue("Task")
        epic = make_issue("Epic", issue_type=Issue.IssueType.EPIC)

        with pytest.raises(ValidationError, match="is not an epic"):
            make_issue("X", epic=task.key)
        with pytest.raises(ValidationError, match="cannot be an epic"):
            make_issue("X", parent=epic.key)
        with pytest.raises(NotFound):
            make_issue("X", epic="P-999")

        child = make_issue("Child", epic=epic.key, parent=task.pk)
        assert child.epic_id == epic.pk
        assert child.parent_id == task.pk

    def test_unknown_sprint_is_rejected(self, make_issue):
        with pytest.raises(NotFound):
            make_issue("X", sprint_id=12345)

    def test_growing_backlog_is_renormalized_after_commit(
        self, project, make_issue, board_settings, django_capture_on_commit_callbacks
    ):
        board_settings(RANK_MAX_LENGTH=3)

        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            for n in range(30):
                make_issue(f"T{n}")

        assert len(callbacks) == 30
        col = column(project, "backlog")
        assert keys(col) == [f"P-{n}" for n in range(1, 31)]
        assert not lexorank.needs_renormalization([i.rank for i in col], 3)

    def test_counter_is_bumped_in_a_single_update(self, project, make_issue):
        with CaptureQueriesContext(connection) as ctx:
            make_issue("A")

        statements = [q['sql'] for q in ctx.captured_queries]
        bumps = [s for s in statements if s.startswith('UPDATE') and '"issue_counter" + 1' in s]
        assert len(bumps) == 1
        assert not any('MAX(' in s.upper() for s in statements)
        project.refresh_from_db()
        assert project.issue_counter == 1

    def test_deleted_keys_are_not_reused(self, make_issue):
        first = make_issue("A")
        IssueService.delete_issue(issue=first.key, actor_id="u1")

        assert make_issue("B").key == "P-2"
        assert Issue.all_objects.filter(pk=first.pk).exists()
        assert not Issue.objects.filter(pk=first.pk).exists()
        with pytest.raises(NotFound):
            IssueService.resolve("P-1")


@pytest.mark.django_db
class TestMoveIssue:

    def test_move_after_and_before(self, project, make_issue):
        a, b, c = make_issue("A"), make_issue("B"), make_issue("C")

        IssueService.move_issue(issue=a.key, status="todo", actor_id="u1")
        IssueService.move_issue(issue=b.key, status="todo", actor_id="u1", after=a.key)
        IssueService.move_issue(issue=c.key, status="todo", actor_id="u1", before=b.key)
        assert keys(column(project, "todo")) == ["P-1", "P-3", "P-2"]

        IssueService.move_issue(issue=a.key, status="todo", actor_id="u1", after=b.key)
        assert keys(column(project, "todo")) == ["P-3", "P-2", "P-1"]
        assert column(project, "backlog") == []

    def test_after_wins_over_before(self, project, make_issue):
        a, b, c = make_issue("A"), make_issue("B"), make_issue("C")
        IssueService.move_issue(issue=c.key, status="backlog", actor_id="u1", after=a.key, before=a.key)
        assert keys(column(project, "backlog")) == ["P-1", "P-3", "P-2"]

    def test_neighbour_must_be_in_target_column(self, make_issue):
        a, b = make_issue("A"), make_issue("B")
        with pytest.raises(ValidationError, match="not in the target column"):
            IssueService.move_issue(issue=a.key, status="todo", actor_id="u1", after=b.key)

    def test_unknown_status_is_rejected(self, make_issue):
        a = make_issue("A")
        with pytest.raises(ValidationError):
            IssueService.move_issue(issue=a.key, status="review", actor_id="u1")

    def test_move_records_changelog_and_activity(self, make_issue):
        a = make_issue("A")
        moved = IssueService.move_issue(issue=a.key, status="in-progress", actor_id="u2")

        entries = ChangeLogEntry.objects.filter(issue=a, field='status').order_by('at', 'id')
        assert [(e.old_value, e.new_value) for e in entries] == [('', 'backlog'), ('backlog', 'in-progress')]
        rank_entry = ChangeLogEntry.objects.get(issue=a, field='rank')
        assert rank_entry.new_value == moved.rank
        activity = ActivityLog.objects.filter(issue=a, action=ActivityLog.Action.MOVED).get()
        assert (activity.from_value, activity.to_value) == ("backlog", "in-progress")

    def test_resolution_follows_done_column(self, make_issue):
        a = make_issue("A")

        done = IssueService.move_issue(issue=a.key, status="done", actor_id="u1")
        assert done.resolution == Issue.Resolution.DONE
        assert done.resolution_date is not None

        back = IssueService.move_issue(issue=a.key, status="in-progress", actor_id="u1")
        assert back.resolution == Issue.Resolution.UNRESOLVED
        assert back.resolution_date is None

        again = IssueService.transition_status(issue=a.key, to_status="done", actor_id="u1")
        assert again.resolution == Issue.Resolution.DONE
        assert again.resolution_date is not None
        resolution_log = ChangeLogEntry.objects.filter(issue=a, field='resolution').count()
        assert resolution_log == 3

    def test_existing_resolution_keeps_its_date(self):
        stamped = timezone.now() - timedelta(days=3)
        issue = Issue(status="in-progress", resolution=Issue.Resolution.WONT_FIX, resolution_date=stamped)

        changes = IssueService._apply_resolution(issue, "in-progress", "done")

        assert changes == []
        assert issue.resolution == Issue.Resolution.WONT_FIX
        assert issue.resolution_date == stamped

    def test_crowded_column_is_renormalized_after_commit(
        self, project, make_issue, board_settings, django_capture_on_commit_callbacks
    ):
        board_settings(RANK_MAX_LENGTH=1)
        a, b, c, d, e = (make_issue(t) for t in "ABCDE")

        with django_capture_on_commit_callbacks(execute=True):
            IssueService.move_issue(issue=c.key, status="backlog", actor_id="u1", after=a.key)
            IssueService.move_issue(issue=d.key, status="backlog", actor_id="u1", after=a.key)
            IssueService.move_issue(issue=e.key, status="backlog", actor_id="u1", after=a.key)

        col = column(project, "backlog")
        assert keys(col) == ["P-1", "P-5", "P-4", "P-3", "P-2"]
        assert [i.rank for i in col] == lexorank.renormalize(5)

    def test_lock_order_is_project_then_issue_then_column(self, project, make_issue, monkeypatch):
        a, b = make_issue("A"), make_issue("B")
        IssueService.move_issue(issue=b.key, status="todo", actor_id="u1")
        taken = []
        for name in ("lock_project", "lock", "lock_column"):
            original = getattr(repo, name)

            def tracked(*args, _name=name, _original=original, **kwargs):
                taken.append(_name)
                return _original(*args, **kwargs)

            monkeypatch.setattr(repo, name, tracked)

        IssueService.move_issue(issue=a.key, status="todo", actor_id="u1", before=b.key)
        IssueService.transition_status(issue=b.key, to_status="in-progress", actor_id="u1")

        assert taken == ["lock_project", "lock", "lock_column", "lock_project", "lock"]

    def test_lock_contention_is_retried(self, project, make_issue, board_settings, monkeypatch, caplog):
        board_settings(CONFLICT_RETRIES=3)
        a = make_issue("A")
        original = repo.lock_column
        attempts = []

        def deadlocking(*args, **kwargs):
            attempts.append(1)
            if len(attempts) == 1:
                raise OperationalError("deadlock detected")
            return original(*args, **kwargs)

        monkeypatch.setattr(repo, "lock_column", deadlocking)

        moved = IssueService.move_issue(issue=a.key, status="in-progress", actor_id="u1")

        assert moved.status == "in-progress"
        assert len(attempts) == 2
        assert "conflict while locking column" in caplog.text
        assert ChangeLogEntry.objects.filter(issue=a, field='status', new_value="in-progress").count() == 1

    def test_check_column_keeps_order(self, project, make_issue):
        issues = [make_issue(t) for t in "ABC"]
        for issue, rank in zip(issues, ["I" + "1" * 15, "I" + "1" * 16, "I" + "1" * 17]):
            Issue.objects.filter(pk=issue.pk).update(rank=rank)

        assert ranking.check_column(project_id=project.pk, status="backlog") is True
        col = column(project, "backlog")
        assert keys(col) == ["P-1", "P-2", "P-3"]
        assert not lexorank.needs_renormalization([i.rank for i in col])
        assert ranking.check_column(project_id=project.pk, status="backlog") is False

    def test_check_column_never_raises(self, project, monkeypatch, caplog):
        def boom(*args, **kwargs):
            raise RuntimeError("db gone")

        monkeypatch.setattr(ranking.repo, "column_ranks", boom)
        assert ranking.check_column(project_id=project.pk, status="todo") is False
        assert "renormalization" in caplog.text


@pytest.mark.django_db
class TestReviewGate:

    def test_pending_review_blocks_done(self, make_issue):
        issue = make_issue("A")
        review = ReviewService.request_review(issue=issue.key, requested_by="u1", reviewer_ids=["r1"])

        with pytest.raises(GateBlocked) as exc:
            IssueService.transition_status(issue=issue.key, to_status="done", actor_id="u1")
        assert exc.value.pending_count == 1
        assert "1 pending review(s)" in str(exc.value.detail)

        with pytest.raises(GateBlocked):
            IssueService.move_issue(issue=issue.key, status="done", actor_id="u1")

        ReviewService.approve(review_id=review.pk, actor_id="r1")
        done = IssueService.transition_status(issue=issue.key, to_status="done", actor_id="u1")
        assert done.status == Issue.Status.DONE

    def test_message_names_both_counts(self, make_issue):
        issue = make_issue("A")
        ReviewService.request_review(issue=issue.key, requested_by="u1", reviewer_ids=["r1"])
        second = ReviewService.request_review(issue=issue.key, requested_by="u1", reviewer_ids=["r2"])
        ReviewService.request_changes(review_id=second.pk, actor_id="r2", comment="nope")

        with pytest.raises(GateBlocked) as exc:
            IssueService.transition_status(issue=issue.key, to_status="done", actor_id="u1")
        assert exc.value.pending_count == 1
        assert exc.value.changes_requested_count == 1
        assert "1 pending review(s) and 1 review(s) requesting changes" in str(exc.value.detail)

    def test_closed_reviews_do_not_block(self, make_issue):
        issue = make_issue("A")
        review = ReviewService.request_review(issue=issue.key, requested_by="u1", reviewer_ids=["r1"])
        ReviewService.cancel(review_id=review.pk, actor_id="u1")

        assert IssueService.transition_status(issue=issue.key, to_status="done", actor_id="u1").is_done

    def test_blocked_update_leaves_no_trace(self, make_issue):
        issue = make_issue("A")
        ReviewService.request_review(issue=issue.key, requested_by="u1", reviewer_ids=["r1"])
        before = ChangeLogEntry.objects.filter(issue=issue).count()

        with pytest.raises(GateBlocked):
            IssueService.update_issue(issue=issue.key, actor_id="u1", title="Renamed", status="done")

        issue.refresh_from_db()
        assert issue.title == "A"
        assert issue.status == Issue.Status.BACKLOG
        assert ChangeLogEntry.objects.filter(issue=issue).count() == before


@pytest.mark.django_db
class TestRelations:

    def test_set_epic(self, make_issue):
        task = make_issue("Task")
        epic = make_issue("Epic", issue_type=Issue.IssueType.EPIC)
        other_epic = make_issue("Other", issue_type=Issue.IssueType.EPIC)

        updated = IssueService.set_epic(issue=task.key, epic=epic.key, actor_id="u1")
        assert updated.epic_id == epic.pk
        entry = ChangeLogEntry.objects.get(issue=task, field='epic')
        assert (entry.old_value, entry.new_value) == ('', str(epic.pk))
        activity = ActivityLog.objects.filter(issue=task, action=ActivityLog.Action.UPDATED).get()
        assert activity.meta['action'] == 'linked-epic'

        with pytest.raises(ValidationError):
            IssueService.set_epic(issue=other_epic.key, epic=epic.key, actor_id="u1")

        cleared = IssueService.set_epic(issue=task.key, epic=None, actor_id="u1")
        assert cleared.epic_id is None

    def test_parent_cycle_is_rejected(self, make_issue):
        a, b = make_issue("A"), make_issue("B")
        IssueService.set_parent(issue=b.key, parent=a.key, actor_id="u1")

        with pytest.raises(ValidationError, match="Circular"):
            IssueService.set_parent(issue=a.key, parent=b.key, actor_id="u1")
        with pytest.raises(ValidationError, match="Circular"):
            IssueService.set_parent(issue=a.key, parent=a.key, actor_id="u1")

    def test_parent_chain_depth_is_bounded(self, make_issue, board_settings):
        board_settings(PARENT_MAX_DEPTH=3)
        chain = [make_issue("L0")]
        for n in range(1, 4):
            chain.append(make_issue(f"L{n}", parent=chain[-1].key))

        with pytest.raises(ParentChainTooDeep, match="max 3 levels"):
            make_issue("Too deep", parent=chain[-1].key)

    def test_links_are_symmetric(self, make_issue):
        a, b = make_issue("A"), make_issue("B")

        IssueService.add_linked_issue(issue=a.key, other=b.key, actor_id="u1")
        assert list(b.linked_issues.values_list('key', flat=True)) == ["P-1"]
        assert ChangeLogEntry.objects.filter(field='link').count() == 2

        # linking again is a no-op
        IssueService.add_linked_issue(issue=b.key, other=a.key, actor_id="u1")
        assert ChangeLogEntry.objects.filter(field='link').count() == 2

        IssueService.remove_linked_issue(issue=b.key, other=a.key, actor_id="u1")
        assert not a.linked_issues.exists()
        with pytest.raises(ValidationError):
            IssueService.remove_linked_issue(issue=a.key, other=b.key, actor_id="u1")
        with pytest.raises(ValidationError):
            IssueService.add_linked_issue(issue=a.key, other=a.key, actor_id="u1")

    def test_assign_sprint_is_logged(self, make_issue, sprint):
        issue = make_issue("A")
        IssueService.assign_sprint(issue=issue.key, sprint_id=sprint.pk, actor_id="u1")
        IssueService.assign_sprint(issue=issue.key, sprint_id=None, actor_id="u1")

        values = list(
            ChangeLogEntry.objects.filter(issue=issue, field='sprint')
            .order_by('at', 'id').values_list('old_value', 'new_value')
        )
        assert values == [('', str(sprint.pk)), (str(sprint.pk), '')]

    def test_update_issue_logs_changed_fields_only(self, make_issue):
        issue = make_issue("A", labels=["api"])
        updated = IssueService.update_issue(
            issue=issue.key, actor_id="u1", title="B", labels=["api"], priority="high",
        )
        assert updated.title == "B"
        changed = set(ChangeLogEntry.objects.filter(issue=issue).values_list('field', flat=True))
        assert {'title', 'priority'} <= changed
        assert 'labels' not in changed

        with pytest.raises(ValidationError):
            IssueService.update_issue(issue=issue.key, actor_id="u1", rank="A")


@pytest.mark.django_db
class TestResolveAndRetry:

    def test_resolve_by_id_key_and_digit_string(self, make_issue):
        issue = make_issue("A")
        assert IssueService.resolve(issue.pk).pk == issue.pk
        assert IssueService.resolve(str(issue.pk)).pk == issue.pk
        assert IssueService.resolve("p-1").pk == issue.pk
        with pytest.raises(NotFound):
            IssueService.resolve("")

    def test_retry_on_conflict_retries_then_gives_up(self, board_settings):
        board_settings(CONFLICT_RETRIES=3)
        calls = []

        @retry_on_conflict
        def flaky(fail_times):
            calls.append(1)
            if len(calls) <= fail_times:
                raise ConcurrencyConflict()
            return "ok"

        assert flaky(2) == "ok"
        assert len(calls) == 3

        calls.clear()
        with pytest.raises(ConcurrencyConflict):
            flaky(5)
        assert len(calls) == 3


@pytest.mark.skipif(connection.vendor == "sqlite", reason="needs row-level locking; run with DB_ENGINE=django.db.backends.postgresql")
@pytest.mark.django_db(transaction=True)
def test_concurrent_creates_get_distinct_numbers(project):
    errors = []

    def worker(n):
        try:
            IssueService.create_issue(project_id=project.pk, title=f"T{n}", reporter_id="u1")
        except Exception as exc:
            errors.append(exc)
        finally:
            connection.close()

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    numbers = sorted(Issue.objects.filter(project=project).values_list('number', flat=True))
    assert numbers == list(range(1, 9))
    ranks = [i.rank for i in column(project, "backlog")]
    assert len(set(ranks)) == 8
