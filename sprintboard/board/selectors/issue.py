# ============================================
# board/selectors/issue.py
# ============================================
from typing import List, Optional

from django.db.models import Q, QuerySet

from board.clients.user_client import UserServiceClient
from board.models import ActivityLog, Issue
from board.repositories import issue_repository as repo

# query param -> ORM lookup for the exact-match list filters
LIST_FILTERS = {
    'project_id': 'project_id',
    'status': 'status',
    'assignee_id': 'assignee_id',
    'sprint_id': 'sprint_id',
    'issue_type': 'issue_type',
}


class IssueSelector:

    @staticmethod
    def get_issues_list(search: Optional[str] = None, **filters) -> QuerySet:
        """Issues in board order: column by column, rank within a column"""
        lookups = {
            LIST_FILTERS[name]: value
            for name, value in filters.items()
            if name in LIST_FILTERS and value
        }
        queryset = repo.base_qs().filter(**lookups)

        if search:
            queryset = queryset.filter(
                Q(key__icontains=search) |
                Q(title__icontains=search) |
                Q(description__icontains=search)
            )
        return queryset.order_by('project_id', 'status', 'rank', 'id')

    @staticmethod
    def get_changelog(issue: Issue) -> QuerySet:
        return repo.changelog_for(issue.pk)

    @staticmethod
    def get_activities(issue: Issue, action: Optional[str] = None) -> QuerySet:
        queryset = ActivityLog.objects.filter(issue=issue)
        if action:
            queryset = queryset.filter(action=action)
        return queryset.order_by('-at', '-id')

    @staticmethod
    def enrich_issues_with_users(issues: List[Issue]) -> List[Issue]:
        """Attach ``assignee_data`` / ``reporter_data`` from the user directory.

        Both stay None when the directory is disabled or unreachable.
        """
        ids = {str(i.reporter_id) for i in issues}
        ids.update(str(i.assignee_id) for i in issues if i.assignee_id)
        users = UserServiceClient.get_users_by_ids(sorted(ids))

        for issue in issues:
            issue.reporter_data = users.get(str(issue.reporter_id))
            issue.assignee_data = users.get(str(issue.assignee_id)) if issue.assignee_id else None
        return issues
