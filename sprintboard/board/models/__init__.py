# ============================================
# board/models/__init__.py
# ============================================
from .project import Project
from .issue import Issue
from .sprint import Sprint
from .history import ChangeLogEntry
from .activity import ActivityLog
from .review import (
    Review,
    ReviewReviewer,
    ReviewChecklistItem,
    ReviewStatus,
    compute_overall_status,
)

__all__ = [
    'Project',
    'Issue',
    'Sprint',
    'ChangeLogEntry',
    'ActivityLog',
    'Review',
    'ReviewReviewer',
    'ReviewChecklistItem',
    'ReviewStatus',
    'compute_overall_status',
]
