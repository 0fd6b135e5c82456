# ============================================
# board/services/ranking.py
# ============================================
import logging

from django.db import transaction

from board.repositories import issue_repository as repo
from board.utils import lexorank
from board.utils.conf import board_setting

logger = logging.getLogger(__name__)


@transaction.atomic
def renormalize_column(*, project_id: int, status: str) -> int:
    """Respace every rank of a (project, status) column, keeping the order.

    Returns the number of issues rewritten.
    """
    repo.lock_project(project_id)
    column = lexorank.sort_by_rank(repo.lock_column(project_id, status))
    repo.apply_ranks(column, lexorank.renormalize(len(column)))
    logger.info("[board] renormalized column project#%s/%s (%d issues)", project_id, status, len(column))
    return len(column)


def check_column(*, project_id: int, status: str) -> bool:
    """Renormalize the column when it ran out of room. Never raises."""
    try:
        ranks = repo.column_ranks(project_id, status)
        if not lexorank.needs_renormalization(ranks, board_setting('RANK_MAX_LENGTH')):
            return False
        renormalize_column(project_id=project_id, status=status)
        return True
    except Exception:
        logger.exception("[board] renormalization of project#%s/%s failed", project_id, status)
        return False


def schedule_column_check(*, project_id: int, status: str) -> None:
    transaction.on_commit(lambda: check_column(project_id=project_id, status=status))
