# ============================================
# board/services/activity.py
# ============================================
import logging
from typing import Any, Dict, Optional

from django.db import DatabaseError, transaction

from board.models import ActivityLog

logger = logging.getLogger(__name__)


def log_activity(
    *,
    issue,
    actor_id: Optional[str],
    action: str,
    from_value: str = '',
    to_value: str = '',
    meta: Optional[Dict[str, Any]] = None,
) -> Optional[ActivityLog]:
    """Best-effort audit entry.

    Runs in its own savepoint: a failed insert is logged and the caller's
    transaction carries on.
    """
    try:
        with transaction.atomic():
            return ActivityLog.objects.create(
                issue=issue,
                actor_id=actor_id,
                action=action,
                from_value=from_value or '',
                to_value=to_value or '',
                meta=meta or {},
            )
    except DatabaseError:
        logger.warning(
            "[board] activity %s for issue#%s not recorded",
            action, getattr(issue, 'pk', None), exc_info=True,
        )
        return None
