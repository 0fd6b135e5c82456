# ============================================
# board/utils/concurrency.py
# ============================================
import functools
import logging
from contextlib import contextmanager

from django.db import IntegrityError, OperationalError

from board.exceptions import ConcurrencyConflict
from board.utils.conf import board_setting

logger = logging.getLogger(__name__)


@contextmanager
def conflict_guard(what: str):
    """Turn write contention on counters/ranks into ConcurrencyConflict."""
    try:
        yield
    except (IntegrityError, OperationalError) as exc:
        logger.warning("[board] conflict while %s: %s", what, exc)
        raise ConcurrencyConflict() from exc


def retry_on_conflict(func):
    """Re-run the whole operation when it raised ConcurrencyConflict.

    Apply outside ``transaction.atomic`` so every attempt gets a fresh
    transaction (or savepoint).
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        attempts = max(1, int(board_setting('CONFLICT_RETRIES')))
        for attempt in range(1, attempts + 1):
            try:
                return func(*args, **kwargs)
            except ConcurrencyConflict:
                if attempt == attempts:
                    logger.error("[board] %s gave up after %d attempts", func.__name__, attempts)
                    raise
                logger.info("[board] %s conflicted (attempt %d/%d), retrying", func.__name__, attempt, attempts)
    return wrapper
