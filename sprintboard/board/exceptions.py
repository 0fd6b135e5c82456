# ============================================
# board/exceptions.py
# ============================================
"""
Domain errors raised by the board services.

Every error is a DRF APIException so views can let them propagate: the
default exception handler turns them into {"detail": ...} responses with the
matching status code.
"""
from rest_framework import exceptions, status


class NotFound(exceptions.NotFound):
    default_detail = 'Resource not found.'


class ValidationError(exceptions.APIException):
    """Malformed reference or a request the current state does not allow.

    Unlike DRF's serializer ValidationError the detail stays a plain string.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid request.'
    default_code = 'invalid'


class ParentChainTooDeep(ValidationError):
    default_detail = 'Parent chain too deep.'
    default_code = 'parent_chain_too_deep'


class GateBlocked(exceptions.APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Transition blocked by outstanding reviews.'
    default_code = 'gate_blocked'

    def __init__(self, pending_count: int = 0, changes_requested_count: int = 0):
        self.pending_count = pending_count
        self.changes_requested_count = changes_requested_count
        super().__init__(detail=self._message(pending_count, changes_requested_count))

    @staticmethod
    def _message(pending: int, changes: int) -> str:
        message = 'Cannot transition issue to Done: '
        if pending and changes:
            return message + (
                f'{pending} pending review(s) and {changes} review(s) '
                f'requesting changes must be resolved first.'
            )
        if pending:
            return message + f'{pending} pending review(s) must be approved or cancelled first.'
        return message + f'{changes} review(s) requesting changes must be addressed first.'


class ConcurrencyConflict(exceptions.APIException):
    """Transient write contention; the whole operation may be retried."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Concurrent update detected, please retry.'
    default_code = 'conflict'


class AuthorizationError(exceptions.PermissionDenied):
    default_detail = 'You are not allowed to perform this action.'
