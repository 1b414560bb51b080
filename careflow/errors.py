"""
Domain error taxonomy for the care workflow.

Every state-machine operation either returns the updated entity or raises
one of these.  ``api_exception_handler`` in :mod:`careflow.exceptions`
renders them as ``{'ok': False, 'error': {'code': ..., 'message': ...}}``
with the status code declared on the class.  Infrastructure failures
(``django.db.DatabaseError``) are deliberately *not* part of this tree.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from django.utils import timezone


class WorkflowError(Exception):
    code = 'workflow_error'
    status_code = 400
    default_message = 'The request could not be processed.'

    def __init__(self, message: Optional[str] = None, **context: Any) -> None:
        self.message = message or self.default_message
        self.context: Dict[str, Any] = context
        super().__init__(self.message)


class Forbidden(WorkflowError):
    code = 'forbidden'
    status_code = 403
    default_message = 'You are not allowed to perform this action.'


class NotFound(WorkflowError):
    code = 'not_found'
    status_code = 404
    default_message = 'The requested record does not exist.'


class InvalidTransition(WorkflowError):
    code = 'invalid_transition'
    status_code = 409
    default_message = 'The record is not in a state that allows this action.'


class InvalidSlot(WorkflowError):
    code = 'invalid_slot'
    status_code = 400
    default_message = 'The requested time slot cannot be booked.'


class ProviderUnavailable(WorkflowError):
    code = 'provider_unavailable'
    status_code = 409
    default_message = 'The doctor does not offer this kind of consultation.'


class TooEarly(WorkflowError):
    code = 'too_early'
    status_code = 409
    default_message = 'The appointment has not started yet.'


class Expired(WorkflowError):
    code = 'expired'
    status_code = 410

    def __init__(self, deadline: datetime, message: Optional[str] = None, **context: Any) -> None:
        self.deadline = deadline
        local = timezone.localtime(deadline).strftime('%Y-%m-%d %H:%M %Z')
        super().__init__(
            message or f'The prescription expired on {local} and can no longer be used.',
            deadline=deadline.isoformat(),
            **context,
        )


class DuplicatePrescription(WorkflowError):
    code = 'duplicate_prescription'
    status_code = 409
    default_message = 'This appointment already has an active prescription.'


class InvalidLineItem(WorkflowError):
    code = 'invalid_line_item'
    status_code = 400
    default_message = 'A prescription line item is invalid.'


class InsufficientStock(WorkflowError):
    code = 'insufficient_stock'
    status_code = 409
    default_message = 'The pharmacy does not stock every prescribed medication.'


class SideEffectDeferred(WorkflowError):
    """A best-effort side effect failed after its transition committed.

    Raised and handled inside the orchestrator only; callers never see it.
    """
    code = 'side_effect_deferred'
    status_code = 202
    default_message = 'A notification could not be delivered and was queued for retry.'

    def __init__(self, payload: Dict[str, Any], cause: BaseException) -> None:
        self.payload = payload
        self.cause = cause
        super().__init__(f'{self.default_message} ({type(cause).__name__}: {cause})')
