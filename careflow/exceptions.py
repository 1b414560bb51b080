import logging

from django.db import DatabaseError
from rest_framework import exceptions as drf_exceptions
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from careflow.errors import WorkflowError

logger = logging.getLogger(__name__)


def _error(code, message, status, **extra):
    body = {'code': code, 'message': message}
    body.update(extra)
    return Response({'ok': False, 'error': body}, status=status)


def api_exception_handler(exc, context):
    if isinstance(exc, WorkflowError):
        extra = {'context': exc.context} if exc.context else {}
        return _error(exc.code, exc.message, exc.status_code, **extra)
    if isinstance(exc, DatabaseError):
        # Store unreachable or similar: the caller should retry the whole call.
        logger.error('database failure in %s: %r', context.get('view'), exc)
        return _error('unavailable', 'The service is temporarily unavailable. Please try again.', 503)

    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.exception('unhandled error in %s', context.get('view'), exc_info=exc)
        return _error('server_error', 'An unexpected error occurred.', 500)
    # normalize response
    if isinstance(exc, drf_exceptions.ValidationError):
        return _error('invalid', 'The request is invalid.', resp.status_code, fields=resp.data)
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = str(resp.data)
    code = getattr(exc, 'default_code', None) or 'api_error'
    if isinstance(exc, drf_exceptions.PermissionDenied):
        code = 'forbidden'
    return _error(code, detail, resp.status_code)
