"""
Unified API error handling.

Every error leaves the API as
``{"ok": false, "error": {"code": ..., "message": ..., "fields": ...}}``.
Database integrity problems that slip past the service checks become
409 responses instead of 500s.
"""
import logging

from django.db import IntegrityError, OperationalError
from django.db.models import ProtectedError
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class Conflict(exceptions.APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Conflict with the current state of the resource.'
    default_code = 'conflict'


class BusinessRuleError(exceptions.APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Operation not allowed.'
    default_code = 'bad_request'


class AccountLocked(exceptions.APIException):
    status_code = status.HTTP_423_LOCKED
    default_detail = 'Account temporarily locked after too many failed logins.'
    default_code = 'account_locked'


def _first_message(data):
    if isinstance(data, list) and data:
        return _first_message(data[0])
    if isinstance(data, dict) and data:
        return _first_message(next(iter(data.values())))
    return str(data)


def api_exception_handler(exc, context):
    if isinstance(exc, IntegrityError):
        logger.warning('integrity error: %s', exc)
        return Response(
            {'ok': False, 'error': {'code': 'conflict', 'message': 'Record conflicts with existing data.'}},
            status=status.HTTP_409_CONFLICT,
        )
    if isinstance(exc, ProtectedError):
        return Response(
            {'ok': False, 'error': {'code': 'conflict', 'message': 'Record is referenced by other records.'}},
            status=status.HTTP_409_CONFLICT,
        )
    if isinstance(exc, OperationalError):
        logger.error('database unavailable: %s', exc)
        return Response(
            {'ok': False, 'error': {'code': 'service_unavailable', 'message': 'Database unavailable.'}},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    resp = drf_exception_handler(exc, context)
    if resp is None:
        view = context.get('view')
        logger.exception('unhandled error in %s', getattr(view, '__name__', view), exc_info=exc)
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': 'Internal server error.'}},
                        status=500)

    if isinstance(exc, exceptions.ValidationError):
        fields = resp.data if isinstance(resp.data, dict) else {'non_field_errors': resp.data}
        error = {'code': 'validation_error', 'message': _first_message(resp.data), 'fields': fields}
    else:
        detail = resp.data.get('detail') if isinstance(resp.data, dict) else resp.data
        code = getattr(detail, 'code', None) or getattr(exc, 'default_code', None) or 'api_error'
        error = {'code': code, 'message': str(detail)}
    if resp.status_code >= 500:
        logger.error('api error %s: %s', resp.status_code, error['message'])
    return Response({'ok': False, 'error': error}, status=resp.status_code, headers=_passthrough_headers(resp))


def _passthrough_headers(resp):
    return {k: v for k, v in resp.items() if k in ('WWW-Authenticate', 'Retry-After', 'Allow')}
