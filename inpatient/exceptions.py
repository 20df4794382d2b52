import logging

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.views import exception_handler as drf_exception_handler
from rest_framework.response import Response

logger = logging.getLogger(__name__)


class Conflict(exceptions.APIException):
    """The request violates a bed/occupancy invariant."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Request conflicts with the current state.'
    default_code = 'conflict'


RACE_MESSAGE = 'The bed or patient was changed by another request, please retry'


_ERROR_CODES = {
    exceptions.NotAuthenticated: 'unauthorized',
    exceptions.AuthenticationFailed: 'unauthorized',
    exceptions.PermissionDenied: 'forbidden',
    exceptions.NotFound: 'not_found',
    Http404: 'not_found',
    DjangoPermissionDenied: 'forbidden',
    exceptions.ValidationError: 'validation',
    exceptions.ParseError: 'validation',
    Conflict: 'conflict',
}


def _error_code(exc) -> str:
    for exc_type, code in _ERROR_CODES.items():
        if isinstance(exc, exc_type):
            return code
    return 'api_error'


def api_exception_handler(exc, context):
    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.exception("unhandled API error: %r", exc)
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': 'Internal server error'}}, status=500)
    # normalize response
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = resp.data
    return Response(
        {'ok': False, 'error': {'code': _error_code(exc), 'message': detail}},
        status=resp.status_code,
        headers={k: v for k, v in resp.items()},
    )
