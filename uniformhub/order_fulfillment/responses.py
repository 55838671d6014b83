"""
Response envelope shared by the API views.
"""

import logging

from rest_framework.response import Response

from .exceptions import BusinessException

logger = logging.getLogger(__name__)


def success_response(data, status_code=200):
    return Response({
        'success': True,
        'data': data
    }, status=status_code)


def error_response(exc: BusinessException):
    """Translate a business exception into the error envelope with its HTTP status."""
    if exc.http_status >= 500:
        logger.error(f"{exc.code}: {exc.message}")
    return Response({
        'success': False,
        'error': {
            'code': exc.code,
            'message': exc.message,
            'details': exc.details,
            'retryable': exc.retryable,
        }
    }, status=exc.http_status)
