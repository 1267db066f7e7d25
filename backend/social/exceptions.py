"""
Domain Exceptions + Custom Exception Handler for DRF

Services raise the domain exceptions below; views never catch them.
The handler turns them into a consistent error format:

    {"error": "<stable message>", "code": "<stable code>"}

Calling UIs branch on `code` (e.g. "poll_ended" vs a generic error).
"""
import logging

from django.db import IntegrityError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class SocialError(Exception):
    """Base class for user-facing failures."""
    default_message = 'Request failed.'
    code = 'error'
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotAuthenticatedError(SocialError):
    default_message = 'Not authenticated'
    code = 'not_authenticated'
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(SocialError):
    default_message = 'Forbidden'
    code = 'forbidden'
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(SocialError):
    default_message = 'Not found'
    code = 'not_found'
    status_code = status.HTTP_404_NOT_FOUND


class PollNotFoundError(NotFoundError):
    default_message = 'Poll not found'
    code = 'poll_not_found'


class InvalidInputError(SocialError):
    default_message = 'Invalid input'
    code = 'invalid_input'


class PollEndedError(InvalidInputError):
    default_message = 'This poll has ended'
    code = 'poll_ended'


class InvalidOptionError(InvalidInputError):
    default_message = 'Invalid option'
    code = 'invalid_option'


def custom_exception_handler(exc, context):
    """
    1. Domain errors -> their own status and code
    2. DRF errors -> DRF's response, wrapped in the same format
    3. IntegrityError -> 409 (duplicate detail record that slipped past a check)
    4. Anything else -> logged, generic 500
    """
    if isinstance(exc, SocialError):
        return Response(
            {'error': exc.message, 'code': exc.code},
            status=exc.status_code
        )

    response = exception_handler(exc, context)

    if response is not None:
        if not isinstance(response.data, dict) or 'error' not in response.data:
            response.data = {
                'error': str(exc),
                'code': getattr(exc, 'default_code', 'error'),
                'details': response.data
            }
        return response

    if isinstance(exc, IntegrityError):
        logger.warning("IntegrityError: %s", exc)
        return Response(
            {'error': 'Data integrity error. This may be a duplicate entry.', 'code': 'conflict'},
            status=status.HTTP_409_CONFLICT
        )

    logger.exception("Unhandled exception: %s", exc)

    return Response(
        {'error': 'An unexpected error occurred.'},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )
