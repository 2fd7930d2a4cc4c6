"""
Domain errors raised by the service layer and their HTTP mapping.
"""
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler
import logging

logger = logging.getLogger(__name__)


class MarketplaceError(Exception):
    """Base class for errors the caller is allowed to see."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Invalid request'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidOperation(MarketplaceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Invalid request'


class Forbidden(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = 'Access denied'


class NotFoundError(MarketplaceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = 'Not found'


def marketplace_exception_handler(exc, context):
    """
    DRF exception handler.

    Domain errors and DRF errors become `{"success": false, "message": ...}`
    bodies (field-level validation errors keep their dict). Anything else is
    logged with its traceback and answered with a generic 500.
    """
    if isinstance(exc, MarketplaceError):
        return Response({'success': False, 'message': exc.message}, status=exc.status_code)

    response = exception_handler(exc, context)
    if response is None:
        view = context.get('view')
        logger.exception(f"Unhandled error in {view.__class__.__name__ if view else 'API'}: {exc}")
        return Response(
            {'success': False, 'message': 'Server error'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    if isinstance(response.data, dict) and set(response.data) == {'detail'}:
        response.data = {'success': False, 'message': str(response.data['detail'])}
    return response
