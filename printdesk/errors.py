"""Error taxonomy shared by the gate, the lifecycle engine and the API."""

import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class PrintDeskError(Exception):
    """Base class for errors surfaced to API callers.

    Every subclass carries a stable ``code`` and an HTTP status. The message
    is what the caller sees, so it must never contain storage or stack detail.
    """

    code = 'ERROR'
    http_status = 400
    default_message = 'Request failed'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {'error': self.message, 'code': self.code}


class ValidationError(PrintDeskError):
    code = 'VALIDATION_ERROR'
    http_status = 400
    default_message = 'Invalid input'


class NotFound(PrintDeskError):
    """Resource absent or owned by another organization.

    The two causes are deliberately indistinguishable to the caller.
    """

    code = 'NOT_FOUND'
    http_status = 404
    default_message = 'Not found'

    def __init__(self, message=None):
        # Detail is for logs only
        self.detail = message
        super().__init__(self.default_message)


class Forbidden(PrintDeskError):
    code = 'FORBIDDEN'
    http_status = 403
    default_message = 'Not authorized'

    def __init__(self, message=None):
        self.detail = message
        super().__init__(self.default_message)


class QuotaExceeded(Forbidden):
    code = 'QUOTA_EXCEEDED'
    default_message = 'Subscription plan limit reached'

    def __init__(self, message=None):
        super().__init__(message)
        self.message = message or self.default_message


class InvalidTransition(PrintDeskError):
    code = 'INVALID_TRANSITION'
    http_status = 409
    default_message = 'Invalid status transition'

    def __init__(self, current_status, target_status):
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            f'Cannot move a request from {current_status} to {target_status}'
        )


class Conflict(PrintDeskError):
    code = 'CONFLICT'
    http_status = 409
    default_message = 'Conflict'


class StorageError(PrintDeskError):
    code = 'STORAGE_ERROR'
    http_status = 502
    default_message = 'File storage is unavailable, please try again'

    def __init__(self, message=None):
        self.detail = message
        super().__init__(self.default_message)


class SessionInvalid(PrintDeskError):
    code = 'SESSION_INVALID'
    http_status = 401
    default_message = 'Session expired, please log in again'

    def __init__(self, message=None):
        self.detail = message
        super().__init__(self.default_message)


def register_error_handlers(app):
    """Map every error raised by the app to the JSON error envelope."""

    @app.errorhandler(PrintDeskError)
    def handle_printdesk_error(error):
        detail = getattr(error, 'detail', None)
        if detail:
            app.logger.info(f"{error.code}: {detail}")
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        code = (error.name or 'error').upper().replace(' ', '_')
        return jsonify({'error': error.description, 'code': code}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        app.logger.error(f"Unhandled error: {error}", exc_info=True)
        return jsonify({'error': 'Internal server error', 'code': 'INTERNAL_ERROR'}), 500
