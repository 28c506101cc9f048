"""
errors.py
---------
Domain error taxonomy and the JSON error handlers that translate it
into HTTP responses.
"""

from flask import jsonify
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

from logger import get_logger

logger = get_logger(__name__)


class FinanceError(Exception):
    """Base class for errors reported back to the API client."""

    status_code = 400
    default_message = 'Request could not be processed'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidAmount(FinanceError):
    """A non-positive amount was supplied to a mutating operation."""

    default_message = 'Amount must be greater than zero'


class PreconditionFailed(FinanceError):
    """The record is not in a state that allows the operation."""

    default_message = 'Operation not allowed in the current state'


class InsufficientBalance(PreconditionFailed):
    """An expense or goal contribution exceeds the available balance."""

    def __init__(self, available):
        self.available = available
        super().__init__(f'Insufficient balance: only {available:.2f} available')


class NotFound(FinanceError):
    status_code = 404
    default_message = 'Resource not found'


class AuthError(FinanceError):
    status_code = 401
    default_message = 'Authentication required'


def _validation_details(error):
    return [
        {'field': '.'.join(str(part) for part in item['loc']), 'message': item['msg']}
        for item in error.errors(include_url=False, include_context=False, include_input=False)
    ]


def register_error_handlers(app):
    """Attach JSON error handlers for domain, validation and HTTP errors."""

    @app.errorhandler(FinanceError)
    def handle_finance_error(e):
        if e.status_code >= 500:
            logger.error(e.message)
        else:
            logger.warning(f"{type(e).__name__}: {e.message}")
        return jsonify({'error': e.message}), e.status_code

    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        return jsonify({'error': 'Invalid data', 'errors': _validation_details(e)}), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        message = 'Route not found' if e.code == 404 else e.description
        return jsonify({'error': message}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        logger.exception(f"Unhandled error: {e}")
        return jsonify({'error': 'Internal server error'}), 500
