"""
Error envelope middleware - Standardize all error responses.

Every error leaves the API in the same flat shape:
{
    "error": "Property not found",
    "message": "Property not found",
    "code": "NOT_FOUND",
    "requestId": "uuid"
}

Internal failures are logged with their traceback and surfaced as a
generic message; SQL text and stack traces never reach the client.
"""

import logging
from flask import Flask, jsonify, g
from werkzeug.exceptions import HTTPException

from api.errors import ApiError
from api.serializers.response import error_envelope
from utils.normalize import ValidationError, validation_error_response


logger = logging.getLogger('roiscout.errors')


def _with_request_id(response):
    request_id = getattr(g, 'request_id', None)
    if request_id:
        response.headers['X-Request-ID'] = request_id
    return response


def setup_error_handlers(app: Flask) -> None:
    """
    Set up standardized error handlers on Flask app.

    Handles:
    - ApiError subclasses (400, 404, ...)
    - ValidationError from input normalization (400)
    - HTTP exceptions raised by Flask/Werkzeug
    - Unhandled Python exceptions (500)

    Args:
        app: Flask application instance
    """

    @app.errorhandler(ApiError)
    def handle_api_error(error):
        body = error_envelope(error.error, error.message, code=error.code, field=error.field)
        return _with_request_id(jsonify(body)), error.status_code

    @app.errorhandler(ValidationError)
    def handle_validation_error(error):
        response, status = validation_error_response(error)
        return _with_request_id(response), status

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        """Handle Flask/Werkzeug HTTP exceptions."""
        # "Not Found" -> "NOT_FOUND"
        code = error.name.upper().replace(' ', '_')
        body = error_envelope(error.name, error.description, code=code)
        return _with_request_id(jsonify(body)), error.code

    @app.errorhandler(Exception)
    def handle_generic_error(error):
        """Handle unhandled Python exceptions."""
        logger.exception(
            "unhandled_error request_id=%s error_type=%s",
            getattr(g, 'request_id', None),
            type(error).__name__,
        )
        body = error_envelope(
            "Internal server error",
            "An unexpected error occurred",
            code="INTERNAL_ERROR",
        )
        return _with_request_id(jsonify(body)), 500
