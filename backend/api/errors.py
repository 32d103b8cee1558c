"""
API exceptions.

Raised from routes and services; rendered into the flat JSON error
envelope by api.middleware.error_envelope.
"""


class ApiError(Exception):
    """Base class for errors that map to a client-visible HTTP status."""

    status_code = 500
    error = "Internal server error"
    code = "INTERNAL_ERROR"

    def __init__(self, message: str = None, field: str = None):
        super().__init__(message or self.error)
        self.message = message or self.error
        self.field = field


class NotFoundError(ApiError):
    status_code = 404
    error = "Not found"
    code = "NOT_FOUND"

    def __init__(self, error: str = None, message: str = None):
        super().__init__(message or error or self.error)
        if error:
            self.error = error
