"""
Request ID middleware - correlate logs and error bodies per request.

An incoming X-Request-ID is honoured when it looks sane; otherwise a
fresh UUID4 is generated. The id lands in g.request_id, in every error
envelope, and in the X-Request-ID response header.
"""

import re
import uuid
from flask import Flask, request, g

# Client-supplied ids end up in logs, so keep them short and printable
_REQUEST_ID_PATTERN = re.compile(r'^[A-Za-z0-9._-]{1,64}$')


def _incoming_request_id():
    candidate = request.headers.get('X-Request-ID', '').strip()
    if candidate and _REQUEST_ID_PATTERN.match(candidate):
        return candidate
    return None


def setup_request_id_middleware(app: Flask) -> None:
    """Inject g.request_id before each request and echo it on the response."""

    @app.before_request
    def inject_request_id():
        g.request_id = _incoming_request_id() or str(uuid.uuid4())

    @app.after_request
    def add_request_id_header(response):
        request_id = getattr(g, 'request_id', None)
        if request_id:
            response.headers['X-Request-ID'] = request_id
        return response
