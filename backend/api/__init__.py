"""
API package - request/response plumbing shared by all blueprints.

This package provides:
- ApiError hierarchy (api.errors)
- Response serializers and envelopes (api.serializers)
- Global middleware (request_id, error_envelope, request logging, query timing)
"""

from .errors import ApiError, NotFoundError

__all__ = ['ApiError', 'NotFoundError']
