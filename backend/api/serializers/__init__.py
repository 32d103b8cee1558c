"""
Response serializers and envelope helpers.
"""

from .response import (
    error_envelope,
    pagination_envelope,
    search_response,
    serialize_property,
    serialize_rows,
)

__all__ = [
    'error_envelope',
    'pagination_envelope',
    'search_response',
    'serialize_property',
    'serialize_rows',
]
