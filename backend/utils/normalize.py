"""
Input Normalization Utilities
=============================

Single source of truth for input normalization.
All parsing of external inputs happens here, nowhere else.

Parsers are lenient: they return None for junk, because a malformed optional
search filter is dropped, never rejected. ValidationError is reserved for
missing required parameters.

Usage:
    from utils.normalize import lenient_int, lenient_float, ValidationError

    limit = lenient_int(request.args.get("limit"))
    min_ratio = lenient_float(request.args.get("minRatio"))
"""

import math
from decimal import Decimal
from typing import Any, List, Optional


class ValidationError(ValueError):
    """Raised when input cannot be normalized to expected type."""

    def __init__(self, message: str, field: str = None, received_value=None):
        super().__init__(message)
        self.field = field
        self.received_value = received_value


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def lenient_float(value: Any) -> Optional[float]:
    """Parse a float, returning None for blank, non-numeric, NaN or infinite input."""
    if _is_blank(value) or isinstance(value, bool):
        return None
    try:
        parsed = float(value)
    except (ValueError, TypeError):
        return None
    if math.isnan(parsed) or math.isinf(parsed):
        return None
    return parsed


def lenient_int(value: Any) -> Optional[int]:
    """
    Parse an int, returning None for junk.

    Accepts "3" and "3.0"; rejects "3.5" rather than silently truncating.
    """
    parsed = lenient_float(value)
    if parsed is None or not parsed.is_integer():
        return None
    return int(parsed)


def strict_true(value: Any) -> bool:
    """True only for boolean True or the string "true" (case-insensitive)."""
    if isinstance(value, bool):
        return value
    return isinstance(value, str) and value.strip().lower() == "true"


def clean_str(value: Any) -> Optional[str]:
    """Strip a string value; blank becomes None."""
    if _is_blank(value):
        return None
    return str(value).strip()


def split_csv(value: Any) -> List[str]:
    """Expand "a, b" or ["a", "b,c"] into ["a", "b", "c"], dropping blanks."""
    if value is None:
        return []
    items = value if isinstance(value, (list, tuple)) else [value]
    expanded: List[str] = []
    for item in items:
        if item is None:
            continue
        expanded.extend(p.strip() for p in str(item).split(",") if p.strip())
    return expanded


def to_number(value: Any) -> Optional[float]:
    """
    Coerce DB driver output to float.

    psycopg2 returns NUMERIC as Decimal and some views return text; both
    are converted here. NaN becomes None.
    """
    if value is None:
        return None
    if isinstance(value, Decimal):
        value = float(value)
    parsed = lenient_float(value)
    return parsed


def validation_error_response(error: ValidationError):
    """Build a 400 JSON response for a ValidationError."""
    from api.serializers.response import error_envelope
    from flask import jsonify

    body = error_envelope(
        "Invalid parameter",
        str(error),
        code="INVALID_PARAMS",
        field=error.field,
    )
    return jsonify(body), 400
