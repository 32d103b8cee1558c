"""
Response envelope helpers.

Shapes repository rows into the external JSON contract:
- numeric coercion (Decimal/str from the driver -> float/int)
- dates -> ISO strings
- money columns: cents -> dollars
- pagination object and search/error envelopes
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from flask import g, has_request_context

from utils.normalize import lenient_int, to_number

# Stored in cents, exposed in dollars
MONEY_FIELDS = ('list_price', 'estimated_rent', 'monthly_rent')

INT_FIELDS = ('id', 'bedrooms', 'square_feet', 'peer_count', 'distance_rank')

FLOAT_FIELDS = (
    'bathrooms',
    'latitude',
    'longitude',
    'price_to_rent_ratio',
    'cap_rate',
    'gross_rent_multiplier',
    'ratio_vs_market_percent',
    'market_percentile',
    'market_median_ratio',
    'improvement_percent',
)


def _cents_to_dollars(value: Any) -> Optional[float]:
    cents = to_number(value)
    if cents is None:
        return None
    return round(cents / 100, 2)


def _coerce(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def serialize_property(row: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Serialize one property row for the API.

    Unknown keys pass through with generic Decimal/date coercion, so
    enrichment fields (score, deal_quality, ...) survive unchanged.
    """
    result: Dict[str, Any] = {}
    for key, value in row.items():
        if key in MONEY_FIELDS:
            result[key] = _cents_to_dollars(value)
        elif key in INT_FIELDS:
            result[key] = lenient_int(value) if value is not None else None
        elif key in FLOAT_FIELDS:
            result[key] = to_number(value)
        elif key == 'zip_code' and value is not None:
            # Leading zeros matter
            result[key] = str(value)
        else:
            result[key] = _coerce(value)
    return result


def serialize_rows(rows: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    return [serialize_property(row) for row in rows]


def pagination_envelope(total: int, limit: int, offset: int) -> Dict[str, Any]:
    """
    Pagination object.

    Example:
        >>> pagination_envelope(95, 20, 90)
        {'total': 95, 'limit': 20, 'offset': 90, 'hasMore': False}
    """
    return {
        "total": total,
        "limit": limit,
        "offset": offset,
        "hasMore": offset + limit < total,
    }


def search_response(
    rows: Iterable[Mapping[str, Any]],
    pagination: Dict[str, Any],
    filters: Dict[str, Any],
) -> Dict[str, Any]:
    """{"properties": [...], "pagination": {...}, "filters": {...}}"""
    return {
        "properties": serialize_rows(rows),
        "pagination": pagination,
        "filters": filters,
    }


def error_envelope(
    error: str,
    message: str,
    code: Optional[str] = None,
    field: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build the flat error body.

    Returns:
        {"error": "...", "message": "...", "code": "...", "requestId": "..."}
    """
    body = {
        "error": error,
        "message": message,
        "code": code,
        "requestId": getattr(g, 'request_id', None) if has_request_context() else None,
    }
    if field:
        body['field'] = field
    return body
