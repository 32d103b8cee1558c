"""
Search filter schema - the typed, request-scoped set of search constraints.

Canonicalizes filter inputs at the API boundary. Inputs arrive either as a
query string (GET) or as a JSON body (POST exports); both camelCase
(zipCode, minPrice) and snake_case (zip_code, min_price) names are accepted.

Parsing is lenient: a malformed optional filter is dropped, never rejected.
The only hard failure is a missing required field (see require_state).

Money bounds are dollars at this boundary; the predicate builder converts
them to the stored cent values. Numbers outside what the columns can hold
are dropped here so they never reach a bind parameter.
"""

import re
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from constants import (
    MAX_FILTER_DOLLARS,
    MAX_FILTER_INT,
    MAX_FILTER_RATIO,
    PROPERTY_TYPES,
    normalize_property_type,
)
from utils.normalize import (
    ValidationError,
    clean_str,
    lenient_float,
    lenient_int,
    split_csv,
    strict_true,
)

ZIP_PATTERN = re.compile(r'^(\d{5})(?:-\d{4})?$')

# field -> accepted input names, first match wins
FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    'zip_codes': ('zipCode', 'zip_code', 'zipCodes', 'zip'),
    'city': ('city',),
    'state': ('state',),
    'min_price': ('minPrice', 'min_price'),
    'max_price': ('maxPrice', 'max_price'),
    'min_rent': ('minRent', 'min_rent'),
    'max_rent': ('maxRent', 'max_rent'),
    'min_ratio': ('minRatio', 'min_ratio'),
    'max_ratio': ('maxRatio', 'max_ratio'),
    'bedrooms': ('bedrooms',),
    'bathrooms': ('bathrooms',),
    'property_type': ('propertyType', 'property_type'),
    'min_sqft': ('minSquareFeet', 'min_sqft', 'minSqft', 'min_square_feet'),
    'max_sqft': ('maxSquareFeet', 'max_sqft', 'maxSqft', 'max_square_feet'),
    'anomalies_only': ('anomaliesOnly', 'anomalies_only'),
    'sort_by': ('sortBy', 'sort_by'),
    'sort_order': ('sortOrder', 'sort_order'),
    'limit': ('limit',),
    'offset': ('offset',),
}

# Echo names for the "filters" object in responses
ECHO_NAMES = {
    'zip_codes': 'zipCode',
    'city': 'city',
    'state': 'state',
    'min_price': 'minPrice',
    'max_price': 'maxPrice',
    'min_rent': 'minRent',
    'max_rent': 'maxRent',
    'min_ratio': 'minRatio',
    'max_ratio': 'maxRatio',
    'bedrooms': 'bedrooms',
    'bathrooms': 'bathrooms',
    'property_type': 'propertyType',
    'min_sqft': 'minSquareFeet',
    'max_sqft': 'maxSquareFeet',
    'anomalies_only': 'anomaliesOnly',
}


class SearchFilter(BaseModel):
    """
    Validated search constraints.

    Frozen after creation; built by parse_search_filter() and never persisted.
    sort_by/sort_order/limit/offset are carried raw-but-typed here and
    resolved against the endpoint's allow-list and caps by the query builder.
    """
    model_config = ConfigDict(frozen=True, extra='ignore')

    zip_codes: Tuple[str, ...] = ()
    city: Optional[str] = None
    state: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    min_rent: Optional[float] = None
    max_rent: Optional[float] = None
    min_ratio: Optional[float] = None
    max_ratio: Optional[float] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[float] = None
    property_type: Optional[str] = None
    min_sqft: Optional[int] = None
    max_sqft: Optional[int] = None
    anomalies_only: bool = False

    sort_by: Optional[str] = None
    sort_order: Optional[str] = None
    limit: Optional[int] = None
    offset: Optional[int] = None

    def echo(self) -> Dict[str, Any]:
        """Applied (normalized) criteria for client-side display."""
        echoed: Dict[str, Any] = {}
        for field_name, echo_name in ECHO_NAMES.items():
            value = getattr(self, field_name)
            if value is None or value == () or value is False:
                continue
            if field_name == 'zip_codes':
                value = list(value)
            echoed[echo_name] = value
        return echoed

    def cache_params(self) -> Dict[str, Any]:
        """All fields (including pagination) for response-cache keys."""
        return self.model_dump()


def _raw_value(raw: Mapping[str, Any], names: Tuple[str, ...], *, as_list: bool = False) -> Any:
    for name in names:
        if as_list and hasattr(raw, 'getlist'):
            values = raw.getlist(name)
            if values:
                return values
            continue
        if name in raw and raw.get(name) is not None:
            return raw.get(name)
    return None


def _parse_zip_codes(value: Any) -> Tuple[str, ...]:
    zips = []
    for item in split_csv(value):
        match = ZIP_PATTERN.match(item)
        if match and match.group(1) not in zips:
            zips.append(match.group(1))
    return tuple(zips)


def _parse_property_type(value: Any, excluded: Tuple[str, ...]) -> Optional[str]:
    text = clean_str(value)
    if text is None or text.lower() in excluded:
        return None
    normalized = normalize_property_type(text)
    return normalized if normalized in PROPERTY_TYPES else None


def _within(value: Optional[float], limit: float) -> Optional[float]:
    return value if value is not None and abs(value) <= limit else None


def _money(value: Any) -> Optional[float]:
    return _within(lenient_float(value), MAX_FILTER_DOLLARS)


def _count(value: Any) -> Optional[int]:
    return _within(lenient_int(value), MAX_FILTER_INT)


def _parse_state(value: Any) -> Optional[str]:
    text = clean_str(value)
    return text.upper() if text else None


def parse_search_filter(
    raw: Optional[Mapping[str, Any]],
    *,
    require_state: bool = False,
    excluded_property_types: Tuple[str, ...] = ('any', 'all', ''),
) -> SearchFilter:
    """
    Parse raw request parameters into a SearchFilter.

    Args:
        raw: request.args (MultiDict) or a parsed JSON body; a body that is
            not an object (a bare string, list or number) counts as empty
        require_state: raise ValidationError when state is missing

    Raises:
        ValidationError: only for missing required fields
    """
    if not isinstance(raw, Mapping):
        raw = {}

    def get(field_name: str) -> Any:
        return _raw_value(raw, FIELD_ALIASES[field_name])

    state = _parse_state(get('state'))
    if require_state and not state:
        raise ValidationError("State parameter is required", field='state')

    sort_order = clean_str(get('sort_order'))

    return SearchFilter(
        zip_codes=_parse_zip_codes(_raw_value(raw, FIELD_ALIASES['zip_codes'], as_list=True)),
        city=clean_str(get('city')),
        state=state,
        min_price=_money(get('min_price')),
        max_price=_money(get('max_price')),
        min_rent=_money(get('min_rent')),
        max_rent=_money(get('max_rent')),
        min_ratio=_within(lenient_float(get('min_ratio')), MAX_FILTER_RATIO),
        max_ratio=_within(lenient_float(get('max_ratio')), MAX_FILTER_RATIO),
        bedrooms=_count(get('bedrooms')),
        bathrooms=lenient_float(get('bathrooms')),
        property_type=_parse_property_type(get('property_type'), excluded_property_types),
        min_sqft=_count(get('min_sqft')),
        max_sqft=_count(get('max_sqft')),
        anomalies_only=strict_true(get('anomalies_only')),
        sort_by=clean_str(get('sort_by')),
        sort_order=sort_order.lower() if sort_order else None,
        limit=lenient_int(get('limit')),
        offset=lenient_int(get('offset')),
    )
