"""
Cache key helpers.

Provides stable, normalized cache key construction so equivalent filter
sets (different parameter order, camelCase vs snake_case input) map to the
same key.
"""

from datetime import date, datetime
import json
from typing import Any, Dict


def _normalize_cache_value(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_normalize_cache_value(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _normalize_cache_value(v) for k, v in sorted(value.items())}
    return value


def normalize_cache_params(params: Dict[str, Any]) -> Dict[str, Any]:
    """
    Normalize params for cache keys.

    - Skips empty values (None, "", empty containers, False)
    - Sorts keys for stability
    - Normalizes dates, tuples and nested structures
    """
    filtered: Dict[str, Any] = {}
    for key, value in params.items():
        if value is None or value is False or value in ("", (), [], {}):
            continue
        filtered[key] = _normalize_cache_value(value)
    return {k: filtered[k] for k in sorted(filtered.keys())}


def build_json_cache_key(prefix: str, params: Dict[str, Any]) -> str:
    normalized = normalize_cache_params(params)
    return f"{prefix}:{json.dumps(normalized, sort_keys=True, default=str)}"
