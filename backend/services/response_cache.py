"""
Response cache - optional memoization of GET endpoint payloads.

Keyed by endpoint prefix + normalized SearchFilter (utils.cache_key), so
two requests with the same effective filters share an entry regardless of
parameter spelling or order. Purely an optimization: a TTL of 0 disables
it and every request goes to the database.

One TTLCache lives per app in app.extensions["roiscout"]["cache"].
"""

import logging
import threading
import time
from functools import wraps
from typing import Any, Callable, Dict, Optional

from flask import current_app, jsonify

from utils.cache_key import build_json_cache_key

logger = logging.getLogger('roiscout.cache')


class TTLCache:
    """Simple TTL cache with max size limit."""

    def __init__(self, maxsize: int = 500, ttl: int = 300):
        self._cache: Dict[str, Any] = {}
        self._maxsize = maxsize
        self._ttl = ttl
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    @property
    def enabled(self) -> bool:
        return self._ttl > 0 and self._maxsize > 0

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._cache.get(key)
            if entry is not None:
                value, timestamp = entry
                if time.monotonic() - timestamp < self._ttl:
                    self.hits += 1
                    return value
                del self._cache[key]
            self.misses += 1
            return None

    def set(self, key: str, value: Any) -> None:
        if not self.enabled:
            return
        with self._lock:
            # Evict oldest entry if at capacity
            if key not in self._cache and len(self._cache) >= self._maxsize:
                oldest_key = min(self._cache, key=lambda k: self._cache[k][1])
                del self._cache[oldest_key]
            self._cache[key] = (value, time.monotonic())

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def stats(self) -> Dict[str, Any]:
        return {
            'size': len(self._cache),
            'maxsize': self._maxsize,
            'ttl': self._ttl,
            'hits': self.hits,
            'misses': self.misses,
        }


def get_cache() -> TTLCache:
    return current_app.extensions['roiscout']['cache']


def cached_json(prefix: str, params_fn: Callable[..., Dict[str, Any]]):
    """
    Cache a view's JSON payload.

    The wrapped view returns a plain dict; params_fn(**view_kwargs) returns
    the dict the cache key is built from. Errors propagate uncached.

    Usage:
        @bp.route('/properties')
        @cached_json('search', lambda: parse_request_filter().cache_params())
        def search(): ...
    """
    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            cache = get_cache()
            if not cache.enabled:
                return jsonify(view(*args, **kwargs))

            key = build_json_cache_key(prefix, {**params_fn(**kwargs), **kwargs})
            payload = cache.get(key)
            if payload is None:
                payload = view(*args, **kwargs)
                cache.set(key, payload)
            else:
                logger.debug("cache_hit key=%s", key)
            return jsonify(payload)
        return wrapper
    return decorator
