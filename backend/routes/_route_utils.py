"""
Shared route utilities.

Goals:
- Structured logger usage instead of ad-hoc prints
- Keep endpoint handlers small and consistent
- One place that turns database failures into a generic 500
"""

import time
import logging
from functools import wraps
from typing import Any, Dict, Optional

from flask import current_app, g, request
from sqlalchemy.exc import SQLAlchemyError

from api.errors import ApiError
from models.database import db
from schemas.search_filter import SearchFilter, parse_search_filter


class DatabaseError(ApiError):
    """Downstream query failure; the client only sees `message`."""
    status_code = 500
    error = "Database error"
    code = "DATABASE_ERROR"


def route_logger(name: str) -> logging.Logger:
    """Return namespaced logger for API routes."""
    return logging.getLogger(f"roiscout.routes.{name}")


def elapsed_ms(start_time: float) -> int:
    return int((time.perf_counter() - start_time) * 1000)


def log_success(
    logger: logging.Logger,
    route: str,
    start_time: float,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    payload = {"route": route, "elapsed_ms": elapsed_ms(start_time)}
    if details:
        payload.update(details)
    logger.info("route_success %s", payload)


def log_error(
    logger: logging.Logger,
    route: str,
    start_time: float,
    err: Exception,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    payload = {"route": route, "elapsed_ms": elapsed_ms(start_time)}
    if details:
        payload.update(details)
    logger.exception("route_error %s err=%s", payload, type(err).__name__)


def handle_db_errors(logger: logging.Logger, route: str, message: str):
    """
    Convert SQLAlchemy failures into DatabaseError(message).

    The full exception is logged with its traceback; the session is rolled
    back so the pooled connection is reusable.
    """
    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                return view(*args, **kwargs)
            except SQLAlchemyError as e:
                log_error(logger, route, start, e, {"request_id": getattr(g, "request_id", None)})
                db.session.rollback()
                raise DatabaseError(message) from e
        return wrapper
    return decorator


# =============================================================================
# REQUEST CONTEXT ACCESSORS
# =============================================================================

def get_settings():
    return current_app.extensions['roiscout']['settings']


def get_repository():
    return current_app.extensions['roiscout']['repository']


def query_arg(*names: str) -> Optional[str]:
    """First present query-string value among names (camelCase, snake_case)."""
    for name in names:
        value = request.args.get(name)
        if value is not None:
            return value
    return None


def request_filter(*, require_state: bool = False) -> SearchFilter:
    """
    SearchFilter for the current request, parsed once and kept on g.

    GET reads the query string; POST reads the JSON body.
    """
    cached = getattr(g, 'search_filter', None)
    if cached is not None:
        return cached
    raw = request.get_json(silent=True) if request.method == 'POST' else request.args
    search_filter = parse_search_filter(
        raw,
        require_state=require_state,
        excluded_property_types=get_settings().excluded_property_types,
    )
    g.search_filter = search_filter
    return search_filter
