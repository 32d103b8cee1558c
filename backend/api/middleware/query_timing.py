"""
Query timing middleware - per-request SQL timing.

Each search issues a primary and a count statement (plus peer lookups),
so the per-request totals are the useful signal here.

Log format:
    SLOW_QUERY request_id=<uuid> elapsed_ms=<float> stmt=<first 80 chars>
    REQUEST_TIMING request_id=<uuid> db_time_ms=<float> query_count=<int>
"""

import logging
import os
import time

from flask import Flask, g, has_request_context
from sqlalchemy import event
from sqlalchemy.engine import Engine

from utils.normalize import lenient_float

logger = logging.getLogger('roiscout.query_timing')

SLOW_QUERY_THRESHOLD_MS = lenient_float(os.environ.get('SLOW_QUERY_THRESHOLD_MS')) or 500.0
REQUEST_DB_LOG_THRESHOLD_MS = 200.0

_listeners_installed = False


def _before_execute(conn, cursor, statement, parameters, context, executemany):
    context._query_start_time = time.perf_counter()


def _after_execute(conn, cursor, statement, parameters, context, executemany):
    start_time = getattr(context, '_query_start_time', None)
    if start_time is None:
        return
    elapsed_ms = (time.perf_counter() - start_time) * 1000

    if has_request_context():
        g.db_time_ms = getattr(g, 'db_time_ms', 0.0) + elapsed_ms
        g.db_query_count = getattr(g, 'db_query_count', 0) + 1

    if elapsed_ms > SLOW_QUERY_THRESHOLD_MS:
        stmt_preview = (statement[:80] + '...') if statement and len(statement) > 80 else statement
        logger.warning(
            "SLOW_QUERY request_id=%s elapsed_ms=%.2f stmt=%s",
            _get_request_id(), elapsed_ms, stmt_preview,
        )


def _install_engine_listeners() -> None:
    # Engine-class listeners are process-wide; install them once even when
    # several apps are created (tests, CLI).
    global _listeners_installed
    if _listeners_installed:
        return
    event.listen(Engine, "before_cursor_execute", _before_execute)
    event.listen(Engine, "after_cursor_execute", _after_execute)
    _listeners_installed = True


def setup_query_timing_middleware(app: Flask) -> None:
    """Hook SQLAlchemy engine events and add X-DB-Time-Ms / X-Query-Count headers."""
    _install_engine_listeners()

    @app.before_request
    def reset_query_timing():
        g.db_time_ms = 0.0
        g.db_query_count = 0

    @app.after_request
    def inject_timing_headers(response):
        query_count = getattr(g, 'db_query_count', 0)
        if not query_count:
            return response

        total_db_ms = round(getattr(g, 'db_time_ms', 0.0), 2)
        response.headers['X-DB-Time-Ms'] = str(total_db_ms)
        response.headers['X-Query-Count'] = str(query_count)

        if total_db_ms > REQUEST_DB_LOG_THRESHOLD_MS:
            logger.info(
                "REQUEST_TIMING request_id=%s db_time_ms=%.2f query_count=%s",
                _get_request_id(), total_db_ms, query_count,
            )
        return response


def _get_request_id() -> str:
    if has_request_context():
        return getattr(g, 'request_id', 'no-request-id')
    return 'no-request-id'
