"""
Request logging middleware - sampled access log for /api routes.

Env vars:
  - REQUEST_LOG_ENABLED (default: true)
  - REQUEST_LOG_SAMPLE_RATE (default: 0.0)
  - REQUEST_LOG_ENDPOINTS (comma-separated path prefixes to always log,
    e.g. "/api/export,/api/analytics/anomalies")

Errors (status >= 500) are always logged regardless of sampling.
"""

import logging
import os
import random
import time
from typing import List

from flask import Flask, g, request

from utils.normalize import lenient_float, split_csv


logger = logging.getLogger("roiscout.request")


def _should_log(path: str, status: int, watchlist: List[str], sample_rate: float) -> bool:
    if status >= 500:
        return True
    if any(path.startswith(prefix) for prefix in watchlist):
        return True
    if sample_rate <= 0:
        return False
    return sample_rate >= 1 or random.random() <= sample_rate


def setup_request_logging_middleware(app: Flask) -> None:
    if os.environ.get("REQUEST_LOG_ENABLED", "true").lower() != "true":
        return

    sample_rate = lenient_float(os.environ.get("REQUEST_LOG_SAMPLE_RATE")) or 0.0
    watchlist = split_csv(os.environ.get("REQUEST_LOG_ENDPOINTS"))

    @app.before_request
    def _start_timer():
        g.request_start = time.perf_counter()

    @app.after_request
    def _log_request(response):
        path = request.path
        if not path.startswith("/api"):
            return response
        if not _should_log(path, response.status_code, watchlist, sample_rate):
            return response

        duration_ms = None
        if hasattr(g, "request_start"):
            duration_ms = round((time.perf_counter() - g.request_start) * 1000, 2)

        logger.info(
            "api_request path=%s method=%s status=%s duration_ms=%s request_id=%s",
            path,
            request.method,
            response.status_code,
            duration_ms,
            getattr(g, "request_id", None),
        )
        return response
