"""
Request timing middleware.

Records request duration and logs slow requests.
Adds X-Request-Duration-Ms and X-Request-ID headers to all responses.
"""

import logging
import time
import uuid

from flask import Flask, g, request

logger = logging.getLogger(__name__)

# Endpoints excluded from timing logs (high frequency, low value)
_SKIP_LOG = frozenset({"/api/v1/health/ready", "/api/v1/health/live"})

# Slow request threshold (ms)
SLOW_THRESHOLD_MS = 1000


def _submission_id():
    view_args = request.view_args or {}
    return view_args.get("sid")


def init_request_timing(app: Flask):
    """Register before/after hooks for request timing."""

    @app.before_request
    def _start_timer():
        g.request_start = time.perf_counter()
        g.request_id = request.headers.get("X-Request-ID", uuid.uuid4().hex[:12])

    @app.after_request
    def _log_request(response):
        start = getattr(g, "request_start", None)
        if start is None:
            return response

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-Duration-Ms"] = f"{duration_ms:.1f}"
        response.headers["X-Request-ID"] = getattr(g, "request_id", "")

        if request.path not in _SKIP_LOG:
            extra = {
                "method": request.method,
                "path": request.path,
                "status": response.status_code,
                "duration_ms": duration_ms,
                "remote_addr": request.remote_addr,
                "request_id": getattr(g, "request_id", ""),
                "submission_id": _submission_id(),
            }
            if duration_ms > SLOW_THRESHOLD_MS:
                logger.warning("Slow request: %s %s %d (%.0fms)",
                               request.method, request.path,
                               response.status_code, duration_ms, extra=extra)
            elif response.status_code >= 500:
                logger.error("Server error: %s %s %d (%.0fms)",
                             request.method, request.path,
                             response.status_code, duration_ms, extra=extra)
            else:
                logger.debug("Request: %s %s %d (%.0fms)",
                             request.method, request.path,
                             response.status_code, duration_ms, extra=extra)

        return response
