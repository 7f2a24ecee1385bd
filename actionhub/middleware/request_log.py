"""
Request id, duration header and one access-log line per API request.

  X-Request-ID           echoed from the caller or generated
  X-Request-Duration-Ms  wall time spent in the app

Writes performed while an admin impersonates someone are logged at INFO
with both identities, whatever their duration.
"""

import logging
import time
import uuid

from flask import Flask, g, request

logger = logging.getLogger(__name__)

# Workspace-backed endpoints (sign-in sync, group import) run a few hundred ms
SLOW_REQUEST_MS = 2000

_WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def _should_log(path: str) -> bool:
    return path.startswith("/api/") and not path.startswith("/api/v1/health")


def init_request_logging(app: Flask):
    """Register the before/after hooks."""

    @app.before_request
    def _begin():
        g.request_started = time.perf_counter()
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]

    @app.after_request
    def _finish(response):
        started = getattr(g, "request_started", None)
        if started is None:
            return response
        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers["X-Request-ID"] = g.request_id
        response.headers["X-Request-Duration-Ms"] = f"{elapsed_ms:.1f}"

        if not _should_log(request.path):
            return response

        extra = {
            "method": request.method,
            "path": request.path,
            "status": response.status_code,
            "duration_ms": round(elapsed_ms, 1),
        }
        line = "%s %s → %d in %.0fms"
        args = (request.method, request.path, response.status_code, elapsed_ms)

        if response.status_code >= 500:
            logger.error(line, *args, extra=extra)
        elif elapsed_ms > SLOW_REQUEST_MS:
            logger.warning("Slow request: " + line, *args, extra=extra)
        elif getattr(g, "jwt_impersonator_id", None) and request.method in _WRITE_METHODS:
            logger.info("Impersonated write: " + line, *args, extra=extra)
        else:
            logger.debug(line, *args, extra=extra)
        return response
