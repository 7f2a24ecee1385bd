"""
Logging setup.

One stream handler on the root logger. Output format follows LOG_FORMAT
("json" for log aggregation, "text" for a terminal); the default is text
under DEBUG or TESTING and json otherwise.

Every record emitted while a request is active is stamped with the
request id, the effective user and, during impersonation, the admin
behind it, so one grep on a user id covers both identities.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

# Request-scoped attributes injected by RequestContextFilter
CONTEXT_FIELDS = ("request_id", "user_id", "impersonator_id")

# Attributes callers pass through ``extra=``
EXTRA_FIELDS = ("method", "path", "status", "duration_ms", "group_id", "action_code")

_QUIET_LOGGERS = ("urllib3", "werkzeug", "sqlalchemy.engine", "google.auth", "cachecontrol")


class RequestContextFilter(logging.Filter):
    """Copy request identity from ``flask.g`` onto the record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            context = {
                "request_id": getattr(g, "request_id", None),
                "user_id": getattr(g, "jwt_user_id", None),
                "impersonator_id": getattr(g, "jwt_impersonator_id", None),
            }
            for key, value in context.items():
                if getattr(record, key, None) is None:
                    setattr(record, key, value)
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in CONTEXT_FIELDS + EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """``12:00:01 INFO  actionhub.services.x: message [user=… as=…]``"""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)-5s %(name)s: %(message)s", datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        tags = []
        if getattr(record, "user_id", None):
            tags.append(f"user={record.user_id}")
        if getattr(record, "impersonator_id", None):
            tags.append(f"as={record.impersonator_id}")
        return f"{line} [{' '.join(tags)}]" if tags else line


def configure_logging(app):
    """Install the root handler for ``app``. Safe to call more than once."""
    verbose = app.config.get("DEBUG") or app.config.get("TESTING")
    level_name = os.getenv("LOG_LEVEL", "DEBUG" if verbose else "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    fmt = os.getenv("LOG_FORMAT", "text" if verbose else "json").lower()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if fmt == "json" else TextFormatter())
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not app.config.get("TESTING"):
        app.logger.info("Logging configured: level=%s format=%s", level_name, fmt)
