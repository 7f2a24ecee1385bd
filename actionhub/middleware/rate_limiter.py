"""
Per-blueprint rate limits (Flask-Limiter).

The Limiter in ``actionhub/__init__.py`` has no default limit; this
module attaches one limit per blueprint. Signed-in callers are counted
per user, anonymous calls (the sign-in exchange) per IP.

Usage:
    from actionhub.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import g
from flask_limiter.util import get_remote_address

logger = logging.getLogger(__name__)

BLUEPRINT_LIMITS = {
    "auth": "30/minute",
    # Each call fans out to the Workspace Directory API
    "groups": "20/minute",
    "admin": "60/minute",
    "workflow": "60/minute",
    "master_data": "60/minute",
    "actions": "120/minute",
    "reports": "120/minute",
    "shell": "300/minute",
}

EXEMPT_BLUEPRINTS = ("health",)


def rate_limit_key():
    user_id = getattr(g, "jwt_user_id", None)
    return f"user:{user_id}" if user_id else get_remote_address()


def init_rate_limits(app, limiter):
    """Attach BLUEPRINT_LIMITS. No-op under TESTING."""
    if app.config.get("TESTING"):
        return

    applied = []
    for name, limit in BLUEPRINT_LIMITS.items():
        blueprint = app.blueprints.get(name)
        if blueprint is None:
            continue
        limiter.limit(limit, key_func=rate_limit_key)(blueprint)
        applied.append(f"{name}={limit}")

    for name in EXEMPT_BLUEPRINTS:
        if name in app.blueprints:
            limiter.exempt(app.blueprints[name])

    logger.info("Rate limits applied: %s", ", ".join(applied))
