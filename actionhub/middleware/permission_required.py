"""
Route decorators: session-token aware access checks.

Usage:
    @bp.route("/api/v1/actions", methods=["GET"])
    @login_required
    def list_actions():
        user = g.current_user
        ...

    @bp.route("/api/v1/admin/users", methods=["GET"])
    @require_role("Admin")
    def list_users():
        ...

The role is always re-read from the database; the role claim inside the
token is informational only, so a demotion takes effect immediately.
"""

import functools
import logging

from flask import g

from actionhub.models import db
from actionhub.models.user import User
from actionhub.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def _load_current_user():
    """Resolve g.jwt_user_id to an active User, or return an error response."""
    user_id = getattr(g, "jwt_user_id", None)
    if user_id is None:
        message = getattr(g, "jwt_error", None) or "Authentication required"
        return None, api_error(E.UNAUTHENTICATED, message)

    user = db.session.get(User, user_id)
    if user is None or user.is_deleted:
        logger.warning("Session token for unknown or deleted user %s", user_id)
        return None, api_error(E.UNAUTHENTICATED, "User no longer exists")

    g.current_user = user
    return user, None


def login_required(f):
    """Decorator: require a valid session token for an active user."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _, err = _load_current_user()
        if err:
            return err
        return f(*args, **kwargs)
    return decorated


def require_role(*roles: str):
    """
    Decorator: require the effective user to hold one of the given roles.

    While an admin impersonates someone, the impersonated user's role is
    what counts.
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            user, err = _load_current_user()
            if err:
                return err
            if user.role not in roles:
                logger.warning(
                    "User %s (%s) denied on %s: requires %s",
                    user.id, user.role, f.__name__, ", ".join(roles),
                )
                return api_error(
                    E.FORBIDDEN, "Permission denied", details={"required_roles": list(roles)},
                )
            return f(*args, **kwargs)
        return decorated
    return decorator


require_admin = require_role("Admin")
