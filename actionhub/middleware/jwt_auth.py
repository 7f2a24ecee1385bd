"""
Session token middleware.

Reads ``Authorization: Bearer <session token>`` on API requests and
exposes its claims:

  g.jwt_user_id          effective user (the impersonated one, if any)
  g.jwt_role             role claim, informational only
  g.jwt_impersonator_id  admin behind an impersonation, else None
  g.jwt_error            why a presented token was rejected

Nothing is rejected here; ``permission_required`` decides what needs a user.
"""

import logging

import jwt as pyjwt
from flask import g, request

from actionhub.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

# The token exchange itself and probes never carry a session token
PUBLIC_PREFIXES = ("/api/v1/auth/session", "/api/v1/health")


def _bearer_token():
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def init_jwt_middleware(app):
    """Register the before_request hook."""

    @app.before_request
    def _read_session_token():
        g.jwt_user_id = g.jwt_role = g.jwt_impersonator_id = g.jwt_error = None

        if not request.path.startswith("/api/") or request.path.startswith(PUBLIC_PREFIXES):
            return
        token = _bearer_token()
        if token is None:
            return

        try:
            claims = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            g.jwt_error = "Session token expired"
            return
        except pyjwt.InvalidTokenError as exc:
            logger.debug("Rejected session token: %s", exc)
            g.jwt_error = "Invalid session token"
            return

        g.jwt_user_id = claims.get("sub")
        g.jwt_role = claims.get("role")
        g.jwt_impersonator_id = claims.get("imp")
