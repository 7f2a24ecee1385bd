"""
Firebase Authentication: ID token verification.

The browser signs in with Firebase (Google provider) and posts the
resulting ID token once; this module verifies it against Google's public
certificates and returns the identity claims. Tokens are never issued here.
"""

from __future__ import annotations

import logging

from google.auth import exceptions as google_auth_exceptions
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

from actionhub.core.exceptions import AuthenticationError, ConfigurationError

logger = logging.getLogger(__name__)

_transport_request: google_requests.Request | None = None


def _get_transport() -> google_requests.Request:
    """Shared transport so the certificate fetch reuses one HTTP session."""
    global _transport_request
    if _transport_request is None:
        _transport_request = google_requests.Request()
    return _transport_request


def verify_id_token(token: str, project_id: str | None) -> dict:
    """Verify a Firebase ID token and return ``{uid, email, name, picture}``.

    Raises:
        ConfigurationError: FIREBASE_PROJECT_ID is not set.
        AuthenticationError: the token is missing, malformed, expired or for another project.
    """
    if not project_id:
        raise ConfigurationError("FIREBASE_PROJECT_ID is not configured")
    if not token:
        raise AuthenticationError("Identity token is required")

    try:
        claims = id_token.verify_firebase_token(token, _get_transport(), audience=project_id)
    except (ValueError, google_auth_exceptions.GoogleAuthError) as exc:
        logger.info("Rejected Firebase ID token: %s", exc)
        raise AuthenticationError("Invalid identity token") from exc

    if not claims:
        raise AuthenticationError("Invalid identity token")

    uid = claims.get("user_id") or claims.get("sub")
    if not uid:
        raise AuthenticationError("Identity token has no subject")

    return {
        "uid": uid,
        "email": (claims.get("email") or "").lower() or None,
        "name": claims.get("name"),
        "picture": claims.get("picture"),
    }
