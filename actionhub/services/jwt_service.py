"""
Session tokens.

A Firebase ID token is verified once, at sign-in. The API then trusts a
short-lived HS256 token signed with JWT_SECRET_KEY. Claims:

    sub   effective user id
    role  role at issue time (display only; authorization re-reads the DB)
    imp   impersonating admin id, present only while impersonating
    type  always "access"
    iat / exp / jti
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

ALGORITHM = "HS256"
TOKEN_TYPE = "access"


def _signing_key():
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def token_lifetime() -> int:
    """Seconds a freshly issued token stays valid."""
    return int(current_app.config.get("JWT_ACCESS_EXPIRES", 3600))


def generate_access_token(user_id: str, role: str, impersonator_id: str | None = None) -> str:
    issued = datetime.now(timezone.utc)
    claims = {
        "sub": user_id,
        "role": role,
        "type": TOKEN_TYPE,
        "iat": issued,
        "exp": issued + timedelta(seconds=token_lifetime()),
        "jti": uuid.uuid4().hex,
    }
    if impersonator_id:
        claims["imp"] = impersonator_id
    return jwt.encode(claims, _signing_key(), algorithm=ALGORITHM)


def build_session_payload(user, impersonator=None) -> dict:
    """Body returned by sign-in, impersonate and stop-impersonating."""
    return {
        "access_token": generate_access_token(
            user.id, user.role, impersonator.id if impersonator else None
        ),
        "token_type": "Bearer",
        "expires_in": token_lifetime(),
        "user": user.to_dict(),
        "is_impersonating": impersonator is not None,
        "original_user": impersonator.to_dict() if impersonator else None,
    }


def decode_access_token(token: str) -> dict:
    """Verify signature, expiry and token type; return the claims.

    Raises ``jwt.ExpiredSignatureError`` or ``jwt.InvalidTokenError``.
    """
    claims = jwt.decode(
        token, _signing_key(), algorithms=[ALGORITHM], options={"require": ["sub", "exp"]}
    )
    if claims.get("type") != TOKEN_TYPE:
        raise jwt.InvalidTokenError("Not a session access token")
    return claims
