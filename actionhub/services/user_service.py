"""
User Service: sign-in resolution, admin CRUD, impersonation, dashboard layout.

Sign-in resolution is create-or-touch: the first verified identity for a
uid creates the User with the default role; every later sign-in only
moves last_login. Role, name and avatar are never rewritten by a login.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from actionhub.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from actionhub.models import db
from actionhub.models.user import DEFAULT_ROLE, ROLE_ADMIN, USER_ROLES, User
from actionhub.utils.validation import is_http_url, normalize_email, require_text

logger = logging.getLogger(__name__)

ANONYMOUS_NAME = "Anonymous User"


# ═══════════════════════════════════════════════════════════════
# Lookup
# ═══════════════════════════════════════════════════════════════
def get_user(user_id: str, include_deleted: bool = False) -> User:
    user = db.session.get(User, user_id)
    if user is None or (user.is_deleted and not include_deleted):
        raise NotFoundError("User", user_id)
    return user


def get_active_user_by_email(email: str) -> User | None:
    return User.query_active().filter(User.email == email.lower()).first()


def list_users(include_deleted: bool = False) -> list[User]:
    query = User.query if include_deleted else User.query_active()
    return query.order_by(User.name.asc()).all()


# ═══════════════════════════════════════════════════════════════
# Sign-in
# ═══════════════════════════════════════════════════════════════
def login_with_identity(identity: dict) -> tuple[User, bool]:
    """Resolve a verified identity to its User, creating it on first sign-in.

    Args:
        identity: ``{"uid", "email", "name", "picture"}`` from the identity provider.

    Returns:
        (user, created)

    Raises:
        ValidationError: identity has no uid.
        ForbiddenError: the user was soft-deleted by an admin.
    """
    uid = identity.get("uid")
    if not uid:
        raise ValidationError("Identity has no uid", details={"uid": "required"})

    now = datetime.now(timezone.utc)
    user = db.session.get(User, uid)
    if user is not None:
        return _touch_login(user, now), False

    email = (identity.get("email") or "").lower()
    user = User(
        id=uid,
        name=identity.get("name") or email or ANONYMOUS_NAME,
        email=email,
        avatar=identity.get("picture"),
        role=DEFAULT_ROLE,
        last_login=now,
        dashboard_layout=[],
        group_ids=[],
    )
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        # Concurrent first sign-in for the same uid already inserted the row
        db.session.rollback()
        existing = db.session.get(User, uid)
        if existing is None:
            raise
        return _touch_login(existing, now), False

    logger.info("Created user %s (%s) on first sign-in", uid, email)
    return user, True


def _touch_login(user: User, now: datetime) -> User:
    if user.is_deleted:
        logger.warning("Sign-in refused for deleted user %s", user.id)
        raise ForbiddenError("This account has been disabled")
    user.last_login = now
    db.session.commit()
    return user


# ═══════════════════════════════════════════════════════════════
# Admin CRUD
# ═══════════════════════════════════════════════════════════════
def _validate_role(role):
    if role not in USER_ROLES:
        raise ValidationError(
            f"role must be one of: {', '.join(USER_ROLES)}", details={"role": "invalid"},
        )
    return role


def _validate_avatar(avatar):
    avatar = (avatar or "").strip()
    if not avatar:
        return None
    if not is_http_url(avatar):
        raise ValidationError("avatar must be an http(s) URL", details={"avatar": "invalid"})
    return avatar


def create_user(data: dict) -> User:
    """Admin-created user (id is a UUID until the person signs in with Firebase)."""
    name = require_text(data, "name")
    email = normalize_email(data.get("email"))
    role = _validate_role(data.get("role") or DEFAULT_ROLE)
    avatar = _validate_avatar(data.get("avatar"))

    if get_active_user_by_email(email):
        raise ConflictError("User", "email", email)

    user = User(name=name, email=email, role=role, avatar=avatar, dashboard_layout=[], group_ids=[])
    db.session.add(user)
    db.session.commit()
    logger.info("Admin created user %s (%s) role=%s", user.id, email, role)
    return user


def update_user(user_id: str, data: dict) -> User:
    """Update name / email / role / avatar; only supplied fields change."""
    user = get_user(user_id)

    if "name" in data:
        user.name = require_text(data, "name")
    if "email" in data:
        email = normalize_email(data.get("email"))
        other = get_active_user_by_email(email)
        if other is not None and other.id != user.id:
            raise ConflictError("User", "email", email)
        user.email = email
    if "role" in data:
        user.role = _validate_role(data.get("role"))
    if "avatar" in data:
        user.avatar = _validate_avatar(data.get("avatar"))

    db.session.commit()
    return user


def soft_delete_user(user_id: str, acting_user: User) -> User:
    user = get_user(user_id)
    if user.id == acting_user.id:
        raise ValidationError("You cannot delete your own account", details={"id": "self"})
    user.soft_delete()
    db.session.commit()
    logger.info("User %s soft-deleted by %s", user.id, acting_user.id)
    return user


def restore_user(user_id: str) -> User:
    user = get_user(user_id, include_deleted=True)
    if user.is_deleted:
        if get_active_user_by_email(user.email):
            raise ConflictError("User", "email", user.email)
        user.restore()
        db.session.commit()
    return user


# ═══════════════════════════════════════════════════════════════
# Dashboard layout
# ═══════════════════════════════════════════════════════════════
def update_dashboard_layout(user: User, layout) -> User:
    if not isinstance(layout, list) or not all(isinstance(w, str) for w in layout):
        raise ValidationError("layout must be a list of widget ids", details={"layout": "invalid"})
    user.dashboard_layout = list(layout)
    db.session.commit()
    return user


# ═══════════════════════════════════════════════════════════════
# Impersonation
# ═══════════════════════════════════════════════════════════════
def start_impersonation(admin: User, target_user_id: str, impersonator_id: str | None = None) -> User:
    """Return the user an admin is allowed to act as.

    Only role Admin may impersonate, and not while already impersonating.
    """
    if impersonator_id is not None:
        raise ValidationError("Stop the current impersonation first", details={"imp": "active"})
    if admin.role != ROLE_ADMIN:
        logger.warning("Non-admin %s attempted to impersonate %s", admin.id, target_user_id)
        raise ForbiddenError("Only administrators can impersonate users")

    target = get_user(target_user_id)
    if target.id == admin.id:
        raise ValidationError("You cannot impersonate yourself", details={"id": "self"})

    logger.info("Admin %s started impersonating %s", admin.id, target.id)
    return target


def stop_impersonation(impersonator_id: str | None) -> User:
    """Return the original admin behind an impersonation session."""
    if not impersonator_id:
        raise ValidationError("Not impersonating", details={"imp": "inactive"})
    admin = db.session.get(User, impersonator_id)
    if admin is None or admin.is_deleted or admin.role != ROLE_ADMIN:
        raise ForbiddenError("Original administrator is no longer valid")
    logger.info("Admin %s stopped impersonating", admin.id)
    return admin
