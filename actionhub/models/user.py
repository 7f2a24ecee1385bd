"""
User & group models: application users and imported Workspace groups.

User rows are created on first login (id = Firebase uid) or by an admin
(id = UUID4). Group rows are created only by the admin import flow; the
membership lists on both sides are caches of Google Workspace, which stays
authoritative.
"""

import uuid
from datetime import datetime, timezone

from actionhub.models import db


# ═══════════════════════════════════════════════════════════════
# Roles
# ═══════════════════════════════════════════════════════════════
ROLE_CREATOR = "Creator"
ROLE_RESPONSIBLE = "Responsible"
ROLE_DIRECTOR = "Director"
ROLE_COMMITTEE = "Committee"
ROLE_ADMIN = "Admin"
ROLE_USER = "User"

USER_ROLES = (
    ROLE_CREATOR,
    ROLE_RESPONSIBLE,
    ROLE_DIRECTOR,
    ROLE_COMMITTEE,
    ROLE_ADMIN,
    ROLE_USER,
)

DEFAULT_ROLE = ROLE_USER


def _iso(value):
    return value.isoformat() if value else None


# ═══════════════════════════════════════════════════════════════
# 1. USERS
# ═══════════════════════════════════════════════════════════════
class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(128), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(320), nullable=False, index=True)
    role = db.Column(db.String(20), nullable=False, default=DEFAULT_ROLE)
    avatar = db.Column(db.String(500))
    dashboard_layout = db.Column(db.JSON, default=list)
    group_ids = db.Column(db.JSON, default=list)
    last_login = db.Column(db.DateTime)
    # Set by the admin "delete"; rows are never physically removed
    deleted_at = db.Column(db.DateTime, index=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def is_admin(self):
        return self.role == ROLE_ADMIN

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    def soft_delete(self):
        self.deleted_at = datetime.now(timezone.utc)

    def restore(self):
        self.deleted_at = None

    @classmethod
    def query_active(cls):
        return cls.query.filter(cls.deleted_at.is_(None))

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "avatar": self.avatar,
            "dashboard_layout": list(self.dashboard_layout or []),
            "group_ids": list(self.group_ids or []),
            "last_login": _iso(self.last_login),
            "created_at": _iso(self.created_at),
            "deleted_at": _iso(self.deleted_at),
        }

    def __repr__(self):
        return f"<User {self.id} {self.email}>"


# ═══════════════════════════════════════════════════════════════
# 2. USER GROUPS (imported from Google Workspace)
# ═══════════════════════════════════════════════════════════════
class UserGroup(db.Model):
    __tablename__ = "groups"

    # Group primary email, lower-cased
    id = db.Column(db.String(320), primary_key=True)
    name = db.Column(db.String(200), nullable=False, default="")
    description = db.Column(db.Text)
    user_ids = db.Column(db.JSON, default=list)
    imported_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    last_synced_at = db.Column(db.DateTime)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "user_ids": list(self.user_ids or []),
            "imported_at": _iso(self.imported_at),
            "last_synced_at": _iso(self.last_synced_at),
        }

    def __repr__(self):
        return f"<UserGroup {self.id}>"
