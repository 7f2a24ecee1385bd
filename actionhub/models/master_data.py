"""
Master data models: categories, subcategories, action types and
responsibility roles.

Responsibility roles answer "who currently holds this responsibility":
a Fixed role names one mailbox, a Pattern role derives the mailbox from
the action being evaluated (``quality-{{category.id}}@example.com``).
"""

import uuid
from datetime import datetime, timezone

from actionhub.models import db


ROLE_TYPE_FIXED = "Fixed"
ROLE_TYPE_PATTERN = "Pattern"
RESPONSIBILITY_ROLE_TYPES = (ROLE_TYPE_FIXED, ROLE_TYPE_PATTERN)


def _uuid():
    return str(uuid.uuid4())


class _TimestampMixin:
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


# ═══════════════════════════════════════════════════════════════
# Classification
# ═══════════════════════════════════════════════════════════════
class Category(_TimestampMixin, db.Model):
    __tablename__ = "categories"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(200), nullable=False)

    subcategories = db.relationship("Subcategory", back_populates="category", lazy="dynamic")

    def to_dict(self):
        return {"id": self.id, "name": self.name}


class Subcategory(_TimestampMixin, db.Model):
    __tablename__ = "subcategories"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(200), nullable=False)
    category_id = db.Column(db.String(36), db.ForeignKey("categories.id"), nullable=False, index=True)

    category = db.relationship("Category", back_populates="subcategories")

    def to_dict(self):
        return {"id": self.id, "name": self.name, "category_id": self.category_id}


class ActionType(_TimestampMixin, db.Model):
    __tablename__ = "action_types"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(200), nullable=False)
    # Lists of ResponsibilityRole ids
    possible_creation_roles = db.Column(db.JSON, default=list)
    possible_analysis_roles = db.Column(db.JSON, default=list)
    possible_closure_roles = db.Column(db.JSON, default=list)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "possible_creation_roles": list(self.possible_creation_roles or []),
            "possible_analysis_roles": list(self.possible_analysis_roles or []),
            "possible_closure_roles": list(self.possible_closure_roles or []),
        }


# ═══════════════════════════════════════════════════════════════
# Responsibility roles
# ═══════════════════════════════════════════════════════════════
class ResponsibilityRole(_TimestampMixin, db.Model):
    __tablename__ = "responsibility_roles"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(200), nullable=False)
    type = db.Column(db.String(20), nullable=False, default=ROLE_TYPE_FIXED)
    email = db.Column(db.String(320))
    email_pattern = db.Column(db.String(500))

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "email": self.email,
            "email_pattern": self.email_pattern,
        }
