"""
Workflow permission matrix.

One PermissionRule per (action type, status) pair states which
responsibility roles may read and which may author an action of that
type while it sits in that status.
"""

import uuid
from datetime import datetime, timezone

from actionhub.models import db


class PermissionRule(db.Model):
    __tablename__ = "permission_matrix"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    action_type_id = db.Column(
        db.String(36), db.ForeignKey("action_types.id"), nullable=False,
    )
    status = db.Column(db.String(30), nullable=False)
    reader_role_ids = db.Column(db.JSON, nullable=False, default=list)
    author_role_ids = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("action_type_id", "status", name="uq_permission_rule_type_status"),
    )

    action_type = db.relationship("ActionType")

    def to_dict(self):
        return {
            "id": self.id,
            "action_type_id": self.action_type_id,
            "status": self.status,
            "reader_role_ids": list(self.reader_role_ids or []),
            "author_role_ids": list(self.author_role_ids or []),
        }
