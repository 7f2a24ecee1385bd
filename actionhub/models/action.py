"""
Improvement actions: corrective-action tickets and their lifecycle.

Full lifecycle:
  draft → pending_analysis → in_analysis → pending_verification
        → in_verification → pending_closure → closed

Code auto-generated: AM-{year}-{seq} (3-digit, per year).
Reader / author lists are derived from the permission matrix each time
the status changes; they are stored so visibility checks are a plain
membership test.
"""

import uuid
from datetime import datetime, timezone

from actionhub.models import db


# ═══════════════════════════════════════════════════════════════
# Status enum
# ═══════════════════════════════════════════════════════════════
STATUS_DRAFT = "draft"
STATUS_PENDING_ANALYSIS = "pending_analysis"
STATUS_IN_ANALYSIS = "in_analysis"
STATUS_PENDING_VERIFICATION = "pending_verification"
STATUS_IN_VERIFICATION = "in_verification"
STATUS_PENDING_CLOSURE = "pending_closure"
STATUS_CLOSED = "closed"

ACTION_STATUSES = (
    STATUS_DRAFT,
    STATUS_PENDING_ANALYSIS,
    STATUS_IN_ANALYSIS,
    STATUS_PENDING_VERIFICATION,
    STATUS_IN_VERIFICATION,
    STATUS_PENDING_CLOSURE,
    STATUS_CLOSED,
)

STATUS_LABELS = {
    STATUS_DRAFT: "Borrador",
    STATUS_PENDING_ANALYSIS: "Pendiente Análisis",
    STATUS_IN_ANALYSIS: "En Análisis",
    STATUS_PENDING_VERIFICATION: "Pendiente Verificación",
    STATUS_IN_VERIFICATION: "En Verificación",
    STATUS_PENDING_CLOSURE: "Pendiente Cierre",
    STATUS_CLOSED: "Finalizada",
}

ACTION_TRANSITIONS = {
    "submit": {"from": [STATUS_DRAFT], "to": STATUS_PENDING_ANALYSIS},
    "return_to_draft": {"from": [STATUS_PENDING_ANALYSIS], "to": STATUS_DRAFT},
    "start_analysis": {"from": [STATUS_PENDING_ANALYSIS], "to": STATUS_IN_ANALYSIS},
    "submit_analysis": {"from": [STATUS_IN_ANALYSIS], "to": STATUS_PENDING_VERIFICATION},
    "start_verification": {"from": [STATUS_PENDING_VERIFICATION], "to": STATUS_IN_VERIFICATION},
    "submit_verification": {"from": [STATUS_IN_VERIFICATION], "to": STATUS_PENDING_CLOSURE},
    "close": {"from": [STATUS_PENDING_CLOSURE], "to": STATUS_CLOSED},
}


def status_label(status, is_compliant=None):
    """Display label for a status; a closed non-compliant action is flagged."""
    label = STATUS_LABELS.get(status, status)
    if status == STATUS_CLOSED and is_compliant is False:
        return f"{label} (No Conforme)"
    return label


def _iso(value):
    return value.isoformat() if value else None


class ImprovementAction(db.Model):
    __tablename__ = "actions"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    code = db.Column(db.String(20), unique=True, nullable=False)
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, default="")
    status = db.Column(db.String(30), nullable=False, default=STATUS_DRAFT, index=True)

    category_id = db.Column(db.String(36), db.ForeignKey("categories.id"))
    subcategory_id = db.Column(db.String(36), db.ForeignKey("subcategories.id"))
    type_id = db.Column(db.String(36), db.ForeignKey("action_types.id"), nullable=False, index=True)
    creator_id = db.Column(db.String(128), db.ForeignKey("users.id"), nullable=False)

    # Responsible parties per phase
    analysis_responsible_email = db.Column(db.String(320))
    verification_responsible_email = db.Column(db.String(320))
    closure_responsible_email = db.Column(db.String(320))

    # Due dates per phase
    analysis_due_date = db.Column(db.Date)
    implementation_due_date = db.Column(db.Date)
    verification_due_date = db.Column(db.Date)
    closure_due_date = db.Column(db.Date)

    # Nested phase records
    analysis = db.Column(db.JSON)
    verification = db.Column(db.JSON)
    closure = db.Column(db.JSON)

    attachments = db.Column(db.JSON, default=list)
    comments = db.Column(db.JSON, default=list)

    # Derived from the permission matrix
    reader_emails = db.Column(db.JSON, default=list)
    author_emails = db.Column(db.JSON, default=list)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    category = db.relationship("Category")
    subcategory = db.relationship("Subcategory")
    action_type = db.relationship("ActionType")
    creator = db.relationship("User")

    @property
    def is_compliant(self):
        if not self.closure:
            return None
        return self.closure.get("is_compliant")

    def to_dict(self, include_activity=True):
        d = {
            "id": self.id,
            "code": self.code,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "status_label": status_label(self.status, self.is_compliant),
            "category_id": self.category_id,
            "subcategory_id": self.subcategory_id,
            "type_id": self.type_id,
            "type_name": self.action_type.name if self.action_type else None,
            "creator_id": self.creator_id,
            "analysis_responsible_email": self.analysis_responsible_email,
            "verification_responsible_email": self.verification_responsible_email,
            "closure_responsible_email": self.closure_responsible_email,
            "analysis_due_date": _iso(self.analysis_due_date),
            "implementation_due_date": _iso(self.implementation_due_date),
            "verification_due_date": _iso(self.verification_due_date),
            "closure_due_date": _iso(self.closure_due_date),
            "analysis": self.analysis,
            "verification": self.verification,
            "closure": self.closure,
            "reader_emails": list(self.reader_emails or []),
            "author_emails": list(self.author_emails or []),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_activity:
            d["attachments"] = list(self.attachments or [])
            d["comments"] = list(self.comments or [])
        return d

    def __repr__(self):
        return f"<ImprovementAction {self.code} {self.status}>"
