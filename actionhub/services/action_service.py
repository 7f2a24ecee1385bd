"""
Improvement Action Service: CRUD, lifecycle transitions, comments, attachments.

Manages action status transitions with:
  - Transition validation (ACTION_TRANSITIONS)
  - Author check: only holders of the current status' author roles (or
    admins) may edit or move an action
  - Phase records written by the transition that closes each phase
  - Reader/author lists re-resolved from the permission matrix after
    every status change

7 valid transitions:
  submit, return_to_draft, start_analysis, submit_analysis,
  start_verification, submit_verification, close

Usage:
    from actionhub.services.action_service import transition_action

    result = transition_action(action_id, "close", user, {"closure": {...}})
"""

import logging
import uuid
from datetime import date, datetime, timezone

from sqlalchemy import func

from actionhub.core.exceptions import (
    ForbiddenError,
    NotFoundError,
    TransitionError,
    ValidationError,
)
from actionhub.models import db
from actionhub.models.action import (
    ACTION_STATUSES,
    ACTION_TRANSITIONS,
    STATUS_DRAFT,
    ImprovementAction,
)
from actionhub.models.master_data import ActionType, Category, Subcategory
from actionhub.models.user import User
from actionhub.services.permission_matrix_service import (
    apply_action_access,
    build_action_context,
    holds_any_role,
)
from actionhub.utils.validation import is_http_url, normalize_email, require_text

logger = logging.getLogger(__name__)

RESPONSIBLE_FIELDS = (
    "analysis_responsible_email",
    "verification_responsible_email",
    "closure_responsible_email",
)
DUE_DATE_FIELDS = (
    "analysis_due_date",
    "implementation_due_date",
    "verification_due_date",
    "closure_due_date",
)


# ── Code generation: AM-{year}-{seq} ────────────────────────────────────────

def generate_action_code(year: int | None = None) -> str:
    """Generate next action code: AM-2026-001, AM-2026-002, ..."""
    year = year or datetime.now(timezone.utc).year
    prefix = f"AM-{year}-"
    count = (
        db.session.query(func.count(ImprovementAction.id))
        .filter(ImprovementAction.code.like(f"{prefix}%"))
        .scalar()
    ) or 0
    return f"{prefix}{count + 1:03d}"


# ═══════════════════════════════════════════════════════════════
# Access helpers
# ═══════════════════════════════════════════════════════════════
def can_read(action: ImprovementAction, user: User) -> bool:
    return user.is_admin or (user.email or "").lower() in (action.reader_emails or [])


def can_author(action: ImprovementAction, user: User) -> bool:
    return user.is_admin or (user.email or "").lower() in (action.author_emails or [])


# ═══════════════════════════════════════════════════════════════
# Field handling
# ═══════════════════════════════════════════════════════════════
def _parse_date(value, field):
    if value in (None, ""):
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD)", details={field: "invalid"})


def _apply_classification(action: ImprovementAction, data: dict) -> None:
    category_id = data.get("category_id", action.category_id) or None
    subcategory_id = data.get("subcategory_id", action.subcategory_id) or None

    category = db.session.get(Category, category_id) if category_id else None
    if category_id and category is None:
        raise ValidationError("category_id must reference an existing category",
                              details={"category_id": "invalid"})
    subcategory = None
    if subcategory_id:
        subcategory = db.session.get(Subcategory, subcategory_id)
        if subcategory is None:
            raise ValidationError("subcategory_id must reference an existing subcategory",
                                  details={"subcategory_id": "invalid"})
        if subcategory.category_id != category_id:
            raise ValidationError("Subcategory does not belong to the selected category",
                                  details={"subcategory_id": "mismatch"})
    action.category = category
    action.subcategory = subcategory
    action.category_id = category_id
    action.subcategory_id = subcategory_id


def _apply_editable(action: ImprovementAction, data: dict) -> None:
    if "title" in data:
        action.title = require_text(data, "title", max_length=300)
    if "description" in data:
        action.description = data.get("description") or ""
    if "category_id" in data or "subcategory_id" in data:
        _apply_classification(action, data)
    for field_name in RESPONSIBLE_FIELDS:
        if field_name in data:
            value = data.get(field_name)
            setattr(action, field_name, normalize_email(value, field_name) if value else None)
    for field_name in DUE_DATE_FIELDS:
        if field_name in data:
            setattr(action, field_name, _parse_date(data.get(field_name), field_name))


# ═══════════════════════════════════════════════════════════════
# CRUD
# ═══════════════════════════════════════════════════════════════
def create_action(data: dict, creator: User) -> ImprovementAction:
    """Create a draft action and resolve its initial access lists.

    Raises:
        ValidationError: missing title/type, bad references.
        ForbiddenError: the type restricts creation to roles the creator does not hold.
    """
    title = require_text(data, "title", max_length=300)
    type_id = data.get("type_id")
    action_type = db.session.get(ActionType, type_id) if type_id else None
    if action_type is None:
        raise ValidationError("type_id must reference an existing action type", details={"type_id": "invalid"})

    action = ImprovementAction(
        code=generate_action_code(),
        title=title,
        description=data.get("description") or "",
        status=STATUS_DRAFT,
        type_id=action_type.id,
        creator_id=creator.id,
        attachments=[],
        comments=[],
    )
    action.action_type = action_type
    action.creator = creator
    _apply_classification(action, data)
    _apply_editable(action, {k: v for k, v in data.items() if k not in ("title", "category_id", "subcategory_id")})

    creation_roles = action_type.possible_creation_roles or []
    if creation_roles and not creator.is_admin:
        if not holds_any_role(creator.email, creation_roles, build_action_context(action)):
            raise ForbiddenError(f"You cannot create actions of type '{action_type.name}'")

    db.session.add(action)
    apply_action_access(action)
    db.session.commit()
    logger.info("Action %s created by %s", action.code, creator.id)
    return action


def get_action(action_id: str, user: User) -> ImprovementAction:
    """Readers only; anyone else gets NotFoundError."""
    action = db.session.get(ImprovementAction, action_id)
    if action is None or not can_read(action, user):
        raise NotFoundError("ImprovementAction", action_id)
    return action


def list_actions(user: User, status: str | None = None, type_id: str | None = None) -> list[ImprovementAction]:
    if status is not None and status not in ACTION_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(ACTION_STATUSES)}", details={"status": "invalid"})
    query = ImprovementAction.query
    if status:
        query = query.filter_by(status=status)
    if type_id:
        query = query.filter_by(type_id=type_id)
    actions = query.order_by(ImprovementAction.created_at.desc()).all()
    return [a for a in actions if can_read(a, user)]


def update_action(action_id: str, user: User, data: dict) -> ImprovementAction:
    """Edit descriptive fields. Status and code only change through transitions."""
    action = get_action(action_id, user)
    if not can_author(action, user):
        raise ForbiddenError("You are not an author of this action in its current status")

    if "type_id" in data and data["type_id"] != action.type_id:
        if action.status != STATUS_DRAFT:
            raise ValidationError("The action type can only change while in draft", details={"type_id": "locked"})
        action_type = db.session.get(ActionType, data["type_id"])
        if action_type is None:
            raise ValidationError("type_id must reference an existing action type", details={"type_id": "invalid"})
        action.type_id = action_type.id
        action.action_type = action_type

    _apply_editable(action, data)
    apply_action_access(action)
    db.session.commit()
    return action


# ═══════════════════════════════════════════════════════════════
# Lifecycle
# ═══════════════════════════════════════════════════════════════
def validate_transition(action: ImprovementAction, transition: str) -> dict:
    """
    Validate whether a transition is valid for the current state.

    Returns:
        {"valid": bool, "from": str, "to": str|None, "reason": str|None}
    """
    rule = ACTION_TRANSITIONS.get(transition)
    if not rule:
        return {"valid": False, "from": action.status, "to": None,
                "reason": f"Unknown transition: {transition}"}

    if action.status not in rule["from"]:
        return {"valid": False, "from": action.status, "to": rule["to"],
                "reason": f"Cannot '{transition}' from status '{action.status}'"}

    return {"valid": True, "from": action.status, "to": rule["to"], "reason": None}


def _phase_record(payload: dict, key: str, action: ImprovementAction, transition: str) -> dict:
    record = payload.get(key)
    if not isinstance(record, dict) or not record:
        raise TransitionError(action.code, transition, action.status, f"{key} is required")
    return dict(record)


def transition_action(action_id: str, transition: str, user: User, payload: dict | None = None) -> dict:
    """
    Execute an action lifecycle transition.

    Args:
        action_id: UUID of the action
        transition: One of the ACTION_TRANSITIONS keys
        user: Effective user performing the transition
        payload: Phase data: ``analysis`` for submit_analysis,
                 ``verification`` for submit_verification,
                 ``closure`` (with boolean ``is_compliant``) for close

    Returns:
        {"action_id", "code", "previous_status", "new_status", "transition"}

    Raises:
        NotFoundError, ForbiddenError, TransitionError
    """
    payload = payload or {}
    action = get_action(action_id, user)
    if not can_author(action, user):
        raise ForbiddenError("You are not an author of this action in its current status")

    validation = validate_transition(action, transition)
    if not validation["valid"]:
        raise TransitionError(action.code, transition, action.status, validation["reason"])

    now = datetime.now(timezone.utc).isoformat()
    stamp = {"by": user.email, "at": now}

    if transition == "submit_analysis":
        action.analysis = {**_phase_record(payload, "analysis", action, transition), **stamp}
    elif transition == "submit_verification":
        action.verification = {**_phase_record(payload, "verification", action, transition), **stamp}
    elif transition == "close":
        closure = _phase_record(payload, "closure", action, transition)
        if not isinstance(closure.get("is_compliant"), bool):
            raise TransitionError(action.code, transition, action.status, "closure.is_compliant must be true or false")
        action.closure = {**closure, **stamp}

    previous_status = action.status
    action.status = validation["to"]
    apply_action_access(action)
    db.session.commit()

    logger.info("Action %s: %s → %s by %s", action.code, previous_status, action.status, user.id)
    return {
        "action_id": action.id,
        "code": action.code,
        "previous_status": previous_status,
        "new_status": action.status,
        "transition": transition,
    }


# ═══════════════════════════════════════════════════════════════
# Comments & attachments
# ═══════════════════════════════════════════════════════════════
def add_comment(action_id: str, user: User, text) -> dict:
    """Any reader may comment."""
    action = get_action(action_id, user)
    if not isinstance(text, str) or not text.strip():
        raise ValidationError("Comment text is required", details={"text": "required"})
    comment = {
        "id": str(uuid.uuid4()),
        "author_id": user.id,
        "author_name": user.name,
        "text": text.strip(),
        "created_at": datetime.now(timezone.utc).isoformat(),
    }
    action.comments = list(action.comments or []) + [comment]
    db.session.commit()
    return comment


def add_attachment(action_id: str, user: User, data: dict) -> dict:
    """Authors attach a link to a stored file."""
    action = get_action(action_id, user)
    if not can_author(action, user):
        raise ForbiddenError("You are not an author of this action in its current status")
    name = require_text(data, "name", max_length=300)
    url = (data.get("url") or "").strip()
    if not is_http_url(url):
        raise ValidationError("url must be an http(s) URL", details={"url": "invalid"})
    attachment = {
        "id": str(uuid.uuid4()),
        "name": name,
        "url": url,
        "uploaded_by": user.id,
        "uploaded_at": datetime.now(timezone.utc).isoformat(),
    }
    action.attachments = list(action.attachments or []) + [attachment]
    db.session.commit()
    return attachment
