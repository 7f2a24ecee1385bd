"""
Permission Matrix Service: workflow rules and their resolution to people.

A rule maps (action type, status) to a set of reader roles and a set of
author roles. Both sets must be non-empty; a rule that grants nobody
access would silently hide every action of that type in that status.

Resolution turns roles into mailboxes for one concrete action:
  Fixed role   → its email
  Pattern role → email_pattern with {{dotted.path}} filled from the action
                 context; a placeholder that cannot be filled yields no holder

Access lists stored on the action:
  authors = holders of the author roles
  readers = holders of the reader roles ∪ authors ∪ {creator}
No rule for the (type, status) pair → only the creator reads, nobody authors
(admins bypass both checks in the action service).
"""

import logging

from actionhub.core.exceptions import ConflictError, NotFoundError, ValidationError
from actionhub.models import db
from actionhub.models.action import ACTION_STATUSES, STATUS_LABELS, ImprovementAction
from actionhub.models.master_data import ROLE_TYPE_FIXED, ActionType, ResponsibilityRole
from actionhub.models.workflow import PermissionRule
from actionhub.services.master_data_service import PLACEHOLDER_RE

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
# Rule CRUD
# ═══════════════════════════════════════════════════════════════
def list_rules() -> list[dict]:
    """Rules enriched with type and role names for the workflow page."""
    types = {t.id: t.name for t in ActionType.query.all()}
    roles = {r.id: r.name for r in ResponsibilityRole.query.all()}
    rules = PermissionRule.query.all()
    status_order = {s: i for i, s in enumerate(ACTION_STATUSES)}
    rules.sort(key=lambda r: (types.get(r.action_type_id, ""), status_order.get(r.status, 99)))

    result = []
    for rule in rules:
        d = rule.to_dict()
        d["action_type_name"] = types.get(rule.action_type_id)
        d["status_label"] = STATUS_LABELS.get(rule.status, rule.status)
        d["reader_role_names"] = [roles.get(rid, rid) for rid in rule.reader_role_ids or []]
        d["author_role_names"] = [roles.get(rid, rid) for rid in rule.author_role_ids or []]
        result.append(d)
    return result


def get_rule(action_type_id: str, status: str) -> PermissionRule | None:
    return PermissionRule.query.filter_by(action_type_id=action_type_id, status=status).first()


def _clean_role_ids(value, field: str) -> list[str]:
    if not isinstance(value, list):
        raise ValidationError(f"{field} must be a list", details={field: "invalid"})
    role_ids = list(dict.fromkeys(v for v in value if isinstance(v, str) and v))
    if not role_ids:
        raise ValidationError(f"At least one role is required in {field}", details={field: "required"})
    return role_ids


def upsert_rule(
    action_type_id: str,
    status: str,
    reader_role_ids: list,
    author_role_ids: list,
    rule_id: str | None = None,
) -> PermissionRule:
    """Create or update the rule for (action_type_id, status).

    Last write wins for a key. Moving rule ``rule_id`` onto a key already
    held by another rule is a ConflictError.

    Raises:
        ValidationError: empty role sets, unknown status / type / roles.
        ConflictError: key held by a different rule.
        NotFoundError: rule_id does not exist.
    """
    if not action_type_id:
        raise ValidationError("action_type_id is required", details={"action_type_id": "required"})
    if status not in ACTION_STATUSES:
        raise ValidationError(
            f"status must be one of: {', '.join(ACTION_STATUSES)}", details={"status": "invalid"},
        )
    readers = _clean_role_ids(reader_role_ids, "reader_role_ids")
    authors = _clean_role_ids(author_role_ids, "author_role_ids")

    if db.session.get(ActionType, action_type_id) is None:
        raise ValidationError("action_type_id must reference an existing action type",
                              details={"action_type_id": "invalid"})
    known = {r.id for r in ResponsibilityRole.query.filter(ResponsibilityRole.id.in_(readers + authors)).all()}
    unknown = [rid for rid in dict.fromkeys(readers + authors) if rid not in known]
    if unknown:
        raise ValidationError("Unknown responsibility roles", details={"role_ids": unknown})

    holder = get_rule(action_type_id, status)
    if rule_id is not None:
        rule = db.session.get(PermissionRule, rule_id)
        if rule is None:
            raise NotFoundError("PermissionRule", rule_id)
        if holder is not None and holder.id != rule.id:
            raise ConflictError("PermissionRule", "action_type_id+status", f"{action_type_id}/{status}")
    else:
        rule = holder

    previous_key = (rule.action_type_id, rule.status) if rule is not None else None
    if rule is None:
        rule = PermissionRule(action_type_id=action_type_id, status=status)
        db.session.add(rule)

    rule.action_type_id = action_type_id
    rule.status = status
    rule.reader_role_ids = readers
    rule.author_role_ids = authors
    db.session.flush()
    refresh_actions_access(action_type_id, status)
    if previous_key and previous_key != (action_type_id, status):
        # Actions left behind at the old key fall back to creator-only access
        refresh_actions_access(*previous_key)
    db.session.commit()
    logger.info("Saved workflow rule %s (%s/%s)", rule.id, action_type_id, status)
    return rule


def delete_rule(rule_id: str) -> None:
    rule = db.session.get(PermissionRule, rule_id)
    if rule is None:
        raise NotFoundError("PermissionRule", rule_id)
    key = (rule.action_type_id, rule.status)
    db.session.delete(rule)
    db.session.flush()
    refresh_actions_access(*key)
    db.session.commit()
    logger.info("Deleted workflow rule %s", rule_id)


# ═══════════════════════════════════════════════════════════════
# Resolution
# ═══════════════════════════════════════════════════════════════
def _lookup(context: dict, dotted: str):
    value = context
    for part in dotted.split("."):
        if not isinstance(value, dict) or part not in value:
            return None
        value = value[part]
    return value


def resolve_role_email(role: ResponsibilityRole, context: dict) -> str | None:
    """Mailbox currently holding ``role`` for the given action context."""
    if role.type == ROLE_TYPE_FIXED:
        return (role.email or "").lower() or None

    unresolved = []

    def _fill(match):
        value = _lookup(context, match.group(1))
        if value is None or value == "":
            unresolved.append(match.group(1))
            return ""
        return str(value)

    email = PLACEHOLDER_RE.sub(_fill, role.email_pattern or "")
    if unresolved:
        logger.debug("Role %s unresolved placeholders %s", role.id, unresolved)
        return None
    return email.lower() or None


def resolve_role_emails(role_ids: list[str], context: dict) -> list[str]:
    if not role_ids:
        return []
    roles = ResponsibilityRole.query.filter(ResponsibilityRole.id.in_(role_ids)).all()
    emails = {resolve_role_email(role, context) for role in roles}
    return sorted(e for e in emails if e)


def build_action_context(action) -> dict:
    """Placeholder context for Pattern roles: the action and its references."""
    return {
        "action": {
            "id": action.id,
            "code": action.code,
            "status": action.status,
        },
        "category": action.category.to_dict() if action.category else {},
        "subcategory": action.subcategory.to_dict() if action.subcategory else {},
        "actionType": action.action_type.to_dict() if action.action_type else {},
        "creator": {
            "id": action.creator.id,
            "email": action.creator.email,
        } if action.creator else {},
    }


def resolve_action_access(action) -> dict:
    """``{"readers": [...], "authors": [...]}`` for the action's current status."""
    creator_email = action.creator.email.lower() if action.creator and action.creator.email else None
    rule = get_rule(action.type_id, action.status)
    if rule is None:
        return {"readers": [creator_email] if creator_email else [], "authors": []}

    context = build_action_context(action)
    authors = resolve_role_emails(rule.author_role_ids, context)
    readers = set(resolve_role_emails(rule.reader_role_ids, context)) | set(authors)
    if creator_email:
        readers.add(creator_email)
    return {"readers": sorted(readers), "authors": authors}


def holds_any_role(email: str, role_ids: list[str], context: dict) -> bool:
    return (email or "").lower() in resolve_role_emails(role_ids, context)


def apply_action_access(action) -> None:
    """Store freshly resolved reader/author lists on the action (no commit)."""
    access = resolve_action_access(action)
    action.reader_emails = access["readers"]
    action.author_emails = access["authors"]


def refresh_actions_where(*criteria) -> int:
    """Re-resolve access of the actions matching ``criteria`` (no commit)."""
    actions = ImprovementAction.query.filter(*criteria).all()
    for action in actions:
        apply_action_access(action)
    return len(actions)


def refresh_actions_access(action_type_id: str, status: str) -> int:
    """Actions at one (type, status) key, after its rule changed."""
    count = refresh_actions_where(
        ImprovementAction.type_id == action_type_id, ImprovementAction.status == status,
    )
    if count:
        logger.info("Refreshed access lists of %d actions (%s/%s)", count, action_type_id, status)
    return count


def refresh_access_for_role(role_id: str) -> int:
    """Every key whose rule names the role, after its email or pattern changed."""
    keys = {
        (rule.action_type_id, rule.status)
        for rule in PermissionRule.query.all()
        if role_id in (rule.reader_role_ids or []) or role_id in (rule.author_role_ids or [])
    }
    return sum(refresh_actions_access(type_id, status) for type_id, status in sorted(keys))
