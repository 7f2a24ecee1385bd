"""
Master Data Service: generic CRUD over the classification collections.

Collections (names as the client uses them):
  categories, subcategories, actionTypes, responsibilityRoles

Each collection registers a model, a field applier (validates and copies
the payload onto the row) and a reference guard run before delete.
Deleting a row that is still referenced is a ConflictError, never a
cascade.
"""

import logging
import re

from actionhub.core.exceptions import ConflictError, NotFoundError, ValidationError
from actionhub.models import db
from actionhub.models.action import ImprovementAction
from actionhub.models.master_data import (
    RESPONSIBILITY_ROLE_TYPES,
    ROLE_TYPE_FIXED,
    ActionType,
    Category,
    ResponsibilityRole,
    Subcategory,
)
from actionhub.models.workflow import PermissionRule
from actionhub.utils.validation import normalize_email, require_string_list, require_text

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\{\{\s*([\w.]+)\s*\}\}")

ACTION_TYPE_ROLE_FIELDS = (
    "possible_creation_roles",
    "possible_analysis_roles",
    "possible_closure_roles",
)


# ═══════════════════════════════════════════════════════════════
# Field appliers
# ═══════════════════════════════════════════════════════════════
def _apply_category(obj: Category, data: dict, partial: bool) -> None:
    if not partial or "name" in data:
        obj.name = require_text(data, "name")


def _apply_subcategory(obj: Subcategory, data: dict, partial: bool) -> None:
    if not partial or "name" in data:
        obj.name = require_text(data, "name")
    if not partial or "category_id" in data:
        category_id = data.get("category_id")
        if not category_id or db.session.get(Category, category_id) is None:
            raise ValidationError("category_id must reference an existing category",
                                  details={"category_id": "invalid"})
        obj.category_id = category_id


def _apply_action_type(obj: ActionType, data: dict, partial: bool) -> None:
    if not partial or "name" in data:
        obj.name = require_text(data, "name")
    for field_name in ACTION_TYPE_ROLE_FIELDS:
        if partial and field_name not in data:
            continue
        role_ids = require_string_list(data, field_name)
        _ensure_roles_exist(role_ids, field_name)
        setattr(obj, field_name, role_ids)


def _apply_responsibility_role(obj: ResponsibilityRole, data: dict, partial: bool) -> None:
    if not partial or "name" in data:
        obj.name = require_text(data, "name")
    if not partial or "type" in data:
        role_type = data.get("type") or ROLE_TYPE_FIXED
        if role_type not in RESPONSIBILITY_ROLE_TYPES:
            raise ValidationError(
                f"type must be one of: {', '.join(RESPONSIBILITY_ROLE_TYPES)}", details={"type": "invalid"},
            )
        obj.type = role_type

    if "email" in data or "email_pattern" in data or not partial or "type" in data:
        if obj.type == ROLE_TYPE_FIXED:
            obj.email = normalize_email(data.get("email", obj.email))
            obj.email_pattern = None
        else:
            pattern = (data.get("email_pattern", obj.email_pattern) or "").strip()
            if "@" not in pattern or not PLACEHOLDER_RE.search(pattern):
                raise ValidationError(
                    "email_pattern must be an address template with a {{placeholder}}",
                    details={"email_pattern": "invalid"},
                )
            obj.email_pattern = pattern
            obj.email = None


def _ensure_roles_exist(role_ids: list[str], field_name: str) -> None:
    if not role_ids:
        return
    found = {
        r.id for r in ResponsibilityRole.query.filter(ResponsibilityRole.id.in_(role_ids)).all()
    }
    missing = [rid for rid in role_ids if rid not in found]
    if missing:
        raise ValidationError(
            f"{field_name} references unknown responsibility roles",
            details={field_name: missing},
        )


# ═══════════════════════════════════════════════════════════════
# Reference guards
# ═══════════════════════════════════════════════════════════════
def _guard_category(obj: Category) -> None:
    if obj.subcategories.count():
        raise ConflictError("Category", "id", obj.id, message="Category still has subcategories")
    if ImprovementAction.query.filter_by(category_id=obj.id).count():
        raise ConflictError("Category", "id", obj.id, message="Category is used by actions")


def _guard_subcategory(obj: Subcategory) -> None:
    if ImprovementAction.query.filter_by(subcategory_id=obj.id).count():
        raise ConflictError("Subcategory", "id", obj.id, message="Subcategory is used by actions")


def _guard_action_type(obj: ActionType) -> None:
    if PermissionRule.query.filter_by(action_type_id=obj.id).count():
        raise ConflictError("ActionType", "id", obj.id, message="Action type is used by workflow rules")
    if ImprovementAction.query.filter_by(type_id=obj.id).count():
        raise ConflictError("ActionType", "id", obj.id, message="Action type is used by actions")


def _guard_responsibility_role(obj: ResponsibilityRole) -> None:
    for rule in PermissionRule.query.all():
        if obj.id in (rule.reader_role_ids or []) or obj.id in (rule.author_role_ids or []):
            raise ConflictError("ResponsibilityRole", "id", obj.id,
                                message="Responsibility role is used by workflow rules")
    for action_type in ActionType.query.all():
        if any(obj.id in (getattr(action_type, f) or []) for f in ACTION_TYPE_ROLE_FIELDS):
            raise ConflictError("ResponsibilityRole", "id", obj.id,
                                message="Responsibility role is used by action types")


COLLECTIONS = {
    "categories": (Category, _apply_category, _guard_category),
    "subcategories": (Subcategory, _apply_subcategory, _guard_subcategory),
    "actionTypes": (ActionType, _apply_action_type, _guard_action_type),
    "responsibilityRoles": (ResponsibilityRole, _apply_responsibility_role, _guard_responsibility_role),
}


def _collection(name: str):
    entry = COLLECTIONS.get(name)
    if entry is None:
        raise NotFoundError("Collection", name)
    return entry


# ═══════════════════════════════════════════════════════════════
# CRUD
# ═══════════════════════════════════════════════════════════════
def list_items(collection: str, **filters) -> list:
    model, _, _ = _collection(collection)
    query = model.query
    if collection == "subcategories" and filters.get("category_id"):
        query = query.filter_by(category_id=filters["category_id"])
    return query.order_by(model.name.asc()).all()


def get_item(collection: str, item_id: str):
    model, _, _ = _collection(collection)
    obj = db.session.get(model, item_id)
    if obj is None:
        raise NotFoundError(model.__name__, item_id)
    return obj


def create_item(collection: str, data: dict):
    model, apply_fields, _ = _collection(collection)
    obj = model()
    apply_fields(obj, data, partial=False)
    db.session.add(obj)
    db.session.commit()
    logger.info("Created %s %s", model.__name__, obj.id)
    return obj


def _refresh_dependent_access(collection: str, obj) -> int:
    """Re-resolve stored access lists that may name the edited row."""
    # Imported here: permission_matrix_service imports this module
    from actionhub.services import permission_matrix_service as pms

    if collection == "responsibilityRoles":
        return pms.refresh_access_for_role(obj.id)
    # Pattern roles may read {{category.name}}, {{actionType.name}} and the like
    column = {
        "categories": ImprovementAction.category_id,
        "subcategories": ImprovementAction.subcategory_id,
        "actionTypes": ImprovementAction.type_id,
    }[collection]
    return pms.refresh_actions_where(column == obj.id)


def update_item(collection: str, item_id: str, data: dict):
    _, apply_fields, _ = _collection(collection)
    obj = get_item(collection, item_id)
    apply_fields(obj, data, partial=True)
    db.session.flush()
    refreshed = _refresh_dependent_access(collection, obj)
    db.session.commit()
    if refreshed:
        logger.info("Updated %s %s; refreshed access of %d actions", type(obj).__name__, obj.id, refreshed)
    return obj


def delete_item(collection: str, item_id: str) -> None:
    _, _, guard = _collection(collection)
    obj = get_item(collection, item_id)
    guard(obj)
    db.session.delete(obj)
    db.session.commit()
    logger.info("Deleted %s %s", type(obj).__name__, item_id)
