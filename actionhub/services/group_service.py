"""
Group Service: admin import of Workspace groups and group listings.

Imported groups are the only groups the application knows about; sign-in
sync intersects a user's Workspace groups with this list. Deleting a group
removes it from the application only, never from Workspace.
"""

import logging

from actionhub.core.exceptions import NotFoundError, ValidationError
from actionhub.integrations.workspace_gateway import get_workspace_gateway
from actionhub.models import db
from actionhub.models.user import User, UserGroup

logger = logging.getLogger(__name__)


def list_groups() -> list[UserGroup]:
    return UserGroup.query.order_by(UserGroup.name.asc()).all()


def get_group(group_id: str) -> UserGroup:
    group = db.session.get(UserGroup, (group_id or "").lower())
    if group is None:
        raise NotFoundError("UserGroup", group_id)
    return group


def list_my_groups(user: User) -> list[UserGroup]:
    """Imported groups the user belongs to, per the cached membership."""
    ids = set(user.group_ids or [])
    if not ids:
        return []
    return [g for g in list_groups() if g.id in ids]


def list_workspace_groups(gateway=None) -> list[dict]:
    """Domain groups not yet imported.

    Raises:
        ConfigurationError / WorkspaceError: surfaced to the admin as-is.
    """
    gateway = gateway or get_workspace_gateway()
    imported = {g.id for g in UserGroup.query.with_entities(UserGroup.id).all()}
    return [g for g in gateway.list_domain_groups() if g["id"] not in imported]


def import_groups(groups: list) -> list[UserGroup]:
    """Store the selected Workspace groups. Already-imported ids are refreshed in place."""
    if not isinstance(groups, list) or not groups:
        raise ValidationError("Select at least one group to import", details={"groups": "required"})

    imported = []
    for raw in groups:
        if not isinstance(raw, dict):
            raise ValidationError("Each group must be an object", details={"groups": "invalid"})
        group_id = (raw.get("id") or raw.get("email") or "").strip().lower()
        if not group_id:
            raise ValidationError("Group id is required", details={"id": "required"})

        group = db.session.get(UserGroup, group_id)
        if group is None:
            group = UserGroup(id=group_id, user_ids=[])
            db.session.add(group)
        group.name = raw.get("name") or ""
        group.description = raw.get("description")
        imported.append(group)

    db.session.commit()
    logger.info("Imported %d Workspace groups: %s", len(imported), [g.id for g in imported])
    return imported


def delete_group(group_id: str) -> None:
    group = get_group(group_id)
    db.session.delete(group)
    db.session.commit()
    logger.info("Removed group %s from the application", group.id)
