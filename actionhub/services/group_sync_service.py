"""
Group Sync Service: keeps cached group membership aligned with Google Workspace.

Two entry points:
  - sync_user_groups(user)   runs after every sign-in, for one user
  - sync_all_groups()        periodic reconciliation of every imported group
                             (admin endpoint and `flask sync-groups`)

Workspace groups nest, and nesting can be circular (A ∋ B ∋ A). Both
expansions below walk the graph with a visited set, so every group is
expanded at most once and results are deduplicated.

Failure policy is fail safe: when Workspace cannot be read, the previously
cached membership is kept and the error is reported in the SyncResult.
Membership is never cleared because of an upstream failure.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from actionhub.core.exceptions import ConfigurationError, WorkspaceError
from actionhub.integrations.workspace_gateway import (
    MEMBER_TYPE_GROUP,
    MEMBER_TYPE_USER,
    get_workspace_gateway,
)
from actionhub.models import db
from actionhub.models.user import User, UserGroup

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Outcome of a sync run.

    changed lists the ids whose stored membership was rewritten; error is
    set when Workspace could not be read and cached data was kept.
    """

    group_ids: list[str] = field(default_factory=list)
    changed: list[str] = field(default_factory=list)
    failed_groups: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and not self.failed_groups

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "group_ids": self.group_ids,
            "changed": self.changed,
            "failed_groups": self.failed_groups,
            "error": self.error,
        }


# ═══════════════════════════════════════════════════════════════
# Graph expansion
# ═══════════════════════════════════════════════════════════════
def resolve_member_groups(gateway, member_email: str) -> set[str]:
    """Every group containing ``member_email`` directly or through nesting."""
    visited: set[str] = set()
    pending = [member_email.lower()]
    while pending:
        key = pending.pop()
        for group in gateway.list_groups_for_member(key):
            group_id = group["id"]
            if group_id and group_id not in visited:
                visited.add(group_id)
                pending.append(group_id)
    return visited


def expand_group_members(gateway, group_key: str) -> set[str]:
    """Every user email inside ``group_key``, descending into nested groups."""
    emails: set[str] = set()
    visited = {group_key.lower()}
    pending = [group_key.lower()]
    while pending:
        key = pending.pop()
        for member in gateway.list_group_members(key):
            email = member["email"]
            if member["type"] == MEMBER_TYPE_GROUP:
                if email not in visited:
                    visited.add(email)
                    pending.append(email)
            elif member["type"] == MEMBER_TYPE_USER:
                emails.add(email)
    return emails


# ═══════════════════════════════════════════════════════════════
# Sign-in sync (one user)
# ═══════════════════════════════════════════════════════════════
def sync_user_groups(user: User, gateway=None) -> SyncResult:
    """Refresh ``user.group_ids`` from Workspace, restricted to imported groups.

    Never raises for Workspace or configuration failures; those leave the
    cached membership untouched.
    """
    cached = list(user.group_ids or [])
    imported = {g.id: g for g in UserGroup.query.all()}
    if not imported:
        return _apply_user_membership(user, set(), imported)

    try:
        gateway = gateway or get_workspace_gateway()
        workspace_groups = resolve_member_groups(gateway, user.email)
    except (WorkspaceError, ConfigurationError) as exc:
        logger.warning(
            "Group sync for %s failed, keeping %d cached groups: %s",
            user.email, len(cached), exc, extra={"user_id": user.id},
        )
        return SyncResult(group_ids=cached, error=str(exc))

    return _apply_user_membership(user, workspace_groups & set(imported), imported)


def _apply_user_membership(user: User, new_ids: set[str], imported: dict) -> SyncResult:
    old_ids = set(user.group_ids or [])
    result = SyncResult(group_ids=sorted(new_ids))
    if new_ids == old_ids:
        return result

    user.group_ids = sorted(new_ids)
    result.changed.append(user.id)

    # Keep the derived member lists on the group rows consistent
    for group_id in old_ids ^ new_ids:
        group = imported.get(group_id)
        if group is None:
            continue
        members = set(group.user_ids or [])
        if group_id in new_ids:
            members.add(user.id)
        else:
            members.discard(user.id)
        group.user_ids = sorted(members)
        result.changed.append(group_id)

    db.session.commit()
    logger.info(
        "Group membership for %s changed: +%s -%s",
        user.email, sorted(new_ids - old_ids), sorted(old_ids - new_ids),
        extra={"user_id": user.id},
    )
    return result


# ═══════════════════════════════════════════════════════════════
# Periodic reconciliation (all imported groups)
# ═══════════════════════════════════════════════════════════════
def sync_all_groups(gateway=None) -> SyncResult:
    """Recompute membership of every imported group and every user.

    Groups whose expansion fails keep their cached member list, and users
    keep their cached membership of those groups.
    """
    groups = UserGroup.query.order_by(UserGroup.id).all()
    users = User.query_active().all()
    result = SyncResult(group_ids=[g.id for g in groups])

    try:
        gateway = gateway or get_workspace_gateway()
    except ConfigurationError as exc:
        logger.warning("Full group sync skipped: %s", exc)
        result.error = str(exc)
        return result

    users_by_email: dict[str, list[User]] = {}
    for user in users:
        users_by_email.setdefault((user.email or "").lower(), []).append(user)

    now = datetime.now(timezone.utc)
    resolved: dict[str, set[str]] = {}
    for group in groups:
        try:
            emails = expand_group_members(gateway, group.id)
        except (WorkspaceError, ConfigurationError) as exc:
            logger.warning("Expansion of %s failed, keeping cached members: %s", group.id, exc,
                           extra={"group_id": group.id})
            result.failed_groups.append(group.id)
            continue

        member_ids = {u.id for email in emails for u in users_by_email.get(email, [])}
        resolved[group.id] = member_ids
        group.last_synced_at = now
        if member_ids != set(group.user_ids or []):
            group.user_ids = sorted(member_ids)
            result.changed.append(group.id)

    failed = set(result.failed_groups)
    for user in users:
        old_ids = set(user.group_ids or [])
        new_ids = {gid for gid, members in resolved.items() if user.id in members}
        new_ids |= old_ids & failed
        if new_ids != old_ids:
            user.group_ids = sorted(new_ids)
            result.changed.append(user.id)

    db.session.commit()
    logger.info(
        "Full group sync: %d groups, %d rows changed, %d groups failed",
        len(groups), len(result.changed), len(result.failed_groups),
    )
    return result
