"""
Report Service: aggregate counts for the reports page.

Counts are computed over the actions visible to the requesting user, so a
non-admin never learns about actions they cannot open.
"""

import logging
from collections import Counter

from actionhub.models.action import ACTION_STATUSES, STATUS_CLOSED, STATUS_LABELS
from actionhub.models.master_data import ActionType
from actionhub.models.user import User
from actionhub.services.action_service import list_actions

logger = logging.getLogger(__name__)


def build_summary(user: User) -> dict:
    """
    Returns:
        {
          "total": int,
          "by_status": [{"status", "name", "value"}, ...]   # all 7 statuses, lifecycle order
          "by_type":   [{"type_id", "name", "value"}, ...]  # types with ≥1 action, by count desc
          "closed_non_compliant": int,
        }
    """
    actions = list_actions(user)
    by_status = Counter(a.status for a in actions)
    by_type = Counter(a.type_id for a in actions)
    type_names = {t.id: t.name for t in ActionType.query.all()}

    non_compliant = sum(
        1 for a in actions if a.status == STATUS_CLOSED and a.is_compliant is False
    )

    return {
        "total": len(actions),
        "by_status": [
            {"status": s, "name": STATUS_LABELS[s], "value": by_status.get(s, 0)}
            for s in ACTION_STATUSES
        ],
        "by_type": [
            {"type_id": type_id, "name": type_names.get(type_id, type_id), "value": count}
            for type_id, count in sorted(by_type.items(), key=lambda kv: (-kv[1], type_names.get(kv[0], "")))
        ],
        "closed_non_compliant": non_compliant,
    }
