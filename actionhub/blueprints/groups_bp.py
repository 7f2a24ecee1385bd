"""
Groups Blueprint: imported Workspace groups and membership sync.

Endpoints:
  GET    /api/v1/groups                  Imported groups
  GET    /api/v1/groups/mine             Imported groups the caller belongs to
  POST   /api/v1/groups/mine/sync        Re-sync the caller's membership now
  GET    /api/v1/groups/workspace        Admin: domain groups not yet imported
  POST   /api/v1/groups/import           Admin: import selected groups
  POST   /api/v1/groups/sync             Admin: reconcile every imported group
  DELETE /api/v1/groups/:id              Admin: remove a group from the app (not from Workspace)
"""

import logging

from flask import Blueprint, g, jsonify, request

from actionhub.middleware.permission_required import login_required, require_admin
from actionhub.services import group_service, group_sync_service
from actionhub.utils.errors import E, api_error, register_error_handlers

logger = logging.getLogger(__name__)

groups_bp = Blueprint("groups", __name__, url_prefix="/api/v1/groups")
register_error_handlers(groups_bp)


@groups_bp.route("", methods=["GET"])
@login_required
def list_groups():
    return jsonify({"items": [grp.to_dict() for grp in group_service.list_groups()]}), 200


@groups_bp.route("/mine", methods=["GET"])
@login_required
def my_groups():
    groups = group_service.list_my_groups(g.current_user)
    return jsonify({"items": [grp.to_dict() for grp in groups]}), 200


@groups_bp.route("/mine/sync", methods=["POST"])
@login_required
def sync_my_groups():
    result = group_sync_service.sync_user_groups(g.current_user)
    return jsonify(result.to_dict()), 200


@groups_bp.route("/workspace", methods=["GET"])
@require_admin
def workspace_groups():
    """Workspace errors propagate here: the admin needs to see them."""
    return jsonify({"items": group_service.list_workspace_groups()}), 200


@groups_bp.route("/import", methods=["POST"])
@require_admin
def import_groups():
    """Body: {"groups": [{"id", "name", "description"}, ...]}"""
    data = request.get_json(silent=True) or {}
    if "groups" not in data:
        return api_error(E.VALIDATION_REQUIRED, "groups is required")
    groups = group_service.import_groups(data["groups"])
    return jsonify({"items": [grp.to_dict() for grp in groups]}), 201


@groups_bp.route("/sync", methods=["POST"])
@require_admin
def sync_all():
    result = group_sync_service.sync_all_groups()
    return jsonify(result.to_dict()), 200


@groups_bp.route("/<path:group_id>", methods=["DELETE"])
@require_admin
def delete_group(group_id):
    group_service.delete_group(group_id)
    return jsonify({"deleted": group_id.lower()}), 200
