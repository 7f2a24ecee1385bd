"""
Admin Blueprint: user management and integration status.

Endpoints (all require role Admin):
  GET    /api/v1/admin/users                   List users (?include_deleted=true)
  POST   /api/v1/admin/users                   Create user
  GET    /api/v1/admin/users/:id               Get user
  PUT    /api/v1/admin/users/:id               Update user
  DELETE /api/v1/admin/users/:id               Soft delete user
  POST   /api/v1/admin/users/:id/restore       Restore a soft-deleted user
  GET    /api/v1/admin/config/workspace        Is GSUITE_ADMIN_EMAIL configured?
"""

import logging

from flask import Blueprint, g, jsonify, request

from actionhub.blueprints import list_response
from actionhub.integrations.workspace_gateway import get_workspace_gateway
from actionhub.middleware.permission_required import require_admin
from actionhub.services import user_service
from actionhub.utils.errors import E, api_error, register_error_handlers

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__, url_prefix="/api/v1/admin")
register_error_handlers(admin_bp)


# ═══════════════════════════════════════════════════════════════
# Users
# ═══════════════════════════════════════════════════════════════
@admin_bp.route("/users", methods=["GET"])
@require_admin
def list_users():
    include_deleted = request.args.get("include_deleted", "false").lower() == "true"
    return list_response(user_service.list_users(include_deleted=include_deleted), lambda u: u.to_dict())


@admin_bp.route("/users", methods=["POST"])
@require_admin
def create_user():
    data = request.get_json(silent=True)
    if not data:
        return api_error(E.VALIDATION_REQUIRED, "Request body is required")
    user = user_service.create_user(data)
    return jsonify(user.to_dict()), 201


@admin_bp.route("/users/<user_id>", methods=["GET"])
@require_admin
def get_user(user_id):
    return jsonify(user_service.get_user(user_id, include_deleted=True).to_dict()), 200


@admin_bp.route("/users/<user_id>", methods=["PUT"])
@require_admin
def update_user(user_id):
    data = request.get_json(silent=True)
    if not data:
        return api_error(E.VALIDATION_REQUIRED, "Request body is required")
    user = user_service.update_user(user_id, data)
    return jsonify(user.to_dict()), 200


@admin_bp.route("/users/<user_id>", methods=["DELETE"])
@require_admin
def delete_user(user_id):
    user = user_service.soft_delete_user(user_id, acting_user=g.current_user)
    return jsonify(user.to_dict()), 200


@admin_bp.route("/users/<user_id>/restore", methods=["POST"])
@require_admin
def restore_user(user_id):
    user = user_service.restore_user(user_id)
    return jsonify(user.to_dict()), 200


# ═══════════════════════════════════════════════════════════════
# Integration status
# ═══════════════════════════════════════════════════════════════
@admin_bp.route("/config/workspace", methods=["GET"])
@require_admin
def workspace_config():
    gateway = get_workspace_gateway()
    return jsonify({
        "admin_email_configured": gateway.is_configured,
        "admin_email": gateway.admin_email,
    }), 200
