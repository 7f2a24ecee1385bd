"""
Workflow Blueprint: the permission matrix editor.

Endpoints:
  GET    /api/v1/workflow/statuses       Status values and labels
  GET    /api/v1/workflow/rules          Admin: list rules (with type and role names)
  POST   /api/v1/workflow/rules          Admin: create or update the rule for (type, status)
  PUT    /api/v1/workflow/rules/:id      Admin: update a rule
  DELETE /api/v1/workflow/rules/:id      Admin: delete a rule
"""

import logging

from flask import Blueprint, jsonify, request

from actionhub.middleware.permission_required import login_required, require_admin
from actionhub.models.action import ACTION_STATUSES, STATUS_DRAFT, STATUS_LABELS
from actionhub.services import permission_matrix_service as pms
from actionhub.utils.errors import E, api_error, register_error_handlers

logger = logging.getLogger(__name__)

workflow_bp = Blueprint("workflow", __name__, url_prefix="/api/v1/workflow")
register_error_handlers(workflow_bp)


@workflow_bp.route("/statuses", methods=["GET"])
@login_required
def statuses():
    return jsonify({
        "items": [{"value": s, "label": STATUS_LABELS[s]} for s in ACTION_STATUSES],
        "default": STATUS_DRAFT,
    }), 200


@workflow_bp.route("/rules", methods=["GET"])
@require_admin
def list_rules():
    return jsonify({"items": pms.list_rules()}), 200


def _save_rule(rule_id=None):
    data = request.get_json(silent=True)
    if not data:
        return api_error(E.VALIDATION_REQUIRED, "Request body is required")
    rule = pms.upsert_rule(
        action_type_id=data.get("action_type_id"),
        status=data.get("status") or STATUS_DRAFT,
        reader_role_ids=data.get("reader_role_ids", []),
        author_role_ids=data.get("author_role_ids", []),
        rule_id=rule_id,
    )
    return jsonify(rule.to_dict()), 200


@workflow_bp.route("/rules", methods=["POST"])
@require_admin
def create_rule():
    return _save_rule()


@workflow_bp.route("/rules/<rule_id>", methods=["PUT"])
@require_admin
def update_rule(rule_id):
    return _save_rule(rule_id)


@workflow_bp.route("/rules/<rule_id>", methods=["DELETE"])
@require_admin
def delete_rule(rule_id):
    pms.delete_rule(rule_id)
    return jsonify({"deleted": rule_id}), 200
