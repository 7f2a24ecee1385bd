"""
Improvement Actions Blueprint.

Endpoints:
  GET    /api/v1/actions                               Visible actions (?status=&type_id=)
  POST   /api/v1/actions                               Create a draft action
  GET    /api/v1/actions/:id                           Action detail (readers only)
  PUT    /api/v1/actions/:id                           Edit descriptive fields (authors only)
  POST   /api/v1/actions/:id/transitions/:transition   Lifecycle transition (authors only)
  POST   /api/v1/actions/:id/comments                  Add comment (readers)
  POST   /api/v1/actions/:id/attachments               Add attachment link (authors)

Service layer owns all business logic and commits.
"""

import logging

from flask import Blueprint, g, jsonify, request

from actionhub.blueprints import list_response
from actionhub.middleware.permission_required import login_required
from actionhub.services import action_service
from actionhub.utils.errors import E, api_error, register_error_handlers

logger = logging.getLogger(__name__)

actions_bp = Blueprint("actions", __name__, url_prefix="/api/v1/actions")
register_error_handlers(actions_bp)


@actions_bp.route("", methods=["GET"])
@login_required
def list_actions():
    actions = action_service.list_actions(
        g.current_user,
        status=request.args.get("status") or None,
        type_id=request.args.get("type_id") or None,
    )
    return list_response(actions, lambda a: a.to_dict(include_activity=False))


@actions_bp.route("", methods=["POST"])
@login_required
def create_action():
    data = request.get_json(silent=True)
    if not data:
        return api_error(E.VALIDATION_REQUIRED, "Request body is required")
    action = action_service.create_action(data, g.current_user)
    return jsonify(action.to_dict()), 201


@actions_bp.route("/<action_id>", methods=["GET"])
@login_required
def get_action(action_id):
    action = action_service.get_action(action_id, g.current_user)
    d = action.to_dict()
    d["can_edit"] = action_service.can_author(action, g.current_user)
    return jsonify(d), 200


@actions_bp.route("/<action_id>", methods=["PUT"])
@login_required
def update_action(action_id):
    data = request.get_json(silent=True)
    if not data:
        return api_error(E.VALIDATION_REQUIRED, "Request body is required")
    action = action_service.update_action(action_id, g.current_user, data)
    return jsonify(action.to_dict()), 200


@actions_bp.route("/<action_id>/transitions/<transition>", methods=["POST"])
@login_required
def transition(action_id, transition):
    """Body carries the phase record: {"analysis": {...}} / {"verification": {...}} / {"closure": {...}}."""
    result = action_service.transition_action(
        action_id, transition, g.current_user, request.get_json(silent=True) or {},
    )
    return jsonify(result), 200


@actions_bp.route("/<action_id>/comments", methods=["POST"])
@login_required
def add_comment(action_id):
    data = request.get_json(silent=True) or {}
    comment = action_service.add_comment(action_id, g.current_user, data.get("text"))
    return jsonify(comment), 201


@actions_bp.route("/<action_id>/attachments", methods=["POST"])
@login_required
def add_attachment(action_id):
    data = request.get_json(silent=True) or {}
    attachment = action_service.add_attachment(action_id, g.current_user, data)
    return jsonify(attachment), 201
