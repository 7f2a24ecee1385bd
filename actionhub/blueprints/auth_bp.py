"""
Auth Blueprint: Firebase sign-in exchange, current user, impersonation.

Endpoints:
  POST   /api/v1/auth/session                  Exchange a Firebase ID token for a session token
  GET    /api/v1/auth/me                       Effective user + impersonation state
  PUT    /api/v1/auth/me/dashboard-layout      Save dashboard widget order
  POST   /api/v1/auth/impersonate              Admin: act as another user
  POST   /api/v1/auth/impersonation/stop       Return to the original admin
"""

import logging

from flask import Blueprint, current_app, g, jsonify, request

from actionhub.integrations import firebase_identity
from actionhub.middleware.permission_required import login_required
from actionhub.services import group_sync_service, user_service
from actionhub.services.jwt_service import build_session_payload
from actionhub.utils.errors import E, api_error, register_error_handlers

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")
register_error_handlers(auth_bp)


# ═══════════════════════════════════════════════════════════════
# Sign-in
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/session", methods=["POST"])
def create_session():
    """Verify the Firebase ID token, resolve the user, sync groups, issue a session token.

    Body: {"id_token": "<Firebase ID token>"}
    Returns: session envelope; 201 on first sign-in, 200 afterwards.
    """
    data = request.get_json(silent=True) or {}
    token = data.get("id_token")
    if not token:
        return api_error(E.VALIDATION_REQUIRED, "id_token is required")

    identity = firebase_identity.verify_id_token(token, current_app.config.get("FIREBASE_PROJECT_ID"))
    user, created = user_service.login_with_identity(identity)

    sync = None
    if current_app.config.get("WORKSPACE_SYNC_ON_LOGIN", True):
        sync = group_sync_service.sync_user_groups(user)

    payload = build_session_payload(user)
    payload["created"] = created
    payload["group_sync"] = sync.to_dict() if sync is not None else None
    logger.info("Sign-in for %s (created=%s)", user.id, created, extra={"user_id": user.id})
    return jsonify(payload), 201 if created else 200


# ═══════════════════════════════════════════════════════════════
# Current user
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    user = g.current_user
    impersonator_id = getattr(g, "jwt_impersonator_id", None)
    return jsonify({
        "user": user.to_dict(),
        "is_admin": user.is_admin,
        "is_impersonating": impersonator_id is not None,
        "original_user_id": impersonator_id,
    }), 200


@auth_bp.route("/me/dashboard-layout", methods=["PUT"])
@login_required
def update_dashboard_layout():
    data = request.get_json(silent=True) or {}
    if "layout" not in data:
        return api_error(E.VALIDATION_REQUIRED, "layout is required")
    user = user_service.update_dashboard_layout(g.current_user, data["layout"])
    return jsonify(user.to_dict()), 200


# ═══════════════════════════════════════════════════════════════
# Impersonation
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/impersonate", methods=["POST"])
@login_required
def impersonate():
    """Body: {"user_id": "..."}. Admins only."""
    data = request.get_json(silent=True) or {}
    target_id = data.get("user_id")
    if not target_id:
        return api_error(E.VALIDATION_REQUIRED, "user_id is required")

    admin = g.current_user
    target = user_service.start_impersonation(admin, target_id, getattr(g, "jwt_impersonator_id", None))
    return jsonify(build_session_payload(target, impersonator=admin)), 200


@auth_bp.route("/impersonation/stop", methods=["POST"])
@login_required
def stop_impersonating():
    admin = user_service.stop_impersonation(getattr(g, "jwt_impersonator_id", None))
    return jsonify(build_session_payload(admin)), 200
