"""
Shell Blueprint: tab state and sidebar navigation for the browser shell.

Tab state lives in the signed Flask session cookie, keyed to the user it
was built for; a different user gets a fresh set of default tabs.

Endpoints:
  GET    /api/v1/shell/tabs               Current tabs and active tab
  POST   /api/v1/shell/tabs               Open (or activate) a tab: {"path", "title", "icon", "is_closable"}
  POST   /api/v1/shell/tabs/active        Activate a tab: {"id"}
  DELETE /api/v1/shell/tabs?id=/path      Close a tab (unknown ids are ignored)
  DELETE /api/v1/shell/tabs/current       Close the active tab
  GET    /api/v1/shell/navigation         Sidebar entries (admin section for admins only)
"""

import logging

from flask import Blueprint, g, jsonify, request, session

from actionhub.middleware.permission_required import login_required
from actionhub.shell.pages import navigation_for
from actionhub.shell.tabs import TabManager
from actionhub.utils.errors import E, api_error, register_error_handlers

logger = logging.getLogger(__name__)

shell_bp = Blueprint("shell", __name__, url_prefix="/api/v1/shell")
register_error_handlers(shell_bp)

SESSION_KEY = "shell_tabs"


def _load_tabs() -> TabManager:
    user = g.current_user
    manager = TabManager.from_dict(session.get(SESSION_KEY))
    if manager.owner_id != user.id:
        if manager.owner_id is not None:
            logger.debug("Tab state reset: user changed to %s", user.id)
        manager.reset(owner_id=user.id)
    manager.ensure_default_tabs()
    return manager


def _respond(manager: TabManager):
    state = manager.to_dict()
    session[SESSION_KEY] = state
    return jsonify(state), 200


@shell_bp.route("/tabs", methods=["GET"])
@login_required
def get_tabs():
    return _respond(_load_tabs())


@shell_bp.route("/tabs", methods=["POST"])
@login_required
def open_tab():
    data = request.get_json(silent=True) or {}
    path = (data.get("path") or "").strip()
    if not path.startswith("/"):
        return api_error(E.VALIDATION_INVALID, "path must start with '/'")
    manager = _load_tabs()
    manager.open_tab(
        path,
        title=data.get("title") or path,
        icon=data.get("icon"),
        is_closable=bool(data.get("is_closable", True)),
    )
    return _respond(manager)


@shell_bp.route("/tabs/active", methods=["POST"])
@login_required
def activate_tab():
    data = request.get_json(silent=True) or {}
    if not data.get("id"):
        return api_error(E.VALIDATION_REQUIRED, "id is required")
    manager = _load_tabs()
    manager.set_active_tab(data["id"])
    return _respond(manager)


@shell_bp.route("/tabs", methods=["DELETE"])
@login_required
def close_tab():
    tab_id = request.args.get("id")
    if not tab_id:
        return api_error(E.VALIDATION_REQUIRED, "id is required")
    manager = _load_tabs()
    manager.close_tab(tab_id)
    return _respond(manager)


@shell_bp.route("/tabs/current", methods=["DELETE"])
@login_required
def close_current_tab():
    manager = _load_tabs()
    manager.close_current_tab()
    return _respond(manager)


@shell_bp.route("/navigation", methods=["GET"])
@login_required
def navigation():
    return jsonify(navigation_for(g.current_user.is_admin)), 200
