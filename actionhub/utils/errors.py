"""JSON error envelope shared by every blueprint.

    from actionhub.utils.errors import api_error, E

    return api_error(E.VALIDATION_REQUIRED, "name is required")

``register_error_handlers(bp)`` turns any ``ActionHubError`` raised by a
service into the same envelope: ``{"error", "code", "details"?}``.
"""

from __future__ import annotations

import logging

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

from actionhub.core.exceptions import E, ActionHubError, ConfigurationError, WorkspaceError
from actionhub.models import db

__all__ = ["E", "api_error", "register_error_handlers"]

logger = logging.getLogger(__name__)

HTTP_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.VALIDATION_CONSTRAINT: 422,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.CONFLICT_STATE: 409,
    E.UNAUTHENTICATED: 401,
    E.FORBIDDEN: 403,
    E.CONFIGURATION: 503,
    E.WORKSPACE_UNAUTHORIZED: 403,
    E.WORKSPACE_NOT_FOUND: 404,
    E.WORKSPACE_UNEXPECTED: 502,
    E.INTERNAL: 500,
}


def api_error(code: str, message: str, *, status: int | None = None, details: dict | None = None):
    """``(response, status)`` for a view to return; status defaults from HTTP_STATUS."""
    body = {"error": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status or HTTP_STATUS.get(code, 400)


def register_error_handlers(bp) -> None:

    @bp.errorhandler(ActionHubError)
    def _handle_domain_error(error: ActionHubError):
        db.session.rollback()
        if isinstance(error, WorkspaceError) and error.error_code == E.WORKSPACE_UNEXPECTED:
            logger.error("Workspace failure on %s: %s (upstream=%s)", request.endpoint, error, error.status_code)
        elif isinstance(error, ConfigurationError):
            logger.warning("Configuration problem on %s: %s", request.endpoint, error)
        return api_error(error.error_code, str(error), details=error.details)

    @bp.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        if isinstance(error, HTTPException):
            return error
        db.session.rollback()
        logger.exception("Unhandled error in %s (endpoint=%s)", bp.name, request.endpoint)
        return api_error(E.INTERNAL, "Internal server error")
