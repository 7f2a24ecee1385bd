"""
Reports Blueprint.

Endpoints:
  GET    /api/v1/reports/summary    Action counts by status and by type
"""

from flask import Blueprint, g, jsonify

from actionhub.middleware.permission_required import login_required
from actionhub.services.report_service import build_summary
from actionhub.utils.errors import register_error_handlers

reports_bp = Blueprint("reports", __name__, url_prefix="/api/v1/reports")
register_error_handlers(reports_bp)


@reports_bp.route("/summary", methods=["GET"])
@login_required
def summary():
    return jsonify(build_summary(g.current_user)), 200
