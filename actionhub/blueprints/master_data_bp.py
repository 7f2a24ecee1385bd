"""
Master Data Blueprint: categories, subcategories, action types, responsibility roles.

Endpoints (:collection is categories | subcategories | actionTypes | responsibilityRoles):
  GET    /api/v1/master-data/:collection         List (?category_id= for subcategories)
  GET    /api/v1/master-data/:collection/:id     Get one
  POST   /api/v1/master-data/:collection         Admin: create
  PUT    /api/v1/master-data/:collection/:id     Admin: update
  DELETE /api/v1/master-data/:collection/:id     Admin: delete (409 while referenced)

Reads are open to every signed-in user: the action form needs them.
"""

import logging

from flask import Blueprint, jsonify, request

from actionhub.middleware.permission_required import login_required, require_admin
from actionhub.services import master_data_service as mds
from actionhub.utils.errors import E, api_error, register_error_handlers

logger = logging.getLogger(__name__)

master_data_bp = Blueprint("master_data", __name__, url_prefix="/api/v1/master-data")
register_error_handlers(master_data_bp)


@master_data_bp.route("/<collection>", methods=["GET"])
@login_required
def list_items(collection):
    items = mds.list_items(collection, category_id=request.args.get("category_id"))
    return jsonify({"items": [item.to_dict() for item in items]}), 200


@master_data_bp.route("/<collection>/<item_id>", methods=["GET"])
@login_required
def get_item(collection, item_id):
    return jsonify(mds.get_item(collection, item_id).to_dict()), 200


@master_data_bp.route("/<collection>", methods=["POST"])
@require_admin
def create_item(collection):
    data = request.get_json(silent=True)
    if not data:
        return api_error(E.VALIDATION_REQUIRED, "Request body is required")
    return jsonify(mds.create_item(collection, data).to_dict()), 201


@master_data_bp.route("/<collection>/<item_id>", methods=["PUT"])
@require_admin
def update_item(collection, item_id):
    data = request.get_json(silent=True)
    if not data:
        return api_error(E.VALIDATION_REQUIRED, "Request body is required")
    return jsonify(mds.update_item(collection, item_id, data).to_dict()), 200


@master_data_bp.route("/<collection>/<item_id>", methods=["DELETE"])
@require_admin
def delete_item(collection, item_id):
    mds.delete_item(collection, item_id)
    return jsonify({"deleted": item_id}), 200
