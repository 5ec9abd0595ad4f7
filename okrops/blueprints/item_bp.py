"""
OKR Ops Tracker
Item blueprint — team board, item detail, status updates and activity.

Endpoints summary:
    BOARD    /api/v1/teams/<tid>/items              GET
             /api/v1/teams/<tid>/items/export.csv   GET

    ITEM     /api/v1/items                          POST
             /api/v1/items/<id>                     GET, DELETE

    UPDATE   /api/v1/items/<id>/updates             GET, POST

    ACTIVITY /api/v1/items/<id>/activity            GET
"""

import logging

from flask import Blueprint, Response, jsonify, request

from okrops.blueprints import (
    json_body,
    missing_fields,
    register_error_handlers,
    visible_item,
    visible_team,
)
from okrops.services import cache_service, item_service
from okrops.services.activity_feed import ITEM_TABS, resolve_tab
from okrops.services.item_service import BOARD_FILTERS
from okrops.services.permission_service import has_permission, item_capabilities
from okrops.utils.errors import E, api_error
from okrops.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

item_bp = Blueprint("item", __name__, url_prefix="/api/v1")
register_error_handlers(item_bp)


def _board_filters():
    return {k: request.args.get(k) for k in BOARD_FILTERS}


# ═══════════════════════════════════════════════════════════════════════════
#  BOARD
# ═══════════════════════════════════════════════════════════════════════════

@item_bp.route("/teams/<team_id>/items", methods=["GET"])
def list_board(team_id):
    team, ctx = visible_team(team_id)
    rows = item_service.board_rows(team.id, _board_filters())
    return jsonify({
        "items": rows,
        "total": len(rows),
        "can_create_items": has_permission(ctx, "items.create"),
        "can_delete_items": has_permission(ctx, "items.delete"),
    })


@item_bp.route("/teams/<team_id>/items/export.csv", methods=["GET"])
def export_board(team_id):
    team, _ctx = visible_team(team_id)
    rows = item_service.board_rows(team.id, _board_filters())
    body = item_service.export_board_csv(rows)
    filename = item_service.export_filename()
    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ═══════════════════════════════════════════════════════════════════════════
#  ITEM
# ═══════════════════════════════════════════════════════════════════════════

@item_bp.route("/items", methods=["POST"])
def create_item():
    data = json_body()
    missing = missing_fields(data, "team_id", "title")
    if missing:
        return api_error(
            E.VALIDATION_REQUIRED, "team_id and title are required",
            details={f: "required" for f in missing},
        )
    _team, ctx = visible_team(data["team_id"])
    item = item_service.create_item(ctx, data)
    err = db_commit_or_error()
    if err:
        return err
    cache_service.invalidate_for("item")
    return jsonify(item.to_dict()), 201


@item_bp.route("/items/<item_id>", methods=["GET"])
def get_item(item_id):
    item, ctx = visible_item(item_id)
    data = cache_service.get_cached(
        cache_service.query_key("item", item.id), loader=item.to_dict,
    )
    return jsonify({
        "item": data,
        "capabilities": item_capabilities(ctx, item),
        "tab": resolve_tab(request.args.get("tab")),
        "tabs": list(ITEM_TABS),
    })


@item_bp.route("/items/<item_id>", methods=["DELETE"])
def delete_item(item_id):
    item, ctx = visible_item(item_id)
    item_service.delete_item(ctx, item)
    err = db_commit_or_error()
    if err:
        return err
    cache_service.invalidate_for("item")
    return jsonify({"deleted": True, "id": item_id})


# ═══════════════════════════════════════════════════════════════════════════
#  STATUS UPDATES
# ═══════════════════════════════════════════════════════════════════════════

@item_bp.route("/items/<item_id>/updates", methods=["POST"])
def save_status_update(item_id):
    item, ctx = visible_item(item_id)
    data = json_body()
    if missing_fields(data, "status"):
        return api_error(E.VALIDATION_REQUIRED, "status is required", details={"status": "required"})
    update = item_service.save_status_update(ctx, item, data)
    err = db_commit_or_error()
    if err:
        return err
    cache_service.invalidate_for("item_update")
    return jsonify({"update": update.to_dict(), "item": item.to_dict()}), 201


@item_bp.route("/items/<item_id>/updates", methods=["GET"])
def list_updates(item_id):
    item, _ctx = visible_item(item_id)
    updates = cache_service.get_cached(
        cache_service.query_key("item_updates", item.id),
        loader=lambda: [u.to_dict() for u in item_service.list_updates(item.id)],
    )
    return jsonify({"items": updates, "total": len(updates)})


@item_bp.route("/items/<item_id>/activity", methods=["GET"])
def item_activity(item_id):
    item, _ctx = visible_item(item_id)
    return jsonify(item_service.item_activity(item.id))
