"""
OKR Ops Tracker
Tracking blueprint — blockers, help requests and comments on an item.

Endpoints summary:
    BLOCKER  /api/v1/items/<iid>/blockers          GET, POST
             /api/v1/blockers/<id>                 PUT, DELETE

    HELP     /api/v1/items/<iid>/help-requests     GET, POST
             /api/v1/help-requests/<id>            PUT, DELETE

    COMMENT  /api/v1/items/<iid>/comments          GET, POST
             /api/v1/comments/<id>                 DELETE
"""

import logging

from flask import Blueprint, jsonify

from okrops.blueprints import (
    json_body,
    missing_fields,
    register_error_handlers,
    visible_item,
)
from okrops.models.tracking import Blocker, Comment, HelpRequest
from okrops.services import cache_service, tracking_service
from okrops.utils.errors import E, api_error
from okrops.utils.helpers import db_commit_or_error, get_or_raise

logger = logging.getLogger(__name__)

tracking_bp = Blueprint("tracking", __name__, url_prefix="/api/v1")
register_error_handlers(tracking_bp)


def _commit(entity):
    err = db_commit_or_error()
    if err:
        return err
    cache_service.invalidate_for(entity)
    return None


def _cached_list(family, item_id, loader):
    rows = cache_service.get_cached(
        cache_service.query_key(family, item_id),
        loader=lambda: [r.to_dict() for r in loader(item_id)],
    )
    return jsonify({"items": rows, "total": len(rows)})


# ═══════════════════════════════════════════════════════════════════════════
#  BLOCKERS
# ═══════════════════════════════════════════════════════════════════════════

@tracking_bp.route("/items/<item_id>/blockers", methods=["GET"])
def list_blockers(item_id):
    item, _ctx = visible_item(item_id)
    return _cached_list("blockers", item.id, tracking_service.list_blockers)


@tracking_bp.route("/items/<item_id>/blockers", methods=["POST"])
def create_blocker(item_id):
    item, ctx = visible_item(item_id)
    data = json_body()
    if missing_fields(data, "title"):
        return api_error(E.VALIDATION_REQUIRED, "title is required", details={"title": "required"})
    blocker = tracking_service.create_blocker(ctx, item, data)
    err = _commit("blocker")
    if err:
        return err
    return jsonify(blocker.to_dict()), 201


@tracking_bp.route("/blockers/<blocker_id>", methods=["PUT"])
def update_blocker(blocker_id):
    blocker = get_or_raise(Blocker, blocker_id)
    _item, ctx = visible_item(blocker.item_id)
    tracking_service.update_blocker(ctx, blocker, json_body())
    err = _commit("blocker")
    if err:
        return err
    return jsonify(blocker.to_dict())


@tracking_bp.route("/blockers/<blocker_id>", methods=["DELETE"])
def delete_blocker(blocker_id):
    blocker = get_or_raise(Blocker, blocker_id)
    _item, ctx = visible_item(blocker.item_id)
    tracking_service.delete_blocker(ctx, blocker)
    err = _commit("blocker")
    if err:
        return err
    return jsonify({"deleted": True, "id": blocker_id})


# ═══════════════════════════════════════════════════════════════════════════
#  HELP REQUESTS
# ═══════════════════════════════════════════════════════════════════════════

@tracking_bp.route("/items/<item_id>/help-requests", methods=["GET"])
def list_help_requests(item_id):
    item, _ctx = visible_item(item_id)
    return _cached_list("help_requests", item.id, tracking_service.list_help_requests)


@tracking_bp.route("/items/<item_id>/help-requests", methods=["POST"])
def create_help_request(item_id):
    item, ctx = visible_item(item_id)
    help_request = tracking_service.create_help_request(ctx, item, json_body())
    err = _commit("help_request")
    if err:
        return err
    return jsonify(help_request.to_dict()), 201


@tracking_bp.route("/help-requests/<request_id>", methods=["PUT"])
def update_help_request(request_id):
    help_request = get_or_raise(HelpRequest, request_id)
    _item, ctx = visible_item(help_request.item_id)
    tracking_service.update_help_request(ctx, help_request, json_body())
    err = _commit("help_request")
    if err:
        return err
    return jsonify(help_request.to_dict())


@tracking_bp.route("/help-requests/<request_id>", methods=["DELETE"])
def delete_help_request(request_id):
    help_request = get_or_raise(HelpRequest, request_id)
    _item, ctx = visible_item(help_request.item_id)
    tracking_service.delete_help_request(ctx, help_request)
    err = _commit("help_request")
    if err:
        return err
    return jsonify({"deleted": True, "id": request_id})


# ═══════════════════════════════════════════════════════════════════════════
#  COMMENTS
# ═══════════════════════════════════════════════════════════════════════════

@tracking_bp.route("/items/<item_id>/comments", methods=["GET"])
def list_comments(item_id):
    item, _ctx = visible_item(item_id)
    return _cached_list("comments", item.id, tracking_service.list_comments)


@tracking_bp.route("/items/<item_id>/comments", methods=["POST"])
def create_comment(item_id):
    item, ctx = visible_item(item_id)
    data = json_body()
    if missing_fields(data, "body"):
        return api_error(E.VALIDATION_REQUIRED, "body is required", details={"body": "required"})
    comment = tracking_service.create_comment(ctx, item, data)
    err = _commit("comment")
    if err:
        return err
    return jsonify(comment.to_dict()), 201


@tracking_bp.route("/comments/<comment_id>", methods=["DELETE"])
def delete_comment(comment_id):
    comment = get_or_raise(Comment, comment_id)
    _item, ctx = visible_item(comment.item_id)
    tracking_service.delete_comment(ctx, comment)
    err = _commit("comment")
    if err:
        return err
    return jsonify({"deleted": True, "id": comment_id})
