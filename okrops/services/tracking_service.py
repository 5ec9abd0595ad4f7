"""Tracking service — blockers, help requests and comments on an item.

Transaction policy: methods use flush() for ID generation, never commit().
Caller (route handler) is responsible for db.session.commit().
"""
import logging

from okrops.core.exceptions import ValidationError
from okrops.models import db
from okrops.models.tracking import (
    BLOCKER_SEVERITIES,
    BLOCKER_STATUSES,
    HELP_REQUEST_STATUSES,
    HELP_REQUEST_TYPES,
    Blocker,
    Comment,
    HelpRequest,
)
from okrops.services.permission_service import require_permission
from okrops.utils.helpers import parse_date_input, text_input

logger = logging.getLogger(__name__)


def _validate_choice(field, value, choices):
    if value not in choices:
        raise ValidationError(
            f"Invalid {field}: {value}", details={field: f"must be one of {list(choices)}"},
        )


# ── Blockers ─────────────────────────────────────────────────────────────


def list_blockers(item_id: str):
    return Blocker.query.filter_by(item_id=item_id).order_by(Blocker.created_at.desc()).all()


def create_blocker(ctx, item, data) -> Blocker:
    require_permission(ctx, "blockers.manage", item=item)
    title = text_input(data, "title", required=True)
    severity = data.get("severity") or "medium"
    status = data.get("status") or "open"
    _validate_choice("severity", severity, BLOCKER_SEVERITIES)
    _validate_choice("status", status, BLOCKER_STATUSES)

    blocker = Blocker(
        item_id=item.id,
        title=title,
        detail=text_input(data, "detail"),
        severity=severity,
        status=status,
        owner_id=data.get("owner_id"),
        eta=parse_date_input(data.get("eta"), "eta"),
    )
    db.session.add(blocker)
    db.session.flush()
    logger.info("Blocker %s (%s) added to item %s", blocker.id, severity, item.id)
    return blocker


def update_blocker(ctx, blocker: Blocker, data) -> Blocker:
    require_permission(ctx, "blockers.manage", item=blocker.item)
    if "title" in data:
        blocker.title = text_input(data, "title", required=True)
    if "severity" in data:
        _validate_choice("severity", data["severity"], BLOCKER_SEVERITIES)
        blocker.severity = data["severity"]
    if "status" in data:
        _validate_choice("status", data["status"], BLOCKER_STATUSES)
        blocker.status = data["status"]
    if "detail" in data:
        blocker.detail = text_input(data, "detail")
    if "owner_id" in data:
        blocker.owner_id = data["owner_id"] or None
    if "eta" in data:
        blocker.eta = parse_date_input(data["eta"], "eta")
    db.session.flush()
    return blocker


def delete_blocker(ctx, blocker: Blocker) -> None:
    require_permission(ctx, "blockers.manage", item=blocker.item)
    db.session.delete(blocker)
    db.session.flush()


# ── Help requests ────────────────────────────────────────────────────────


def list_help_requests(item_id: str):
    return HelpRequest.query.filter_by(item_id=item_id).order_by(HelpRequest.created_at.desc()).all()


def create_help_request(ctx, item, data) -> HelpRequest:
    require_permission(ctx, "help_requests.manage", item=item)
    detail = text_input(data, "detail")
    req_type = data.get("type") or "other"
    status = data.get("status") or "open"
    _validate_choice("type", req_type, HELP_REQUEST_TYPES)
    _validate_choice("status", status, HELP_REQUEST_STATUSES)

    help_request = HelpRequest(
        item_id=item.id,
        requested_by=ctx.actor_id,
        type=req_type,
        detail=detail,
        status=status,
    )
    db.session.add(help_request)
    db.session.flush()
    logger.info("Help request %s (%s) added to item %s", help_request.id, req_type, item.id)
    return help_request


def update_help_request(ctx, help_request: HelpRequest, data) -> HelpRequest:
    require_permission(ctx, "help_requests.manage", item=help_request.item)
    if "type" in data:
        _validate_choice("type", data["type"], HELP_REQUEST_TYPES)
        help_request.type = data["type"]
    if "status" in data:
        _validate_choice("status", data["status"], HELP_REQUEST_STATUSES)
        help_request.status = data["status"]
    if "detail" in data:
        help_request.detail = text_input(data, "detail")
    db.session.flush()
    return help_request


def delete_help_request(ctx, help_request: HelpRequest) -> None:
    require_permission(ctx, "help_requests.manage", item=help_request.item)
    db.session.delete(help_request)
    db.session.flush()


# ── Comments ─────────────────────────────────────────────────────────────


def list_comments(item_id: str):
    return Comment.query.filter_by(item_id=item_id).order_by(Comment.created_at).all()


def create_comment(ctx, item, data) -> Comment:
    require_permission(ctx, "comments.create", item=item)
    body = text_input(data, "body", required=True)
    comment = Comment(item_id=item.id, author_id=ctx.actor_id, body=body)
    db.session.add(comment)
    db.session.flush()
    return comment


def delete_comment(ctx, comment: Comment) -> None:
    require_permission(ctx, "comments.delete", item=comment.item, comment=comment)
    db.session.delete(comment)
    db.session.flush()
    logger.info("Comment %s deleted by %s", comment.id, ctx.actor_id)
