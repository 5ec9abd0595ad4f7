"""
OKR Ops Tracker
Blueprint registry and shared route helpers.
"""

import logging

from flask import g, request
from werkzeug.exceptions import HTTPException

from okrops.core.exceptions import (
    ConflictError,
    FailureKind,
    NotFoundError,
    PermissionDeniedError,
    TransientFailure,
    ValidationError,
    classify_failure,
)
from okrops.models import db
from okrops.models.auth import Team
from okrops.models.okr import Item
from okrops.services.permission_service import has_permission
from okrops.services.role_resolver import load_role_context
from okrops.utils.errors import E, api_error
from okrops.utils.helpers import get_or_raise

logger = logging.getLogger(__name__)


def role_context(team_id=None):
    """RoleContext for the current actor, scoped to *team_id*."""
    return load_role_context(getattr(g, "actor_id", None), team_id)


def visible_team(team_id):
    """(team, ctx) for a team the actor can see.

    A team the actor cannot see is reported as missing, not forbidden.
    """
    team = get_or_raise(Team, team_id)
    ctx = role_context(team.id)
    if not has_permission(ctx, "teams.view"):
        logger.info("Actor %s cannot see team %s", ctx.actor_id, team_id)
        raise NotFoundError("Team", team_id)
    return team, ctx


def visible_item(item_id):
    """(item, ctx) for an item in a team the actor can see."""
    item = get_or_raise(Item, item_id)
    ctx = role_context(item.team_id)
    if not has_permission(ctx, "teams.view"):
        raise NotFoundError("Item", item_id)
    return item, ctx


def json_body():
    """The request's JSON object; anything other than an object reads as empty."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def missing_fields(data, *fields):
    """Return the names of required fields that are absent or blank."""
    return [f for f in fields if not str(data.get(f) or "").strip()]


def register_error_handlers(bp):
    """Map the core exception hierarchy onto JSON responses for *bp*."""

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        db.session.rollback()
        return api_error(E.NOT_FOUND, str(error))

    @bp.errorhandler(PermissionDeniedError)
    def _handle_forbidden(error: PermissionDeniedError):
        db.session.rollback()
        return api_error(E.FORBIDDEN, str(error), details={"permission": error.permission})

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        db.session.rollback()
        return api_error(E.VALIDATION_INVALID, str(error), details=error.details)

    @bp.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        db.session.rollback()
        return api_error(E.CONFLICT_DUPLICATE, str(error), details={"field": error.field})

    @bp.errorhandler(TransientFailure)
    def _handle_transient(error: TransientFailure):
        db.session.rollback()
        logger.error("Transient failure in %s: %s", request.endpoint, error)
        return api_error(E.INTERNAL, str(error))

    @bp.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        if isinstance(error, HTTPException):
            return error
        db.session.rollback()
        kind, message = classify_failure(error)
        if kind is FailureKind.PERMISSION_DENIED:
            logger.warning("Store rejected %s: %s", request.endpoint, error)
            return api_error(E.FORBIDDEN, message)
        logger.exception("Unexpected error in endpoint=%s", request.endpoint)
        return api_error(E.INTERNAL, message)
