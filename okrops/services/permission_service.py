"""
Permission Service — role-based evaluator for every mutating operation.

The evaluator is a pure function of (RoleContext, item?, comment?). The same
checks drive both the capability flags returned to the UI (so it can hide
controls) and the enforcement in the service layer (so the request is rejected
even if a control was shown). Hide AND reject.

Evaluation is deterministic and deny-by-default:
  - an unresolved context (role data not loaded) denies everything
  - unknown permission codenames deny
  - global admin is a superuser for every codename
"""

import logging

from okrops.core.exceptions import PermissionDeniedError
from okrops.services.role_resolver import RoleContext

logger = logging.getLogger(__name__)


def _get(record, name):
    if record is None:
        return None
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)


# ── Individual checks ────────────────────────────────────────────────────


def can_view_team(ctx: RoleContext) -> bool:
    return ctx.is_admin or ctx.is_team_viewer


def can_manage_team(ctx: RoleContext) -> bool:
    return ctx.is_admin


def can_manage_team_members(ctx: RoleContext) -> bool:
    return ctx.is_admin


def can_manage_objectives(ctx: RoleContext) -> bool:
    return ctx.is_admin or ctx.is_manager


def can_create_item(ctx: RoleContext) -> bool:
    return ctx.is_admin or ctx.is_manager or ctx.is_member


def can_update_item_status(ctx: RoleContext, item) -> bool:
    """Admin, team manager, or a team member who owns the item.

    Ownership alone is not enough: an owner with a viewer team role is denied.
    """
    if item is None:
        return False
    return ctx.is_admin or ctx.is_manager or (ctx.is_member and ctx.is_owner_of(item))


def can_delete_item(ctx: RoleContext) -> bool:
    return ctx.is_admin


def can_manage_blockers(ctx: RoleContext) -> bool:
    return ctx.is_admin or ctx.is_manager or ctx.is_member


def can_manage_help_requests(ctx: RoleContext) -> bool:
    return ctx.is_admin or ctx.is_manager or ctx.is_member


def can_create_comment(ctx: RoleContext) -> bool:
    return ctx.is_member or ctx.is_admin


def can_delete_comment(ctx: RoleContext, item, comment) -> bool:
    """The author may always delete their own comment; anyone who can edit
    the item may delete any comment on it."""
    if not ctx.resolved or comment is None:
        return False
    author_id = _get(comment, "author_id")
    if ctx.actor_id and author_id == ctx.actor_id:
        return True
    return can_update_item_status(ctx, item)


def can_view_director_dashboard(ctx: RoleContext) -> bool:
    return ctx.is_admin


# ── Codename registry ────────────────────────────────────────────────────

_CHECKS = {
    "teams.view": lambda ctx, item, comment: can_view_team(ctx),
    "teams.manage": lambda ctx, item, comment: can_manage_team(ctx),
    "team_members.manage": lambda ctx, item, comment: can_manage_team_members(ctx),
    "objectives.manage": lambda ctx, item, comment: can_manage_objectives(ctx),
    "items.create": lambda ctx, item, comment: can_create_item(ctx),
    "items.update_status": lambda ctx, item, comment: can_update_item_status(ctx, item),
    "items.delete": lambda ctx, item, comment: can_delete_item(ctx),
    "blockers.manage": lambda ctx, item, comment: can_manage_blockers(ctx),
    "help_requests.manage": lambda ctx, item, comment: can_manage_help_requests(ctx),
    "comments.create": lambda ctx, item, comment: can_create_comment(ctx),
    "comments.delete": lambda ctx, item, comment: can_delete_comment(ctx, item, comment),
    "dashboard.director": lambda ctx, item, comment: can_view_director_dashboard(ctx),
}

PERMISSION_CODENAMES = frozenset(_CHECKS)


def has_permission(ctx: RoleContext | None, codename: str, item=None, comment=None) -> bool:
    if ctx is None or not ctx.resolved:
        return False
    check = _CHECKS.get(codename)
    if check is None:
        return False
    return bool(check(ctx, item, comment))


def evaluate_permission(ctx: RoleContext | None, codename: str, item=None, comment=None) -> dict:
    """Evaluate one codename and explain the decision."""
    if ctx is None or not ctx.resolved:
        return {
            "allowed": False,
            "decision": "deny_unresolved",
            "roles": [],
            "permission": codename,
        }
    allowed = has_permission(ctx, codename, item=item, comment=comment)
    if allowed and ctx.is_admin:
        decision = "allow_superuser"
    elif allowed:
        decision = "allow_role_grant"
    else:
        decision = "deny_by_default"
    return {
        "allowed": allowed,
        "decision": decision,
        "roles": ctx.role_names(),
        "permission": codename,
    }


def require_permission(ctx: RoleContext | None, codename: str, item=None, comment=None) -> None:
    """Raise PermissionDeniedError unless *ctx* holds *codename*."""
    if has_permission(ctx, codename, item=item, comment=comment):
        return
    actor_id = ctx.actor_id if ctx is not None else None
    logger.warning(
        "Actor %s denied: missing permission '%s' (roles=%s)",
        actor_id, codename, ctx.role_names() if ctx is not None else [],
        extra={
            "actor_id": actor_id,
            "permission": codename,
            "team_id": _get(item, "team_id"),
            "item_id": _get(item, "id"),
        },
    )
    raise PermissionDeniedError(codename, actor_id=actor_id)


def item_capabilities(ctx: RoleContext | None, item) -> dict:
    """Capability flags the UI uses to show or hide mutating controls."""
    return {
        "can_edit": has_permission(ctx, "items.update_status", item=item),
        "can_delete": has_permission(ctx, "items.delete", item=item),
        "can_manage_blockers": has_permission(ctx, "blockers.manage", item=item),
        "can_manage_help_requests": has_permission(ctx, "help_requests.manage", item=item),
        "can_comment": has_permission(ctx, "comments.create", item=item),
    }
