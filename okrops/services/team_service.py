"""Team service — teams, memberships, periods and objectives.

Transaction policy: methods use flush() for ID generation, never commit().
Caller (route handler) is responsible for db.session.commit().

Operations:
- Team CRUD (admin only)
- TeamMember add / role change / remove (admin only)
- Team visibility for the current actor
- Period create (admin) + list
- Objective create / delete (admin or team manager) + list
"""
import logging

from okrops.core.exceptions import ConflictError, ValidationError
from okrops.models import db
from okrops.models.auth import MEMBER_ROLES, TEAM_ICONS, Profile, Team, TeamMember
from okrops.models.okr import Objective, Period
from okrops.services import cache_service
from okrops.services.permission_service import require_permission
from okrops.services.role_resolver import load_role_context
from okrops.utils.helpers import get_or_raise, parse_date_input, text_input

logger = logging.getLogger(__name__)


def _validate_icon(icon):
    if icon and icon not in TEAM_ICONS:
        raise ValidationError("Unknown team icon", details={"icon": "not a known icon"})


def _validate_member_role(role):
    if role not in MEMBER_ROLES:
        raise ValidationError(
            f"Invalid member_role: {role}",
            details={"member_role": f"must be one of {sorted(MEMBER_ROLES)}"},
        )


# ── Teams ────────────────────────────────────────────────────────────────


def list_visible_teams(actor_id: str):
    """Admins see every team; everyone else sees the teams they belong to."""
    ctx = load_role_context(actor_id, None)
    q = Team.query
    if not ctx.is_admin:
        q = q.join(TeamMember, TeamMember.team_id == Team.id).filter(TeamMember.user_id == actor_id)
    return q.order_by(Team.name).all()


def visible_team_ids(actor_id: str) -> list[str]:
    return [t.id for t in list_visible_teams(actor_id)]


def create_team(ctx, data) -> Team:
    require_permission(ctx, "teams.manage")
    name = text_input(data, "name", required=True)
    _validate_icon(data.get("icon"))
    if Team.query.filter_by(name=name).first():
        raise ConflictError("Team", "name", name)
    team = Team(name=name, icon=data.get("icon"))
    db.session.add(team)
    db.session.flush()
    logger.info("Team %s created by %s", team.id, ctx.actor_id)
    return team


def update_team(ctx, team, data) -> Team:
    require_permission(ctx, "teams.manage")
    if "name" in data:
        name = text_input(data, "name", required=True)
        clash = Team.query.filter(Team.name == name, Team.id != team.id).first()
        if clash:
            raise ConflictError("Team", "name", name)
        team.name = name
    if "icon" in data:
        _validate_icon(data["icon"])
        team.icon = data["icon"]
    db.session.flush()
    return team


def delete_team(ctx, team) -> None:
    require_permission(ctx, "teams.manage")
    db.session.delete(team)
    db.session.flush()
    logger.info("Team %s deleted by %s", team.id, ctx.actor_id)


# ── Members ──────────────────────────────────────────────────────────────


def list_members(ctx, team_id: str) -> list[dict]:
    """Membership rows for a team (admin only), cached per team."""
    require_permission(ctx, "team_members.manage")
    get_or_raise(Team, team_id)

    def _load():
        rows = (
            TeamMember.query.filter_by(team_id=team_id)
            .order_by(TeamMember.member_role, TeamMember.created_at)
            .all()
        )
        return [m.to_dict() for m in rows]

    return cache_service.get_cached(cache_service.query_key("members", team_id), loader=_load)


def add_member(ctx, team_id: str, user_id: str, member_role: str = "member") -> TeamMember:
    require_permission(ctx, "team_members.manage")
    get_or_raise(Team, team_id)
    get_or_raise(Profile, user_id)
    _validate_member_role(member_role)
    if TeamMember.query.filter_by(team_id=team_id, user_id=user_id).first():
        raise ConflictError("TeamMember", "user_id", user_id)
    member = TeamMember(team_id=team_id, user_id=user_id, member_role=member_role)
    db.session.add(member)
    db.session.flush()
    logger.info("User %s added to team %s as %s", user_id, team_id, member_role)
    return member


def update_member_role(ctx, member: TeamMember, member_role: str) -> TeamMember:
    require_permission(ctx, "team_members.manage")
    _validate_member_role(member_role)
    member.member_role = member_role
    db.session.flush()
    return member


def remove_member(ctx, member: TeamMember) -> None:
    require_permission(ctx, "team_members.manage")
    db.session.delete(member)
    db.session.flush()
    logger.info("User %s removed from team %s", member.user_id, member.team_id)


# ── Periods / objectives ─────────────────────────────────────────────────


def list_periods():
    return Period.query.order_by(Period.start_date.desc()).all()


def create_period(ctx, data) -> Period:
    require_permission(ctx, "teams.manage")
    start = parse_date_input(data.get("start_date"), "start_date")
    end = parse_date_input(data.get("end_date"), "end_date")
    if start is None or end is None:
        raise ValidationError(
            "start_date and end_date are required",
            details={"start_date": "required", "end_date": "required"},
        )
    if start > end:
        raise ValidationError("start_date must not be after end_date")
    name = text_input(data, "name", required=True)
    period = Period(name=name, start_date=start, end_date=end)
    db.session.add(period)
    db.session.flush()
    return period


def list_objectives(team_id: str):
    return Objective.query.filter_by(team_id=team_id).order_by(Objective.title).all()


def create_objective(ctx, team_id: str, data) -> Objective:
    require_permission(ctx, "objectives.manage")
    get_or_raise(Period, data.get("period_id"))
    title = text_input(data, "title", required=True)
    objective = Objective(team_id=team_id, period_id=data["period_id"], title=title)
    db.session.add(objective)
    db.session.flush()
    return objective


def delete_objective(ctx, objective: Objective) -> None:
    require_permission(ctx, "objectives.manage")
    db.session.delete(objective)
    db.session.flush()
