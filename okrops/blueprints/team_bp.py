"""
OKR Ops Tracker
Team blueprint — profiles, teams, memberships, periods and objectives.

Endpoints summary:
    PROFILE  /api/v1/profiles/me                   GET
             /api/v1/profiles                      GET           (admin)
             /api/v1/profiles/<id>/role            PUT           (admin)

    TEAM     /api/v1/teams                         GET, POST
             /api/v1/teams/<id>                    GET, PUT, DELETE
             /api/v1/team-icons                    GET

    MEMBER   /api/v1/teams/<id>/members            GET, POST     (admin)
             /api/v1/team-members/<id>             PUT, DELETE   (admin)

    PERIOD   /api/v1/periods                       GET, POST

    OKR      /api/v1/teams/<id>/objectives         GET, POST
             /api/v1/objectives/<id>               DELETE
"""

import logging

from flask import Blueprint, g, jsonify

from okrops.blueprints import (
    json_body,
    missing_fields,
    register_error_handlers,
    role_context,
    visible_team,
)
from okrops.models.auth import TEAM_ICONS, Profile, TeamMember
from okrops.models.okr import Objective
from okrops.services import cache_service, profile_service, team_service
from okrops.utils.errors import E, api_error
from okrops.utils.helpers import db_commit_or_error, get_or_raise

logger = logging.getLogger(__name__)

team_bp = Blueprint("team", __name__, url_prefix="/api/v1")
register_error_handlers(team_bp)


def _commit(entity):
    err = db_commit_or_error()
    if err:
        return err
    cache_service.invalidate_for(entity)
    return None


# ═══════════════════════════════════════════════════════════════════════════
#  PROFILES
# ═══════════════════════════════════════════════════════════════════════════

@team_bp.route("/profiles/me", methods=["GET"])
def my_profile():
    profile = get_or_raise(Profile, g.actor_id)
    memberships = TeamMember.query.filter_by(user_id=profile.id).all()
    data = profile.to_dict()
    data["memberships"] = [
        {"team_id": m.team_id, "member_role": m.member_role} for m in memberships
    ]
    return jsonify(data)


@team_bp.route("/profiles", methods=["GET"])
def list_profiles():
    profiles = profile_service.list_profiles(role_context())
    return jsonify({"items": [p.to_dict() for p in profiles], "total": len(profiles)})


@team_bp.route("/profiles/<profile_id>/role", methods=["PUT"])
def set_profile_role(profile_id):
    data = json_body()
    if missing_fields(data, "role"):
        return api_error(E.VALIDATION_REQUIRED, "role is required")
    profile = profile_service.set_profile_role(role_context(), profile_id, data["role"])
    err = _commit("profile")
    if err:
        return err
    return jsonify(profile.to_dict())


# ═══════════════════════════════════════════════════════════════════════════
#  TEAMS
# ═══════════════════════════════════════════════════════════════════════════

@team_bp.route("/teams", methods=["GET"])
def list_teams():
    actor_id = g.actor_id

    def _load():
        return [t.to_dict() for t in team_service.list_visible_teams(actor_id)]

    teams = cache_service.get_cached(cache_service.query_key("teams", actor_id), loader=_load)
    return jsonify({"items": teams, "total": len(teams)})


@team_bp.route("/teams", methods=["POST"])
def create_team():
    data = json_body()
    if missing_fields(data, "name"):
        return api_error(E.VALIDATION_REQUIRED, "name is required")
    team = team_service.create_team(role_context(), data)
    err = _commit("team")
    if err:
        return err
    return jsonify(team.to_dict()), 201


@team_bp.route("/teams/<team_id>", methods=["GET"])
def get_team(team_id):
    team, ctx = visible_team(team_id)
    data = team.to_dict()
    data["member_role"] = ctx.member_role.value if ctx.member_role else None
    return jsonify(data)


@team_bp.route("/teams/<team_id>", methods=["PUT"])
def update_team(team_id):
    team, ctx = visible_team(team_id)
    team_service.update_team(ctx, team, json_body())
    err = _commit("team")
    if err:
        return err
    return jsonify(team.to_dict())


@team_bp.route("/teams/<team_id>", methods=["DELETE"])
def delete_team(team_id):
    team, ctx = visible_team(team_id)
    team_service.delete_team(ctx, team)
    err = _commit("team")
    if err:
        return err
    return jsonify({"deleted": True, "id": team_id})


@team_bp.route("/team-icons", methods=["GET"])
def team_icons():
    return jsonify({"items": list(TEAM_ICONS)})


# ═══════════════════════════════════════════════════════════════════════════
#  MEMBERS
# ═══════════════════════════════════════════════════════════════════════════

@team_bp.route("/teams/<team_id>/members", methods=["GET"])
def list_members(team_id):
    members = team_service.list_members(role_context(team_id), team_id)
    return jsonify({"items": members, "total": len(members)})


@team_bp.route("/teams/<team_id>/members", methods=["POST"])
def add_member(team_id):
    data = json_body()
    if missing_fields(data, "user_id"):
        return api_error(E.VALIDATION_REQUIRED, "user_id is required")
    member = team_service.add_member(
        role_context(team_id), team_id, data["user_id"], data.get("member_role") or "member",
    )
    err = _commit("team_member")
    if err:
        return err
    return jsonify(member.to_dict()), 201


@team_bp.route("/team-members/<member_id>", methods=["PUT"])
def update_member(member_id):
    member = get_or_raise(TeamMember, member_id)
    data = json_body()
    if missing_fields(data, "member_role"):
        return api_error(E.VALIDATION_REQUIRED, "member_role is required")
    team_service.update_member_role(role_context(member.team_id), member, data["member_role"])
    err = _commit("team_member")
    if err:
        return err
    return jsonify(member.to_dict())


@team_bp.route("/team-members/<member_id>", methods=["DELETE"])
def remove_member(member_id):
    member = get_or_raise(TeamMember, member_id)
    team_service.remove_member(role_context(member.team_id), member)
    err = _commit("team_member")
    if err:
        return err
    return jsonify({"deleted": True, "id": member_id})


# ═══════════════════════════════════════════════════════════════════════════
#  PERIODS / OBJECTIVES
# ═══════════════════════════════════════════════════════════════════════════

@team_bp.route("/periods", methods=["GET"])
def list_periods():
    periods = cache_service.get_cached(
        cache_service.query_key("periods"),
        loader=lambda: [p.to_dict() for p in team_service.list_periods()],
    )
    return jsonify({"items": periods, "total": len(periods)})


@team_bp.route("/periods", methods=["POST"])
def create_period():
    data = json_body()
    missing = missing_fields(data, "name", "start_date", "end_date")
    if missing:
        return api_error(E.VALIDATION_REQUIRED, f"{', '.join(missing)} required")
    period = team_service.create_period(role_context(), data)
    err = _commit("period")
    if err:
        return err
    return jsonify(period.to_dict()), 201


@team_bp.route("/teams/<team_id>/objectives", methods=["GET"])
def list_objectives(team_id):
    team, _ctx = visible_team(team_id)
    objectives = cache_service.get_cached(
        cache_service.query_key("objectives", team.id),
        loader=lambda: [o.to_dict() for o in team_service.list_objectives(team.id)],
    )
    return jsonify({"items": objectives, "total": len(objectives)})


@team_bp.route("/teams/<team_id>/objectives", methods=["POST"])
def create_objective(team_id):
    team, ctx = visible_team(team_id)
    data = json_body()
    missing = missing_fields(data, "title", "period_id")
    if missing:
        return api_error(E.VALIDATION_REQUIRED, f"{', '.join(missing)} required")
    objective = team_service.create_objective(ctx, team.id, data)
    err = _commit("objective")
    if err:
        return err
    return jsonify(objective.to_dict()), 201


@team_bp.route("/objectives/<objective_id>", methods=["DELETE"])
def delete_objective(objective_id):
    objective = get_or_raise(Objective, objective_id)
    _team, ctx = visible_team(objective.team_id)
    team_service.delete_objective(ctx, objective)
    err = _commit("objective")
    if err:
        return err
    return jsonify({"deleted": True, "id": objective_id})
