"""
OKR Ops Tracker
Dashboard blueprint — home summary and the admin director dashboard.
"""

from datetime import timedelta

from flask import Blueprint, current_app, g, jsonify, request

from okrops.blueprints import register_error_handlers, role_context
from okrops.models.okr import ITEM_STATUSES
from okrops.services import dashboard_service as svc
from okrops.utils.errors import E, api_error

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/v1/dashboard")
register_error_handlers(dashboard_bp)


@dashboard_bp.route("/home", methods=["GET"])
def home():
    """Stale items, open blockers / help, upcoming targets across visible teams."""
    stale_days = current_app.config.get("STALE_AFTER_DAYS", 14)
    return jsonify(svc.home_summary(
        g.actor_id,
        team_id=request.args.get("team_id") or None,
        stale_after=timedelta(days=stale_days),
    )), 200


@dashboard_bp.route("/director", methods=["GET"])
def director():
    """Cross-team attention view (admin only)."""
    status = request.args.get("status") or None
    if status and status not in ITEM_STATUSES:
        return api_error(E.VALIDATION_INVALID, f"Invalid status: {status}",
                         details={"status": f"must be one of {list(ITEM_STATUSES)}"})
    return jsonify(svc.director_dashboard(
        role_context(),
        team_id=request.args.get("team_id") or None,
        status=status,
        horizon_days=current_app.config.get("TARGET_HORIZON_DAYS", (30, 60, 90)),
    )), 200
