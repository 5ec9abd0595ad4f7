"""
Health check blueprint.

Endpoints:
    GET /api/v1/health/ready  — simple 200 for load balancers
    GET /api/v1/health/live   — dependency status (database, query cache)
"""

import logging
import time

from flask import Blueprint, current_app, jsonify

from okrops.models import db
from okrops.services import cache_service

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")


@health_bp.route("", methods=["GET"])
def health():
    return jsonify({"status": "ok", "app": "OKR Ops Tracker"}), 200


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Readiness check; always 200 while the app is running."""
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Liveness check with dependency status."""
    checks = {}
    overall = True

    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        db_ms = (time.perf_counter() - t0) * 1000
        checks["database"] = {"status": "ok", "latency_ms": round(db_ms, 1)}
    except Exception as exc:
        checks["database"] = {"status": "error", "detail": str(exc)}
        overall = False
        logger.error("Health check — database failed: %s", exc)

    # Cache is optional; a failure degrades reads but not health
    checks["cache"] = cache_service.health_check()

    checks["app"] = {
        "name": "OKR Ops Tracker",
        "debug": current_app.debug,
        "testing": current_app.testing,
    }

    status_code = 200 if overall else 503
    return jsonify({
        "status": "healthy" if overall else "degraded",
        "checks": checks,
    }), status_code
