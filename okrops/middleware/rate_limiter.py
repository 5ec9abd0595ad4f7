"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter. The Limiter instance
is created in okrops/__init__.py with no default limits; this module applies
granular limits per route category, keyed by actor when one is known.

Usage:
    from okrops.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import g, request as flask_request

logger = logging.getLogger(__name__)

WRITE_LIMIT = "60/minute"
READ_LIMIT = "200/minute"


def actor_rate_limit_key():
    """Rate limit key: actor id if authenticated, else remote IP."""
    actor_id = getattr(g, "actor_id", None)
    if actor_id:
        return f"actor:{actor_id}"
    return flask_request.remote_addr or "unknown"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per actor, falling back to remote IP):
        - Board / tracking routes: 60/minute
        - Dashboards:             200/minute
        - Health check:           exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    for bp_name in ("team", "item", "tracking"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(WRITE_LIMIT, key_func=actor_rate_limit_key)(bp)

    bp = app.blueprints.get("dashboard")
    if bp:
        limiter.limit(READ_LIMIT, key_func=actor_rate_limit_key)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured: board/tracking %s, dashboards %s", WRITE_LIMIT, READ_LIMIT,
    )
