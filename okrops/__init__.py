"""
OKR Ops Tracker
Flask Application Factory.

Usage:
    from okrops import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from okrops.config import config
from okrops.middleware.actor_context import init_actor_context
from okrops.middleware.logging_config import configure_logging
from okrops.middleware.rate_limiter import init_rate_limits
from okrops.middleware.security_headers import init_security_headers
from okrops.middleware.timing import init_request_timing
from okrops.models import db

logger = logging.getLogger(__name__)


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit — apply per-blueprint
    storage_uri=os.getenv("REDIS_URL", "memory://"),
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Middleware (before_request hooks run in registration order) ──────
    init_security_headers(app)
    init_request_timing(app)
    init_actor_context(app)

    app.config.setdefault("MAX_CONTENT_LENGTH", 1024 * 1024)

    @app.before_request
    def _guard_request():
        from flask import abort
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            if request.data and "json" not in ct:
                abort(415, description="Content-Type must be application/json")

    # ── Models ───────────────────────────────────────────────────────────
    from okrops.models import auth as _auth_models          # noqa: F401
    from okrops.models import okr as _okr_models            # noqa: F401
    from okrops.models import tracking as _tracking_models  # noqa: F401

    if config_name != "production":
        instance_dir = app.instance_path
        os.makedirs(instance_dir, exist_ok=True)

    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except Exception as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from okrops.blueprints.dashboard_bp import dashboard_bp
    from okrops.blueprints.health_bp import health_bp
    from okrops.blueprints.item_bp import item_bp
    from okrops.blueprints.team_bp import team_bp
    from okrops.blueprints.tracking_bp import tracking_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(team_bp)
    app.register_blueprint(item_bp)
    app.register_blueprint(tracking_bp)
    app.register_blueprint(dashboard_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("grant-role")
    @click.argument("profile_id")
    @click.argument("role")
    @click.option("--email", default=None, help="Email for a newly created profile.")
    def grant_role_cmd(profile_id, role, email):
        """Create PROFILE_ID if missing and set its global ROLE."""
        from okrops.models.auth import PROFILE_ROLES
        from okrops.services.profile_service import ensure_profile

        if role not in PROFILE_ROLES:
            raise click.BadParameter(f"must be one of {sorted(PROFILE_ROLES)}", param_hint="ROLE")
        profile = ensure_profile(profile_id, email)
        profile.role = role
        db.session.commit()
        logger.info("Profile %s now has role %s", profile_id, role)

    @app.cli.command("issue-token")
    @click.argument("profile_id")
    @click.option("--email", default=None)
    def issue_token_cmd(profile_id, email):
        """Print a bearer token for PROFILE_ID (local development)."""
        from okrops.services.jwt_service import generate_access_token
        click.echo(generate_access_token(profile_id, email))

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "code": "ERR_NOT_FOUND", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(415)
    def unsupported_media(e):
        return {"error": e.description}, 415

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Unknown error", "code": "ERR_INTERNAL"}, 500

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
