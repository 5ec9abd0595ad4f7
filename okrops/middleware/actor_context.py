"""
Actor context middleware — resolves the acting profile from a bearer token.

Every /api/v1 route except health requires ``Authorization: Bearer <jwt>``.
On success:
    g.actor_id     profile id (token ``sub``)
    g.actor_email  email claim, if present

The actor's Profile row is created on first sight with the ``member`` role.
"""

import logging

import jwt as pyjwt
from flask import g, request
from sqlalchemy.exc import IntegrityError

from okrops.models import db
from okrops.services.jwt_service import decode_access_token
from okrops.services.profile_service import ensure_profile
from okrops.utils.errors import E, api_error

logger = logging.getLogger(__name__)

AUTH_SKIP_PREFIXES = (
    "/api/v1/health",
)


def init_actor_context(app):
    """Register the actor resolution hook as a before_request handler."""

    @app.before_request
    def _resolve_actor():
        g.actor_id = None
        g.actor_email = None

        path = request.path
        if not path.startswith("/api/v1/") or request.method == "OPTIONS":
            return None
        for prefix in AUTH_SKIP_PREFIXES:
            if path.startswith(prefix):
                return None

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return api_error(E.UNAUTHENTICATED, "Authentication required")

        try:
            payload = decode_access_token(auth_header[7:])
        except pyjwt.ExpiredSignatureError:
            return api_error(E.UNAUTHENTICATED, "Token expired")
        except pyjwt.InvalidTokenError as exc:
            logger.info("Rejected bearer token: %s", exc)
            return api_error(E.UNAUTHENTICATED, "Invalid token")

        g.actor_id = str(payload["sub"])
        g.actor_email = payload.get("email")

        ensure_profile(g.actor_id, g.actor_email)
        try:
            db.session.commit()
        except IntegrityError:
            # Another request committed the same profile first
            db.session.rollback()
        return None
