"""
JWT Service — access token generation and verification.

Tokens are issued by the identity provider in front of the tracker; this
module only verifies them (and mints them for local tooling and tests).

Access token:  1 hour (configurable via JWT_ACCESS_EXPIRES)
Algorithm:     HS256

Token payload:
{
    "sub": <profile_id>,
    "email": <email>,          # optional
    "type": "access",
    "iat": <issued_at>,
    "exp": <expires_at>,
    "jti": <unique_id>
}
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app


DEFAULT_ACCESS_EXPIRES = 3600
ALGORITHM = "HS256"


def _get_secret():
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def _get_access_expires():
    return current_app.config.get("JWT_ACCESS_EXPIRES", DEFAULT_ACCESS_EXPIRES)


def generate_access_token(profile_id: str, email: str | None = None) -> str:
    """Mint an access token for *profile_id*."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": profile_id,
        "type": "access",
        "iat": now,
        "exp": now + timedelta(seconds=_get_access_expires()),
        "jti": str(uuid.uuid4()),
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, _get_secret(), algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Decode and verify an access token.

    Raises jwt.InvalidTokenError (or a subclass such as ExpiredSignatureError)
    when the token is malformed, expired, of the wrong type, or has no subject.
    """
    payload = jwt.decode(token, _get_secret(), algorithms=[ALGORITHM])
    if payload.get("type", "access") != "access":
        raise jwt.InvalidTokenError(f"Expected access token, got {payload.get('type')}")
    if not payload.get("sub"):
        raise jwt.InvalidTokenError("Token has no subject")
    return payload
