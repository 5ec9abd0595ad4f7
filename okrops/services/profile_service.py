"""Profile service — actor profiles and the global role axis.

Transaction policy: functions flush, never commit. The caller commits.
"""
import logging

from sqlalchemy.exc import IntegrityError

from okrops.core.exceptions import ValidationError
from okrops.models import db
from okrops.models.auth import PROFILE_ROLES, Profile, ProfileRole
from okrops.services.permission_service import require_permission
from okrops.utils.helpers import get_or_raise

logger = logging.getLogger(__name__)


def ensure_profile(actor_id: str, email: str | None = None) -> Profile:
    """Return the actor's profile, creating it with the ``member`` role if missing.

    Two first requests for the same actor may race to insert; the loser rolls
    back and reads the row the winner committed.
    """
    profile = db.session.get(Profile, actor_id)
    if profile is not None:
        if email and not profile.email:
            profile.email = email
            db.session.flush()
        return profile
    try:
        profile = Profile(id=actor_id, email=email, role=ProfileRole.MEMBER.value)
        db.session.add(profile)
        db.session.flush()  # triggers the primary key constraint before commit
    except IntegrityError:
        db.session.rollback()
        logger.info("Profile for actor %s created concurrently; re-reading", actor_id)
        return get_or_raise(Profile, actor_id)
    logger.info("Created profile for actor %s (%s)", actor_id, email or "no email")
    return profile


def list_profiles(ctx):
    require_permission(ctx, "team_members.manage")
    return Profile.query.order_by(Profile.email).all()


def set_profile_role(ctx, profile_id: str, role: str) -> Profile:
    """Change an actor's global role. Admin only."""
    require_permission(ctx, "teams.manage")
    if role not in PROFILE_ROLES:
        raise ValidationError(
            f"Invalid role: {role}", details={"role": f"must be one of {sorted(PROFILE_ROLES)}"},
        )
    profile = get_or_raise(Profile, profile_id)
    profile.role = role
    db.session.flush()
    logger.info("Profile %s role set to %s by %s", profile_id, role, ctx.actor_id)
    return profile


def email_labels(actor_ids) -> dict:
    """actor id → email for display labels."""
    ids = sorted({a for a in actor_ids if a})
    if not ids:
        return {}
    rows = db.session.query(Profile.id, Profile.email).filter(Profile.id.in_(ids)).all()
    return {pid: email for pid, email in rows if email}
