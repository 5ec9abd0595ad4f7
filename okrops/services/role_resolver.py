"""
Role Resolver — derive the actor's effective capabilities for one team.

Inputs are explicit: the actor id, the actor's global Profile.role, and the
actor's TeamMember.member_role for the team in question (or None when there is
no membership row). Nothing is read from request globals, so the resolver is a
pure function and the permission evaluator built on it is independently
testable.

Resolution rules:
  - is_admin   ⇔ profile role is admin (overrides every team-scoped restriction)
  - is_manager ⇔ team role is manager
  - is_member  ⇔ team role is member OR manager (manager is a superset)
  - viewers and actors without a membership row are read-only for the team
  - unknown role strings resolve to "no role"
  - a context whose role data has not loaded is *unresolved* and every check
    on it is False (fail closed)
"""

import logging
from dataclasses import dataclass

from okrops.models.auth import MemberRole, ProfileRole

logger = logging.getLogger(__name__)


def _get(record, name):
    if record is None:
        return None
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)


@dataclass(frozen=True)
class RoleContext:
    """Resolved capability context of one actor for one team."""

    actor_id: str | None
    profile_role: ProfileRole | None
    member_role: MemberRole | None
    resolved: bool = True

    @classmethod
    def unresolved(cls, actor_id: str | None = None) -> "RoleContext":
        """Context for role data that has not loaded yet."""
        return cls(actor_id=actor_id, profile_role=None, member_role=None, resolved=False)

    @property
    def is_admin(self) -> bool:
        return self.resolved and self.profile_role is ProfileRole.ADMIN

    @property
    def is_manager(self) -> bool:
        return self.resolved and self.member_role is MemberRole.MANAGER

    @property
    def is_member(self) -> bool:
        return self.resolved and self.member_role in (MemberRole.MEMBER, MemberRole.MANAGER)

    @property
    def is_team_viewer(self) -> bool:
        """Any membership row at all, including read-only viewers."""
        return self.resolved and self.member_role is not None

    def is_owner_of(self, item) -> bool:
        if not self.resolved or not self.actor_id:
            return False
        owner_id = _get(item, "owner_id")
        return owner_id is not None and owner_id == self.actor_id

    def role_names(self) -> list[str]:
        names = []
        if self.profile_role is not None:
            names.append(f"profile:{self.profile_role.value}")
        if self.member_role is not None:
            names.append(f"team:{self.member_role.value}")
        return names


def resolve_role_context(actor_id, profile_role, member_role=None) -> RoleContext:
    """Build a RoleContext from raw role values.

    ``profile_role`` of None means the profile has not been loaded, which
    yields an unresolved (deny-everything) context. ``member_role`` of None
    simply means the actor has no membership row for the team.
    """
    if not actor_id or profile_role is None:
        return RoleContext.unresolved(actor_id)
    return RoleContext(
        actor_id=actor_id,
        profile_role=ProfileRole.coerce(profile_role),
        member_role=MemberRole.coerce(member_role) if member_role is not None else None,
    )


def load_role_context(actor_id: str | None, team_id: str | None) -> RoleContext:
    """Read the actor's Profile and TeamMember row and resolve them.

    Returns an unresolved context when the actor has no profile.
    """
    from okrops.models import db
    from okrops.models.auth import Profile, TeamMember

    if not actor_id:
        return RoleContext.unresolved()
    profile = db.session.get(Profile, actor_id)
    if profile is None:
        logger.debug("No profile for actor %s — role context unresolved", actor_id)
        return RoleContext.unresolved(actor_id)

    member_role = None
    if team_id:
        row = (
            db.session.query(TeamMember.member_role)
            .filter_by(team_id=team_id, user_id=actor_id)
            .first()
        )
        member_role = row[0] if row else None
    return resolve_role_context(actor_id, profile.role, member_role)
