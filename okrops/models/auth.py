"""
OKR Ops Tracker
Identity & team models.

Models:
    - Profile: one per authenticated actor, carries the *global* role
    - Team: top-level grouping (name + icon)
    - TeamMember: join row carrying the *team-scoped* role

Role axes:
    ProfileRole (global)  — admin | manager | member | viewer
    MemberRole  (per team) — manager | member | viewer

The two axes are different enums on purpose: a global "manager" grants nothing
inside a team, and a team "manager" grants nothing outside it.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum

from okrops.models import db


__all__ = [
    "ProfileRole",
    "MemberRole",
    "TEAM_ICONS",
    "Profile",
    "Team",
    "TeamMember",
]


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


# ── Role enums ───────────────────────────────────────────────────────────────

class ProfileRole(str, Enum):
    """Global actor role stored on Profile.role."""

    ADMIN = "admin"
    MANAGER = "manager"
    MEMBER = "member"
    VIEWER = "viewer"

    @classmethod
    def coerce(cls, value):
        """Return the enum member for *value*, or None for unknown/empty input."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class MemberRole(str, Enum):
    """Team-scoped role stored on TeamMember.member_role."""

    MANAGER = "manager"
    MEMBER = "member"
    VIEWER = "viewer"

    @classmethod
    def coerce(cls, value):
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


PROFILE_ROLES = {r.value for r in ProfileRole}
MEMBER_ROLES = {r.value for r in MemberRole}

TEAM_ICONS = (
    "🏢", "🏛️", "🏗️", "🏭", "🏠", "🏦",
    "💻", "🖥️", "📱", "⌨️", "🖨️", "💾",
    "🧪", "🔬", "🧬", "⚗️", "🔭", "🧫",
    "✈️", "🚀", "🚢", "🚁", "🚂", "🛩️",
    "🏥", "💊", "🩺", "❤️", "🩻",
    "🔧", "🛠️", "⚙️", "🔩", "🪛", "🔨",
    "📊", "📈", "📉", "🗂️", "📋", "🗄️",
    "🎯", "🏆", "⭐", "🥇", "🏅", "🎖️",
    "🤝", "💬", "📣", "📢", "🗣️", "📧",
    "🛡️", "🔑", "🔒", "🔐", "🚨", "🧯",
    "⚡", "💡", "🔋", "☀️", "🌱", "♻️",
    "💰", "💳", "🪙", "📦", "🏷️", "🧾",
    "📚", "🎓", "✏️", "📝", "🎨", "🎭",
    "🌐", "🗺️", "⏱️", "📅", "🔔", "💎",
)


# ═════════════════════════════════════════════════════════════════════════════
#  PROFILE
# ═════════════════════════════════════════════════════════════════════════════

class Profile(db.Model):
    """An authenticated actor. ``role`` is global, not per team."""

    __tablename__ = "profiles"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    email = db.Column(db.String(255), nullable=True, index=True)
    role = db.Column(db.String(20), nullable=False, default=ProfileRole.MEMBER.value)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    memberships = db.relationship(
        "TeamMember", back_populates="profile", cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Profile {self.email or self.id} ({self.role})>"


# ═════════════════════════════════════════════════════════════════════════════
#  TEAM
# ═════════════════════════════════════════════════════════════════════════════

class Team(db.Model):
    """Independent top-level grouping that owns items and objectives."""

    __tablename__ = "teams"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(200), nullable=False, unique=True)
    icon = db.Column(db.String(16), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    members = db.relationship(
        "TeamMember", back_populates="team", cascade="all, delete-orphan",
    )
    items = db.relationship("Item", back_populates="team", cascade="all, delete-orphan")
    objectives = db.relationship("Objective", back_populates="team", cascade="all, delete-orphan")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "icon": self.icon,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Team {self.name}>"


# ═════════════════════════════════════════════════════════════════════════════
#  TEAM MEMBER
# ═════════════════════════════════════════════════════════════════════════════

class TeamMember(db.Model):
    """Per-team role assignment. At most one row per (team_id, user_id)."""

    __tablename__ = "team_members"
    __table_args__ = (
        db.UniqueConstraint("team_id", "user_id", name="uq_team_members_team_user"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    team_id = db.Column(
        db.String(36), db.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    member_role = db.Column(db.String(20), nullable=False, default=MemberRole.MEMBER.value)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    team = db.relationship("Team", back_populates="members")
    profile = db.relationship("Profile", back_populates="memberships")

    def to_dict(self):
        return {
            "id": self.id,
            "team_id": self.team_id,
            "user_id": self.user_id,
            "email": self.profile.email if self.profile else None,
            "member_role": self.member_role,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<TeamMember team={self.team_id} user={self.user_id} ({self.member_role})>"
