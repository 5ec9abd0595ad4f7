"""
OKR Ops Tracker
OKR domain models.

Models:
    - Period: planning window (e.g. a quarter)
    - Objective: team objective inside a period
    - Item: tracked work stream with denormalised "current state"
    - ItemUpdate: append-only status snapshot history

Architecture chain: Team → Objective → Item → ItemUpdate
"""

import uuid
from datetime import datetime, timezone

from okrops.models import db


__all__ = [
    "ITEM_STATUSES",
    "ATTENTION_STATUSES",
    "DEFAULT_ITEM_STATUS",
    "Period",
    "Objective",
    "Item",
    "ItemUpdate",
]


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


# ── Constants ────────────────────────────────────────────────────────────────

ITEM_STATUSES = (
    "discovery",
    "design",
    "execution",
    "validation",
    "ready_to_deploy",
    "deploying",
    "in_production",
    "paused",
    "at_risk",
)

# Statuses surfaced on the director dashboard
ATTENTION_STATUSES = ("paused", "at_risk")

DEFAULT_ITEM_STATUS = "discovery"


# ═════════════════════════════════════════════════════════════════════════════
#  PERIOD / OBJECTIVE
# ═════════════════════════════════════════════════════════════════════════════

class Period(db.Model):
    __tablename__ = "periods"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(100), nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
        }


class Objective(db.Model):
    __tablename__ = "objectives"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    team_id = db.Column(
        db.String(36), db.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    period_id = db.Column(
        db.String(36), db.ForeignKey("periods.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    team = db.relationship("Team", back_populates="objectives")
    period = db.relationship("Period")

    def to_dict(self):
        return {
            "id": self.id,
            "team_id": self.team_id,
            "period_id": self.period_id,
            "title": self.title,
        }


# ═════════════════════════════════════════════════════════════════════════════
#  ITEM
# ═════════════════════════════════════════════════════════════════════════════

class Item(db.Model):
    """
    A tracked work stream owned by exactly one team.

    The mutable status fields are a denormalised copy of the latest
    ItemUpdate snapshot; ItemUpdate rows hold the history.
    """

    __tablename__ = "items"
    __table_args__ = (
        db.Index("idx_items_team_status", "team_id", "status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    team_id = db.Column(
        db.String(36), db.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    objective_id = db.Column(
        db.String(36), db.ForeignKey("objectives.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    owner_id = db.Column(
        db.String(36), db.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    status = db.Column(db.String(30), nullable=False, default=DEFAULT_ITEM_STATUS, index=True)
    status_reason = db.Column(db.Text, nullable=True)
    blockers_summary = db.Column(db.Text, nullable=True)
    help_needed_summary = db.Column(db.Text, nullable=True)
    next_step = db.Column(db.Text, nullable=True)
    target_date = db.Column(db.Date, nullable=True)
    last_update_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    team = db.relationship("Team", back_populates="items")
    objective = db.relationship("Objective")
    owner = db.relationship("Profile", foreign_keys=[owner_id])
    updates = db.relationship(
        "ItemUpdate", back_populates="item", cascade="all, delete-orphan",
        order_by="ItemUpdate.created_at",
    )
    blockers = db.relationship("Blocker", back_populates="item", cascade="all, delete-orphan")
    help_requests = db.relationship("HelpRequest", back_populates="item", cascade="all, delete-orphan")
    comments = db.relationship("Comment", back_populates="item", cascade="all, delete-orphan")

    def to_dict(self):
        return {
            "id": self.id,
            "team_id": self.team_id,
            "objective_id": self.objective_id,
            "title": self.title,
            "owner_id": self.owner_id,
            "status": self.status,
            "status_reason": self.status_reason,
            "blockers_summary": self.blockers_summary,
            "help_needed_summary": self.help_needed_summary,
            "next_step": self.next_step,
            "target_date": self.target_date.isoformat() if self.target_date else None,
            "last_update_at": self.last_update_at.isoformat() if self.last_update_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Item {self.title[:40]} ({self.status})>"


# ═════════════════════════════════════════════════════════════════════════════
#  ITEM UPDATE
# ═════════════════════════════════════════════════════════════════════════════

class ItemUpdate(db.Model):
    """Immutable status snapshot. Rows are inserted, never updated or deleted."""

    __tablename__ = "item_updates"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    item_id = db.Column(
        db.String(36), db.ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    updated_by = db.Column(
        db.String(36), db.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True,
    )
    snapshot = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, index=True)

    item = db.relationship("Item", back_populates="updates")
    author = db.relationship("Profile", foreign_keys=[updated_by])

    def to_dict(self):
        return {
            "id": self.id,
            "item_id": self.item_id,
            "updated_by": self.updated_by,
            "author_email": self.author.email if self.author else None,
            "snapshot": dict(self.snapshot or {}),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
