"""
OKR Ops Tracker
Item detail models — Blocker, HelpRequest, Comment.

All three hang off an Item and cascade with it.
"""

import uuid
from datetime import datetime, timezone

from okrops.models import db


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


# ── Constants ────────────────────────────────────────────────────────────────

BLOCKER_SEVERITIES = ("low", "medium", "high", "critical")
BLOCKER_STATUSES = ("open", "in_progress", "resolved", "wont_do")

HELP_REQUEST_TYPES = ("decision", "escalation", "budget", "alignment", "resource", "other")
HELP_REQUEST_STATUSES = ("open", "in_progress", "done")

# Blockers / help requests in these statuses count as "open" on boards and dashboards
OPEN_STATUSES = ("open", "in_progress")


class Blocker(db.Model):
    __tablename__ = "blockers"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    item_id = db.Column(
        db.String(36), db.ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    detail = db.Column(db.Text, nullable=True)
    severity = db.Column(db.String(20), nullable=False, default="medium")
    status = db.Column(db.String(20), nullable=False, default="open", index=True)
    owner_id = db.Column(
        db.String(36), db.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True,
    )
    eta = db.Column(db.Date, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    item = db.relationship("Item", back_populates="blockers")

    def to_dict(self):
        return {
            "id": self.id,
            "item_id": self.item_id,
            "title": self.title,
            "detail": self.detail,
            "severity": self.severity,
            "status": self.status,
            "owner_id": self.owner_id,
            "eta": self.eta.isoformat() if self.eta else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class HelpRequest(db.Model):
    """A cross-team ask recorded against an item."""

    __tablename__ = "help_requests"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    item_id = db.Column(
        db.String(36), db.ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    requested_by = db.Column(
        db.String(36), db.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True,
    )
    type = db.Column(db.String(20), nullable=False, default="other")
    detail = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="open", index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    item = db.relationship("Item", back_populates="help_requests")

    def to_dict(self):
        return {
            "id": self.id,
            "item_id": self.item_id,
            "requested_by": self.requested_by,
            "type": self.type,
            "detail": self.detail,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class Comment(db.Model):
    """Immutable once posted; may only be deleted."""

    __tablename__ = "comments"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    item_id = db.Column(
        db.String(36), db.ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    author_id = db.Column(
        db.String(36), db.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True,
    )
    body = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, index=True)

    item = db.relationship("Item", back_populates="comments")
    author = db.relationship("Profile", foreign_keys=[author_id])

    def to_dict(self):
        return {
            "id": self.id,
            "item_id": self.item_id,
            "author_id": self.author_id,
            "author_email": self.author.email if self.author else None,
            "body": self.body,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
