"""
Activity feed — merge an item's comments and status updates into one timeline.

Ordering contract:
  - ascending by timestamp
  - ties keep input order, comments before updates (the two lists are
    concatenated comments-first and stably sorted on the timestamp alone)

An item with no comments and no updates produces an explicit empty feed
(``is_empty`` / ``empty_message``), never a silent empty list.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone

from okrops.services.snapshot import ItemSnapshot

COMMENT = "comment"
UPDATE = "update"

UNKNOWN_ACTOR = "Unknown"
EMPTY_MESSAGE = "Nothing yet"

# Tabs on the item detail view, in display order
ITEM_TABS = ("form", "blockers", "help", "comments", "timeline")
DEFAULT_TAB = "form"


def _get(record, name):
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)


def _timestamp(value) -> datetime:
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class ActivityEntry:
    kind: str
    timestamp: datetime
    actor_label: str
    payload: object
    id: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "timestamp": self.timestamp.isoformat(),
            "actor_label": self.actor_label,
            "payload": self.payload,
        }


@dataclass(frozen=True)
class ActivityFeed:
    entries: list = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.entries

    @property
    def empty_message(self) -> str | None:
        return EMPTY_MESSAGE if self.is_empty else None

    def to_dict(self) -> dict:
        return {
            "entries": [e.to_dict() for e in self.entries],
            "is_empty": self.is_empty,
            "empty_message": self.empty_message,
        }


def _label(actor_id, actor_labels) -> str:
    if actor_id is None:
        return UNKNOWN_ACTOR
    return (actor_labels or {}).get(actor_id) or UNKNOWN_ACTOR


def merge_activity(comments, updates, actor_labels: dict | None = None) -> ActivityFeed:
    """Merge comments and item updates into a chronological feed.

    Args:
        comments: records with id, author_id, body, created_at.
        updates: records with id, updated_by, snapshot, created_at.
        actor_labels: optional actor id → display label (email).
    """
    entries = []
    for c in comments:
        entries.append(ActivityEntry(
            kind=COMMENT,
            timestamp=_timestamp(_get(c, "created_at")),
            actor_label=_label(_get(c, "author_id"), actor_labels),
            payload=_get(c, "body"),
            id=_get(c, "id"),
        ))
    for u in updates:
        snapshot = ItemSnapshot.from_dict(_get(u, "snapshot"))
        entries.append(ActivityEntry(
            kind=UPDATE,
            timestamp=_timestamp(_get(u, "created_at")),
            actor_label=_label(_get(u, "updated_by"), actor_labels),
            payload=snapshot.non_empty_fields(),
            id=_get(u, "id"),
        ))
    entries.sort(key=lambda e: e.timestamp)
    return ActivityFeed(entries=entries)


def resolve_tab(requested: str | None) -> str:
    """Return the requested item-detail tab, or the default for unknown values."""
    return requested if requested in ITEM_TABS else DEFAULT_TAB
