"""Item service layer — items, status updates and the team board.

Transaction policy: methods use flush() for ID generation, never commit().
Caller (route handler) is responsible for db.session.commit().

Operations:
- Item create / delete with role checks
- Status update: append an ItemUpdate snapshot, then overwrite the item's
  mutable fields from the same snapshot (two sequential writes; no
  compensation if the second fails)
- Team board rows (filters + open blocker / help counts + owner emails)
- CSV export of the board
- Activity feed (comments + updates) for the item detail view
"""
import csv
import io
import logging
from datetime import date, datetime, timezone

from okrops.core.exceptions import NotFoundError, ValidationError
from okrops.models import db
from okrops.models.auth import Team
from okrops.models.okr import DEFAULT_ITEM_STATUS, ITEM_STATUSES, Item, ItemUpdate, Objective
from okrops.models.tracking import OPEN_STATUSES, Blocker, Comment, HelpRequest
from okrops.services import cache_service
from okrops.services.activity_feed import merge_activity
from okrops.services.aggregation import open_counts_by_item
from okrops.services.permission_service import require_permission
from okrops.services.profile_service import email_labels
from okrops.services.snapshot import ITEM_MIRRORED_FIELDS, ItemSnapshot
from okrops.utils.helpers import get_or_raise, parse_date_input, text_input

logger = logging.getLogger(__name__)

BOARD_FILTERS = ("status", "owner_id", "objective_id", "target_from", "target_to")

CSV_HEADERS = [
    "Title",
    "Status",
    "Owner",
    "Open Blockers",
    "Open Help",
    "Next Step",
    "Target Date",
    "Last Update",
]


def _validate_status(status):
    if status not in ITEM_STATUSES:
        raise ValidationError(
            f"Invalid status: {status}", details={"status": f"must be one of {list(ITEM_STATUSES)}"},
        )


# ── Item CRUD ────────────────────────────────────────────────────────────


def get_item(item_id: str) -> Item:
    return get_or_raise(Item, item_id)


def create_item(ctx, data) -> Item:
    """Create an item in ``discovery``. Requires team_id and a non-blank title."""
    team_id = data.get("team_id")
    title = text_input(data, "title")
    if not team_id or not title:
        raise ValidationError(
            "team_id and title are required",
            details={k: "required" for k, v in (("team_id", team_id), ("title", title)) if not v},
        )
    get_or_raise(Team, team_id)
    require_permission(ctx, "items.create")

    objective_id = data.get("objective_id")
    if objective_id:
        objective = db.session.get(Objective, objective_id)
        if objective is None or objective.team_id != team_id:
            raise NotFoundError("Objective", objective_id)

    item = Item(
        team_id=team_id,
        title=title,
        status=DEFAULT_ITEM_STATUS,
        owner_id=data.get("owner_id"),
        objective_id=objective_id,
        target_date=parse_date_input(data.get("target_date"), "target_date"),
    )
    db.session.add(item)
    db.session.flush()
    logger.info("Item %s created in team %s by %s", item.id, team_id, ctx.actor_id)
    return item


def delete_item(ctx, item: Item) -> None:
    require_permission(ctx, "items.delete", item=item)
    db.session.delete(item)
    db.session.flush()
    logger.info("Item %s deleted by %s", item.id, ctx.actor_id)


# ── Status updates ───────────────────────────────────────────────────────


def save_status_update(ctx, item: Item, values) -> ItemUpdate:
    """Record a status update.

    1. insert an ItemUpdate carrying the snapshot
    2. overwrite the item's mutable fields from the same snapshot

    Returns the new ItemUpdate.
    """
    require_permission(ctx, "items.update_status", item=item)
    status = values.get("status")
    _validate_status(status)
    target = parse_date_input(values.get("target_date"), "target_date")

    snapshot = ItemSnapshot(
        status=status,
        status_reason=text_input(values, "status_reason"),
        blockers_summary=text_input(values, "blockers_summary"),
        help_needed_summary=text_input(values, "help_needed_summary"),
        next_step=text_input(values, "next_step"),
        target_date=target.isoformat() if target else None,
    )

    update = ItemUpdate(item_id=item.id, updated_by=ctx.actor_id, snapshot=snapshot.to_dict())
    db.session.add(update)
    db.session.flush()

    for name in ITEM_MIRRORED_FIELDS:
        if name == "target_date":
            item.target_date = target
        else:
            setattr(item, name, getattr(snapshot, name))
    item.last_update_at = datetime.now(timezone.utc)
    db.session.flush()

    logger.info("Item %s status update %s by %s (status=%s)", item.id, update.id, ctx.actor_id, status)
    return update


def list_updates(item_id: str, newest_first: bool = True):
    order = ItemUpdate.created_at.desc() if newest_first else ItemUpdate.created_at.asc()
    return ItemUpdate.query.filter_by(item_id=item_id).order_by(order).all()


# ── Board ────────────────────────────────────────────────────────────────


def _board_rows(team_id: str, filters: dict) -> list[dict]:
    q = Item.query.filter_by(team_id=team_id)
    if filters.get("status"):
        q = q.filter(Item.status == filters["status"])
    if filters.get("owner_id"):
        q = q.filter(Item.owner_id == filters["owner_id"])
    if filters.get("objective_id"):
        q = q.filter(Item.objective_id == filters["objective_id"])
    target_from = parse_date_input(filters.get("target_from"), "target_from")
    if target_from:
        q = q.filter(Item.target_date >= target_from)
    target_to = parse_date_input(filters.get("target_to"), "target_to")
    if target_to:
        q = q.filter(Item.target_date <= target_to)
    items = q.order_by(Item.last_update_at.asc().nulls_first(), Item.created_at).all()

    ids = [i.id for i in items]
    open_blockers, open_help = {}, {}
    if ids:
        blockers = (
            db.session.query(Blocker.item_id, Blocker.status)
            .filter(Blocker.item_id.in_(ids), Blocker.status.in_(OPEN_STATUSES))
            .all()
        )
        helps = (
            db.session.query(HelpRequest.item_id, HelpRequest.status)
            .filter(HelpRequest.item_id.in_(ids), HelpRequest.status.in_(OPEN_STATUSES))
            .all()
        )
        open_blockers = open_counts_by_item([{"item_id": i, "status": s} for i, s in blockers])
        open_help = open_counts_by_item([{"item_id": i, "status": s} for i, s in helps])
    owners = email_labels(i.owner_id for i in items)

    rows = []
    for item in items:
        row = item.to_dict()
        row["owner_email"] = owners.get(item.owner_id)
        row["open_blockers_count"] = open_blockers.get(item.id, 0)
        row["open_help_requests_count"] = open_help.get(item.id, 0)
        rows.append(row)
    return rows


def board_rows(team_id: str, filters: dict | None = None) -> list[dict]:
    """Board rows for a team, ordered by last_update_at ascending, never-updated first."""
    filters = {k: (filters or {}).get(k) or None for k in BOARD_FILTERS}
    key = cache_service.query_key("board", team_id, *(filters[k] for k in BOARD_FILTERS))
    return cache_service.get_cached(key, loader=lambda: _board_rows(team_id, filters))


def export_board_csv(rows) -> str:
    """Render board rows as CSV (every cell quoted)."""
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for r in rows:
        writer.writerow([
            r["title"],
            r["status"],
            r.get("owner_email") or "",
            r.get("open_blockers_count", 0),
            r.get("open_help_requests_count", 0),
            r.get("next_step") or "",
            r.get("target_date") or "",
            r.get("last_update_at") or "",
        ])
    return buf.getvalue()


def export_filename(today: date | None = None) -> str:
    return f"okr-ops-items-{(today or date.today()).isoformat()}.csv"


# ── Activity ─────────────────────────────────────────────────────────────


def item_activity(item_id: str) -> dict:
    """Merged comment + update feed for one item (cached per item)."""

    def _load():
        comments = Comment.query.filter_by(item_id=item_id).order_by(Comment.created_at).all()
        updates = ItemUpdate.query.filter_by(item_id=item_id).order_by(ItemUpdate.created_at).all()
        labels = email_labels(
            [c.author_id for c in comments] + [u.updated_by for u in updates]
        )
        return merge_activity(comments, updates, actor_labels=labels).to_dict()

    return cache_service.get_cached(cache_service.query_key("activity", item_id), loader=_load)
