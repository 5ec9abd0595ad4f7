"""
Dashboard service — home summary and the director (admin) dashboard.

Both read the current rows and fold them through the pure helpers in
``okrops.services.aggregation``. Results are cached under the ``home`` and
``director`` families and discarded by any item / blocker / help request
write.
"""
import logging
from datetime import date, datetime, timedelta, timezone

from okrops.models.auth import Team
from okrops.models.okr import ATTENTION_STATUSES, Item
from okrops.models.tracking import (
    BLOCKER_SEVERITIES,
    HELP_REQUEST_TYPES,
    OPEN_STATUSES,
    Blocker,
    HelpRequest,
)
from okrops.services import cache_service
from okrops.services.aggregation import (
    DEFAULT_HORIZON_DAYS,
    STALE_AFTER,
    bucket_by_date_range,
    count_by_key,
    horizon_boundaries,
    in_date_window,
    stale_since,
)
from okrops.services.permission_service import require_permission
from okrops.services.team_service import visible_team_ids

logger = logging.getLogger(__name__)

# Severity order on the director dashboard, most severe first
SEVERITY_ORDER = tuple(reversed(BLOCKER_SEVERITIES))

HOME_TARGET_WINDOW_DAYS = 30


def _summary_item(item, team_names=None):
    row = {
        "id": item.id,
        "team_id": item.team_id,
        "title": item.title,
        "status": item.status,
        "owner_id": item.owner_id,
        "target_date": item.target_date.isoformat() if item.target_date else None,
        "last_update_at": item.last_update_at.isoformat() if item.last_update_at else None,
    }
    if team_names is not None:
        row["team_name"] = team_names.get(item.team_id)
    return row


def _open_rows(model, item_ids):
    if not item_ids:
        return []
    return model.query.filter(model.item_id.in_(item_ids), model.status.in_(OPEN_STATUSES)).all()


# ── Home ─────────────────────────────────────────────────────────────────


def home_summary(
    actor_id: str,
    team_id: str | None = None,
    now: datetime | None = None,
    stale_after: timedelta = STALE_AFTER,
    window_days: int = HOME_TARGET_WINDOW_DAYS,
) -> dict:
    """Counts for the landing page, over the teams the actor can see.

    stale_items:       never updated, or last update older than ``stale_after``
    open_blockers:     blockers in an open status
    open_help_requests help requests in an open status
    upcoming_targets:  target date within [today, today + window_days]
    """
    now = now or datetime.now(timezone.utc)
    team_ids = visible_team_ids(actor_id)
    if team_id:
        team_ids = [t for t in team_ids if t == team_id]

    def _load():
        items = Item.query.filter(Item.team_id.in_(team_ids)).all() if team_ids else []
        item_ids = [i.id for i in items]
        today = now.date()
        return {
            "team_ids": team_ids,
            "item_count": len(items),
            "stale_items": len(stale_since(items, "last_update_at", stale_after, now=now)),
            "open_blockers": len(_open_rows(Blocker, item_ids)),
            "open_help_requests": len(_open_rows(HelpRequest, item_ids)),
            "upcoming_targets": len(
                in_date_window(items, "target_date", today, today + timedelta(days=window_days))
            ),
        }

    key = cache_service.query_key("home", actor_id, team_id, now.date().isoformat())
    return cache_service.get_cached(key, loader=_load)


# ── Director ─────────────────────────────────────────────────────────────


def director_dashboard(
    ctx,
    team_id: str | None = None,
    status: str | None = None,
    today: date | None = None,
    horizon_days=DEFAULT_HORIZON_DAYS,
) -> dict:
    """Cross-team view for admins.

    attention:          paused / at_risk items
    blockers_by_severity open blockers, zero-filled critical → low
    blockers_by_team    open blockers per team name
    help_by_type        open help requests, zero-filled over every type
    help_by_team        open help requests per team name
    target_buckets      items due in (0-30], (30-60], (60-90] days
    """
    require_permission(ctx, "dashboard.director")
    today = today or date.today()

    def _load():
        q = Item.query
        if team_id:
            q = q.filter(Item.team_id == team_id)
        if status:
            q = q.filter(Item.status == status)
        items = q.order_by(Item.last_update_at.asc().nulls_first(), Item.created_at).all()
        item_ids = [i.id for i in items]
        item_team = {i.id: i.team_id for i in items}
        team_names = {t.id: t.name for t in Team.query.all()}

        blockers = _open_rows(Blocker, item_ids)
        helps = _open_rows(HelpRequest, item_ids)

        def _team_of(record):
            return team_names.get(item_team.get(record.item_id), "Unknown")

        boundaries = horizon_boundaries(today, horizon_days)
        buckets = bucket_by_date_range(items, "target_date", boundaries)
        labels = []
        prev = 0
        for d in horizon_days:
            labels.append(f"{prev}-{d}")
            prev = d

        return {
            "filters": {"team_id": team_id, "status": status},
            "attention": [
                _summary_item(i, team_names) for i in items if i.status in ATTENTION_STATUSES
            ],
            "blockers_by_severity": count_by_key(blockers, lambda b: b.severity, SEVERITY_ORDER),
            "blockers_by_team": count_by_key(blockers, _team_of),
            "help_by_type": count_by_key(helps, lambda h: h.type, HELP_REQUEST_TYPES),
            "help_by_team": count_by_key(helps, _team_of),
            "target_buckets": [
                {"label": label, "count": len(bucket),
                 "items": [_summary_item(i, team_names) for i in bucket]}
                for label, bucket in zip(labels, buckets)
            ],
        }

    key = cache_service.query_key("director", team_id, status, today.isoformat())
    return cache_service.get_cached(key, loader=_load)
