"""
Aggregation helpers for boards and dashboards.

Pure functions over flat record lists (mappings or model instances). No I/O,
no side effects; identical input gives identical output regardless of order.

    count_by_key         — key → count, optionally zero-filled over a fixed key set
    bucket_by_date_range — partition by date into ordered, disjoint ranges
    horizon_boundaries   — today / +30 / +60 / +90 style boundary list
    stale_since          — records never updated or updated before a cutoff
"""

from collections import Counter
from datetime import date, datetime, timedelta, timezone

STALE_AFTER = timedelta(days=14)
DEFAULT_HORIZON_DAYS = (30, 60, 90)


def _get(record, name):
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)


def _as_date(value):
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _as_utc(value):
    """Normalise a datetime (or ISO string) to an aware UTC datetime.

    Naive values are taken to be UTC; SQLite drops tzinfo on the way back.
    """
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    elif not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def count_by_key(records, key_fn, keys=None) -> dict:
    """Count records per ``key_fn(record)``.

    With ``keys`` supplied every listed key is present (zero when absent) and
    keys come first in the given order; any other key seen is still counted.
    Without ``keys`` only keys with a positive count appear.
    """
    counts = Counter(key_fn(r) for r in records)
    if keys is None:
        return dict(counts)
    result = {k: counts.get(k, 0) for k in keys}
    for k, n in counts.items():
        if k not in result:
            result[k] = n
    return result


def bucket_by_date_range(items, date_field: str, boundaries) -> list[list]:
    """Partition items into ordered, disjoint date ranges.

    ``boundaries`` b0 < b1 < … < bn define n buckets: the first is
    [b0, b1] (inclusive both ends), each later one is (b_i, b_{i+1}].
    Items with a null date, or a date outside [b0, bn], are left out.
    Input order is preserved inside each bucket.
    """
    bounds = [_as_date(b) for b in boundaries]
    if len(bounds) < 2:
        raise ValueError("bucket_by_date_range needs at least two boundaries")
    if any(a >= b for a, b in zip(bounds, bounds[1:])):
        raise ValueError("bucket boundaries must be strictly ascending")

    buckets = [[] for _ in range(len(bounds) - 1)]
    for item in items:
        value = _as_date(_get(item, date_field))
        if value is None or value < bounds[0] or value > bounds[-1]:
            continue
        for i in range(len(buckets)):
            if value <= bounds[i + 1]:
                buckets[i].append(item)
                break
    return buckets


def horizon_boundaries(today: date | None = None, days=DEFAULT_HORIZON_DAYS) -> list[date]:
    """[today, today+d1, today+d2, …] for use with bucket_by_date_range."""
    today = today or date.today()
    return [today] + [today + timedelta(days=d) for d in days]


def stale_since(items, field: str, cutoff: timedelta = STALE_AFTER, now: datetime | None = None) -> list:
    """Items whose ``field`` is null or strictly older than ``now - cutoff``.

    Null counts as stale (never updated). A value exactly at the cutoff is
    not stale.
    """
    threshold = _as_utc(now or datetime.now(timezone.utc)) - cutoff
    result = []
    for item in items:
        value = _as_utc(_get(item, field))
        if value is None or value < threshold:
            result.append(item)
    return result


def in_date_window(items, date_field: str, start, end) -> list:
    """Items whose date lies in [start, end] inclusive; null dates excluded."""
    start, end = _as_date(start), _as_date(end)
    result = []
    for item in items:
        value = _as_date(_get(item, date_field))
        if value is not None and start <= value <= end:
            result.append(item)
    return result


def open_counts_by_item(records, open_statuses=("open", "in_progress")) -> dict:
    """item_id → number of records in an open status (board badges)."""
    return count_by_key(
        [r for r in records if _get(r, "status") in open_statuses],
        lambda r: _get(r, "item_id"),
    )
