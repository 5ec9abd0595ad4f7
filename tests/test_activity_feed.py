"""
OKR Ops Tracker
Tests — merged item activity feed and item snapshots.
"""

from datetime import date, datetime, timezone

from okrops.services.activity_feed import (
    COMMENT,
    DEFAULT_TAB,
    EMPTY_MESSAGE,
    UNKNOWN_ACTOR,
    UPDATE,
    merge_activity,
    resolve_tab,
)
from okrops.services.snapshot import ItemSnapshot


def _ts(hour):
    return datetime(2024, 5, 1, hour, 0, tzinfo=timezone.utc)


class TestMergeActivity:
    def test_chronological_order(self):
        comments = [{"id": "c1", "author_id": "u1", "body": "hi", "created_at": _ts(10)}]
        updates = [
            {"id": "u-early", "updated_by": "u2", "snapshot": {"status": "design"}, "created_at": _ts(9)},
            {"id": "u-late", "updated_by": "u2", "snapshot": {"status": "execution"}, "created_at": _ts(11)},
        ]
        feed = merge_activity(comments, updates, {"u1": "a@x.io", "u2": "b@x.io"})
        assert [e.id for e in feed.entries] == ["u-early", "c1", "u-late"]
        assert [e.kind for e in feed.entries] == [UPDATE, COMMENT, UPDATE]

    def test_ties_put_comments_first(self):
        comments = [{"id": "c1", "author_id": None, "body": "x", "created_at": _ts(10)}]
        updates = [{"id": "u1", "updated_by": None, "snapshot": {}, "created_at": _ts(10)}]
        feed = merge_activity(comments, updates)
        assert [e.id for e in feed.entries] == ["c1", "u1"]

    def test_empty_feed_is_explicit(self):
        feed = merge_activity([], [])
        assert feed.is_empty
        assert feed.empty_message == EMPTY_MESSAGE
        assert feed.to_dict() == {"entries": [], "is_empty": True, "empty_message": "Nothing yet"}

    def test_unknown_actor_label(self):
        comments = [{"id": "c1", "author_id": "ghost", "body": "x", "created_at": _ts(8)}]
        feed = merge_activity(comments, [], {"u1": "a@x.io"})
        assert feed.entries[0].actor_label == UNKNOWN_ACTOR

    def test_update_payload_drops_empty_fields(self):
        updates = [{
            "id": "u1",
            "updated_by": "u1",
            "snapshot": {"status": "paused", "next_step": "", "status_reason": None, "junk": 1},
            "created_at": "2024-05-01T10:00:00Z",
        }]
        feed = merge_activity([], updates)
        assert feed.entries[0].payload == {"status": "paused"}
        assert feed.entries[0].timestamp == _ts(10)


class TestItemTabs:
    def test_known_tab(self):
        assert resolve_tab("blockers") == "blockers"

    def test_unknown_tab_falls_back(self):
        assert resolve_tab("settings") == DEFAULT_TAB
        assert resolve_tab(None) == "form"


class TestItemSnapshot:
    def test_from_dict_ignores_unknown_keys_and_formats_dates(self):
        snap = ItemSnapshot.from_dict({"status": "design", "target_date": date(2024, 7, 1), "x": 1})
        assert snap.status == "design"
        assert snap.target_date == "2024-07-01"
        assert "x" not in snap.to_dict()

    def test_non_empty_fields_in_schema_order(self):
        snap = ItemSnapshot(help_needed_summary="legal", status="at_risk", next_step="  ")
        assert list(snap.non_empty_fields()) == ["status", "help_needed_summary"]

    def test_from_item(self):
        class _Item:
            status = "execution"
            next_step = "ship"
            target_date = date(2024, 8, 1)
            status_reason = None
            blockers_summary = None
            help_needed_summary = None

        snap = ItemSnapshot.from_item(_Item())
        assert snap.to_dict()["target_date"] == "2024-08-01"
        assert snap.next_step == "ship"
