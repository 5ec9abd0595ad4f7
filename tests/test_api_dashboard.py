"""
OKR Ops Tracker
Tests — home summary and director dashboard.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from okrops.models import db as _db
from okrops.models.tracking import Blocker, HelpRequest
from okrops.services import dashboard_service
from okrops.services.role_resolver import resolve_role_context


@pytest.fixture()
def board(make_profile, make_team, make_item):
    admin = make_profile("admin")
    member = make_profile("member")
    today = date.today()
    now = datetime.now(timezone.utc)
    alpha = make_team("Alpha", members=[(member, "member")])
    beta = make_team("Beta")
    fresh = make_item(alpha, "Fresh", status="execution", last_update_at=now - timedelta(days=1),
                      target_date=today + timedelta(days=10))
    stale = make_item(alpha, "Stale", status="paused", last_update_at=now - timedelta(days=20),
                      target_date=today + timedelta(days=45))
    make_item(alpha, "Never updated", status="discovery")
    risky = make_item(beta, "Risky", status="at_risk", target_date=today + timedelta(days=80))

    _db.session.add_all([
        Blocker(item_id=fresh.id, title="a", severity="high", status="open"),
        Blocker(item_id=stale.id, title="b", severity="high", status="in_progress"),
        Blocker(item_id=risky.id, title="c", severity="low", status="open"),
        Blocker(item_id=risky.id, title="d", severity="critical", status="resolved"),
        HelpRequest(item_id=fresh.id, type="budget", detail="x", status="open"),
        HelpRequest(item_id=risky.id, type="decision", detail="y", status="done"),
    ])
    _db.session.commit()
    return {"admin": admin, "member": member, "alpha": alpha, "beta": beta}


class TestHomeSummary:
    def test_member_sees_own_teams_only(self, client, auth_headers, board):
        body = client.get("/api/v1/dashboard/home", headers=auth_headers(board["member"])).get_json()
        assert body["team_ids"] == [board["alpha"].id]
        assert body["item_count"] == 3
        assert body["stale_items"] == 2
        assert body["open_blockers"] == 2
        assert body["open_help_requests"] == 1
        assert body["upcoming_targets"] == 1

    def test_admin_sees_everything(self, client, auth_headers, board):
        body = client.get("/api/v1/dashboard/home", headers=auth_headers(board["admin"])).get_json()
        assert body["item_count"] == 4
        assert body["open_blockers"] == 3

    def test_team_filter(self, client, auth_headers, board):
        body = client.get(f"/api/v1/dashboard/home?team_id={board['beta'].id}",
                          headers=auth_headers(board["admin"])).get_json()
        assert body["item_count"] == 1
        assert body["stale_items"] == 1

    def test_invisible_team_filter_yields_nothing(self, client, auth_headers, board):
        body = client.get(f"/api/v1/dashboard/home?team_id={board['beta'].id}",
                          headers=auth_headers(board["member"])).get_json()
        assert body["team_ids"] == []
        assert body["item_count"] == 0


class TestDirectorDashboard:
    def test_admin_only(self, client, auth_headers, board):
        res = client.get("/api/v1/dashboard/director", headers=auth_headers(board["member"]))
        assert res.status_code == 403

    def test_shape(self, client, auth_headers, board):
        body = client.get("/api/v1/dashboard/director", headers=auth_headers(board["admin"])).get_json()
        assert sorted(i["title"] for i in body["attention"]) == ["Risky", "Stale"]
        assert body["blockers_by_severity"] == {"critical": 0, "high": 2, "medium": 0, "low": 1}
        assert body["blockers_by_team"] == {"Alpha": 2, "Beta": 1}
        assert body["help_by_type"]["budget"] == 1
        assert body["help_by_type"]["decision"] == 0
        assert body["help_by_team"] == {"Alpha": 1}
        assert [b["label"] for b in body["target_buckets"]] == ["0-30", "30-60", "60-90"]
        assert [b["count"] for b in body["target_buckets"]] == [1, 1, 1]

    def test_severity_keys_ordered_most_severe_first(self, client, auth_headers, board):
        body = client.get("/api/v1/dashboard/director", headers=auth_headers(board["admin"]))
        assert list(body.get_json()["blockers_by_severity"]) == ["critical", "high", "medium", "low"]

    def test_filters(self, client, auth_headers, board):
        headers = auth_headers(board["admin"])
        body = client.get(f"/api/v1/dashboard/director?team_id={board['beta'].id}", headers=headers).get_json()
        assert body["blockers_by_team"] == {"Beta": 1}
        body = client.get("/api/v1/dashboard/director?status=paused", headers=headers).get_json()
        assert [i["title"] for i in body["attention"]] == ["Stale"]

    def test_attention_ordered_least_recently_updated_first(self, client, auth_headers, board):
        body = client.get("/api/v1/dashboard/director", headers=auth_headers(board["admin"])).get_json()
        assert [i["title"] for i in body["attention"]] == ["Risky", "Stale"]

    def test_invalid_status_is_422(self, client, auth_headers, board):
        res = client.get("/api/v1/dashboard/director?status=bogus", headers=auth_headers(board["admin"]))
        assert res.status_code == 422

    def test_service_with_fixed_today(self, board):
        ctx = resolve_role_context(board["admin"].id, "admin")
        result = dashboard_service.director_dashboard(ctx, today=date.today() + timedelta(days=50))
        assert [b["count"] for b in result["target_buckets"]] == [1, 0, 0]
