"""
OKR Ops Tracker
Tests — Item API: board, detail, create/delete, status updates, activity.

Covers:
    - Bearer-token gate + profile auto-creation
    - Hide AND reject: capability flags agree with server enforcement
    - Status update round-trip (snapshot → item fields)
    - Board ordering, open counts, filters, CSV export
"""

import csv
import io
from datetime import date, datetime, timedelta, timezone

import pytest

from okrops.models import db as _db
from okrops.models.auth import Profile
from okrops.models.okr import Item, ItemUpdate, Objective, Period
from okrops.models.tracking import Blocker, HelpRequest


@pytest.fixture()
def crew(make_profile, make_team, make_item):
    """A team with a manager, an owning member, an owning viewer, plus an admin and an outsider."""
    people = {
        "admin": make_profile("admin", "admin@okr.test"),
        "manager": make_profile("member", "manager@okr.test"),
        "member": make_profile("member", "member@okr.test"),
        "viewer": make_profile("member", "viewer@okr.test"),
        "outsider": make_profile("member", "outsider@okr.test"),
    }
    team = make_team("Platform", members=[
        (people["manager"], "manager"),
        (people["member"], "member"),
        (people["viewer"], "viewer"),
    ])
    people["team"] = team
    people["member_item"] = make_item(team, "Member item", owner=people["member"])
    people["viewer_item"] = make_item(team, "Viewer item", owner=people["viewer"])
    return people


# ═════════════════════════════════════════════════════════════════════════════
# AUTH GATE
# ═════════════════════════════════════════════════════════════════════════════

class TestAuthGate:
    def test_missing_token_is_401(self, client):
        res = client.get("/api/v1/teams")
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHENTICATED"

    def test_garbage_token_is_401(self, client):
        res = client.get("/api/v1/teams", headers={"Authorization": "Bearer not-a-jwt"})
        assert res.status_code == 401

    def test_health_needs_no_token(self, client):
        assert client.get("/api/v1/health").status_code == 200
        assert client.get("/api/v1/health/ready").status_code == 200
        live = client.get("/api/v1/health/live")
        assert live.status_code == 200
        assert live.get_json()["checks"]["database"]["status"] == "ok"

    def test_first_request_creates_member_profile(self, client, auth_headers):
        res = client.get("/api/v1/profiles/me", headers=auth_headers("new-actor", "new@okr.test"))
        assert res.status_code == 200
        body = res.get_json()
        assert body["role"] == "member"
        assert body["email"] == "new@okr.test"
        assert _db.session.get(Profile, "new-actor") is not None


# ═════════════════════════════════════════════════════════════════════════════
# CREATE / DELETE
# ═════════════════════════════════════════════════════════════════════════════

class TestItemCreate:
    def test_member_creates_item_in_discovery(self, client, auth_headers, crew):
        res = client.post("/api/v1/items", headers=auth_headers(crew["member"]), json={
            "team_id": crew["team"].id, "title": "Ship billing v2", "owner_id": crew["member"].id,
        })
        assert res.status_code == 201
        data = res.get_json()
        assert data["status"] == "discovery"
        assert data["owner_id"] == crew["member"].id

    def test_missing_title_is_400(self, client, auth_headers, crew):
        res = client.post("/api/v1/items", headers=auth_headers(crew["member"]),
                          json={"team_id": crew["team"].id, "title": "  "})
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_viewer_is_rejected(self, client, auth_headers, crew):
        res = client.post("/api/v1/items", headers=auth_headers(crew["viewer"]),
                          json={"team_id": crew["team"].id, "title": "Nope"})
        assert res.status_code == 403
        body = res.get_json()
        assert body["code"] == "ERR_FORBIDDEN"
        assert body["error"] == "Insufficient role for this action"

    def test_outsider_cannot_see_team(self, client, auth_headers, crew):
        res = client.post("/api/v1/items", headers=auth_headers(crew["outsider"]),
                          json={"team_id": crew["team"].id, "title": "Sneaky"})
        assert res.status_code == 404

    def test_admin_creates_without_membership(self, client, auth_headers, crew):
        res = client.post("/api/v1/items", headers=auth_headers(crew["admin"]),
                          json={"team_id": crew["team"].id, "title": "Admin item"})
        assert res.status_code == 201

    def test_bad_target_date_is_422(self, client, auth_headers, crew):
        res = client.post("/api/v1/items", headers=auth_headers(crew["member"]), json={
            "team_id": crew["team"].id, "title": "X", "target_date": "next week",
        })
        assert res.status_code == 422
        assert res.get_json()["details"] == {"target_date": "invalid date"}

    def test_non_string_title_is_422(self, client, auth_headers, crew):
        res = client.post("/api/v1/items", headers=auth_headers(crew["member"]),
                          json={"team_id": crew["team"].id, "title": 123})
        assert res.status_code == 422
        assert res.get_json()["details"] == {"title": "must be a string"}

    def test_array_body_reads_as_empty(self, client, auth_headers, crew):
        res = client.post("/api/v1/items", headers=auth_headers(crew["member"]),
                          json=[{"team_id": crew["team"].id, "title": "X"}])
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"


class TestItemDelete:
    def test_manager_cannot_delete(self, client, auth_headers, crew):
        res = client.delete(f"/api/v1/items/{crew['member_item'].id}", headers=auth_headers(crew["manager"]))
        assert res.status_code == 403

    def test_admin_deletes_with_children(self, client, auth_headers, crew):
        item_id = crew["member_item"].id
        _db.session.add(Blocker(item_id=item_id, title="Vendor"))
        _db.session.commit()
        res = client.delete(f"/api/v1/items/{item_id}", headers=auth_headers(crew["admin"]))
        assert res.status_code == 200
        _db.session.expire_all()
        assert _db.session.get(Item, item_id) is None
        assert Blocker.query.filter_by(item_id=item_id).count() == 0


# ═════════════════════════════════════════════════════════════════════════════
# DETAIL + CAPABILITIES
# ═════════════════════════════════════════════════════════════════════════════

class TestItemDetail:
    def test_owner_member_capabilities(self, client, auth_headers, crew):
        res = client.get(f"/api/v1/items/{crew['member_item'].id}?tab=comments",
                         headers=auth_headers(crew["member"]))
        assert res.status_code == 200
        body = res.get_json()
        assert body["capabilities"]["can_edit"] is True
        assert body["capabilities"]["can_delete"] is False
        assert body["tab"] == "comments"

    def test_owner_viewer_sees_read_only_item(self, client, auth_headers, crew):
        res = client.get(f"/api/v1/items/{crew['viewer_item'].id}?tab=bogus",
                         headers=auth_headers(crew["viewer"]))
        body = res.get_json()
        assert not any(body["capabilities"].values())
        assert body["tab"] == "form"

    def test_outsider_gets_404(self, client, auth_headers, crew):
        res = client.get(f"/api/v1/items/{crew['member_item'].id}", headers=auth_headers(crew["outsider"]))
        assert res.status_code == 404


# ═════════════════════════════════════════════════════════════════════════════
# STATUS UPDATES
# ═════════════════════════════════════════════════════════════════════════════

class TestStatusUpdate:
    PAYLOAD = {
        "status": "at_risk",
        "status_reason": "Vendor slipped",
        "blockers_summary": "Contract unsigned",
        "help_needed_summary": "Legal review",
        "next_step": "Escalate to procurement",
        "target_date": "2024-09-30",
    }

    def test_round_trip(self, client, auth_headers, crew):
        item_id = crew["member_item"].id
        headers = auth_headers(crew["member"])
        res = client.post(f"/api/v1/items/{item_id}/updates", headers=headers, json=self.PAYLOAD)
        assert res.status_code == 201
        body = res.get_json()
        assert body["update"]["snapshot"] == self.PAYLOAD

        item = client.get(f"/api/v1/items/{item_id}", headers=headers).get_json()["item"]
        for field, value in self.PAYLOAD.items():
            assert item[field] == value
        assert item["last_update_at"] is not None

        history = client.get(f"/api/v1/items/{item_id}/updates", headers=headers).get_json()
        assert history["total"] == 1
        assert history["items"][0]["author_email"] == "member@okr.test"

    def test_owner_with_viewer_role_is_rejected(self, client, auth_headers, crew):
        item_id = crew["viewer_item"].id
        res = client.post(f"/api/v1/items/{item_id}/updates",
                          headers=auth_headers(crew["viewer"]), json={"status": "execution"})
        assert res.status_code == 403
        _db.session.expire_all()
        assert ItemUpdate.query.filter_by(item_id=item_id).count() == 0
        assert _db.session.get(Item, item_id).status == "discovery"

    def test_member_cannot_update_unowned_item(self, client, auth_headers, crew):
        res = client.post(f"/api/v1/items/{crew['viewer_item'].id}/updates",
                          headers=auth_headers(crew["member"]), json={"status": "execution"})
        assert res.status_code == 403

    def test_admin_without_membership_updates_any_item(self, client, auth_headers, crew):
        res = client.post(f"/api/v1/items/{crew['viewer_item'].id}/updates",
                          headers=auth_headers(crew["admin"]), json={"status": "paused"})
        assert res.status_code == 201

    def test_missing_status_is_400(self, client, auth_headers, crew):
        res = client.post(f"/api/v1/items/{crew['member_item'].id}/updates",
                          headers=auth_headers(crew["manager"]), json={"next_step": "x"})
        assert res.status_code == 400

    def test_unknown_status_is_422(self, client, auth_headers, crew):
        res = client.post(f"/api/v1/items/{crew['member_item'].id}/updates",
                          headers=auth_headers(crew["manager"]), json={"status": "done-ish"})
        assert res.status_code == 422

    def test_blank_fields_are_cleared(self, client, auth_headers, crew):
        item_id = crew["member_item"].id
        headers = auth_headers(crew["manager"])
        client.post(f"/api/v1/items/{item_id}/updates", headers=headers, json=self.PAYLOAD)
        client.post(f"/api/v1/items/{item_id}/updates", headers=headers,
                    json={"status": "execution", "next_step": ""})
        item = client.get(f"/api/v1/items/{item_id}", headers=headers).get_json()["item"]
        assert item["status"] == "execution"
        assert item["next_step"] is None
        assert item["target_date"] is None


# ═════════════════════════════════════════════════════════════════════════════
# BOARD + EXPORT
# ═════════════════════════════════════════════════════════════════════════════

class TestBoard:
    def test_never_updated_items_first(self, client, auth_headers, crew, make_item):
        now = datetime.now(timezone.utc)
        make_item(crew["team"], "Old", last_update_at=now - timedelta(days=30))
        make_item(crew["team"], "Recent", last_update_at=now - timedelta(days=1))
        res = client.get(f"/api/v1/teams/{crew['team'].id}/items", headers=auth_headers(crew["viewer"]))
        titles = [r["title"] for r in res.get_json()["items"]]
        assert titles[-2:] == ["Old", "Recent"]
        assert set(titles[:2]) == {"Member item", "Viewer item"}

    def test_open_counts_and_owner_email(self, client, auth_headers, crew):
        item_id = crew["member_item"].id
        _db.session.add_all([
            Blocker(item_id=item_id, title="a", status="open"),
            Blocker(item_id=item_id, title="b", status="in_progress"),
            Blocker(item_id=item_id, title="c", status="resolved"),
            HelpRequest(item_id=item_id, detail="x", status="done"),
        ])
        _db.session.commit()
        res = client.get(f"/api/v1/teams/{crew['team'].id}/items", headers=auth_headers(crew["manager"]))
        row = next(r for r in res.get_json()["items"] if r["id"] == item_id)
        assert row["open_blockers_count"] == 2
        assert row["open_help_requests_count"] == 0
        assert row["owner_email"] == "member@okr.test"

    def test_flags_for_viewer(self, client, auth_headers, crew):
        body = client.get(f"/api/v1/teams/{crew['team'].id}/items",
                          headers=auth_headers(crew["viewer"])).get_json()
        assert body["can_create_items"] is False
        assert body["can_delete_items"] is False

    def test_filters(self, client, auth_headers, crew, make_item):
        make_item(crew["team"], "Due soon", target_date=date(2024, 3, 1), status="paused")
        url = f"/api/v1/teams/{crew['team'].id}/items"
        headers = auth_headers(crew["manager"])
        by_status = client.get(f"{url}?status=paused", headers=headers).get_json()
        assert [r["title"] for r in by_status["items"]] == ["Due soon"]
        by_owner = client.get(f"{url}?owner_id={crew['member'].id}", headers=headers).get_json()
        assert [r["title"] for r in by_owner["items"]] == ["Member item"]
        window = client.get(f"{url}?target_from=2024-02-01&target_to=2024-03-01", headers=headers).get_json()
        assert window["total"] == 1

    def test_board_reflects_status_update(self, client, auth_headers, crew):
        url = f"/api/v1/teams/{crew['team'].id}/items"
        headers = auth_headers(crew["manager"])
        client.get(url, headers=headers)
        client.post(f"/api/v1/items/{crew['member_item'].id}/updates", headers=headers,
                    json={"status": "deploying"})
        rows = client.get(url, headers=headers).get_json()["items"]
        assert next(r for r in rows if r["id"] == crew["member_item"].id)["status"] == "deploying"

    def test_outsider_gets_404(self, client, auth_headers, crew):
        res = client.get(f"/api/v1/teams/{crew['team'].id}/items", headers=auth_headers(crew["outsider"]))
        assert res.status_code == 404

    def test_csv_export(self, client, auth_headers, crew):
        client.post(f"/api/v1/items/{crew['member_item'].id}/updates",
                    headers=auth_headers(crew["member"]),
                    json={"status": "execution", "next_step": 'Say "hi", then ship'})
        res = client.get(f"/api/v1/teams/{crew['team'].id}/items/export.csv",
                         headers=auth_headers(crew["manager"]))
        assert res.status_code == 200
        assert res.mimetype == "text/csv"
        assert "okr-ops-items-" in res.headers["Content-Disposition"]
        text = res.get_data(as_text=True)
        assert text.splitlines()[0] == (
            '"Title","Status","Owner","Open Blockers","Open Help","Next Step","Target Date","Last Update"'
        )
        assert '"Say ""hi"", then ship"' in text
        rows = list(csv.reader(io.StringIO(text)))
        assert len(rows) == 3


# ═════════════════════════════════════════════════════════════════════════════
# ACTIVITY
# ═════════════════════════════════════════════════════════════════════════════

class TestActivity:
    def test_empty_state(self, client, auth_headers, crew):
        body = client.get(f"/api/v1/items/{crew['member_item'].id}/activity",
                          headers=auth_headers(crew["viewer"])).get_json()
        assert body["is_empty"] is True
        assert body["empty_message"] == "Nothing yet"

    def test_comments_and_updates_merged(self, client, auth_headers, crew):
        item_id = crew["member_item"].id
        headers = auth_headers(crew["member"])
        client.post(f"/api/v1/items/{item_id}/comments", headers=headers, json={"body": "Kickoff"})
        client.post(f"/api/v1/items/{item_id}/updates", headers=headers, json={"status": "design"})
        body = client.get(f"/api/v1/items/{item_id}/activity", headers=headers).get_json()
        assert [e["kind"] for e in body["entries"]] == ["comment", "update"]
        assert body["entries"][0]["actor_label"] == "member@okr.test"
        assert body["entries"][1]["payload"] == {"status": "design"}


# ═════════════════════════════════════════════════════════════════════════════
# OBJECTIVE DELETE
# ═════════════════════════════════════════════════════════════════════════════

class TestObjectiveDelete:
    def test_cached_item_drops_deleted_objective(self, client, auth_headers, crew, make_item):
        period = Period(name="Q3", start_date=date(2024, 7, 1), end_date=date(2024, 9, 30))
        _db.session.add(period)
        _db.session.flush()
        objective = Objective(team_id=crew["team"].id, period_id=period.id, title="Reduce churn")
        _db.session.add(objective)
        _db.session.commit()
        item = make_item(crew["team"], "Linked", objective_id=objective.id)
        headers = auth_headers(crew["admin"])

        before = client.get(f"/api/v1/items/{item.id}", headers=headers).get_json()
        assert before["item"]["objective_id"] == objective.id

        assert client.delete(f"/api/v1/objectives/{objective.id}", headers=headers).status_code == 200

        after = client.get(f"/api/v1/items/{item.id}", headers=headers).get_json()
        assert after["item"]["objective_id"] is None
