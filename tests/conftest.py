"""
Shared pytest fixtures for the OKR Ops Tracker test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup + query cache flush (autouse)
    - client: Flask test client (function-scoped)
    - make_profile / make_team / make_item: row factories
    - auth_headers: bearer-token headers for acting as a profile
"""

import uuid

import pytest

from okrops import create_app
from okrops.models import db as _db
from okrops.models.auth import Profile, Team, TeamMember
from okrops.models.okr import Item
from okrops.services import cache_service
from okrops.services.jwt_service import generate_access_token


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        # Ids are random but cached board rows would survive a table reset
        cache_service.clear_all()
        yield
        cache_service.clear_all()
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Factories ────────────────────────────────────────────────────────────


@pytest.fixture()
def make_profile():
    def _make(role="member", email=None):
        pid = str(uuid.uuid4())
        profile = Profile(id=pid, email=email or f"{role}-{pid[:6]}@okr.test", role=role)
        _db.session.add(profile)
        _db.session.commit()
        return profile
    return _make


@pytest.fixture()
def make_team():
    def _make(name=None, members=None):
        """``members`` is a list of (profile, member_role) pairs."""
        team = Team(name=name or f"Team {uuid.uuid4().hex[:6]}")
        _db.session.add(team)
        _db.session.flush()
        for profile, member_role in members or []:
            _db.session.add(TeamMember(team_id=team.id, user_id=profile.id, member_role=member_role))
        _db.session.commit()
        return team
    return _make


@pytest.fixture()
def make_item():
    def _make(team, title="Roll out SSO", owner=None, **kw):
        item = Item(team_id=team.id, title=title, owner_id=owner.id if owner else None, **kw)
        _db.session.add(item)
        _db.session.commit()
        return item
    return _make


@pytest.fixture()
def auth_headers(app):
    def _headers(profile_or_id, email=None):
        pid = getattr(profile_or_id, "id", profile_or_id)
        with app.app_context():
            token = generate_access_token(pid, email)
        return {"Authorization": f"Bearer {token}"}
    return _headers
