"""
Shared pytest fixtures for the ActionHub test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - admin / member: Pre-created users
    - make_user, auth_headers: helpers for ad-hoc users and session tokens
    - FakeWorkspaceGateway: in-memory stand-in for the Directory gateway
"""

import pytest

from actionhub import create_app
from actionhub.core.exceptions import WorkspaceError
from actionhub.integrations.workspace_gateway import MEMBER_TYPE_GROUP, MEMBER_TYPE_USER
from actionhub.models import db as _db
from actionhub.models.user import User
from actionhub.services.jwt_service import generate_access_token


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


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
        app.extensions.pop("workspace_gateway", None)
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Users & tokens ───────────────────────────────────────────────────────


def _make_user(name="Ana Pérez", email="ana@acme.com", role="User", user_id=None):
    """Insert and commit a user; returns the row."""
    user = User(name=name, email=email.lower(), role=role, dashboard_layout=[], group_ids=[])
    if user_id:
        user.id = user_id
    _db.session.add(user)
    _db.session.commit()
    return user


def _auth_headers(user, impersonator=None):
    """Bearer header carrying a session token for ``user``."""
    token = generate_access_token(
        user.id, user.role, impersonator.id if impersonator is not None else None,
    )
    return {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}


@pytest.fixture()
def make_user():
    return _make_user


@pytest.fixture()
def auth_headers():
    return _auth_headers


@pytest.fixture()
def admin():
    return _make_user(name="Admin", email="admin@acme.com", role="Admin")


@pytest.fixture()
def member():
    return _make_user(name="Luis Gómez", email="luis@acme.com", role="User")


# ── Fake Workspace directory ─────────────────────────────────────────────


class FakeWorkspaceGateway:
    """In-memory directory: ``{group_email: [member_email, ...]}``.

    A member whose address is itself a key of ``groups`` is a nested group.
    Group emails listed in ``failing`` raise WorkspaceError when expanded;
    ``fail_all`` makes every call raise.
    """

    def __init__(self, groups=None, names=None, failing=(), fail_all=False):
        self.groups = {k.lower(): [m.lower() for m in v] for k, v in (groups or {}).items()}
        self.names = names or {}
        self.failing = {f.lower() for f in failing}
        self.fail_all = fail_all
        self.calls = []
        self.is_configured = True
        self.admin_email = "admin@acme.com"

    def _check(self, key):
        if self.fail_all or key in self.failing:
            raise WorkspaceError("Unexpected error reading Google Workspace groups", status_code=500)

    def _record(self, group_id):
        return {"id": group_id, "name": self.names.get(group_id, group_id.split("@")[0]), "description": None}

    def list_domain_groups(self):
        self.calls.append(("list_domain_groups",))
        self._check(None)
        return [self._record(gid) for gid in sorted(self.groups)]

    def list_groups_for_member(self, member_key):
        self.calls.append(("list_groups_for_member", member_key))
        self._check(member_key)
        return [self._record(gid) for gid, members in self.groups.items() if member_key in members]

    def list_group_members(self, group_key):
        self.calls.append(("list_group_members", group_key))
        self._check(group_key)
        return [
            {"email": m, "type": MEMBER_TYPE_GROUP if m in self.groups else MEMBER_TYPE_USER}
            for m in self.groups.get(group_key, [])
        ]
