"""
Shared pytest fixtures for the case schedule engine test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - make_template: create a process template through the API
"""

import pytest

from caseflow import create_app
from caseflow.models import db as _db


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
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def make_template(client):
    """Factory: POST a template and return its JSON (steps ordered by seq)."""

    def _make(steps, name="Onboarding", **extra):
        payload = {"name": name, "steps": steps}
        payload.update(extra)
        res = client.post("/api/v1/templates", json=payload)
        assert res.status_code == 201, res.get_json()
        return res.get_json()

    return _make
