"""
Shared pytest fixtures for the AMSF Survey Filer test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - organization: Pre-created Organization (RCI12345)
    - submission: Draft 2025 submission for that organization
"""

import pytest

from amsf_filing import create_app
from amsf_filing.models import db as _db


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
def organization():
    """Create and return a test Organization."""
    from amsf_filing.models.organization import Organization
    org = Organization(name="Agence du Port", rci_number="RCI12345")
    _db.session.add(org)
    _db.session.commit()
    return org


@pytest.fixture()
def submission(organization):
    """Draft 2025 submission, not yet populated."""
    from amsf_filing.models.submission import Submission
    sub = Submission(organization_id=organization.id, year=2025, taxonomy_version="2025")
    _db.session.add(sub)
    _db.session.commit()
    return sub
