"""
Shared pytest fixtures for the annotation engine test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - actor / admin_actor: identities used by service-level tests
    - make_comment: factory that inserts Comment rows with controlled timestamps
    - NOW: fixed "current time" used with the services' ``now=`` parameter
"""

from datetime import datetime, timedelta, timezone

import pytest

from app import create_app
from app.auth import Actor
from app.models import db as _db
from app.models.comment import Comment

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


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
def now():
    return NOW


@pytest.fixture()
def actor():
    return Actor(id="user-1", role="editor", name="Ada")


@pytest.fixture()
def admin_actor():
    return Actor(id="admin-1", role="admin", name="Grace")


@pytest.fixture()
def make_comment():
    """Insert a Comment directly, backdated by ``age_days`` relative to NOW."""

    def _make(
        document_id="doc-1",
        *,
        content="A remark",
        status="active",
        age_days=0,
        updated_days_ago=None,
        parent_comment_id=None,
        content_type="text",
        selected_text=None,
        selection_start=None,
        selection_end=None,
        user_id="user-1",
        author_name="Ada",
    ):
        created = NOW - timedelta(days=age_days)
        updated = NOW - timedelta(days=updated_days_ago if updated_days_ago is not None else age_days)
        comment = Comment(
            document_id=document_id,
            user_id=user_id,
            author_name=author_name,
            content=content,
            content_type=content_type,
            status=status,
            parent_comment_id=parent_comment_id,
            selected_text=selected_text,
            selection_start=selection_start,
            selection_end=selection_end,
            created_at=created,
            updated_at=updated,
        )
        _db.session.add(comment)
        _db.session.commit()
        return comment

    return _make
