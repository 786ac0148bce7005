"""
Shared fixtures: an app on a throwaway SQLite file, signed Supabase-style
tokens, a pinned clock and small row factories.
"""
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.db.base import Base
from app.deps import get_now
from app.main import create_app
from app.models.sessions import StudySession
from app.models.shared_post import SharedPost
from app.models.user_profile import UserProfile
from tests.helpers import JWT_SECRET, T0, Clock


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        supabase_jwt_secret=JWT_SECRET,
        supabase_issuer=None,
        log_level="WARNING",
        locale="en",
    )


@pytest.fixture
def app(settings):
    app = create_app(settings)
    Base.metadata.create_all(app.state.engine)
    yield app
    app.dependency_overrides.clear()
    app.state.engine.dispose()


@pytest.fixture
def clock(app):
    clock = Clock(T0)
    app.dependency_overrides[get_now] = lambda: clock.now
    return clock


@pytest.fixture
def client(app, clock):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db(app):
    session = app.state.sessionmaker()
    yield session
    session.close()


@pytest.fixture
def tracker(app):
    return app.state.tracker


@pytest.fixture
def ledger(app):
    return app.state.ledger


@pytest.fixture
def make_user(db):
    def _make(role="user", status="active"):
        profile = UserProfile(id=uuid4(), status=status, role=role, display_name="tester")
        db.add(profile)
        db.commit()
        return profile.id

    return _make


@pytest.fixture
def make_post(db):
    def _make(author_id, content_type="exam", status="active"):
        post = SharedPost(
            author_id=author_id,
            content_type=content_type,
            title=f"shared {content_type}",
            status=status,
            created_at=T0,
        )
        db.add(post)
        db.commit()
        return post.id

    return _make


@pytest.fixture
def make_session(db):
    """Insert a session row in any state, bypassing the tracker."""
    def _make(user_id, session_type="exam", status="in_progress", start_time=T0, **fields):
        values = dict(
            user_id=user_id,
            session_type=session_type,
            status=status,
            start_time=start_time,
            resumed_at=fields.pop("resumed_at", start_time),
            paused_at=fields.pop("paused_at", start_time if status == "paused" else None),
            time_spent_seconds=fields.pop("time_spent_seconds", 0),
            time_paused_seconds=0,
            total_questions=fields.pop("total_questions", 20),
            questions_answered=fields.pop("questions_answered", 0),
            track=fields.pop("track", "scientific" if session_type == "exam" else None),
            section=fields.pop("section", "verbal" if session_type == "practice" else None),
            created_at=start_time,
        )
        values.update(fields)
        session = StudySession(**values)
        db.add(session)
        db.commit()
        return session.id

    return _make
