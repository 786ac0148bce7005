"""GET /api/exams/resume and the local-day boundary."""
from datetime import datetime, timedelta, timezone

from app.services.session_tracker import start_of_local_day
from tests.helpers import T0, auth_header


class TestResumeCheck:
    def test_nothing_to_resume(self, client, make_user):
        user = make_user()
        res = client.get("/api/exams/resume", headers=auth_header(user))

        assert res.status_code == 200
        assert res.json() == {"canResume": False, "session": None}

    def test_same_day_exam_with_time_left(self, client, make_user, make_session):
        user = make_user()
        sid = make_session(
            user,
            start_time=T0 - timedelta(hours=1),
            time_spent_seconds=1200,
            questions_answered=7,
            total_questions=40,
        )

        data = client.get("/api/exams/resume", headers=auth_header(user)).json()

        assert data["canResume"] is True
        session = data["session"]
        assert session["id"] == str(sid)
        assert session["status"] == "in_progress"
        assert session["totalQuestions"] == 40
        assert session["questionsAnswered"] == 7
        assert session["track"] == "scientific"
        assert session["timeSpentSeconds"] == 1200
        assert session["remainingTimeSeconds"] == 6000

    def test_latest_same_day_exam_wins(self, client, make_user, make_session):
        user = make_user()
        make_session(user, start_time=T0 - timedelta(hours=2))
        latest = make_session(user, start_time=T0 - timedelta(minutes=5))

        data = client.get("/api/exams/resume", headers=auth_header(user)).json()
        assert data["session"]["id"] == str(latest)

    def test_boundary_is_local_midnight(self, client, make_user, make_session):
        user = make_user()
        # 23:00 Riyadh on the previous day
        make_session(user, start_time=datetime(2025, 3, 9, 20, 0, tzinfo=timezone.utc))
        data = client.get("/api/exams/resume", headers=auth_header(user)).json()
        assert data["canResume"] is False

        # 00:30 Riyadh today, still the previous day in UTC
        sid = make_session(user, start_time=datetime(2025, 3, 9, 21, 30, tzinfo=timezone.utc))
        data = client.get("/api/exams/resume", headers=auth_header(user)).json()
        assert data["canResume"] is True
        assert data["session"]["id"] == str(sid)

    def test_exhausted_exam_is_not_offered(self, client, make_user, make_session):
        user = make_user()
        make_session(user, start_time=T0 - timedelta(hours=3), time_spent_seconds=7200)

        data = client.get("/api/exams/resume", headers=auth_header(user)).json()
        assert data == {"canResume": False, "session": None}

    def test_paused_and_practice_sessions_are_not_offered(self, client, make_user, make_session):
        user = make_user()
        make_session(user, status="paused")
        make_session(user, session_type="practice")
        make_session(user, status="completed")

        data = client.get("/api/exams/resume", headers=auth_header(user)).json()
        assert data["canResume"] is False

    def test_other_users_exams_are_invisible(self, client, make_user, make_session):
        owner, other = make_user(), make_user()
        make_session(owner)

        data = client.get("/api/exams/resume", headers=auth_header(other)).json()
        assert data["canResume"] is False

    def test_requires_auth(self, client):
        res = client.get("/api/exams/resume")
        assert res.status_code == 401
        assert res.json()["code"] == "UNAUTHORIZED"


class TestLocalDay:
    def test_riyadh_midnight_in_utc(self):
        assert start_of_local_day(T0, "Asia/Riyadh") == datetime(2025, 3, 9, 21, 0, tzinfo=timezone.utc)

    def test_utc_day(self):
        assert start_of_local_day(T0, "UTC") == datetime(2025, 3, 10, tzinfo=timezone.utc)
