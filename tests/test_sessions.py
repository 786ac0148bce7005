"""Timed sessions: start / pause / resume / timer / complete over HTTP and at the service level."""
from datetime import timedelta
from uuid import uuid4

import pytest

from app.errors import Forbidden, InvalidSessionState, LimitExceeded, NotFound, SessionExpired
from app.models.sessions import StudySession
from app.services.session_tracker import SessionTracker, TrackerConfig, seconds_between
from tests.helpers import T0, auth_header


def start(client, user_id, session_type="exam", **extra):
    body = {"session_type": session_type, "total_questions": 20}
    if session_type == "exam":
        body["track"] = "scientific"
    else:
        body["section"] = "quantitative"
        body["difficulty"] = "medium"
    body.update(extra)
    res = client.post("/api/sessions", json=body, headers=auth_header(user_id))
    assert res.status_code == 201, res.text
    return res.json()


class TestStart:
    def test_exam_starts_with_full_budget(self, client):
        user = uuid4()
        data = start(client, user)

        assert data["type"] == "exam"
        assert data["status"] == "in_progress"
        assert data["timeSpentSeconds"] == 0
        assert data["remainingTimeSeconds"] == 7200
        assert data["pausedAt"] is None

    def test_practice_has_no_cap_by_default(self, client):
        data = start(client, uuid4(), "practice")
        assert data["remainingTimeSeconds"] is None

    def test_exam_requires_track(self, client):
        res = client.post(
            "/api/sessions",
            json={"session_type": "exam", "total_questions": 10},
            headers=auth_header(uuid4()),
        )
        assert res.status_code == 400
        assert res.json()["code"] == "VALIDATION_ERROR"
        assert res.json()["field"] == "track"

    def test_bad_body_is_validation_error(self, client):
        res = client.post(
            "/api/sessions",
            json={"session_type": "quiz", "total_questions": 10},
            headers=auth_header(uuid4()),
        )
        assert res.status_code == 400
        assert res.json()["code"] == "VALIDATION_ERROR"
        assert res.json()["field"] == "session_type"

    def test_shared_post_must_exist_and_be_active(self, client, make_user, make_post):
        hidden = make_post(make_user(), status="hidden")
        user = uuid4()

        for post_id in (uuid4(), hidden):
            res = client.post(
                "/api/sessions",
                json={"session_type": "exam", "total_questions": 20, "track": "scientific", "shared_post_id": str(post_id)},
                headers=auth_header(user),
            )
            assert res.status_code == 404
            assert res.json()["code"] == "NOT_FOUND"

    def test_shared_post_type_must_match(self, client, make_user, make_post):
        practice_post = make_post(make_user(), content_type="practice")

        res = client.post(
            "/api/sessions",
            json={"session_type": "exam", "total_questions": 20, "track": "scientific", "shared_post_id": str(practice_post)},
            headers=auth_header(uuid4()),
        )

        assert res.status_code == 400
        assert res.json()["code"] == "VALIDATION_ERROR"
        assert res.json()["field"] == "shared_post_id"


class TestPause:
    def test_pause_accumulates_time_of_current_run(self, client, clock):
        user = uuid4()
        sid = start(client, user)["id"]
        clock.advance(600)

        res = client.post(f"/api/sessions/{sid}/pause", headers=auth_header(user))

        assert res.status_code == 200
        session = res.json()["session"]
        assert session["status"] == "paused"
        assert session["timeSpentSeconds"] == 600
        assert session["remainingTimeSeconds"] == 6600
        assert session["pausedAt"] is not None

    def test_second_paused_exam_is_refused(self, client, clock):
        user = uuid4()
        first = start(client, user)["id"]
        second = start(client, user)["id"]
        clock.advance(60)
        assert client.post(f"/api/sessions/{first}/pause", headers=auth_header(user)).status_code == 200

        res = client.post(f"/api/sessions/{second}/pause", headers=auth_header(user))

        assert res.status_code == 409
        body = res.json()
        assert body["code"] == "LIMIT_EXCEEDED"
        assert body["pausedSessionId"] == first
        # the refused session keeps running
        detail = client.get(f"/api/sessions/{second}", headers=auth_header(user)).json()
        assert detail["status"] == "in_progress"

    def test_paused_exam_does_not_block_practice(self, client, clock):
        user = uuid4()
        exam = start(client, user)["id"]
        practice = start(client, user, "practice")["id"]
        clock.advance(30)

        assert client.post(f"/api/sessions/{exam}/pause", headers=auth_header(user)).status_code == 200
        assert client.post(f"/api/sessions/{practice}/pause", headers=auth_header(user)).status_code == 200

    def test_pause_twice_is_invalid_state(self, client, clock):
        user = uuid4()
        sid = start(client, user)["id"]
        client.post(f"/api/sessions/{sid}/pause", headers=auth_header(user))

        res = client.post(f"/api/sessions/{sid}/pause", headers=auth_header(user))

        assert res.status_code == 400
        assert res.json()["code"] == "INVALID_SESSION_STATE"

    def test_pause_after_budget_is_used_abandons_session(self, client, clock):
        user = uuid4()
        sid = start(client, user)["id"]
        clock.advance(7200 + 5)

        res = client.post(f"/api/sessions/{sid}/pause", headers=auth_header(user))

        assert res.status_code == 410
        assert res.json()["code"] == "SESSION_EXPIRED"
        detail = client.get(f"/api/sessions/{sid}", headers=auth_header(user)).json()
        assert detail["status"] == "abandoned"
        assert detail["timeSpentSeconds"] == 7200
        assert detail["endedAt"] is not None

    def test_practice_without_cap_never_expires(self, client, clock):
        user = uuid4()
        sid = start(client, user, "practice")["id"]
        clock.advance(5 * 3600)

        res = client.post(f"/api/sessions/{sid}/pause", headers=auth_header(user))

        assert res.status_code == 200
        assert res.json()["session"]["timeSpentSeconds"] == 5 * 3600
        assert res.json()["session"]["remainingTimeSeconds"] is None


class TestResume:
    def test_resume_resets_run_start(self, client, clock):
        user = uuid4()
        sid = start(client, user)["id"]
        clock.advance(600)
        client.post(f"/api/sessions/{sid}/pause", headers=auth_header(user))
        clock.advance(900)

        res = client.post(f"/api/sessions/{sid}/resume", headers=auth_header(user))

        assert res.status_code == 200
        body = res.json()
        assert body["alreadyResumed"] is False
        assert body["session"]["status"] == "in_progress"
        assert body["session"]["pausedAt"] is None
        assert body["session"]["timePausedSeconds"] == 900
        assert body["session"]["remainingTimeSeconds"] == 6600

        # only time after the resume counts toward the next pause
        clock.advance(300)
        paused = client.post(f"/api/sessions/{sid}/pause", headers=auth_header(user)).json()
        assert paused["session"]["timeSpentSeconds"] == 900

    def test_resume_when_already_running_is_idempotent(self, client):
        user = uuid4()
        sid = start(client, user)["id"]

        res = client.post(f"/api/sessions/{sid}/resume", headers=auth_header(user))

        assert res.status_code == 200
        assert res.json()["alreadyResumed"] is True

    def test_resume_completed_session_is_invalid(self, client, clock):
        user = uuid4()
        sid = start(client, user)["id"]
        client.post(f"/api/sessions/{sid}/complete", headers=auth_header(user))

        res = client.post(f"/api/sessions/{sid}/resume", headers=auth_header(user))

        assert res.status_code == 400
        assert res.json()["code"] == "INVALID_SESSION_STATE"

    def test_resume_without_time_left_expires(self, client, make_user, make_session):
        user = make_user()
        sid = make_session(user, status="paused", time_spent_seconds=7200)

        res = client.post(f"/api/sessions/{sid}/resume", headers=auth_header(user))

        assert res.status_code == 410
        detail = client.get(f"/api/sessions/{sid}", headers=auth_header(user)).json()
        assert detail["status"] == "abandoned"
        assert detail["pausedAt"] is None


class TestOwnership:
    def test_other_users_session_is_forbidden(self, client):
        owner, intruder = uuid4(), uuid4()
        sid = start(client, owner)["id"]

        for method, path in (
            ("get", f"/api/sessions/{sid}"),
            ("post", f"/api/sessions/{sid}/pause"),
            ("post", f"/api/sessions/{sid}/resume"),
            ("get", f"/api/sessions/{sid}/timer"),
        ):
            res = getattr(client, method)(path, headers=auth_header(intruder))
            assert res.status_code == 403, path
            assert res.json()["code"] == "FORBIDDEN"

    def test_missing_session(self, client):
        res = client.get(f"/api/sessions/{uuid4()}", headers=auth_header(uuid4()))
        assert res.status_code == 404
        assert res.json()["code"] == "NOT_FOUND"


class TestTimer:
    def test_timer_reports_live_run(self, client, clock):
        user = uuid4()
        sid = start(client, user)["id"]
        clock.advance(125)

        data = client.get(f"/api/sessions/{sid}/timer", headers=auth_header(user)).json()

        assert data["currentRunSeconds"] == 125
        assert data["timeSpentSeconds"] == 0
        assert data["remainingSeconds"] == 7200
        assert data["totalDurationSeconds"] == 7200
        assert data["isExpired"] is False

    def test_sync_never_moves_backwards_or_past_cap(self, client, clock):
        user = uuid4()
        sid = start(client, user)["id"]
        headers = auth_header(user)

        assert client.patch(
            f"/api/sessions/{sid}/timer", json={"current_time_spent": 300, "questions_answered": 4}, headers=headers
        ).json()["timeSpentSeconds"] == 300
        assert client.patch(
            f"/api/sessions/{sid}/timer", json={"current_time_spent": 100}, headers=headers
        ).json()["timeSpentSeconds"] == 300

        data = client.patch(
            f"/api/sessions/{sid}/timer", json={"current_time_spent": 99999}, headers=headers
        ).json()
        assert data["timeSpentSeconds"] == 7200
        assert data["remainingSeconds"] == 0
        assert data["isExpired"] is True

    def test_low_sync_does_not_rewind_server_time(self, client, clock):
        user = uuid4()
        sid = start(client, user)["id"]
        headers = auth_header(user)
        clock.advance(7000)

        synced = client.patch(f"/api/sessions/{sid}/timer", json={"current_time_spent": 0}, headers=headers).json()
        assert synced["timeSpentSeconds"] == 7000
        assert synced["remainingSeconds"] == 200

        clock.advance(1000)
        res = client.post(f"/api/sessions/{sid}/pause", headers=headers)
        assert res.status_code == 410
        assert res.json()["code"] == "SESSION_EXPIRED"

    def test_pause_after_sync_counts_run_once(self, client, clock):
        user = uuid4()
        sid = start(client, user)["id"]
        headers = auth_header(user)
        clock.advance(200)
        client.patch(f"/api/sessions/{sid}/timer", json={"current_time_spent": 200}, headers=headers)
        clock.advance(50)

        paused = client.post(f"/api/sessions/{sid}/pause", headers=headers).json()
        assert paused["session"]["timeSpentSeconds"] == 250


class TestActiveSessions:
    def test_groups_counts_and_limits(self, client, clock):
        user = uuid4()
        headers = auth_header(user)
        exam = start(client, user)["id"]
        clock.advance(10)
        start(client, user, "practice")
        clock.advance(10)
        client.post(f"/api/sessions/{exam}/pause", headers=headers)
        done = start(client, user)["id"]
        client.post(f"/api/sessions/{done}/complete", headers=headers)

        data = client.get("/api/sessions/active", headers=headers).json()

        assert data["counts"] == {"total": 2, "inProgress": 1, "paused": 1, "exams": 1, "practices": 1}
        assert [s["id"] for s in data["sessions"]["paused"]] == [exam]
        assert data["limits"]["canPauseExam"] is False
        assert data["limits"]["canPausePractice"] is True
        assert data["limits"]["pausedExamId"] == exam
        practice = data["sessions"]["practices"][0]
        assert practice["title"] == "تدريب كمي"
        assert practice["progress"] == 0

    def test_empty(self, client):
        data = client.get("/api/sessions/active", headers=auth_header(uuid4())).json()
        assert data["sessions"]["all"] == []
        assert data["limits"]["canPauseExam"] is True


class TestTrackerService:
    """Direct service calls, no HTTP."""

    def test_complete_finalizes_running_time(self, db, tracker, make_user):
        user = make_user()
        session = tracker.start(db, user, "exam", 10, T0, track="literary")
        db.commit()

        done = tracker.complete(db, user, session.id, T0 + timedelta(seconds=1500))
        db.commit()

        assert done.status == "completed"
        assert done.time_spent_seconds == 1500
        assert done.remaining_time_seconds == 5700
        with pytest.raises(InvalidSessionState):
            tracker.complete(db, user, session.id, T0 + timedelta(seconds=1600))

    def test_pause_limit_is_per_type_and_configurable(self, db, make_user):
        tracker = SessionTracker(TrackerConfig(max_paused_exams=2))
        user = make_user()
        sessions = [tracker.start(db, user, "exam", 10, T0) for _ in range(3)]
        db.commit()

        tracker.pause(db, user, sessions[0].id, T0 + timedelta(seconds=5))
        tracker.pause(db, user, sessions[1].id, T0 + timedelta(seconds=6))
        with pytest.raises(LimitExceeded):
            tracker.pause(db, user, sessions[2].id, T0 + timedelta(seconds=7))

        limits = tracker.check_pause_limits(db, user)
        assert limits.paused_exam_count == 2
        assert limits.can_pause_exam is False

    def test_expired_pause_raises_and_closes(self, db, tracker, make_user):
        user = make_user()
        session = tracker.start(db, user, "exam", 10, T0)
        db.commit()

        with pytest.raises(SessionExpired):
            tracker.pause(db, user, session.id, T0 + timedelta(hours=3))

        row = db.get(StudySession, session.id)
        assert row.status == "abandoned"
        assert row.paused_at is None

    def test_get_owned(self, db, tracker, make_user):
        owner, other = make_user(), make_user()
        session = tracker.start(db, owner, "practice", 10, T0, section="verbal")
        db.commit()

        assert tracker.get_owned(db, owner, session.id).id == session.id
        with pytest.raises(Forbidden):
            tracker.get_owned(db, other, session.id)
        with pytest.raises(NotFound):
            tracker.get_owned(db, owner, uuid4())

    def test_seconds_between_floors_and_ignores_skew(self):
        assert seconds_between(T0, T0 + timedelta(seconds=59, milliseconds=900)) == 59
        assert seconds_between(T0, T0 - timedelta(seconds=30)) == 0
