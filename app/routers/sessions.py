# app/routers/sessions.py
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.deps import get_current_user, get_db, get_now, get_tracker
from app.errors import ValidationError
from app.schemas.sessions import (
    ActiveSessionsOut, SessionActionOut, SessionOut, SessionStartIn, TimerOut, TimerSyncIn,
)
from app.services.session_tracker import SessionTracker

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


# ---------- Listing ----------
@router.get("/active", response_model=ActiveSessionsOut)
def active_sessions(
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
    tracker: SessionTracker = Depends(get_tracker),
):
    """
    In-progress and paused sessions of the caller, grouped, with pause limits.
    """
    return tracker.active_sessions(db, user["id"])


# ---------- Lifecycle ----------
@router.post("", status_code=201, response_model=SessionOut)
def start_session(
    body: SessionStartIn,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
    tracker: SessionTracker = Depends(get_tracker),
    now: datetime = Depends(get_now),
):
    if body.session_type == "exam" and body.track is None:
        raise ValidationError("track", "track_required_for_exam")
    if body.session_type == "practice" and body.section is None:
        raise ValidationError("section", "section_required_for_practice")

    session = tracker.start(
        db,
        user["id"],
        body.session_type,
        body.total_questions,
        now,
        track=body.track,
        section=body.section,
        difficulty=body.difficulty,
        categories=body.categories,
        shared_post_id=body.shared_post_id,
    )
    return tracker.snapshot(session)


@router.get("/{session_id}", response_model=SessionOut)
def get_session(
    session_id: UUID,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
    tracker: SessionTracker = Depends(get_tracker),
):
    return tracker.snapshot(tracker.get_owned(db, user["id"], session_id))


@router.post("/{session_id}/pause", response_model=SessionActionOut)
def pause_session(
    session_id: UUID,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
    tracker: SessionTracker = Depends(get_tracker),
    now: datetime = Depends(get_now),
):
    """
    409 LIMIT_EXCEEDED when a session of the same type is already paused.
    410 SESSION_EXPIRED when the time budget is used up (the session is closed).
    """
    session = tracker.pause(db, user["id"], session_id, now)
    return SessionActionOut(session=tracker.snapshot(session))


@router.post("/{session_id}/resume", response_model=SessionActionOut)
def resume_session(
    session_id: UUID,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
    tracker: SessionTracker = Depends(get_tracker),
    now: datetime = Depends(get_now),
):
    session, already_resumed = tracker.resume(db, user["id"], session_id, now)
    return SessionActionOut(session=tracker.snapshot(session), already_resumed=already_resumed)


@router.post("/{session_id}/complete", response_model=SessionOut)
def complete_session(
    session_id: UUID,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
    tracker: SessionTracker = Depends(get_tracker),
    now: datetime = Depends(get_now),
):
    return tracker.snapshot(tracker.complete(db, user["id"], session_id, now))


# ---------- Timer ----------
@router.get("/{session_id}/timer", response_model=TimerOut)
def get_timer(
    session_id: UUID,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
    tracker: SessionTracker = Depends(get_tracker),
    now: datetime = Depends(get_now),
):
    return tracker.timer(db, user["id"], session_id, now)


@router.patch("/{session_id}/timer", response_model=TimerOut)
def sync_timer(
    session_id: UUID,
    body: TimerSyncIn,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
    tracker: SessionTracker = Depends(get_tracker),
    now: datetime = Depends(get_now),
):
    tracker.sync(db, user["id"], session_id, body.current_time_spent, now, questions_answered=body.questions_answered)
    return tracker.timer(db, user["id"], session_id, now)
