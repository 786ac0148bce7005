# app/services/session_tracker.py
"""
Timed exam / practice sessions.
- elapsed / remaining time accounting, all in whole seconds
- pause / resume gates (per-type paused cap, time budget)
- same-day resume lookup for exams
State changes are single conditional UPDATEs guarded by the expected status,
so two requests racing on the same row cannot both apply.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Optional
from uuid import UUID

import pytz
from pydantic import BaseModel, ConfigDict
from sqlalchemy import and_, func, select, update
from sqlalchemy.orm import Session, aliased

from app.errors import (
    Forbidden, InvalidSessionState, LimitExceeded, NotFound, SessionExpired, ValidationError,
)
from app.models.sessions import StudySession, TERMINAL_STATUSES
from app.models.shared_post import SharedPost
from app.models.user_profile import UserProfile
from app.schemas.sessions import (
    ActiveSessionOut, ActiveSessionsOut, PauseLimits, ResumeCheckOut, ResumeSessionOut,
    SessionCounts, SessionGroups, SessionOut, TimerOut,
)

logger = logging.getLogger(__name__)

TRACK_LABELS = {"scientific": "علمي", "literary": "أدبي"}
SECTION_LABELS = {"quantitative": "كمي", "verbal": "لفظي"}
DIFFICULTY_LABELS = {"easy": "سهل", "medium": "متوسط", "hard": "صعب"}


class TrackerConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    exam_max_duration_seconds: int = 7200
    practice_max_duration_seconds: Optional[int] = None
    max_paused_exams: int = 1
    max_paused_practices: int = 1
    timezone: str = "Asia/Riyadh"

    @classmethod
    def from_settings(cls, settings) -> "TrackerConfig":
        return cls(
            exam_max_duration_seconds=settings.exam_max_duration_seconds,
            practice_max_duration_seconds=settings.practice_max_duration_seconds,
            max_paused_exams=settings.max_paused_exams,
            max_paused_practices=settings.max_paused_practices,
            timezone=settings.timezone,
        )


def to_utc(d: Optional[datetime]) -> Optional[datetime]:
    """Stored timestamps are UTC; some drivers hand them back naive."""
    if d is None:
        return None
    if d.tzinfo is None:
        return d.replace(tzinfo=timezone.utc)
    return d.astimezone(timezone.utc)


def seconds_between(start: datetime, end: datetime) -> int:
    """Whole seconds from start to end, never negative (clock skew counts as 0)."""
    return max(0, int((to_utc(end) - to_utc(start)).total_seconds()))


def start_of_local_day(now: datetime, tz_name: str) -> datetime:
    """UTC instant of local midnight for the day `now` falls on."""
    tz = pytz.timezone(tz_name)
    local = to_utc(now).astimezone(tz)
    midnight = tz.localize(datetime(local.year, local.month, local.day))
    return midnight.astimezone(timezone.utc)


class SessionTracker:
    def __init__(self, config: TrackerConfig, on_complete: Optional[Callable] = None):
        self.config = config
        # called as on_complete(db, session, now) when a session started from shared content finishes
        self.on_complete = on_complete

    # ---------- time math ----------
    def max_duration(self, session_type: str) -> Optional[int]:
        if session_type == "exam":
            return self.config.exam_max_duration_seconds
        return self.config.practice_max_duration_seconds

    def pause_cap(self, session_type: str) -> int:
        if session_type == "exam":
            return self.config.max_paused_exams
        return self.config.max_paused_practices

    def remaining(self, session: StudySession) -> Optional[int]:
        """maxDuration - time_spent_seconds; None when the type has no cap."""
        max_duration = self.max_duration(session.session_type)
        if max_duration is None:
            return None
        return max_duration - (session.time_spent_seconds or 0)

    def _capped(self, session_type: str, seconds: int) -> int:
        max_duration = self.max_duration(session_type)
        if max_duration is None:
            return seconds
        return min(seconds, max_duration)

    # ---------- lookups ----------
    def get_owned(self, db: Session, user_id: UUID, session_id: UUID) -> StudySession:
        session = db.get(StudySession, session_id)
        if session is None:
            raise NotFound("session_not_found")
        if session.user_id != user_id:
            logger.warning("[SESSION] user=%s tried to access session=%s", user_id, session_id)
            raise Forbidden("session_not_owned")
        return session

    def check_pause_limits(self, db: Session, user_id: UUID) -> PauseLimits:
        rows = db.execute(
            select(StudySession.id, StudySession.session_type)
            .where(StudySession.user_id == user_id, StudySession.status == "paused")
            .order_by(StudySession.paused_at.desc())
        ).all()
        exams = [r.id for r in rows if r.session_type == "exam"]
        practices = [r.id for r in rows if r.session_type == "practice"]

        return PauseLimits(
            can_pause_exam=len(exams) < self.config.max_paused_exams,
            can_pause_practice=len(practices) < self.config.max_paused_practices,
            paused_exam_count=len(exams),
            paused_practice_count=len(practices),
            paused_exam_id=exams[0] if exams else None,
            paused_practice_id=practices[0] if practices else None,
        )

    def active_sessions(self, db: Session, user_id: UUID) -> ActiveSessionsOut:
        rows = db.scalars(
            select(StudySession)
            .where(
                StudySession.user_id == user_id,
                StudySession.status.in_(("in_progress", "paused")),
            )
            .order_by(StudySession.created_at.desc(), StudySession.start_time.desc())
        ).all()

        items = [self._active_out(s) for s in rows]
        exams = [s for s in items if s.session_type == "exam"]
        practices = [s for s in items if s.session_type == "practice"]
        in_progress = [s for s in items if s.status == "in_progress"]
        paused = [s for s in items if s.status == "paused"]

        return ActiveSessionsOut(
            sessions=SessionGroups(
                all=items, in_progress=in_progress, paused=paused, exams=exams, practices=practices,
            ),
            limits=self.check_pause_limits(db, user_id),
            counts=SessionCounts(
                total=len(items),
                in_progress=len(in_progress),
                paused=len(paused),
                exams=len(exams),
                practices=len(practices),
            ),
        )

    def resume_eligibility(self, db: Session, user_id: UUID, now: datetime) -> ResumeCheckOut:
        """Latest same-day in-progress exam that still has time left."""
        day_start = start_of_local_day(now, self.config.timezone)
        session = db.scalars(
            select(StudySession)
            .where(
                StudySession.user_id == user_id,
                StudySession.session_type == "exam",
                StudySession.status == "in_progress",
                StudySession.start_time >= day_start,
            )
            .order_by(StudySession.start_time.desc())
            .limit(1)
        ).first()

        if session is None:
            return ResumeCheckOut(can_resume=False, session=None)

        remaining = self.remaining(session)
        if remaining is None or remaining <= 0:
            return ResumeCheckOut(can_resume=False, session=None)

        return ResumeCheckOut(
            can_resume=True,
            session=ResumeSessionOut(
                id=session.id,
                status=session.status,
                total_questions=session.total_questions,
                questions_answered=session.questions_answered,
                start_time=to_utc(session.start_time),
                track=session.track,
                time_spent_seconds=session.time_spent_seconds,
                remaining_time_seconds=remaining,
            ),
        )

    # ---------- transitions ----------
    def start(
        self,
        db: Session,
        user_id: UUID,
        session_type: str,
        total_questions: int,
        now: datetime,
        **details,
    ) -> StudySession:
        now = to_utc(now)
        shared_post_id = details.get("shared_post_id")
        if shared_post_id is not None:
            post = db.get(SharedPost, shared_post_id)
            if post is None or post.status != "active":
                raise NotFound("post_not_found")
            if post.content_type != session_type:
                raise ValidationError("shared_post_id", "post_type_mismatch", contentType=post.content_type)

        session = StudySession(
            user_id=user_id,
            session_type=session_type,
            status="in_progress",
            start_time=now,
            resumed_at=now,
            created_at=now,
            time_spent_seconds=0,
            time_paused_seconds=0,
            remaining_time_seconds=self.max_duration(session_type),
            total_questions=total_questions,
            questions_answered=0,
            **details,
        )
        db.add(session)
        db.flush()
        logger.info("[SESSION] started %s session=%s user=%s", session_type, session.id, user_id)
        return session

    def pause(self, db: Session, user_id: UUID, session_id: UUID, now: datetime) -> StudySession:
        now = to_utc(now)
        session = self.get_owned(db, user_id, session_id)
        if session.status != "in_progress":
            raise InvalidSessionState("session_not_in_progress", status=session.status)

        time_spent = self._capped(
            session.session_type,
            (session.time_spent_seconds or 0) + seconds_between(session.resumed_at, now),
        )
        max_duration = self.max_duration(session.session_type)
        remaining = None if max_duration is None else max_duration - time_spent

        if remaining is not None and remaining <= 0:
            self._abandon(db, session, time_spent, now)
            raise SessionExpired("session_time_exhausted", sessionId=str(session.id))

        # pauses of one user queue on the profile row; the cap check is part of the UPDATE itself
        db.execute(select(UserProfile.id).where(UserProfile.id == user_id).with_for_update())
        other = aliased(StudySession)
        paused_count = (
            select(func.count(other.id))
            .where(
                other.user_id == user_id,
                other.session_type == session.session_type,
                other.status == "paused",
            )
            .scalar_subquery()
        )
        result = db.execute(
            update(StudySession)
            .where(
                and_(
                    StudySession.id == session.id,
                    StudySession.status == "in_progress",
                    paused_count < self.pause_cap(session.session_type),
                )
            )
            .values(
                status="paused",
                paused_at=now,
                time_spent_seconds=time_spent,
                remaining_time_seconds=remaining,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )

        if result.rowcount != 1:
            db.refresh(session)
            if session.status != "in_progress":
                raise InvalidSessionState("session_not_in_progress", status=session.status)
            limits = self.check_pause_limits(db, user_id)
            paused_id = limits.paused_exam_id if session.session_type == "exam" else limits.paused_practice_id
            logger.warning(
                "[SESSION] pause refused, %s cap reached user=%s session=%s",
                session.session_type, user_id, session.id,
            )
            raise LimitExceeded(
                "pause_limit_reached",
                sessionType=session.session_type,
                pausedSessionId=str(paused_id) if paused_id else None,
            )

        db.refresh(session)
        logger.info("[SESSION] paused session=%s time_spent=%s", session.id, time_spent)
        return session

    def resume(self, db: Session, user_id: UUID, session_id: UUID, now: datetime):
        """Returns (session, already_resumed)."""
        now = to_utc(now)
        session = self.get_owned(db, user_id, session_id)

        # a concurrent / repeated resume already did the work
        if session.status == "in_progress" and session.paused_at is None:
            return session, True

        if session.status != "paused":
            raise InvalidSessionState("session_not_paused", status=session.status)

        remaining = self.remaining(session)
        if remaining is not None and remaining <= 0:
            self._abandon(db, session, session.time_spent_seconds, now)
            raise SessionExpired("session_time_exhausted", sessionId=str(session.id))

        pause_duration = seconds_between(session.paused_at, now)
        result = db.execute(
            update(StudySession)
            .where(StudySession.id == session.id, StudySession.status == "paused")
            .values(
                status="in_progress",
                paused_at=None,
                resumed_at=now,
                time_paused_seconds=StudySession.time_paused_seconds + pause_duration,
                remaining_time_seconds=remaining,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        db.refresh(session)

        if result.rowcount != 1:
            if session.status == "in_progress" and session.paused_at is None:
                return session, True
            raise InvalidSessionState("session_not_paused", status=session.status)

        logger.info("[SESSION] resumed session=%s remaining=%s", session.id, remaining)
        return session, False

    def sync(
        self,
        db: Session,
        user_id: UUID,
        session_id: UUID,
        current_time_spent: int,
        now: datetime,
        questions_answered: Optional[int] = None,
    ) -> StudySession:
        """
        Client checkpoint. The server's own count (stored time plus the current
        run) is the floor; a larger client figure is accepted up to the cap.
        """
        now = to_utc(now)
        session = self.get_owned(db, user_id, session_id)
        if session.status != "in_progress":
            raise InvalidSessionState("session_not_in_progress", status=session.status)

        measured = (session.time_spent_seconds or 0) + seconds_between(session.resumed_at, now)
        session.time_spent_seconds = self._capped(session.session_type, max(measured, current_time_spent))
        session.remaining_time_seconds = self.remaining(session)
        if questions_answered is not None:
            session.questions_answered = min(questions_answered, session.total_questions)
        # the run so far is folded into time_spent_seconds
        session.resumed_at = now
        session.updated_at = now
        db.flush()
        logger.debug("[SESSION] synced session=%s time_spent=%s", session.id, session.time_spent_seconds)
        return session

    def timer(self, db: Session, user_id: UUID, session_id: UUID, now: datetime) -> TimerOut:
        session = self.get_owned(db, user_id, session_id)
        current_run = 0
        if session.status == "in_progress":
            current_run = seconds_between(session.resumed_at, now)

        max_duration = self.max_duration(session.session_type)
        remaining = self.remaining(session)
        return TimerOut(
            session_id=session.id,
            status=session.status,
            start_time=to_utc(session.start_time),
            time_spent_seconds=session.time_spent_seconds,
            time_paused_seconds=session.time_paused_seconds,
            current_run_seconds=current_run,
            remaining_seconds=None if remaining is None else max(0, remaining),
            total_duration_seconds=max_duration,
            is_expired=remaining is not None and remaining <= 0,
        )

    def complete(self, db: Session, user_id: UUID, session_id: UUID, now: datetime) -> StudySession:
        now = to_utc(now)
        session = self.get_owned(db, user_id, session_id)
        if session.status in TERMINAL_STATUSES:
            raise InvalidSessionState("session_already_closed", status=session.status)

        time_spent = session.time_spent_seconds or 0
        if session.status == "in_progress":
            time_spent += seconds_between(session.resumed_at, now)
        time_spent = self._capped(session.session_type, time_spent)

        result = db.execute(
            update(StudySession)
            .where(StudySession.id == session.id, StudySession.status.in_(("in_progress", "paused")))
            .values(
                status="completed",
                paused_at=None,
                ended_at=now,
                time_spent_seconds=time_spent,
                remaining_time_seconds=self._remaining_for(session.session_type, time_spent),
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        db.refresh(session)
        if result.rowcount != 1:
            raise InvalidSessionState("session_already_closed", status=session.status)

        logger.info("[SESSION] completed session=%s time_spent=%s", session.id, time_spent)
        if session.shared_post_id is not None and self.on_complete is not None:
            self.on_complete(db, session, now)
        return session

    # ---------- helpers ----------
    def _remaining_for(self, session_type: str, time_spent: int) -> Optional[int]:
        max_duration = self.max_duration(session_type)
        return None if max_duration is None else max(0, max_duration - time_spent)

    def _abandon(self, db: Session, session: StudySession, time_spent: int, now: datetime) -> None:
        db.execute(
            update(StudySession)
            .where(StudySession.id == session.id, StudySession.status.in_(("in_progress", "paused")))
            .values(
                status="abandoned",
                paused_at=None,
                ended_at=now,
                time_spent_seconds=time_spent,
                remaining_time_seconds=0,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        db.refresh(session)
        logger.info("[SESSION] time exhausted, abandoned session=%s", session.id)

    def snapshot(self, session: StudySession) -> SessionOut:
        return SessionOut(**self._fields(session))

    def _fields(self, s: StudySession) -> dict:
        return dict(
            id=s.id,
            session_type=s.session_type,
            status=s.status,
            total_questions=s.total_questions,
            questions_answered=s.questions_answered,
            start_time=to_utc(s.start_time),
            paused_at=to_utc(s.paused_at),
            ended_at=to_utc(s.ended_at),
            time_spent_seconds=s.time_spent_seconds,
            time_paused_seconds=s.time_paused_seconds,
            remaining_time_seconds=s.remaining_time_seconds,
            track=s.track,
            section=s.section,
            difficulty=s.difficulty,
            categories=s.categories,
            shared_post_id=s.shared_post_id,
            created_at=to_utc(s.created_at),
        )

    def _active_out(self, s: StudySession) -> ActiveSessionOut:
        progress = round(s.questions_answered / s.total_questions * 100) if s.total_questions > 0 else 0
        if s.session_type == "exam":
            title = "اختبار قدرات"
            label = TRACK_LABELS.get(s.track or "")
            description = f"المسار {label} - {s.total_questions} سؤال" if label else f"{s.total_questions} سؤال"
        else:
            title = f"تدريب {SECTION_LABELS.get(s.section or '', 'لفظي')}"
            description = f"{s.total_questions} سؤال - {DIFFICULTY_LABELS.get(s.difficulty or '', 'صعب')}"
        return ActiveSessionOut(progress=progress, title=title, description=description, **self._fields(s))

