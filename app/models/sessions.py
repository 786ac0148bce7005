# app/models/sessions.py
# timed exam / practice attempts
import uuid

from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Index, CheckConstraint, JSON, Uuid, func,
)

from app.db.base import Base

SESSION_TYPES = ("exam", "practice")
SESSION_STATUSES = ("in_progress", "paused", "completed", "abandoned")
TERMINAL_STATUSES = ("completed", "abandoned")


class StudySession(Base):
    __tablename__ = "sessions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("user_profiles.id"), nullable=False, index=True)
    session_type = Column(String(20), nullable=False)  # exam|practice
    status = Column(String(20), nullable=False, default="in_progress")  # in_progress|paused|completed|abandoned

    start_time = Column(DateTime(timezone=True), nullable=False)
    resumed_at = Column(DateTime(timezone=True), nullable=False)  # start of the current run
    paused_at = Column(DateTime(timezone=True), nullable=True)
    ended_at = Column(DateTime(timezone=True), nullable=True)

    time_spent_seconds = Column(Integer, nullable=False, default=0)
    time_paused_seconds = Column(Integer, nullable=False, default=0)
    remaining_time_seconds = Column(Integer, nullable=True)

    total_questions = Column(Integer, nullable=False)
    questions_answered = Column(Integer, nullable=False, default=0)

    track = Column(String(20), nullable=True)       # exam: scientific|literary
    section = Column(String(20), nullable=True)     # practice: quantitative|verbal
    difficulty = Column(String(20), nullable=True)  # practice: easy|medium|hard
    categories = Column(JSON, nullable=True)

    shared_post_id = Column(Uuid(as_uuid=True), ForeignKey("shared_posts.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    __table_args__ = (
        CheckConstraint("session_type IN ('exam', 'practice')", name="ck_sessions_type"),
        CheckConstraint(
            "status IN ('in_progress', 'paused', 'completed', 'abandoned')",
            name="ck_sessions_status",
        ),
        CheckConstraint(
            "(status = 'paused' AND paused_at IS NOT NULL) OR (status <> 'paused' AND paused_at IS NULL)",
            name="ck_sessions_paused_at",
        ),
        CheckConstraint("time_spent_seconds >= 0", name="ck_sessions_time_spent"),
        Index("ix_sessions_user_id_status", "user_id", "session_type", "status"),
        Index("ix_sessions_user_id_start_time", "user_id", "start_time"),
    )
