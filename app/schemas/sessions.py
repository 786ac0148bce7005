from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.common import CamelModel


# -- Request --

class SessionStartIn(BaseModel):
    session_type: Literal["exam", "practice"]
    total_questions: int = Field(..., ge=1, le=200)
    track: Optional[Literal["scientific", "literary"]] = None
    section: Optional[Literal["quantitative", "verbal"]] = None
    difficulty: Optional[Literal["easy", "medium", "hard"]] = None
    categories: Optional[List[str]] = None
    shared_post_id: Optional[UUID] = None


class TimerSyncIn(BaseModel):
    action: Literal["sync"] = "sync"
    current_time_spent: int = Field(..., ge=0)
    questions_answered: Optional[int] = Field(None, ge=0)


# -- Response --

class SessionOut(CamelModel):
    id: UUID
    session_type: str = Field(..., alias="type")
    status: str
    total_questions: int
    questions_answered: int
    start_time: datetime
    paused_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    time_spent_seconds: int
    time_paused_seconds: int
    remaining_time_seconds: Optional[int] = None
    track: Optional[str] = None
    section: Optional[str] = None
    difficulty: Optional[str] = None
    categories: Optional[List[str]] = None
    shared_post_id: Optional[UUID] = None
    created_at: Optional[datetime] = None


class ActiveSessionOut(SessionOut):
    progress: int
    title: str
    description: str


class ResumeSessionOut(CamelModel):
    id: UUID
    status: str
    total_questions: int
    questions_answered: int
    start_time: datetime
    track: Optional[str] = None
    time_spent_seconds: int
    remaining_time_seconds: int


class ResumeCheckOut(CamelModel):
    can_resume: bool
    session: Optional[ResumeSessionOut] = None


class PauseLimits(CamelModel):
    can_pause_exam: bool
    can_pause_practice: bool
    paused_exam_count: int
    paused_practice_count: int
    paused_exam_id: Optional[UUID] = None
    paused_practice_id: Optional[UUID] = None


class SessionGroups(CamelModel):
    all: List[ActiveSessionOut]
    in_progress: List[ActiveSessionOut]
    paused: List[ActiveSessionOut]
    exams: List[ActiveSessionOut]
    practices: List[ActiveSessionOut]


class SessionCounts(CamelModel):
    total: int
    in_progress: int
    paused: int
    exams: int
    practices: int


class ActiveSessionsOut(CamelModel):
    sessions: SessionGroups
    limits: PauseLimits
    counts: SessionCounts


class SessionActionOut(CamelModel):
    session: SessionOut
    already_resumed: bool = False


class TimerOut(CamelModel):
    session_id: UUID
    status: str
    start_time: datetime
    time_spent_seconds: int
    time_paused_seconds: int
    current_run_seconds: int
    remaining_seconds: Optional[int] = None
    total_duration_seconds: Optional[int] = None
    is_expired: bool
