# app/routers/exams.py
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.deps import get_current_user, get_db, get_now, get_tracker
from app.schemas.sessions import ResumeCheckOut
from app.services.session_tracker import SessionTracker

router = APIRouter(prefix="/api/exams", tags=["exams"])


@router.get("/resume", response_model=ResumeCheckOut)
def resume_check(
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
    tracker: SessionTracker = Depends(get_tracker),
    now: datetime = Depends(get_now),
):
    """
    Today's in-progress exam the caller can pick up again.
    - only sessions started on the current local day (Asia/Riyadh by default)
    - `canResume: false` with `session: null` when there is nothing to resume
    """
    return tracker.resume_eligibility(db, user["id"], now)
