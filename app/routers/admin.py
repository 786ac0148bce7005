# app/routers/admin.py
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.deps import get_current_user, get_db, get_ledger, get_now
from app.schemas.rewards import AdminGrantIn, Balance
from app.services.reward_ledger import RewardLedger

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/rewards/grant", response_model=Balance)
def grant_credits(
    body: AdminGrantIn,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
    ledger: RewardLedger = Depends(get_ledger),
    now: datetime = Depends(get_now),
):
    """
    Manual credit grant. Admins only (403 otherwise).
    History reason is `admin_grant_<reason>`.
    """
    return ledger.grant_credits(
        db, user, body.user_id, body.exam_credits, body.practice_credits, body.reason, now
    )
