# app/routers/rewards.py
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.deps import get_current_user, get_db, get_ledger, get_now
from app.schemas.rewards import ClaimOut, RedeemIn, RedeemOut, RewardsOut
from app.services.reward_ledger import RewardLedger

router = APIRouter(prefix="/api/rewards", tags=["rewards"])


@router.get("", response_model=RewardsOut)
def get_rewards(
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
    ledger: RewardLedger = Depends(get_ledger),
):
    """
    Balance, completions and milestone progress.
    Users who never earned anything get zeros; no ledger row is created.
    """
    return ledger.get_rewards(db, user["id"])


@router.post("/redeem", response_model=RedeemOut)
def redeem(
    body: RedeemIn,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
    ledger: RewardLedger = Depends(get_ledger),
    now: datetime = Depends(get_now),
):
    return ledger.redeem(db, user["id"], body.credit_type, now)


@router.post("/claim", response_model=ClaimOut)
def claim(
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
    ledger: RewardLedger = Depends(get_ledger),
):
    # credits are granted when a completion is recorded; this only reports the result
    return ledger.claim(db, user["id"])
