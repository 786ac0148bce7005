from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.common import CamelModel


# -- Request --

class RedeemIn(BaseModel):
    # checked by the ledger so an unknown type maps to VALIDATION_ERROR on credit_type
    credit_type: str


class AdminGrantIn(BaseModel):
    user_id: UUID
    exam_credits: int = Field(0, ge=0)
    practice_credits: int = Field(0, ge=0)
    reason: str = Field(..., min_length=1, max_length=60)


# -- Response --

class Balance(CamelModel):
    exam_credits: int = 0
    practice_credits: int = 0


class RedeemOut(Balance):
    redeemed: bool = True


class HistoryEntry(CamelModel):
    type: Literal["earned", "redeemed"]
    exam_credits: int
    practice_credits: int
    reason: str
    timestamp: datetime


class RewardsOut(CamelModel):
    exam_credits: int
    practice_credits: int
    total_completions: int
    next_milestone: int
    progress_to_next: int
    total_shares: int
    credit_history: List[HistoryEntry]


class ClaimOut(CamelModel):
    success: bool = True
    credits_claimed: int = 0
    new_balance: Balance
    completions_of_my_content: int = 0


class GrantResult(CamelModel):
    """Outcome of recording one completion event."""
    status: Literal["granted", "capped", "duplicate", "self_completion"]
    completion_id: Optional[UUID] = None
    owner_id: Optional[UUID] = None
    credit_type: Optional[str] = None
    milestone: Optional[int] = None
