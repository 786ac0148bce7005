# app/routers/auth.py
from datetime import datetime
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.deps import get_db, get_current_user
from app.errors import Forbidden
from app.models.user_profile import UserProfile
from app.schemas.common import CamelModel
from app.services.session_tracker import to_utc

router = APIRouter(prefix="/api/auth", tags=["auth"])


# ---------- Schemas ----------
class MeOut(CamelModel):
    id: UUID
    email: str | None = None
    display_name: str | None = None
    status: Literal["active", "blocked", "deleted"]
    role: Literal["user", "admin"] = "user"
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProfileUpdateIn(BaseModel):
    display_name: str | None = Field(None, max_length=100)


# ---------- Helpers ----------
def _guard_blocked(profile: UserProfile):
    if profile.status == "blocked":
        raise Forbidden("account_blocked")


def _me(user: dict, profile: UserProfile) -> MeOut:
    return MeOut(
        id=user["id"],
        email=user["email"],
        display_name=profile.display_name,
        status=profile.status,
        role=profile.role,
        created_at=to_utc(getattr(profile, "created_at", None)),
        updated_at=to_utc(getattr(profile, "updated_at", None)),
    )


# ---------- Endpoints ----------
@router.get("/me", response_model=MeOut, response_model_exclude_none=True)
def me(user=Depends(get_current_user)):
    """
    The signed-in user.
    - auth: Supabase access token (Authorization: Bearer <token>)
    - id comes from the token, display name / status / role from user_profiles
    """
    profile: UserProfile = user["profile"]
    _guard_blocked(profile)
    return _me(user, profile)


@router.patch("/profile", response_model=MeOut, response_model_exclude_none=True)
def update_profile(
    body: ProfileUpdateIn,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    profile: UserProfile = user["profile"]
    _guard_blocked(profile)

    profile = db.merge(profile)
    if body.display_name is not None:
        profile.display_name = body.display_name.strip() or None

    db.flush()  # get_db() commits / rolls back
    db.refresh(profile)
    return _me(user, profile)
