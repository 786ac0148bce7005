# app/deps.py
import logging
from datetime import datetime, timezone

from fastapi import Header, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import Settings
from app.errors import AppError, InternalError, Unauthorized
from app.models.user_profile import UserProfile
from app.services.reward_ledger import RewardLedger
from app.services.session_tracker import SessionTracker
from app.services.supabase_auth import verify_bearer

logger = logging.getLogger(__name__)


# ----------------------------
# DB session (one unit of work per request)
# ----------------------------
def get_db(request: Request):
    db: Session = request.app.state.sessionmaker()
    try:
        yield db
        db.commit()
    except AppError as e:
        if e.keeps_changes:
            db.commit()
        else:
            db.rollback()
        raise
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


# ----------------------------
# Current user
# ----------------------------
async def get_current_user(
    request: Request,
    authorization: str | None = Header(None),
):
    """
    Auth runs on its own short DB session so the connection is held briefly.
    The profile row is created on first sight of a valid token.
    """
    settings: Settings = request.app.state.settings
    try:
        claims = await verify_bearer(
            authorization,
            secret=settings.supabase_jwt_secret,
            audience=settings.supabase_jwt_audience,
            issuer=settings.supabase_issuer,
        )
        user_id = claims["user_id"]
    except ValueError as e:
        logger.info("[AUTH] verify_bearer failed: %r", e)
        raise Unauthorized("invalid_token")

    with request.app.state.sessionmaker() as db:
        prof = db.get(UserProfile, user_id)
        if prof is None:
            db.add(UserProfile(id=user_id, status="active", role="user"))
            try:
                db.commit()
            except IntegrityError:
                # a parallel first request inserted it
                db.rollback()
            prof = db.get(UserProfile, user_id)
            if prof is None:
                raise InternalError(f"profile for user={user_id} could not be created")
        db.expunge(prof)

    return {
        "id": user_id,
        "email": claims.get("email"),
        "profile": prof,
    }


# ----------------------------
# Services / clock
# ----------------------------
def get_tracker(request: Request) -> SessionTracker:
    return request.app.state.tracker


def get_ledger(request: Request) -> RewardLedger:
    return request.app.state.ledger


def get_now() -> datetime:
    # overridden in tests to pin the clock
    return datetime.now(timezone.utc)
