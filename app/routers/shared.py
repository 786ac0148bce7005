# app/routers/shared.py
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.deps import get_current_user, get_db, get_ledger, get_now
from app.models.shared_post import SharedPost
from app.schemas.rewards import GrantResult
from app.schemas.shared import CompletionIn, SharedPostIn, SharedPostOut
from app.services.reward_ledger import RewardLedger
from app.services.session_tracker import to_utc

router = APIRouter(prefix="/api/shared", tags=["shared"])


def _post_out(post: SharedPost) -> SharedPostOut:
    return SharedPostOut(
        id=post.id,
        author_id=post.author_id,
        content_type=post.content_type,
        title=post.title,
        status=post.status,
        created_at=to_utc(post.created_at),
    )


@router.post("", status_code=201, response_model=SharedPostOut)
def share_content(
    body: SharedPostIn,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    post = SharedPost(
        author_id=user["id"],
        content_type=body.content_type,
        title=body.title.strip(),
        status="active",
        created_at=to_utc(now),
    )
    db.add(post)
    db.flush()
    return _post_out(post)


@router.post("/{post_id}/completions", response_model=GrantResult)
def record_completion(
    post_id: UUID,
    body: CompletionIn | None = None,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
    ledger: RewardLedger = Depends(get_ledger),
    now: datetime = Depends(get_now),
):
    """
    The caller finished someone's shared exam / practice.
    Repeating the call for the same post is harmless: status `duplicate`.
    """
    session_id = body.session_id if body else None
    return ledger.record_completion(db, post_id, user["id"], now, session_id=session_id)
