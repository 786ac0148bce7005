# app/routers/notifications.py
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.deps import get_current_user, get_db
from app.models.notification import Notification
from app.schemas.notifications import NotificationOut, NotificationPage, ReadAllOut
from app.services import notifications as notification_service
from app.services.session_tracker import to_utc

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


def _out(row: Notification) -> NotificationOut:
    return NotificationOut(
        id=row.id,
        type=row.type,
        title=row.title,
        message=row.message,
        target_type=row.target_type,
        target_id=row.target_id,
        metadata=row.meta,
        is_read=row.is_read,
        created_at=to_utc(row.created_at),
    )


@router.get("", response_model=NotificationPage)
def list_notifications(
    cursor: Optional[UUID] = None,
    limit: int = Query(notification_service.PAGE_SIZE, ge=1, le=notification_service.MAX_PAGE_SIZE),
    unread_only: bool = Query(False, alias="unreadOnly"),
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    page = notification_service.list_notifications(
        db, user["id"], cursor=cursor, limit=limit, unread_only=unread_only
    )
    return NotificationPage(
        notifications=[_out(n) for n in page["notifications"]],
        unread_count=page["unread_count"],
        next_cursor=page["next_cursor"],
        has_more=page["has_more"],
    )


@router.patch("/{notification_id}/read", response_model=NotificationOut)
def mark_read(
    notification_id: UUID,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _out(notification_service.mark_read(db, user["id"], notification_id))


@router.post("/read-all", response_model=ReadAllOut)
def mark_all_read(
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ReadAllOut(updated=notification_service.mark_all_read(db, user["id"]))
