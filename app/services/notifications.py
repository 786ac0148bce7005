# app/services/notifications.py
"""
Notification dispatch.
- the ledger calls `notify(db, user_id, type, payload, now=...)` and does not care how it is stored
- DbNotifier stores rows in `notifications`, in the caller's transaction
- listing / read-state helpers for the notifications router
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from app.errors import NotFound
from app.models.notification import Notification

logger = logging.getLogger(__name__)

PAGE_SIZE = 20
MAX_PAGE_SIZE = 50

RESOLUTION_TEXT = {
    "approved": "تمت الموافقة على المحتوى",
    "deleted": "تم حذف المحتوى المبلغ عنه",
    "dismissed": "تم رفض البلاغ",
}


def render(type_: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Build title/message/target for a notification type."""
    if type_ == "reward_earned" and payload.get("milestone"):
        return {
            "title": "مكافأة جديدة! 🎉",
            "message": (
                f"تهانينا! حققت {payload['milestone']} إكمال وحصلت على "
                f"{payload.get('exam_credits', 0)} رصيد اختبار و "
                f"{payload.get('practice_credits', 0)} رصيد تدريب"
            ),
            "target_type": "reward",
            "target_id": None,
        }
    if type_ == "reward_earned":
        if payload.get("content_type") == "practice":
            message = "لقد أكمل مستخدم آخر تدريبك المشارك وحصلت على رصيد تدريب إضافي"
        else:
            message = "لقد أكمل مستخدم آخر اختبارك المشارك وحصلت على رصيد اختبار إضافي"
        return {
            "title": "مكافأة جديدة!",
            "message": message,
            "target_type": "post",
            "target_id": payload.get("post_id"),
        }
    if type_ == "report_resolved":
        return {
            "title": "تم معالجة البلاغ",
            "message": RESOLUTION_TEXT.get(payload.get("resolution"), "تمت معالجة البلاغ"),
            "target_type": "report",
            "target_id": payload.get("report_id"),
        }
    raise ValueError(f"unknown notification type: {type_}")


class Notifier(Protocol):
    def notify(
        self, db: Session, user_id: UUID, type_: str, payload: Dict[str, Any], *, now: datetime
    ) -> None:
        ...


class DbNotifier:
    def notify(
        self, db: Session, user_id: UUID, type_: str, payload: Dict[str, Any], *, now: datetime
    ) -> Notification:
        rendered = render(type_, payload)
        target_id = rendered["target_id"]
        row = Notification(
            user_id=user_id,
            type=type_,
            title=rendered["title"],
            message=rendered["message"],
            target_type=rendered["target_type"],
            target_id=str(target_id) if target_id is not None else None,
            is_read=False,
            meta={k: (str(v) if isinstance(v, UUID) else v) for k, v in payload.items()},
            created_at=now,
        )
        db.add(row)
        db.flush()
        logger.info("[NOTIFY] %s -> user=%s", type_, user_id)
        return row


# ---------- Read side ----------
def unread_count(db: Session, user_id: UUID) -> int:
    return db.scalar(
        select(func.count()).select_from(Notification).where(
            Notification.user_id == user_id, Notification.is_read.is_(False)
        )
    ) or 0


def list_notifications(
    db: Session,
    user_id: UUID,
    cursor: Optional[UUID] = None,
    limit: int = PAGE_SIZE,
    unread_only: bool = False,
) -> Dict[str, Any]:
    page_size = max(1, min(limit, MAX_PAGE_SIZE))

    query = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        query = query.where(Notification.is_read.is_(False))
    if cursor is not None:
        anchor = db.get(Notification, cursor)
        if anchor is not None and anchor.user_id == user_id:
            query = query.where(Notification.created_at < anchor.created_at)

    rows: List[Notification] = list(
        db.scalars(query.order_by(Notification.created_at.desc()).limit(page_size + 1))
    )
    has_more = len(rows) > page_size
    rows = rows[:page_size]

    return {
        "notifications": rows,
        "unread_count": unread_count(db, user_id),
        "next_cursor": rows[-1].id if has_more and rows else None,
        "has_more": has_more,
    }


def mark_read(db: Session, user_id: UUID, notification_id: UUID) -> Notification:
    row = db.get(Notification, notification_id)
    # other users' notifications look exactly like missing ones
    if row is None or row.user_id != user_id:
        raise NotFound("notification_not_found")
    row.is_read = True
    db.flush()
    return row


def mark_all_read(db: Session, user_id: UUID) -> int:
    result = db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True)
    )
    return result.rowcount or 0
