from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from app.schemas.common import CamelModel


class NotificationOut(CamelModel):
    id: UUID
    type: str
    title: str
    message: str
    target_type: Optional[str] = None
    target_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    is_read: bool
    created_at: datetime


class NotificationPage(CamelModel):
    notifications: List[NotificationOut]
    unread_count: int
    next_cursor: Optional[UUID] = None
    has_more: bool


class ReadAllOut(CamelModel):
    updated: int
