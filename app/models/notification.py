# app/models/notification.py
import uuid

from sqlalchemy import Column, String, Text, Boolean, DateTime, ForeignKey, Index, JSON, Uuid

from app.db.base import Base


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("user_profiles.id"), nullable=False)
    type = Column(String(30), nullable=False)  # reward_earned|report_resolved
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    target_type = Column(String(20), nullable=True)  # post|comment|report|reward
    target_id = Column(String(64), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    meta = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_notifications_user_id_created_at", "user_id", "created_at"),
    )
