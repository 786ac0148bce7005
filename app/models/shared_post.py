# app/models/shared_post.py
# forum posts sharing an exam/practice, and completions of them by other users
import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint, Uuid, func

from app.db.base import Base


class SharedPost(Base):
    __tablename__ = "shared_posts"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    author_id = Column(Uuid(as_uuid=True), ForeignKey("user_profiles.id"), nullable=False, index=True)
    content_type = Column(String(20), nullable=False)  # exam|practice
    title = Column(String(200), nullable=False)
    status = Column(String(20), nullable=False, default="active")  # active|hidden|deleted
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class ContentCompletion(Base):
    """One row per (post, completer). The row is the idempotency key of the reward grant."""
    __tablename__ = "shared_content_completions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    post_id = Column(Uuid(as_uuid=True), ForeignKey("shared_posts.id"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("user_profiles.id"), nullable=False)
    session_id = Column(Uuid(as_uuid=True), ForeignKey("sessions.id"), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("post_id", "user_id", name="uq_completion_post_user"),
    )
