# app/models/user_credits.py
import uuid

from sqlalchemy import (
    Column, BigInteger, Integer, String, DateTime, ForeignKey, CheckConstraint, Index, Uuid, func,
)

from app.db.base import Base


class UserCredits(Base):
    __tablename__ = "user_credits"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("user_profiles.id"), nullable=False, unique=True)

    exam_credits = Column(Integer, nullable=False, default=0)
    practice_credits = Column(Integer, nullable=False, default=0)
    total_completions = Column(Integer, nullable=False, default=0)
    last_awarded_milestone = Column(Integer, nullable=False, default=0)

    # share-driven grants in the current month, reset when month_key changes
    month_key = Column(String(7), nullable=True)  # YYYY-MM
    exam_credits_earned_month = Column(Integer, nullable=False, default=0)
    practice_credits_earned_month = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    __table_args__ = (
        CheckConstraint("exam_credits >= 0", name="ck_user_credits_exam"),
        CheckConstraint("practice_credits >= 0", name="ck_user_credits_practice"),
    )


class CreditHistory(Base):
    """Append-only record of every balance change."""
    __tablename__ = "credit_history"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("user_profiles.id"), nullable=False)
    type = Column(String(20), nullable=False)  # earned|redeemed
    exam_credits = Column(Integer, nullable=False, default=0)
    practice_credits = Column(Integer, nullable=False, default=0)
    reason = Column(String(100), nullable=False)
    completion_id = Column(Uuid(as_uuid=True), ForeignKey("shared_content_completions.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_credit_history_user_id_created_at", "user_id", "created_at"),
    )
