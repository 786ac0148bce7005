# app/models/user_profile.py
# profile table that complements supabase auth.users
from sqlalchemy import Column, String, DateTime, Enum, Uuid, func

from app.db.base import Base


class UserProfile(Base):
    __tablename__ = "user_profiles"
    id = Column(Uuid(as_uuid=True), primary_key=True)  # = auth.users.id (uuid)
    display_name = Column(String(100))
    status = Column(
        Enum("active", "blocked", "deleted", name="user_status", native_enum=False),
        nullable=False,
        server_default="active",
    )
    role = Column(
        Enum("user", "admin", name="user_role", native_enum=False),
        nullable=False,
        server_default="user",
    )
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
