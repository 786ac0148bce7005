"""
Shared DB base / session factory.
Base, build_engine and build_sessionmaker live in app.db.session.
Importing the models here registers every table on Base.metadata.
"""
from app.db.session import Base, build_engine, build_sessionmaker
from app.models import user_profile, sessions, shared_post, user_credits, notification  # noqa: F401

__all__ = ["Base", "build_engine", "build_sessionmaker"]
