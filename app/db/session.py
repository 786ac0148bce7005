# app/db/session.py
# SQLAlchemy setup. The engine is built by the app factory from Settings.

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

Base = declarative_base()


def build_engine(database_url: str, pool_size: int = 30):
    if not database_url:
        raise RuntimeError("DATABASE_URL is not set")

    # Supabase/Railway style URLs use postgres://
    database_url = database_url.replace("postgres://", "postgresql://", 1)

    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": 30},
        )

    return create_engine(
        database_url,
        pool_pre_ping=True,    # detect dropped connections
        pool_size=pool_size,   # matches the Supabase session-mode pool
        max_overflow=0,
        pool_timeout=30,
    )


def build_sessionmaker(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
