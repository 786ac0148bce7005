# app/config.py


from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()  # read .env before Settings()

BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    # environment
    app_env: str = "local"
    log_level: str = "INFO"
    locale: str = "ar"                       # user-facing messages: ar|en
    cors_origins: list[str] = ["*"]

    # Supabase & DB (required)
    database_url: str                        # DATABASE_URL
    supabase_jwt_secret: str                 # SUPABASE_JWT_SECRET
    supabase_issuer: str | None = None       # SUPABASE_ISSUER
    supabase_jwt_audience: str = "authenticated"  # SUPABASE_JWT_AUDIENCE
    db_pool_size: int = 30

    # Timed sessions
    timezone: str = "Asia/Riyadh"            # daily resume boundary
    exam_max_duration_seconds: int = 7200
    practice_max_duration_seconds: int | None = None
    max_paused_exams: int = 1
    max_paused_practices: int = 1

    # Rewards
    milestone_interval: int = 5
    milestone_exam_bonus: int = 5
    milestone_practice_bonus: int = 5
    monthly_exam_reward_cap: int | None = None
    monthly_practice_reward_cap: int | None = None

    model_config = SettingsConfigDict(
        env_file=str(BASE_DIR / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
