# app/main.py

# ------------------------
# FastAPI, CORS middleware
# ------------------------
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import Settings, get_settings
from app.db.base import build_engine, build_sessionmaker
from app.errors import register_error_handlers
from app.services.notifications import DbNotifier
from app.services.reward_ledger import RewardConfig, RewardLedger
from app.services.session_tracker import SessionTracker, TrackerConfig

# ------------------------
# Routers
# ------------------------
from app.routers import admin as admin_router
from app.routers import auth as auth_router
from app.routers import exams as exams_router
from app.routers import notifications as notifications_router
from app.routers import rewards as rewards_router
from app.routers import sessions as sessions_router
from app.routers import shared as shared_router


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # ------------------------
    # 1) FastAPI app
    # ------------------------
    app = FastAPI(title="Exam Prep API")

    # ------------------------
    # 2) components, owned by the app for its whole lifetime
    # ------------------------
    engine = build_engine(settings.database_url, pool_size=settings.db_pool_size)
    ledger = RewardLedger(RewardConfig.from_settings(settings), DbNotifier())
    tracker = SessionTracker(TrackerConfig.from_settings(settings), on_complete=ledger.on_session_complete)

    app.state.settings = settings
    app.state.engine = engine
    app.state.sessionmaker = build_sessionmaker(engine)
    app.state.ledger = ledger
    app.state.tracker = tracker

    # ------------------------
    # 3) CORS
    #    - open in local development, restrict via CORS_ORIGINS in production
    # ------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,  # no cookies
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app, locale=settings.locale)

    # ------------------------
    # 4) routers
    # ------------------------
    app.include_router(auth_router.router)
    app.include_router(sessions_router.router)
    app.include_router(exams_router.router)
    app.include_router(rewards_router.router)
    app.include_router(shared_router.router)
    app.include_router(notifications_router.router)
    app.include_router(admin_router.router)

    # ------------------------
    # 5) root endpoint (health check)
    # ------------------------
    @app.get("/")
    def root():
        return {"ok": True}

    return app
