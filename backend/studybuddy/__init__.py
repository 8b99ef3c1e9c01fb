import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from studybuddy.config import Settings, settings as default_settings
from studybuddy.db import init_database
from studybuddy.errors import install_exception_handlers
from studybuddy.services.scheduler import SM2Scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logging.basicConfig(level=settings.log_level)
    if not settings.auth_jwt_secret:
        raise RuntimeError("STUDYBUDDY_AUTH_JWT_SECRET must be set")
    app.state.database = await init_database(settings.data_dir, settings.sqlite_filename)
    logger.info("Database ready at %s", app.state.database.path)
    yield
    await app.state.database.close()


def create_app(settings: Settings | None = None) -> FastAPI:
    application = FastAPI(
        title="StudyBuddy Backend", version="0.1.0", lifespan=lifespan
    )
    application.state.settings = settings or default_settings
    application.state.scheduler = SM2Scheduler()

    application.add_middleware(
        CORSMiddleware,
        allow_origins=application.state.settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_exception_handlers(application)

    from studybuddy.routers import (
        dashboard,
        decks,
        gamification,
        health,
        notes,
        review,
        search,
        tags,
        tasks,
    )

    application.include_router(health.router, prefix="/api")
    application.include_router(
        review.router, prefix="/api/review", tags=["review"]
    )
    application.include_router(
        decks.router, prefix="/api/decks", tags=["decks"]
    )
    application.include_router(
        notes.router, prefix="/api/notes", tags=["notes"]
    )
    application.include_router(
        notes.folders_router, prefix="/api/folders", tags=["notes"]
    )
    application.include_router(
        tasks.router, prefix="/api/tasks", tags=["tasks"]
    )
    application.include_router(
        tags.router, prefix="/api/tags", tags=["tags"]
    )
    application.include_router(
        search.router, prefix="/api/search", tags=["search"]
    )
    application.include_router(
        gamification.router, prefix="/api/gamification", tags=["gamification"]
    )
    application.include_router(
        dashboard.router, prefix="/api/dashboard", tags=["dashboard"]
    )

    return application


app = create_app()
