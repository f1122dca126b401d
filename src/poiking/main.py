"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from poiking.challenges.router import router as challenges_router
from poiking.config import get_settings
from poiking.database import close_db, get_session_factory, init_db
from poiking.health.router import router as health_router
from poiking.jobs.router import router as jobs_router
from poiking.kings.router import router as kings_router
from poiking.middleware import setup_middleware
from poiking.redis_client import close_redis, init_redis
from poiking.rewards.router import router as rewards_router
from poiking.rewards.seed import seed_game_data
from poiking.sessions.router import router as sessions_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    # Seed catalog and config documents (idempotent)
    try:
        async with get_session_factory()() as db:
            await seed_game_data(db)
    except Exception:
        logger.warning("Game data seeding failed (tables may not exist yet)", exc_info=True)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="POI King API",
        description="Territory capture game backend: sessions, challenges, rewards and crowns",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(sessions_router)
    app.include_router(challenges_router)
    app.include_router(rewards_router)
    app.include_router(kings_router)
    app.include_router(jobs_router)

    return app


app = create_app()
