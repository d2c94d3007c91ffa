"""FastAPI application factory."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager, suppress

import structlog
from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from safaconnect.auth import jobs
from safaconnect.auth.oauth import seed_providers
from safaconnect.auth.router import router as auth_router
from safaconnect.badges.router import router as badges_router
from safaconnect.config import get_settings
from safaconnect.database import close_db, init_db, session_scope
from safaconnect.health.router import router as health_router
from safaconnect.middleware import setup_middleware
from safaconnect.redis_client import close_redis, init_redis
from safaconnect.users.router import router as users_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    # Upsert OAuth providers configured via environment (idempotent)
    try:
        async with session_scope() as db:
            await seed_providers(db)
    except SQLAlchemyError:
        logger.warning("oauth_provider_seeding_failed", exc_info=True)

    cleanup_task = None
    if settings.token_cleanup_interval_seconds > 0:
        cleanup_task = asyncio.create_task(jobs.token_cleanup_loop(settings.token_cleanup_interval_seconds))

    yield

    if cleanup_task is not None:
        cleanup_task.cancel()
        with suppress(asyncio.CancelledError):
            await cleanup_task

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Safatanc Connect",
        description="Account and identity service: registration, sessions, verification, OAuth and badges",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(badges_router)

    return app


app = create_app()
