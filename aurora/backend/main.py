# aurora/backend/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

import asyncpg
import redis.asyncio as redis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .api import auth, directory, staff_attendance, student_attendance
from .api.utilities.limiter import limiter
from .config.config import Config, load_settings
from .core.exceptions import ServiceError
from .db.db_client import apply_schema
from .logging.logging_config import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Creates the PostgreSQL and Redis pools on start-up and closes them on
    shutdown. A failing store is logged and its pool left unset, so the
    affected endpoints answer 500 instead of the process refusing to start.
    """
    settings: Config = app.state.settings
    setup_logging(settings.LOG_DIR)
    logger.info("Application starting...")

    app.state.postgres_pool = None
    app.state.redis_pool = None

    try:
        postgres_pool = await asyncpg.create_pool(
            dsn=settings.DATABASE_URL,
            min_size=settings.DB_POOL_MIN_SIZE,
            max_size=settings.DB_POOL_MAX_SIZE,
        )
        await apply_schema(postgres_pool)
        app.state.postgres_pool = postgres_pool
        logger.info("PostgreSQL connection pool created.")
    except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
        logger.error(f"Could not initialise PostgreSQL: {e}", exc_info=True)

    if settings.APPLICATION_REDIS_URL:
        try:
            app.state.redis_pool = redis.ConnectionPool.from_url(
                settings.APPLICATION_REDIS_URL, decode_responses=True
            )
            logger.info("Redis connection pool created.")
        except ValueError as e:
            logger.error(f"Invalid Redis URL: {e}")
    else:
        logger.error("APPLICATION_REDIS_URL is not set, sign-in is unavailable.")

    yield

    logger.info("Application shutting down...")
    if app.state.postgres_pool:
        await app.state.postgres_pool.close()
        logger.info("PostgreSQL connection pool closed.")
    if app.state.redis_pool:
        await app.state.redis_pool.disconnect()
        logger.info("Redis connection pool closed.")


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}", exc_info=exc)
    else:
        logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def create_app(settings: Optional[Config] = None) -> FastAPI:
    settings = settings or load_settings()

    app = FastAPI(
        title="Aurora School API",
        description="Staff and student attendance for the Aurora school administration.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.limiter = limiter

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(ServiceError, service_error_handler)

    app.include_router(auth.router, prefix="/api/v1")
    app.include_router(staff_attendance.router, prefix="/api/v1")
    app.include_router(student_attendance.router, prefix="/api/v1")
    app.include_router(directory.router, prefix="/api/v1")

    @app.get("/health", tags=["System"])
    def health_check():
        """Simple liveness probe."""
        return {"status": "ok", "message": "Aurora API is running."}

    return app


app = create_app()
