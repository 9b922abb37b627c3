"""
Visualizar API - Main Application Entry Point

This module initializes and configures the FastAPI application including:
- Logging
- Database and Redis connections
- Identity provider and email clients
- CORS middleware
- API routing
- Health check endpoints

Run locally with `visualizar-api` (or `python -m visualizar.main`).
"""

import logging
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from visualizar.api import api_router
from visualizar.core.config import settings
from visualizar.core.database import close_db, init_db
from visualizar.core.email import EmailClient, EmailConfig
from visualizar.core.identity import IdentityProviderConfig, SupabaseIdentityProvider
from visualizar.core.redis import close_redis, init_redis, redis_ready

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

logger = logging.getLogger(__name__)


async def _connect(name: str, connect: Callable[[], Awaitable[object]]) -> None:
    """Run a startup connection check. Only production treats failure as fatal."""
    try:
        await connect()
        logger.info(f"[OK] {name} connected")
    except Exception as e:
        logger.error(f"[FAIL] {name} connection failed: {e}")
        if settings.is_production:
            raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup connects Redis and the database, then builds the identity
    provider and email clients from their own configs and publishes them
    on `app.state`. Shutdown releases both connection pools.
    """
    logger.info(f"Starting Visualizar API in {settings.python_env} mode")

    await _connect("Redis", init_redis)
    await _connect("Database", init_db)

    app.state.identity_provider = SupabaseIdentityProvider(
        IdentityProviderConfig.from_settings(settings)
    )
    app.state.email_client = EmailClient(EmailConfig.from_settings(settings))

    yield

    await close_redis()
    await close_db()
    logger.info("Visualizar API shut down")


app = FastAPI(
    title="Visualizar API",
    description="Visualizar educational content platform API",
    version="0.1.0",
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

app.include_router(api_router, prefix="/api/v1")

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Root endpoint - API welcome message."""
    return {
        "message": "Welcome to Visualizar API",
        "status": "running",
        "environment": settings.python_env,
    }


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint for container orchestration."""
    return {"status": "healthy"}


@app.get("/ready", tags=["Health"])
async def readiness_check() -> dict[str, str]:
    """
    Readiness check endpoint.

    The database is required. Redis is reported but optional, since the
    rate limiter falls back to memory without it.
    """
    try:
        await init_db()
        database = "ok"
    except Exception as e:
        logger.warning(f"Readiness database check failed: {e}")
        database = "unavailable"

    return {
        "status": "ready" if database == "ok" else "not_ready",
        "database": database,
        "redis": "ok" if await redis_ready() else "unavailable",
    }


def run() -> None:
    """Serve the API with uvicorn, reloading on code changes in development."""
    uvicorn.run(
        "visualizar.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
