"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures middleware, exception handlers, and lifespan events.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from psycopg_pool import ConnectionPool
from starlette.middleware.sessions import SessionMiddleware

from src.adapters.provider.heroku import HerokuClient
from src.adapters.repository import run_migrations
from src.adapters.smtp.console import ConsoleMailTransport
from src.adapters.smtp.transport import SmtpMailTransport
from src.adapters.verification import InMemoryVerificationStore, VerificationSweeper
from src.api.errors import register_exception_handlers
from src.api.v1 import router as v1_router
from src.config.settings import Settings, get_settings
from src.domain.credentials import ActionExecutor
from src.domain.ports import MailTransport

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {"name": "auth", "description": "Signup, login and new-device verification"},
    {"name": "apps", "description": "Bot deployments on the PaaS provider"},
    {"name": "admin", "description": "Credential pool management"},
]


def build_transport(settings: Settings) -> MailTransport:
    if settings.mail_backend == "console":
        logger.warning("MAIL_BACKEND=console, verification codes are logged instead of sent")
        return ConsoleMailTransport()
    return SmtpMailTransport(timeout_seconds=settings.smtp_timeout_seconds)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Creates database connection pool and runs migrations
    - Creates the verification stores, mail transport and provider client
    - Starts the verification sweeper task
    - Cancels the sweeper and closes clients on shutdown
    """
    logger.info("Starting application...")
    logger.info("Connecting to database...")

    # Create connection pool with explicit sizing
    pool = ConnectionPool(
        conninfo=settings.database_url,
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
    )

    logger.info("Running database migrations...")
    run_migrations(pool)

    # Store singletons in app state for dependency injection
    app.state.pool = pool
    app.state.signup_codes = InMemoryVerificationStore(
        ttl_seconds=settings.verification_ttl_seconds,
        max_attempts=settings.signup_max_attempts,
    )
    app.state.device_codes = InMemoryVerificationStore(
        ttl_seconds=settings.verification_ttl_seconds,
        max_attempts=settings.device_max_attempts,
    )
    app.state.transport = build_transport(settings)
    app.state.provider = HerokuClient(
        base_url=settings.provider_base_url,
        timeout_seconds=settings.provider_timeout_seconds,
    )
    app.state.executor = ActionExecutor()

    sweeper = VerificationSweeper(
        [app.state.signup_codes, app.state.device_codes],
        interval_seconds=settings.sweep_interval_seconds,
    )
    sweeper_task = asyncio.create_task(sweeper.run())
    logger.info("Verification sweeper started (every %ds)", settings.sweep_interval_seconds)

    logger.info("Application startup complete")

    try:
        yield
    finally:
        logger.info("Shutting down application...")
        sweeper_task.cancel()
        try:
            await sweeper_task
        except asyncio.CancelledError:
            logger.info("Verification sweeper stopped")
        app.state.provider.close()
        pool.close()
        logger.info("Database connection pool closed")


app = FastAPI(
    title="talkdrove",
    description="TalkDrove API - verified signup and bot deployment over rotating credential pools",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

app.add_middleware(
    SessionMiddleware,
    secret_key=settings.session_secret_key,
    session_cookie="talkdrove-session",
    max_age=settings.session_max_age_seconds,
    same_site="lax",
)

register_exception_handlers(app)

# Include v1 API routes
app.include_router(v1_router, prefix="/v1")


@app.get("/health")
def health_check(request: Request) -> dict[str, str]:
    """
    Health check endpoint with database validation.

    Returns 200 OK if application and database are healthy.
    Raises exception if database connection fails.
    """
    pool = request.app.state.pool
    with pool.connection() as conn:
        conn.execute("SELECT 1")

    return {"status": "healthy"}
