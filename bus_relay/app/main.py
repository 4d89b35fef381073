"""
FastAPI Application Entry Point.

This is the main application file for the Bus Location Relay.
"""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError

from bus_relay.app.core.config import settings
from bus_relay.app.core.observability import ObservabilityMiddleware, configure_logging
from bus_relay.app.core.redis_client import ping_redis
from bus_relay.app.api.v1.router import router as api_v1_router
from bus_relay.app.db.session import engine, Base
from bus_relay.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from bus_relay.app.realtime.hub import relay_hub
from bus_relay.app.services.history_pruner import history_pruner

# Import models to ensure they are registered with Base
from bus_relay.app.models.trip import Trip
from bus_relay.app.models.trip_location import TripLocation

configure_logging(settings.log_level)
logger = logging.getLogger("bus_relay")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Creates database tables on startup. The relay still serves live
       traffic when the database is down.
    2. Starts the history pruner and stops it on shutdown.
    """
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except (SQLAlchemyError, OSError) as exc:
        logger.error("Database unavailable at startup, history will not be stored: %s", exc)

    pruner_task = None
    if settings.pruner_enabled:
        pruner_task = asyncio.create_task(history_pruner.run_forever())

    yield

    if pruner_task is not None:
        pruner_task.cancel()
        with suppress(asyncio.CancelledError):
            await pruner_task
    await engine.dispose()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Real-time bus location relay between drivers and riders",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status, application information and relay counters
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "relay": relay_hub.stats(),
        "redis": await ping_redis(),
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to the Bus Location Relay API",
        "docs": "/docs",
        "health": "/health",
        "socket": f"/{settings.api_version}/ws",
    }
