# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI Application Factory.

This module provides the main application factory for the QuestLMS API.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.api.middleware.auth import AuthMiddleware
from src.api.middleware.context import RequestContextMiddleware
from src.api.middleware.rate_limit import limiter, rate_limit_exceeded_handler
from src.api.routes import health
from src.api.v1 import router as v1_router
from src.core.config import get_settings
from src.core.exceptions import QuestError
from src.infrastructure.cache import RedisClient, RedisError
from src.infrastructure.database.connection import (
    DatabaseError,
    close_database,
    init_database,
)
from src.infrastructure.events import (
    EventPatterns,
    get_event_bus,
    log_activity,
    register_default_handlers,
)
from src.infrastructure.realtime import RedisRoomRelay, RoomBroadcaster
from src.utils.logging import setup_logging

logger = logging.getLogger(__name__)

# Error codes for HTTP errors raised outside the domain layer
HTTP_ERROR_CODES = {
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown events for the application.
    Initializes and cleans up:
    - Database connections
    - Redis client (only when discussion fan-out is enabled)
    - Room broadcaster
    - Default event subscribers

    Args:
        app: The FastAPI application instance.

    Yields:
        None during application runtime.
    """
    settings = get_settings()
    setup_logging(settings)
    logger.info(
        "Starting QuestLMS API: environment=%s, debug=%s",
        settings.environment,
        settings.debug,
    )

    # =========================================================================
    # Startup
    # =========================================================================

    try:
        await init_database(settings)
        logger.info("Database connection initialized")
    except DatabaseError as e:
        logger.warning("Failed to initialize database connection: %s", str(e))

    relay: RedisRoomRelay | None = None
    app.state.redis = None
    if settings.discussion.redis_fanout:
        redis = RedisClient(settings)
        try:
            await redis.connect()
            app.state.redis = redis
            relay = RedisRoomRelay(redis, settings.discussion.fanout_channel_prefix)
            logger.info("Redis fan-out enabled")
        except RedisError as e:
            logger.warning("Redis unavailable, live rooms stay process-local: %s", str(e))

    broadcaster = RoomBroadcaster(relay=relay)
    await broadcaster.start()
    app.state.broadcaster = broadcaster

    event_bus = get_event_bus()
    register_default_handlers(event_bus)

    yield

    # =========================================================================
    # Shutdown
    # =========================================================================

    event_bus.unsubscribe(EventPatterns.ALL, log_activity)

    try:
        await broadcaster.close()
    except Exception as e:
        logger.warning("Error closing room broadcaster: %s", str(e))
    app.state.broadcaster = None

    if app.state.redis is not None:
        try:
            await app.state.redis.close()
            logger.info("Redis connection closed")
        except Exception as e:
            logger.warning("Error closing Redis: %s", str(e))
        app.state.redis = None

    await close_database()
    logger.info("Shutting down QuestLMS API")


async def quest_error_handler(request: Request, exc: QuestError) -> JSONResponse:
    """Translate domain errors into typed JSON responses."""
    if exc.status_code >= 500:
        logger.error("Unhandled domain error on %s: %s", request.url.path, exc)
    else:
        logger.debug("Domain error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def database_error_handler(request: Request, exc: DatabaseError) -> JSONResponse:
    """Hide database failures behind a generic 500."""
    logger.error("Database error on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={"error": "database_error", "detail": "Database operation failed"},
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed requests as invalid input."""
    return JSONResponse(
        status_code=400,
        content={
            "error": "invalid_input",
            "detail": "Invalid request data",
            "details": {"errors": jsonable_encoder(exc.errors())},
        },
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Give HTTP errors the same body shape as domain errors."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": HTTP_ERROR_CODES.get(exc.status_code, "error"), "detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    This factory function creates a new FastAPI instance with all
    middleware, routes, and configurations applied.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="QuestLMS API",
        description="Gamified learning: programs, progress, quizzes, XP and discussion rooms",
        version=health.API_VERSION,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
        # Disable automatic redirects from /path to /path/
        # This prevents 307 redirects that lose Authorization headers
        redirect_slashes=False,
    )

    # =========================================================================
    # State
    # =========================================================================
    app.state.limiter = limiter
    app.state.broadcaster = None
    app.state.redis = None

    # =========================================================================
    # Exception handlers
    # =========================================================================
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(QuestError, quest_error_handler)
    app.add_exception_handler(DatabaseError, database_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)

    # =========================================================================
    # Middleware (order matters - last added is first executed)
    # =========================================================================

    # Request context runs after auth so the learner id is bound
    app.add_middleware(RequestContextMiddleware)

    # Auth middleware - validates JWT tokens
    app.add_middleware(AuthMiddleware)

    # CORS middleware (should be last to execute first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors.origins_list,
        allow_credentials=settings.cors.allow_credentials,
        allow_methods=settings.cors.allow_methods,
        allow_headers=settings.cors.allow_headers,
    )

    # =========================================================================
    # Routes
    # =========================================================================
    app.include_router(health.router, tags=["Health"])
    app.include_router(v1_router)

    return app
