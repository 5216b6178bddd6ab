"""FastAPI application creation and configuration.

This module creates and configures the FastAPI application instance.
It registers exception handlers, request-id middleware, and routes.

Middleware Ordering (Critical):
- Middleware runs in reverse order of registration
- RequestIDMiddleware is added LAST so it runs FIRST (outermost)
- This ensures every response (including validation failures) gets X-Request-ID

Vendor Client Lifecycle:
- httpx.AsyncClient is created at startup, stored in app.state
- Every provider adapter borrows the shared client for connection pooling
- Client is closed gracefully at shutdown
"""

import json
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session, sessionmaker
from starlette.exceptions import HTTPException as StarletteHTTPException

from mentormind.api.routes import create_api_router
from mentormind.config import get_settings
from mentormind.db.session import get_session_factory
from mentormind.errors import ApiError, ApiErrorCode
from mentormind.logging import configure_logging, get_logger
from mentormind.middleware.request_id import RequestIDMiddleware
from mentormind.responses import (
    api_error_handler,
    error_response,
    http_exception_handler,
    unhandled_exception_handler,
)
from mentormind.services.llm import ConfigurationError
from mentormind.services.models import get_available_models

# Configure structured logging at import time
configure_logging()

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the shared vendor client on startup and close it on shutdown."""
    settings = get_settings()

    app.state.httpx_client = httpx.AsyncClient(
        timeout=httpx.Timeout(None, connect=settings.llm_connect_timeout_s),
        limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
    )

    logger.info(
        "chat_gateway_initialized",
        env=settings.mentormind_env.value,
        platform_models=get_available_models(settings),
    )

    yield

    await app.state.httpx_client.aclose()
    logger.info("httpx_client_closed")


async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.warning("ai_not_configured", reason=str(exc))
    return JSONResponse(
        status_code=503,
        content=error_response(ApiErrorCode.E_AI_NOT_CONFIGURED, "AI service is not configured"),
    )


def create_app(session_factory: sessionmaker[Session] | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        session_factory: Optional session factory (tests bind one to SQLite).
            Defaults to the factory for DATABASE_URL.

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title="MentorMind API",
        description="AI study mentor chat gateway with BYOK and platform models",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.session_factory = session_factory or get_session_factory()

    # Register exception handlers
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(ConfigurationError, configuration_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle request validation errors (including malformed JSON)."""
        return JSONResponse(
            status_code=400,
            content=error_response(ApiErrorCode.E_INVALID_REQUEST, "Invalid request body"),
        )

    @app.middleware("http")
    async def catch_json_decode_errors(request: Request, call_next):
        """Catch JSON decode errors before they reach route handlers."""
        if request.method in ("POST", "PUT", "PATCH"):
            content_type = request.headers.get("content-type", "")
            if "application/json" in content_type:
                body = await request.body()
                if body:
                    try:
                        json.loads(body)
                    except json.JSONDecodeError:
                        return JSONResponse(
                            status_code=400,
                            content=error_response(
                                ApiErrorCode.E_INVALID_REQUEST, "Malformed JSON body"
                            ),
                        )
        return await call_next(request)

    # Use router factory to avoid import-time settings loading
    app.include_router(create_api_router())

    return app


def add_request_id_middleware(app: FastAPI, log_requests: bool = True) -> None:
    """Add request-id middleware to the app.

    Call AFTER all other middleware is added, so it runs FIRST.

    Args:
        app: The FastAPI application.
        log_requests: Whether to log access entries for each request.
    """
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)
    logger.info("request_id_middleware_enabled")
