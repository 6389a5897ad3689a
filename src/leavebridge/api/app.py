"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from leavebridge.api.routers import health_router, v1_router
from leavebridge.api.routers.health import APP_VERSION
from leavebridge.api.schemas.errors import APIError, ErrorCode
from leavebridge.clients import BaseApiClient
from leavebridge.config.settings import Settings, get_settings
from leavebridge.core.logging import get_logger, setup_logging
from leavebridge.utils.exceptions import (
    ApiError,
    ConfigurationError,
    SyncAlreadyRunningError,
    SyncError,
)

logger = get_logger("leavebridge.api")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings override (useful for testing)

    Returns:
        Configured FastAPI application

    Example:
        # Production
        app = create_app()

        # Testing
        app = create_app(settings=Settings(ENVIRONMENT="test"))
        app.dependency_overrides[get_sync_engine] = lambda: engine

        # Run with uvicorn
        uvicorn leavebridge.api.app:create_app --factory
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="LeaveBridge API",
        description="Leave synchronization between an HR system and an engagement system",
        version=APP_VERSION,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=_lifespan,
    )

    # Store settings on app state for access in dependencies
    app.state.settings = settings
    app.state.service_clients = None
    app.state.sync_engine = None

    _configure_exception_handlers(app)
    _configure_routers(app)

    return app


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Configures logging on startup and closes the upstream HTTP clients on
    shutdown.
    """
    settings: Settings = app.state.settings
    setup_logging(log_level=settings.log_level)
    logger.info("Starting LeaveBridge API", environment=settings.ENVIRONMENT)

    missing = settings.validate_required()
    if missing:
        logger.warning("Upstream credentials incomplete", missing=missing)

    yield

    logger.info("Shutting down LeaveBridge API")
    clients = app.state.service_clients
    if clients is not None:
        for client in (clients.hr, clients.engagement):
            if isinstance(client, BaseApiClient):
                await client.aclose()


def _error_response(status_code: int, code: ErrorCode, message: str) -> JSONResponse:
    body = APIError(error_code=code.value, message=message, timestamp=datetime.now(UTC))
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def _configure_exception_handlers(app: FastAPI) -> None:
    """Map domain exceptions to standardized error responses."""

    @app.exception_handler(ConfigurationError)
    async def _configuration_error(request: Request, exc: ConfigurationError) -> JSONResponse:
        logger.error("Configuration error", path=request.url.path, error=str(exc))
        return _error_response(500, ErrorCode.CONFIGURATION_ERROR, str(exc))

    @app.exception_handler(SyncAlreadyRunningError)
    async def _sync_running(request: Request, exc: SyncAlreadyRunningError) -> JSONResponse:
        return _error_response(409, ErrorCode.SYNC_IN_PROGRESS, str(exc))

    @app.exception_handler(SyncError)
    async def _sync_error(request: Request, exc: SyncError) -> JSONResponse:
        logger.error("Sync failed", path=request.url.path, error=str(exc))
        return _error_response(500, ErrorCode.SYNC_ERROR, str(exc))

    @app.exception_handler(ApiError)
    async def _upstream_error(request: Request, exc: ApiError) -> JSONResponse:
        logger.error(
            "Upstream call failed",
            path=request.url.path,
            service=exc.service,
            status_code=exc.status_code,
            error=str(exc),
        )
        return _error_response(502, ErrorCode.UPSTREAM_ERROR, str(exc))


def _configure_routers(app: FastAPI) -> None:
    """Include all API routers.

    Args:
        app: FastAPI application
    """
    # Health check endpoints (no auth required)
    app.include_router(health_router)

    # API v1 endpoints
    app.include_router(v1_router)


# Usage: uvicorn leavebridge.api.app:app
app = create_app()
