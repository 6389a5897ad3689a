"""Health check endpoints."""

import asyncio
from datetime import UTC, datetime
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from leavebridge.api.dependencies import ServiceClients, get_service_clients
from leavebridge.api.schemas.health import (
    HealthResponse,
    HealthStatus,
    ReadinessResponse,
    ServiceStatus,
)

logger = structlog.get_logger()

router = APIRouter(tags=["health"])

# Keep in sync with pyproject.toml
APP_VERSION = "0.1.0"


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Basic health check",
    description="Returns basic liveness status. No authentication required.",
)
async def health_check() -> HealthResponse:
    """Basic liveness check endpoint.

    Returns 200 if the application is running, regardless of upstream
    connectivity. Use /health/ready for the connectivity check.
    """
    return HealthResponse(
        status=HealthStatus.HEALTHY,
        version=APP_VERSION,
        timestamp=datetime.now(UTC),
    )


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    summary="Upstream connectivity check",
    description="Checks both upstream systems. Answers 503 when either is unreachable.",
    responses={503: {"model": ReadinessResponse, "description": "Degraded"}},
)
async def health_ready(
    clients: Annotated[ServiceClients, Depends(get_service_clients)],
) -> JSONResponse:
    """Check connectivity to the HR system and the engagement system."""
    hr_ok, engagement_ok = await asyncio.gather(
        _check(clients.hr, "hr_system"),
        _check(clients.engagement, "engagement_system"),
    )
    healthy = hr_ok and engagement_ok

    response = ReadinessResponse(
        status=HealthStatus.HEALTHY if healthy else HealthStatus.DEGRADED,
        version=APP_VERSION,
        timestamp=datetime.now(UTC),
        services={
            "hr_system": ServiceStatus.CONNECTED if hr_ok else ServiceStatus.ERROR,
            "engagement_system": (
                ServiceStatus.CONNECTED if engagement_ok else ServiceStatus.ERROR
            ),
        },
    )
    return JSONResponse(
        content=response.model_dump(mode="json"),
        status_code=200 if healthy else 503,
    )


async def _check(client: object, name: str) -> bool:
    try:
        return bool(await client.health_check())  # type: ignore[attr-defined]
    except Exception as e:
        logger.warning("Health check raised", service=name, error=str(e))
        return False
