"""Health check response schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class HealthStatus(str, Enum):
    """Health status indicators."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"


class ServiceStatus(str, Enum):
    """Connectivity of one upstream service."""

    CONNECTED = "connected"
    ERROR = "error"


class HealthResponse(BaseModel):
    """Basic health check response."""

    status: HealthStatus = Field(..., description="Overall health status")
    version: str = Field(..., description="Application version")
    timestamp: datetime = Field(..., description="Check timestamp")

    model_config = {"json_schema_extra": {"example": {
        "status": "healthy",
        "version": "0.1.0",
        "timestamp": "2026-01-30T12:00:00Z",
    }}}


class ReadinessResponse(HealthResponse):
    """Health check response with upstream connectivity."""

    services: dict[str, ServiceStatus] = Field(
        ..., description="Connectivity per upstream service"
    )

    model_config = {"json_schema_extra": {"example": {
        "status": "degraded",
        "version": "0.1.0",
        "timestamp": "2026-01-30T12:00:00Z",
        "services": {"hr_system": "connected", "engagement_system": "error"},
    }}}
