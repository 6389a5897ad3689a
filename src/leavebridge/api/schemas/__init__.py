"""API request and response schemas."""

from .errors import APIError, ErrorCode
from .health import HealthResponse, HealthStatus, ReadinessResponse, ServiceStatus
from .webhooks import WebhookLogResponse

__all__ = [
    "APIError",
    "ErrorCode",
    "HealthResponse",
    "HealthStatus",
    "ReadinessResponse",
    "ServiceStatus",
    "WebhookLogResponse",
]
