"""Error response schemas for API."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    INVALID_REQUEST = "invalid_request"
    UNAUTHORIZED = "unauthorized"
    CONFIGURATION_ERROR = "configuration_error"
    SYNC_IN_PROGRESS = "sync_in_progress"
    SYNC_ERROR = "sync_error"
    UPSTREAM_ERROR = "upstream_error"
    INTERNAL_ERROR = "internal_error"


class APIError(BaseModel):
    """Standardized API error response format."""

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | None = Field(
        default=None, description="Additional error context"
    )
    timestamp: datetime = Field(..., description="When the error occurred")
