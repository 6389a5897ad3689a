"""Webhook response schemas."""

from typing import Any

from pydantic import BaseModel, Field


class WebhookLogResponse(BaseModel):
    """Recent runs and webhook deliveries, newest first."""

    logs: list[dict[str, Any]] = Field(default_factory=list)
