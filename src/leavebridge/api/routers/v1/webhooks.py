"""Webhook endpoints for engagement-side absence requests.

- POST /v1/webhooks/absence-request - Receive an absence request event
- GET /v1/webhooks/absence-request - Recent runs and deliveries (debugging)
"""

import hmac
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from leavebridge.api.dependencies import (
    get_app_settings,
    get_run_log_dependency,
    get_sync_engine,
)
from leavebridge.api.schemas.webhooks import WebhookLogResponse
from leavebridge.config.settings import Settings
from leavebridge.sync import InboundStatus, SyncEngine
from leavebridge.sync.run_log import RunLog

logger = structlog.get_logger()

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

SECRET_HEADER = "x-webhook-secret"


def verify_webhook_secret(
    request: Request,
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> None:
    """Check the shared secret header when a webhook secret is configured.

    Raises:
        HTTPException: 401 if the header is missing or wrong
    """
    secret = settings.engagement_webhook_secret
    if secret is None or not secret.get_secret_value():
        return
    provided = request.headers.get(SECRET_HEADER, "")
    if not hmac.compare_digest(provided.encode(), secret.get_secret_value().encode()):
        logger.warning("Rejected webhook with invalid secret")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing webhook secret",
        )


@router.get(
    "/absence-request",
    response_model=WebhookLogResponse,
    summary="Recent webhook deliveries and sync runs",
)
async def get_webhook_log(
    run_log: Annotated[RunLog, Depends(get_run_log_dependency)],
) -> WebhookLogResponse:
    """Return the in-memory run log, newest first."""
    return WebhookLogResponse(logs=[entry.to_dict() for entry in run_log.entries()])


@router.post(
    "/absence-request",
    summary="Receive an absence request event",
    dependencies=[Depends(verify_webhook_secret)],
    responses={
        200: {"description": "Event processed or ignored"},
        400: {"description": "Body is not a JSON object"},
        401: {"description": "Invalid or missing webhook secret"},
        500: {"description": "Processing failed; the request was set to ERROR"},
    },
)
async def receive_absence_request(
    request: Request,
    engine: Annotated[SyncEngine, Depends(get_sync_engine)],
) -> JSONResponse:
    """Create or cancel HR leave for an engagement-side absence request."""
    try:
        payload: Any = await request.json()
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Request body must be JSON",
        ) from None
    if not isinstance(payload, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Request body must be a JSON object",
        )

    result = await engine.handle_inbound(payload)
    status_code = 500 if result.status is InboundStatus.FAILED else 200
    return JSONResponse(content=result.to_dict(), status_code=status_code)
