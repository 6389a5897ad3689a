"""Sync API endpoints.

Each endpoint runs one sync step and answers with its result:
- /v1/sync/absences - Notify-before-replace absence sync
- /v1/sync/approval-check - Poll for new HR decisions and notify them
- /v1/sync/policies - Leave reasons to absence policies
- /v1/sync/balances - Leave balances
- /v1/sync/all - Policies, balances, then absences

GET is accepted alongside POST so the endpoints can be driven by cron
services that only issue GET requests.
"""

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from leavebridge.api.dependencies import get_sync_engine
from leavebridge.sync import SyncEngine

logger = structlog.get_logger()

router = APIRouter(prefix="/sync", tags=["sync"])

SYNC_METHODS = ["GET", "POST"]


@router.api_route(
    "/absences",
    methods=SYNC_METHODS,
    summary="Run a full absence sync",
    responses={500: {"description": "The sync session failed"}},
)
async def sync_absences(
    engine: Annotated[SyncEngine, Depends(get_sync_engine)],
) -> JSONResponse:
    """Fire approve/reject notifications, then replace downstream absences."""
    result = await engine.run_full_sync()
    return JSONResponse(
        content=result.to_dict(),
        status_code=200 if result.succeeded else 500,
    )


@router.api_route(
    "/approval-check",
    methods=SYNC_METHODS,
    summary="Check for new HR decisions",
)
async def approval_check(
    engine: Annotated[SyncEngine, Depends(get_sync_engine)],
) -> dict[str, Any]:
    """Approve or reject downstream requests decided in the HR system."""
    result = await engine.run_approval_check()
    return result.to_dict()


@router.api_route(
    "/policies",
    methods=SYNC_METHODS,
    summary="Sync absence policies",
)
async def sync_policies(
    engine: Annotated[SyncEngine, Depends(get_sync_engine)],
) -> dict[str, Any]:
    """Upsert policies from HR leave reasons and assign them to users."""
    result = await engine.sync_policies()
    return {"status": "ok", **result.to_dict()}


@router.api_route(
    "/balances",
    methods=SYNC_METHODS,
    summary="Sync leave balances",
)
async def sync_balances(
    engine: Annotated[SyncEngine, Depends(get_sync_engine)],
) -> dict[str, Any]:
    """Push each mapped employee's leave balance."""
    result = await engine.sync_balances()
    return {"status": "ok", **result.to_dict()}


@router.api_route(
    "/all",
    methods=SYNC_METHODS,
    summary="Run every sync step",
)
async def sync_all(
    engine: Annotated[SyncEngine, Depends(get_sync_engine)],
) -> dict[str, Any]:
    """Run policies, balances and absences; step failures are reported inline."""
    logger.info("Running combined sync")
    result = await engine.run_all()
    return result.to_dict()
