"""API v1 routers."""

from fastapi import APIRouter

from .sync import router as sync_router
from .webhooks import router as webhooks_router

# Create v1 router that includes all v1 endpoints
router = APIRouter(prefix="/v1")

router.include_router(sync_router)
router.include_router(webhooks_router)

__all__ = ["router", "sync_router", "webhooks_router"]
