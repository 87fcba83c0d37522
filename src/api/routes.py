"""Top-level API router: health check plus every feature router."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request

from src.api import auth, blogs, calendar, services, webhook, websites
from src.api.schemas import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """Health check endpoint, including a MongoDB ping."""
    db_manager = getattr(request.app.state, "db_manager", None)
    connected = db_manager is not None and await db_manager.health_check()
    if not connected:
        logger.warning("Health check: database unreachable")
    return HealthResponse(
        status="ok" if connected else "degraded",
        database="connected" if connected else "disconnected",
    )


router.include_router(auth.router)
router.include_router(services.router)
router.include_router(blogs.router)
router.include_router(websites.router)
router.include_router(webhook.router)
router.include_router(calendar.router)
