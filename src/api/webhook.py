"""Google Calendar webhook channel management and the push endpoint."""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import PlainTextResponse
from pymongo.errors import PyMongoError

from src.api.dependencies import (
    get_webhook_monitor,
    get_webhook_service,
    require_auth,
    require_doctor,
)
from src.api.errors import APIError, ok
from src.config import WEBHOOK_RATE_LIMIT_PER_MINUTE, WEBHOOK_SECRET
from src.services.google_calendar_client import GoogleCalendarAPIError
from src.services.rate_limiter import RateLimiter
from src.services.webhook_service import WebhookError, WebhookService
from src.services.webhook_utils import parse_notification, validate_headers, verify_signature

logger = logging.getLogger(__name__)

webhook_limiter = RateLimiter(default_limit=WEBHOOK_RATE_LIMIT_PER_MINUTE)


def throttle_webhooks(request: Request) -> None:
    """At most ``WEBHOOK_RATE_LIMIT_PER_MINUTE`` requests per client IP."""
    client_ip = request.client.host if request.client else "unknown"
    if not webhook_limiter.hit(client_ip):
        logger.warning("Webhook rate limit exceeded for %s", client_ip)
        raise APIError(429, "Too many webhook requests, please try again later.", code="RATE_LIMITED")


router = APIRouter(prefix="/webhook", tags=["webhook"], dependencies=[Depends(throttle_webhooks)])


async def _call(action: str, operation: Awaitable[Any]) -> Any:
    try:
        return await operation
    except WebhookError as exc:
        raise APIError(exc.status_code, str(exc)) from exc
    except GoogleCalendarAPIError as exc:
        logger.error("Failed to %s: %s", action, exc)
        raise APIError(502, f"Failed to {action}", error=str(exc), code="GOOGLE_API_ERROR") from exc


async def _process_notification(service: WebhookService, notification: dict[str, Any]) -> None:
    """Background half of ``/notify``; failures are logged, Google already got its 200."""
    try:
        await service.handle_notification(notification)
    except (WebhookError, GoogleCalendarAPIError, PyMongoError):
        logger.exception("Could not process notification for channel %s", notification.get("channelId"))


# ── Channel management ───────────────────────────────────────────────


@router.post("/setup")
async def setup_webhook(user: dict = Depends(require_doctor), service=Depends(get_webhook_service)):
    result = await _call("set up webhook", service.setup_webhook(user["_id"]))
    return ok(result, message="Webhook set up successfully")


@router.post("/renew")
async def renew_webhook(user: dict = Depends(require_doctor), service=Depends(get_webhook_service)):
    result = await _call("renew webhook", service.renew_webhook(user["_id"]))
    return ok(result, message="Webhook renewed successfully")


@router.post("/stop")
async def stop_webhook(user: dict = Depends(require_doctor), service=Depends(get_webhook_service)):
    stopped = await _call("stop webhook", service.stop_webhook(user["_id"]))
    if not stopped:
        raise APIError(404, "No active webhook found")
    return ok(message="Webhook stopped successfully")


@router.get("/status")
async def webhook_status(user: dict = Depends(require_auth), service=Depends(get_webhook_service)):
    return ok(await service.get_status(user["_id"]))


@router.post("/check-and-renew")
async def check_and_renew(user: dict = Depends(require_doctor), service=Depends(get_webhook_service)):
    result = await service.check_and_renew_expiring()
    return ok(result, message=f"Renewed {result['renewed']} of {result['checked']} expiring webhooks")


@router.get("/health")
async def webhook_health(monitor=Depends(get_webhook_monitor)):
    health = await monitor.get_health_status()
    return ok({**health, "monitor": monitor.get_status()})


# ── Google push endpoint ─────────────────────────────────────────────


@router.post("/notify")
async def notify(
    request: Request,
    background_tasks: BackgroundTasks,
    service=Depends(get_webhook_service),
):
    """Acknowledge a Google push notification and sync it in the background."""
    headers = request.headers
    if not validate_headers(headers):
        logger.warning("Rejected webhook with missing X-Goog-* headers from %s", request.client)
        raise APIError(400, "Invalid webhook headers")

    signature = headers.get("x-goog-signature")
    if signature is not None and not verify_signature(signature, await request.body(), WEBHOOK_SECRET):
        logger.warning("Rejected webhook with a bad signature for channel %s", headers.get("x-goog-channel-id"))
        raise APIError(401, "Invalid webhook signature")

    notification = parse_notification(headers)
    if notification["type"] == "SYNC":
        logger.info("Channel %s confirmed by Google", notification["channelId"])
    else:
        background_tasks.add_task(_process_notification, service, notification)
    return PlainTextResponse("OK")
