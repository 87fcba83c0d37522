"""Google sign-in and the session cookie."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from pymongo.errors import PyMongoError

from src.api.dependencies import get_calendar_client, get_db, require_auth
from src.api.errors import APIError, ok
from src.api.schemas import GoogleCallbackRequest
from src.config import GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET
from src.repositories.calendar import UserRepository
from src.services.google_calendar_client import GoogleCalendarAPIError
from src.services.webhook_service import WebhookError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

SIGN_UP_ROLES = ("doctor", "client")
_PUBLIC_USER_FIELDS = ("_id", "email", "name", "picture", "role", "calendarConnected")


def public_user(user: dict[str, Any]) -> dict[str, Any]:
    """The user as the frontend sees it (no tokens)."""
    return {k: user.get(k) for k in _PUBLIC_USER_FIELDS}


def _check_role(role: str | None) -> str:
    if role not in SIGN_UP_ROLES:
        raise APIError(400, "Invalid role specified", code="INVALID_ROLE")
    return role


async def _connect_calendar(request: Request, user: dict) -> None:
    """Open a webhook channel for a doctor who has none yet."""
    service = getattr(request.app.state, "webhook_service", None)
    if service is None or await service.syncs.get_by_user(user["_id"]) is not None:
        return
    try:
        await service.setup_webhook(user["_id"])
    except (WebhookError, GoogleCalendarAPIError) as exc:
        logger.warning("Calendar webhook setup failed for %s: %s", user["_id"], exc)


@router.get("/google/url")
async def google_auth_url(role: str = "client", calendar=Depends(get_calendar_client)):
    """Consent-screen URL; the role comes back to us as the OAuth state."""
    _check_role(role)
    if not GOOGLE_CLIENT_ID or not GOOGLE_CLIENT_SECRET:
        raise APIError(
            500, "OAuth is not configured on the server. Please contact support.", code="OAUTH_NOT_CONFIGURED",
        )
    return ok(url=calendar.build_auth_url(state=role))


@router.post("/google/callback")
async def google_callback(
    body: GoogleCallbackRequest,
    request: Request,
    db=Depends(get_db),
    calendar=Depends(get_calendar_client),
):
    role = _check_role(body.role or body.state or "client")
    try:
        tokens = await asyncio.to_thread(calendar.exchange_code, body.code)
        profile = await asyncio.to_thread(calendar.get_user_info, tokens["access_token"])
    except GoogleCalendarAPIError as exc:
        logger.warning("Google sign-in failed: %s", exc)
        raise APIError(401, "Google authentication failed", error=str(exc), code="OAUTH_FAILED") from exc

    try:
        user = await UserRepository(db).upsert_from_google(
            profile, role=role, refresh_token=tokens.get("refresh_token"),
        )
    except PyMongoError as exc:
        logger.exception("Could not save user %s", profile.get("email"))
        raise APIError(500, "Could not save user", code="USER_SAVE_FAILED") from exc

    request.session["user_id"] = str(user["_id"])
    logger.info("User %s signed in as %s", user["email"], user.get("role"))
    if user.get("role") == "doctor" and user.get("calendarConnected"):
        await _connect_calendar(request, user)
    return ok(message="Authentication successful", user=public_user(user))


@router.get("/current-user")
async def current_user(user: dict = Depends(require_auth)):
    return ok(user=public_user(user))


@router.post("/logout")
async def logout(request: Request):
    request.session.clear()
    return ok(message="Logged out successfully")
