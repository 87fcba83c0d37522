"""Request-scoped dependencies: app-state resources and session auth."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from bson import ObjectId
from fastapi import Depends, HTTPException, Request

from src.api.errors import APIError
from src.database import to_object_id
from src.repositories.calendar import UserRepository


def _state(request: Request, name: str, label: str) -> Any:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=503,
            detail=f"The {label} is still starting up. Please try again in a moment.",
        )
    return value


def get_db(request: Request):
    """The motor database opened in the lifespan."""
    return _state(request, "db", "database")


def get_llm_service(request: Request):
    return _state(request, "llm_service", "content generator")


def get_webhook_service(request: Request):
    return _state(request, "webhook_service", "calendar webhook service")


def get_webhook_monitor(request: Request):
    return _state(request, "webhook_monitor", "webhook monitor")


def get_calendar_client(request: Request):
    return _state(request, "calendar_client", "Google Calendar client")


def parse_object_id(value: Any, label: str = "resource") -> ObjectId:
    oid = to_object_id(value)
    if oid is None:
        raise APIError(400, f"Invalid {label} ID", code=f"INVALID_{label.upper().replace(' ', '_')}_ID")
    return oid


# ── Session auth ─────────────────────────────────────────────────────

def get_session_user(request: Request) -> str:
    """The user id stored in the session cookie, or 401."""
    user_id = request.session.get("user_id") if "session" in request.scope else None
    if not user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user_id


async def require_auth(user_id: str = Depends(get_session_user), db=Depends(get_db)) -> dict:
    user = await UserRepository(db).get_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def require_role(*roles: str) -> Callable[..., Awaitable[dict]]:
    async def dependency(user: dict = Depends(require_auth)) -> dict:
        if user.get("role") not in roles:
            raise HTTPException(status_code=403, detail="Access denied")
        return user

    return dependency


require_doctor = require_role("doctor")
