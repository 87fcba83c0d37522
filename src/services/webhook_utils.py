"""Helpers for Google Calendar push notifications."""

from __future__ import annotations

import hashlib
import hmac
import uuid
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

from src.database import utcnow

REQUIRED_HEADERS: tuple[str, ...] = (
    "x-goog-channel-id",
    "x-goog-resource-id",
    "x-goog-resource-state",
    "x-goog-message-number",
)

_NOTIFICATION_TYPES = {"sync": "SYNC", "exists": "UPDATE", "not_exists": "DELETE"}


def generate_signature(payload: str | bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of *payload*."""
    if isinstance(payload, str):
        payload = payload.encode()
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


def verify_signature(signature: str, payload: str | bytes, secret: str) -> bool:
    """Constant-time comparison against the expected signature."""
    return hmac.compare_digest(signature.encode(), generate_signature(payload, secret).encode())


def generate_channel_id() -> str:
    return str(uuid.uuid4())


def calculate_expiration(days: int = 7) -> datetime:
    return utcnow() + timedelta(days=days)


def _lower(headers: Mapping[str, str]) -> dict[str, str]:
    return {k.lower(): v for k, v in headers.items()}


def validate_headers(headers: Mapping[str, str]) -> bool:
    lowered = _lower(headers)
    return all(lowered.get(name) for name in REQUIRED_HEADERS)


def get_notification_type(headers: Mapping[str, str]) -> str:
    return _NOTIFICATION_TYPES.get(_lower(headers).get("x-goog-resource-state", ""), "UNKNOWN")


def parse_notification(headers: Mapping[str, str]) -> dict[str, Any]:
    """The channel metadata Google sends in ``X-Goog-*`` headers."""
    lowered = _lower(headers)
    try:
        message_number = int(lowered.get("x-goog-message-number", "0"))
    except ValueError:
        message_number = 0
    return {
        "channelId": lowered.get("x-goog-channel-id"),
        "resourceId": lowered.get("x-goog-resource-id"),
        "resourceState": lowered.get("x-goog-resource-state"),
        "messageNumber": message_number,
        "channelToken": lowered.get("x-goog-channel-token"),
        "type": get_notification_type(lowered),
        "timestamp": utcnow().isoformat(),
    }


def as_naive_utc(value: datetime) -> datetime:
    """Stored datetimes are naive UTC; convert aware values to match."""
    if value.tzinfo is not None:
        return value.astimezone(UTC).replace(tzinfo=None)
    return value


def is_expiring_soon(expiration: datetime, threshold_hours: float = 24) -> bool:
    return as_naive_utc(expiration) - utcnow() <= timedelta(hours=threshold_hours)
