"""Google Calendar push-notification channels and slot synchronisation.

Each doctor with a connected calendar owns one ``CalendarSync`` record
holding the watch channel and the incremental sync token.  A notification
on the channel pulls every event changed since the stored token and
mirrors it into the ``slots`` collection.  Channels live for seven days
and are renewed when they come within 48 hours of expiring.

The Google client is synchronous (httpx); its calls run in worker threads
through ``asyncio.to_thread`` so the event loop is never blocked.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any

from pydantic import ValidationError
from pymongo.errors import PyMongoError

from src.config import BACKEND_URL, WEBHOOK_SECRET
from src.database import to_object_id, utcnow
from src.models.calendar import CalendarSync, Slot
from src.repositories.calendar import CalendarSyncRepository, SlotRepository, UserRepository
from src.services.google_calendar_client import (
    GoogleCalendarAPIError,
    GoogleCalendarClient,
    SyncTokenExpiredError,
    get_google_calendar_client,
)
from src.services.webhook_utils import (
    as_naive_utc,
    calculate_expiration,
    generate_channel_id,
    is_expiring_soon,
)

logger = logging.getLogger(__name__)

CHANNEL_TTL_DAYS = 7
RENEWAL_THRESHOLD_HOURS = 48
AVAILABLE_PREFIX = "Available: "
# Private extended property stamped on events created for a booking
APPOINTMENT_ID_PROPERTY = "appointmentId"


class WebhookError(Exception):
    """A webhook operation that cannot proceed (bad user, missing channel)."""

    def __init__(self, message: str, status_code: int = 400):
        self.status_code = status_code
        super().__init__(message)


def _event_time(value: dict[str, Any]) -> datetime:
    """``start``/``end`` of a Google event as naive UTC (all-day events at midnight)."""
    raw = value.get("dateTime") or value["date"]
    return as_naive_utc(datetime.fromisoformat(raw.replace("Z", "+00:00")))


def booked_appointment_id(event: dict[str, Any]) -> str | None:
    private = (event.get("extendedProperties") or {}).get("private") or {}
    return private.get(APPOINTMENT_ID_PROPERTY)


def _event_type(event: dict[str, Any]) -> str:
    summary = event.get("summary") or ""
    if summary.startswith(AVAILABLE_PREFIX):
        return summary[len(AVAILABLE_PREFIX):] or "Appointment"
    return "Appointment"


class WebhookService:
    def __init__(
        self,
        db,
        calendar_client: GoogleCalendarClient | None = None,
        *,
        renewal_threshold_hours: float = RENEWAL_THRESHOLD_HOURS,
    ) -> None:
        self.users = UserRepository(db)
        self.syncs = CalendarSyncRepository(db)
        self.slots = SlotRepository(db)
        self.calendar = calendar_client or get_google_calendar_client()
        self.renewal_threshold_hours = renewal_threshold_hours

    async def _load_user(self, user_id: Any, *, require_calendar: bool = False) -> dict:
        oid = to_object_id(user_id)
        user = await self.users.get_by_id(oid) if oid is not None else None
        if require_calendar and (
            user is None or not user.get("googleCalendarId") or not user.get("refreshToken")
        ):
            raise WebhookError("Invalid user or calendar not connected")
        if user is None:
            raise WebhookError("User not found", status_code=404)
        return user

    # ── Channel lifecycle ────────────────────────────────────────────

    async def setup_webhook(self, user_id: Any) -> dict[str, Any]:
        """Open a new watch channel for the user's calendar."""
        user = await self._load_user(user_id, require_calendar=True)
        channel_id = generate_channel_id()
        expiration = calculate_expiration(CHANNEL_TTL_DAYS)

        response = await asyncio.to_thread(
            self.calendar.watch_events,
            user["refreshToken"],
            user["googleCalendarId"],
            channel_id=channel_id,
            address=f"{BACKEND_URL}/api/webhook/notify",
            token=WEBHOOK_SECRET,
            expiration=expiration,
        )
        initial = await asyncio.to_thread(
            self.calendar.list_events, user["refreshToken"], user["googleCalendarId"],
        )

        sync = CalendarSync(
            user_id=user["_id"],
            channel_id=channel_id,
            resource_id=response["resourceId"],
            sync_token=initial.get("nextSyncToken"),
            expiration=expiration,
        )
        await self.syncs.upsert_for_user(
            user["_id"], sync.model_dump(by_alias=True, exclude={"user_id"}),
        )
        logger.info("Webhook channel %s set up for user %s (expires %s)", channel_id, user["_id"], expiration)
        return {"channelId": channel_id, "resourceId": response["resourceId"], "expiration": expiration}

    async def renew_webhook(self, user_id: Any) -> dict[str, Any]:
        """Replace the user's channel with a fresh one."""
        oid = to_object_id(user_id)
        sync = await self.syncs.get_by_user(oid) if oid is not None else None
        if sync is None:
            raise WebhookError("Sync record not found", status_code=404)
        user = await self._load_user(oid)

        try:
            await asyncio.to_thread(
                self.calendar.stop_channel, user.get("refreshToken") or "", sync["channelId"], sync["resourceId"],
            )
        except GoogleCalendarAPIError as exc:
            logger.warning("Could not stop channel %s before renewal: %s", sync["channelId"], exc)

        result = await self.setup_webhook(oid)
        logger.info("Renewed webhook for user %s: %s → %s", oid, sync["channelId"], result["channelId"])
        return result

    async def stop_webhook(self, user_id: Any) -> bool:
        """Stop the channel and forget it; ``False`` when none exists."""
        oid = to_object_id(user_id)
        sync = await self.syncs.get_by_user(oid) if oid is not None else None
        if sync is None:
            return False
        user = await self.users.get_by_id(oid)
        if user is not None and user.get("refreshToken"):
            try:
                await asyncio.to_thread(
                    self.calendar.stop_channel, user["refreshToken"], sync["channelId"], sync["resourceId"],
                )
            except GoogleCalendarAPIError as exc:
                if exc.status_code != 404:
                    raise
                logger.warning("Channel %s was already gone at Google", sync["channelId"])
        await self.syncs.delete_for_user(oid)
        logger.info("Webhook channel %s stopped for user %s", sync["channelId"], oid)
        return True

    # ── Notifications ────────────────────────────────────────────────

    async def handle_notification(self, notification: dict[str, Any]) -> dict[str, Any]:
        """Pull the changes behind one push notification into ``slots``."""
        sync = await self.syncs.get_by_channel(notification["channelId"])
        if sync is None:
            raise WebhookError("Sync record not found", status_code=404)
        user = await self.users.get_by_id(sync["userId"])
        if user is None:
            raise WebhookError("User not found", status_code=404)

        full_resync = False
        try:
            changes = await asyncio.to_thread(
                self.calendar.list_events, user["refreshToken"], user["googleCalendarId"], sync.get("syncToken"),
            )
        except SyncTokenExpiredError:
            logger.warning("Sync token for channel %s expired; running a full resync", sync["channelId"])
            await self.syncs.save_sync_state(sync["_id"], None)
            changes = await asyncio.to_thread(
                self.calendar.list_events, user["refreshToken"], user["googleCalendarId"], None,
            )
            full_resync = True

        processed = failed = 0
        for event in changes.get("items", []):
            try:
                await self._process_event(event, user["_id"])
                processed += 1
            except (KeyError, TypeError, ValueError, ValidationError, PyMongoError):
                failed += 1
                logger.exception("Could not process calendar event %s", event.get("id"))

        await self.syncs.save_sync_state(sync["_id"], changes.get("nextSyncToken"))

        renewed = False
        if is_expiring_soon(sync["expiration"], self.renewal_threshold_hours):
            await self.renew_webhook(user["_id"])
            renewed = True

        logger.info(
            "Channel %s: %d events processed, %d failed (full_resync=%s, renewed=%s)",
            sync["channelId"], processed, failed, full_resync, renewed,
        )
        return {"processed": processed, "failed": failed, "fullResync": full_resync, "renewed": renewed}

    async def _process_event(self, event: dict[str, Any], doctor_id: Any) -> None:
        if event.get("status") == "cancelled":
            await self.slots.mark_unavailable(event["id"])
            return
        if booked_appointment_id(event):
            logger.debug("Skipping event %s owned by appointment %s", event["id"], booked_appointment_id(event))
            return

        start = _event_time(event["start"])
        end = _event_time(event["end"])
        slot = Slot(
            doctor=doctor_id,
            start_time=start,
            end_time=end,
            duration=round((end - start).total_seconds() / 60),
            type=_event_type(event),
            is_available=event.get("transparency") == "transparent",
            google_event_id=event["id"],
        )
        await self.slots.upsert_by_event(event["id"], slot.to_document())

    # ── Maintenance ──────────────────────────────────────────────────

    async def check_and_renew_expiring(self, threshold_hours: float = RENEWAL_THRESHOLD_HOURS) -> dict[str, Any]:
        """Renew every channel that expires within *threshold_hours*."""
        expiring = await self.syncs.expiring_before(utcnow() + timedelta(hours=threshold_hours))
        renewed = 0
        failed: list[dict[str, str]] = []
        for sync in expiring:
            try:
                await self.renew_webhook(sync["userId"])
                renewed += 1
            except (WebhookError, GoogleCalendarAPIError, PyMongoError) as exc:
                logger.error("Webhook renewal failed for user %s: %s", sync["userId"], exc)
                failed.append({"userId": str(sync["userId"]), "error": str(exc)})
        if expiring:
            logger.info("Webhook renewal: %d checked, %d renewed, %d failed", len(expiring), renewed, len(failed))
        return {"checked": len(expiring), "renewed": renewed, "failed": failed}

    async def get_status(self, user_id: Any) -> dict[str, Any]:
        oid = to_object_id(user_id)
        sync = await self.syncs.get_by_user(oid) if oid is not None else None
        if sync is None:
            return {"status": "not_configured"}
        hours = (as_naive_utc(sync["expiration"]) - utcnow()).total_seconds() / 3600
        return {
            "status": "active" if hours > 0 else "expired",
            "channelId": sync["channelId"],
            "resourceId": sync["resourceId"],
            "expiration": sync["expiration"],
            "lastSyncTime": sync.get("lastSyncTime"),
            "hoursUntilExpiration": round(hours, 1),
        }
