"""Users, webhook channels, calendar slots and the appointments booked into them."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from src.database import APPOINTMENTS, CALENDAR_SYNCS, SLOTS, USERS, to_object_id, utcnow
from src.repositories.base import BaseRepository


class UserRepository(BaseRepository):
    collection_name = USERS

    async def get_by_google_id(self, google_id: str) -> dict | None:
        return await self.collection.find_one({"googleId": google_id})

    async def upsert_from_google(self, profile: dict[str, Any], *, role: str | None = None,
                                 refresh_token: str | None = None) -> dict:
        """Create or refresh the user behind a Google sign-in."""
        now = utcnow()
        changes: dict[str, Any] = {
            "email": profile["email"],
            "name": profile.get("name") or profile["email"],
            "picture": profile.get("picture"),
            "updatedAt": now,
        }
        if refresh_token:
            changes["refreshToken"] = refresh_token
            changes["calendarConnected"] = True
            changes["googleCalendarId"] = profile["email"]
        on_insert: dict[str, Any] = {"createdAt": now, "role": role or "client"}
        if not refresh_token:
            on_insert["calendarConnected"] = False
        return await self.collection.find_one_and_update(
            {"googleId": profile["id"]},
            {"$set": changes, "$setOnInsert": on_insert},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )


class CalendarSyncRepository(BaseRepository):
    collection_name = CALENDAR_SYNCS

    async def get_by_user(self, user_id: ObjectId) -> dict | None:
        return await self.collection.find_one({"userId": user_id})

    async def get_by_channel(self, channel_id: str) -> dict | None:
        return await self.collection.find_one({"channelId": channel_id})

    async def upsert_for_user(self, user_id: ObjectId, fields: dict[str, Any]) -> dict:
        return await self.collection.find_one_and_update(
            {"userId": user_id},
            {"$set": {**fields, "updatedAt": utcnow()}, "$setOnInsert": {"createdAt": utcnow()}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )

    async def save_sync_state(self, sync_id: ObjectId, sync_token: str | None) -> None:
        await self.collection.update_one(
            {"_id": sync_id},
            {"$set": {"syncToken": sync_token, "lastSyncTime": utcnow(), "updatedAt": utcnow()}},
        )

    async def delete_for_user(self, user_id: ObjectId) -> bool:
        result = await self.collection.delete_one({"userId": user_id})
        return result.deleted_count == 1

    async def expiring_before(self, deadline: datetime) -> list[dict]:
        return await self.find({"expiration": {"$lte": deadline}}, sort=[("expiration", ASCENDING)])

    async def stale_since(self, cutoff: datetime) -> list[dict]:
        return await self.find({"lastSyncTime": {"$lt": cutoff}})

    async def all(self) -> list[dict]:
        return await self.find({})


class SlotRepository(BaseRepository):
    collection_name = SLOTS

    async def upsert_by_event(self, google_event_id: str, fields: dict[str, Any]) -> dict:
        """Mirror a calendar event; a booked slot never turns available again from here."""
        fields = {k: v for k, v in fields.items() if k not in ("googleEventId", "createdAt")}
        available = fields.pop("isAvailable", None)
        slot = await self.collection.find_one_and_update(
            {"googleEventId": google_event_id},
            {"$set": fields, "$setOnInsert": {"createdAt": utcnow()}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        if available is None or slot.get("appointmentId"):
            return slot
        updated = await self.collection.find_one_and_update(
            {"_id": slot["_id"], "appointmentId": None},
            {"$set": {"isAvailable": available}},
            return_document=ReturnDocument.AFTER,
        )
        return updated or slot

    async def mark_unavailable(self, google_event_id: str) -> int:
        result = await self.collection.update_many(
            {"googleEventId": google_event_id}, {"$set": {"isAvailable": False}},
        )
        return result.modified_count

    async def available(
        self,
        doctor_id: ObjectId,
        start: datetime,
        end: datetime,
        *,
        slot_type: str | None = None,
        limit: int = 100,
    ) -> list[dict]:
        query: dict[str, Any] = {
            "doctor": doctor_id,
            "isAvailable": True,
            "startTime": {"$gte": start, "$lte": end},
        }
        if slot_type:
            query["type"] = slot_type
        return await self.find(query, sort=[("startTime", ASCENDING)], limit=limit)

    async def overlapping(self, doctor_id: ObjectId, start: datetime, end: datetime) -> dict | None:
        return await self.collection.find_one(
            {"doctor": doctor_id, "startTime": {"$lt": end}, "endTime": {"$gt": start}},
        )

    async def claim(self, slot_id: Any, appointment_id: ObjectId) -> dict | None:
        """Take an available slot for *appointment_id*; ``None`` if someone got there first."""
        oid = to_object_id(slot_id)
        if oid is None:
            return None
        return await self.collection.find_one_and_update(
            {"_id": oid, "isAvailable": True},
            {"$set": {"isAvailable": False, "appointmentId": appointment_id, "updatedAt": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )

    async def release(self, slot_id: ObjectId, *, clear_event: bool = False) -> None:
        unset: dict[str, str] = {"appointmentId": ""}
        if clear_event:
            unset["googleEventId"] = ""
        await self.collection.update_one(
            {"_id": slot_id},
            {"$set": {"isAvailable": True, "updatedAt": utcnow()}, "$unset": unset},
        )

    async def set_event(self, slot_id: ObjectId, google_event_id: str) -> None:
        await self.collection.update_one({"_id": slot_id}, {"$set": {"googleEventId": google_event_id}})


class AppointmentRepository(BaseRepository):
    collection_name = APPOINTMENTS

    async def for_user(self, user: dict, *, status: str | None = None) -> list[dict]:
        """Doctors see the appointments booked with them, everyone else their own."""
        field = "doctor" if user.get("role") == "doctor" else "client"
        query: dict[str, Any] = {field: user["_id"]}
        if status:
            query["status"] = status
        return await self.find(query, sort=[("createdAt", DESCENDING)])

    async def record(self, appointment_id: ObjectId, changes: dict[str, Any], event: dict[str, Any]) -> dict | None:
        """``$set`` *changes* and append *event* to the history in one write."""
        return await self.collection.find_one_and_update(
            {"_id": appointment_id},
            {"$set": {**changes, "updatedAt": utcnow()}, "$push": {"history": event}},
            return_document=ReturnDocument.AFTER,
        )
