"""Booking, cancelling and rescheduling appointments on a doctor's slots.

A slot is claimed atomically before anything is written to Google, so two
patients racing for the same slot cannot both win.  The doctor's calendar
gets an opaque event for every appointment: slots synced from an
``Available: ...`` event take that event over, slots opened by hand get a
new one.  Either way the event carries the appointment id as a private
extended property, which the webhook sync uses to leave it alone.

Clients must book ahead of ``BOOKING_MIN_LEAD_HOURS`` and may only cancel
or reschedule until ``BOOKING_CHANGE_NOTICE_HOURS`` before the visit;
doctors are not bound by the notice period.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from bson import ObjectId
from pydantic import ValidationError

from src.config import BOOKING_CHANGE_NOTICE_HOURS, BOOKING_MIN_LEAD_HOURS, BOOKING_WINDOW_DAYS
from src.database import to_object_id, utcnow
from src.models.calendar import Appointment, AppointmentEvent, Slot
from src.repositories.calendar import AppointmentRepository, SlotRepository, UserRepository
from src.repositories.services import ServicePageRepository, ServiceRepository
from src.services.google_calendar_client import (
    GoogleCalendarAPIError,
    GoogleCalendarClient,
    get_google_calendar_client,
)
from src.services.webhook_service import APPOINTMENT_ID_PROPERTY, AVAILABLE_PREFIX
from src.services.webhook_utils import as_naive_utc

logger = logging.getLogger(__name__)

MAX_ADVANCE_DAYS = 365
MAX_SLOTS_LISTED = 100
REMINDERS = {
    "useDefault": False,
    "overrides": [{"method": "email", "minutes": 24 * 60}, {"method": "popup", "minutes": 60}],
}


class BookingError(Exception):
    """A booking request that cannot be honoured."""

    def __init__(self, message: str, status_code: int = 400, code: str | None = None):
        self.status_code = status_code
        self.code = code
        super().__init__(message)


def _rfc3339(value: datetime) -> str:
    return value.replace(tzinfo=UTC).isoformat().replace("+00:00", "Z")


def _calendar_connected(doctor: dict | None) -> bool:
    return bool(doctor and doctor.get("refreshToken") and doctor.get("googleCalendarId"))


def booked_event(appointment: dict, slot: dict, doctor: dict) -> dict[str, Any]:
    """Calendar event body for *appointment* in *slot*."""
    lines = [
        f"Patient: {appointment['patientName']}",
        f"Email: {appointment['patientEmail']}",
        f"Phone: {appointment.get('patientPhone') or 'N/A'}",
        f"Type: {slot.get('type', 'Appointment')}",
        f"Reason: {appointment.get('reasonForVisit') or 'Not specified'}",
    ]
    if appointment.get("client") is None:
        lines.append("\n(Booked via public widget)")
    return {
        "summary": f"Appointment: {appointment['patientName']}",
        "description": "\n".join(lines),
        "start": {"dateTime": _rfc3339(slot["startTime"])},
        "end": {"dateTime": _rfc3339(slot["endTime"])},
        "transparency": "opaque",
        "attendees": [{"email": doctor["email"]}, {"email": appointment["patientEmail"]}],
        "reminders": REMINDERS,
        "extendedProperties": {"private": {APPOINTMENT_ID_PROPERTY: str(appointment["_id"])}},
    }


def released_event(slot: dict) -> dict[str, Any]:
    """Patch that turns a booked event back into an open ``Available:`` one."""
    return {
        "summary": f"{AVAILABLE_PREFIX}{slot.get('type', 'Appointment')}",
        "description": "",
        "transparency": "transparent",
        "attendees": [],
        "extendedProperties": {"private": {APPOINTMENT_ID_PROPERTY: None}},
    }


class BookingService:
    def __init__(self, db, calendar_client: GoogleCalendarClient | None = None) -> None:
        self.users = UserRepository(db)
        self.slots = SlotRepository(db)
        self.appointments = AppointmentRepository(db)
        self.pages = ServicePageRepository(db)
        self.services = ServiceRepository(db)
        self.calendar = calendar_client or get_google_calendar_client()

    # ── Slots ────────────────────────────────────────────────────────

    async def available_slots(
        self,
        doctor_id: ObjectId,
        start: datetime | None = None,
        end: datetime | None = None,
        slot_type: str | None = None,
    ) -> list[dict]:
        """Open slots that can still be booked, earliest first.

        The window defaults to the next ``BOOKING_WINDOW_DAYS`` and is
        clamped to the booking lead time and ``MAX_ADVANCE_DAYS``.
        """
        now = utcnow()
        earliest = now + timedelta(hours=BOOKING_MIN_LEAD_HOURS)
        latest = now + timedelta(days=MAX_ADVANCE_DAYS)
        start = max(as_naive_utc(start) if start else now, earliest)
        end = min(as_naive_utc(end) if end else now + timedelta(days=BOOKING_WINDOW_DAYS), latest)
        if end < start:
            return []
        return await self.slots.available(doctor_id, start, end, slot_type=slot_type, limit=MAX_SLOTS_LISTED)

    async def create_slot(self, doctor: dict, start: datetime, end: datetime, slot_type: str) -> dict:
        start, end = as_naive_utc(start), as_naive_utc(end)
        if end <= start:
            raise BookingError("End time must be after start time", code="INVALID_SLOT_TIMES")
        if await self.slots.overlapping(doctor["_id"], start, end) is not None:
            raise BookingError("Slot overlaps with existing slot", code="SLOT_OVERLAP")
        slot = Slot(
            doctor=doctor["_id"],
            start_time=start,
            end_time=end,
            duration=round((end - start).total_seconds() / 60),
            type=slot_type,
            is_available=True,
        )
        created = await self.slots.insert(slot.to_document())
        logger.info("Doctor %s opened slot %s at %s", doctor["_id"], created["_id"], start)
        return created

    # ── Booking ──────────────────────────────────────────────────────

    async def book(
        self,
        slot_id: Any,
        patient: dict[str, Any],
        *,
        client: dict | None = None,
        service_page_id: Any = None,
    ) -> dict:
        """Book *slot_id* for *patient* (``patientName``, ``patientEmail``, ...).

        *client* is the signed-in user, if any; their name and email fill
        in missing patient details.
        """
        slot = await self.slots.get_by_id(slot_id)
        if slot is None or not slot.get("isAvailable"):
            raise BookingError("Slot not available", code="SLOT_UNAVAILABLE")
        self._check_lead_time(slot)
        if client is not None:
            patient = {
                **patient,
                "patientName": patient.get("patientName") or client.get("name"),
                "patientEmail": patient.get("patientEmail") or client.get("email"),
                "patientPhone": patient.get("patientPhone") or client.get("phone"),
            }

        appointment_id = ObjectId()
        try:
            draft = Appointment(
                slot=slot["_id"],
                doctor=slot["doctor"],
                client=client["_id"] if client else None,
                service_page_id=to_object_id(service_page_id),
                history=[AppointmentEvent(action="created", performed_by=client["_id"] if client else None)],
                **patient,
            ).to_document()
        except ValidationError as exc:
            raise BookingError(
                "Patient name and a valid email are required", status_code=422, code="INVALID_PATIENT_DETAILS",
            ) from exc
        draft["_id"] = appointment_id

        claimed = await self.slots.claim(slot["_id"], appointment_id)
        if claimed is None:
            raise BookingError("Slot was just booked by someone else", status_code=409, code="SLOT_TAKEN")

        doctor = await self.users.get_by_id(slot["doctor"])
        try:
            event_id, created_event = await self._attach_event(draft, claimed, doctor)
        except GoogleCalendarAPIError as exc:
            await self.slots.release(slot["_id"])
            logger.error("Calendar event for slot %s failed, slot released: %s", slot["_id"], exc)
            raise BookingError("Failed to create calendar event", status_code=502, code="GOOGLE_API_ERROR") from exc

        draft["createdEvent"] = created_event
        if event_id:
            draft["googleEventId"] = event_id
        appointment = await self.appointments.insert(draft)
        logger.info("Slot %s booked as appointment %s", slot["_id"], appointment_id)
        if appointment.get("servicePageId"):
            await self._count_booking(appointment["servicePageId"])
        return appointment

    async def cancel(self, appointment_id: Any, user: dict, reason: str | None = None) -> dict:
        appointment = await self._load_for(appointment_id, user)
        if appointment["status"] == "cancelled":
            raise BookingError("Appointment is already cancelled", code="ALREADY_CANCELLED")
        slot = await self.slots.get_by_id(appointment["slot"])
        self._check_notice(appointment, slot, user, "cancelled")

        now = utcnow()
        updated = await self.appointments.record(
            appointment["_id"],
            {
                "status": "cancelled",
                "cancelledBy": user["_id"],
                "cancellationReason": reason,
                "cancelledAt": now,
            },
            AppointmentEvent(action="cancelled", timestamp=now, performed_by=user["_id"], notes=reason).to_document(),
        )
        if slot is not None:
            await self._free_slot(appointment, slot)
        logger.info("Appointment %s cancelled by %s", appointment["_id"], user["_id"])
        return updated

    async def reschedule(self, appointment_id: Any, user: dict, new_slot_id: Any) -> dict:
        appointment = await self._load_for(appointment_id, user)
        new_slot = await self.slots.get_by_id(new_slot_id)
        if new_slot is None:
            raise BookingError("Appointment or slot not found", status_code=404, code="SLOT_NOT_FOUND")
        if appointment["status"] == "cancelled":
            raise BookingError("Cancelled appointments cannot be rescheduled", code="ALREADY_CANCELLED")
        if new_slot["doctor"] != appointment["doctor"] or not new_slot.get("isAvailable"):
            raise BookingError("New slot is not available", code="SLOT_UNAVAILABLE")
        old_slot = await self.slots.get_by_id(appointment["slot"])
        self._check_notice(appointment, old_slot, user, "rescheduled")
        self._check_lead_time(new_slot)

        claimed = await self.slots.claim(new_slot["_id"], appointment["_id"])
        if claimed is None:
            raise BookingError("Slot was just booked by someone else", status_code=409, code="SLOT_TAKEN")
        doctor = await self.users.get_by_id(appointment["doctor"])
        try:
            event_id, created_event = await self._attach_event(appointment, claimed, doctor)
        except GoogleCalendarAPIError as exc:
            await self.slots.release(new_slot["_id"])
            logger.error("Calendar event for slot %s failed, slot released: %s", new_slot["_id"], exc)
            raise BookingError("Failed to update calendar event", status_code=502, code="GOOGLE_API_ERROR") from exc
        if old_slot is not None:
            await self._free_slot(appointment, old_slot, doctor=doctor)

        moved_from = old_slot["startTime"] if old_slot else "an unknown slot"
        updated = await self.appointments.record(
            appointment["_id"],
            {
                "slot": new_slot["_id"],
                "status": "rescheduled",
                "googleEventId": event_id,
                "createdEvent": created_event,
            },
            AppointmentEvent(
                action="rescheduled",
                performed_by=user["_id"],
                notes=f"Rescheduled from {moved_from} to {new_slot['startTime']}",
            ).to_document(),
        )
        logger.info("Appointment %s moved to slot %s", appointment["_id"], new_slot["_id"])
        return updated

    async def list_for(self, user: dict, status: str | None = None) -> list[dict]:
        return await self.appointments.for_user(user, status=status)

    # ── Helpers ──────────────────────────────────────────────────────

    async def _load_for(self, appointment_id: Any, user: dict) -> dict:
        appointment = await self.appointments.get_by_id(appointment_id)
        if appointment is None:
            raise BookingError("Appointment not found", status_code=404, code="APPOINTMENT_NOT_FOUND")
        if user["_id"] not in (appointment.get("client"), appointment["doctor"]):
            raise BookingError("Not authorized", status_code=403, code="FORBIDDEN")
        return appointment

    @staticmethod
    def _check_lead_time(slot: dict) -> None:
        if slot["startTime"] < utcnow() + timedelta(hours=BOOKING_MIN_LEAD_HOURS):
            raise BookingError(
                f"Appointments must be booked at least {BOOKING_MIN_LEAD_HOURS:g} hours in advance",
                code="TOO_LATE_TO_BOOK",
            )

    @staticmethod
    def _check_notice(appointment: dict, slot: dict | None, user: dict, action: str) -> None:
        if slot is None or user["_id"] == appointment["doctor"]:
            return
        if utcnow() > slot["startTime"] - timedelta(hours=BOOKING_CHANGE_NOTICE_HOURS):
            raise BookingError(
                f"Appointments must be {action} at least {BOOKING_CHANGE_NOTICE_HOURS:g} hours in advance",
                code="TOO_LATE_TO_CHANGE",
            )

    async def _attach_event(self, appointment: dict, slot: dict, doctor: dict | None) -> tuple[str | None, bool]:
        """Put the appointment on the doctor's calendar; returns ``(event_id, created)``."""
        if not _calendar_connected(doctor):
            logger.info("Doctor %s has no connected calendar; booking slot %s without an event",
                        slot["doctor"], slot["_id"])
            return None, False
        body = booked_event(appointment, slot, doctor)
        if slot.get("googleEventId"):
            await asyncio.to_thread(
                self.calendar.patch_event,
                doctor["refreshToken"], doctor["googleCalendarId"], slot["googleEventId"], body,
            )
            return slot["googleEventId"], False
        event = await asyncio.to_thread(
            self.calendar.insert_event, doctor["refreshToken"], doctor["googleCalendarId"], body,
        )
        await self.slots.set_event(slot["_id"], event["id"])
        return event["id"], True

    async def _free_slot(self, appointment: dict, slot: dict, *, doctor: dict | None = None) -> None:
        """Reopen *slot*; calendar failures are logged, the slot is freed regardless."""
        event_id = slot.get("googleEventId")
        created = appointment.get("createdEvent", False)
        doctor = doctor or await self.users.get_by_id(appointment["doctor"])
        if event_id and _calendar_connected(doctor):
            try:
                if created:
                    await asyncio.to_thread(
                        self.calendar.delete_event, doctor["refreshToken"], doctor["googleCalendarId"], event_id,
                    )
                else:
                    await asyncio.to_thread(
                        self.calendar.patch_event,
                        doctor["refreshToken"], doctor["googleCalendarId"], event_id, released_event(slot),
                    )
            except GoogleCalendarAPIError as exc:
                logger.warning("Could not update calendar event %s for slot %s: %s", event_id, slot["_id"], exc)
        await self.slots.release(slot["_id"], clear_event=created)

    async def _count_booking(self, page_id: ObjectId) -> None:
        page = await self.pages.record_booking(page_id)
        if page is None:
            logger.warning("Booking referenced unknown service page %s", page_id)
            return
        await self.services.increment(page["serviceId"], "analytics.bookingCount")
