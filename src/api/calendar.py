"""Bookable slots and the appointments made in them."""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query

from src.api.dependencies import (
    get_calendar_client,
    get_db,
    parse_object_id,
    require_auth,
    require_doctor,
)
from src.api.errors import APIError, ok
from src.api.schemas import (
    BookSlotRequest,
    CancelAppointmentRequest,
    PublicBookSlotRequest,
    RescheduleRequest,
    SlotRequest,
)
from src.models.calendar import AppointmentStatus
from src.services.booking_service import BookingError, BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calendar", tags=["calendar"])

_PATIENT_FIELDS = {"patient_name", "patient_email", "patient_phone", "reason_for_visit", "notes"}


def get_booking_service(db=Depends(get_db), calendar=Depends(get_calendar_client)) -> BookingService:
    return BookingService(db, calendar)


async def _call(operation: Awaitable[Any]) -> Any:
    try:
        return await operation
    except BookingError as exc:
        raise APIError(exc.status_code, str(exc), code=exc.code) from exc


# ── Slots ────────────────────────────────────────────────────────────


@router.get("/slots")
async def available_slots(
    doctor_id: str | None = Query(None, alias="doctorId"),
    start_date: datetime | None = Query(None, alias="startDate"),
    end_date: datetime | None = Query(None, alias="endDate"),
    appointment_type: str | None = Query(None, alias="appointmentType"),
    booking: BookingService = Depends(get_booking_service),
):
    """Open slots of one doctor, for the booking widget."""
    if not doctor_id:
        raise APIError(400, "Doctor ID is required", code="DOCTOR_ID_REQUIRED")
    slots = await booking.available_slots(
        parse_object_id(doctor_id, "doctor"), start_date, end_date, appointment_type,
    )
    return ok(slots, count=len(slots))


@router.post("/slots", status_code=201)
async def create_slot(
    body: SlotRequest,
    user: dict = Depends(require_doctor),
    booking: BookingService = Depends(get_booking_service),
):
    slot = await _call(booking.create_slot(user, body.start_time, body.end_time, body.type))
    return ok(slot, message="Slot created successfully")


@router.post("/slots/book", status_code=201)
async def book_slot(
    body: BookSlotRequest,
    user: dict = Depends(require_auth),
    booking: BookingService = Depends(get_booking_service),
):
    patient = body.model_dump(by_alias=True, exclude_none=True, include=_PATIENT_FIELDS)
    appointment = await _call(booking.book(
        parse_object_id(body.slot_id, "slot"), patient, client=user, service_page_id=body.service_page_id,
    ))
    return ok(appointment, message="Appointment booked successfully")


@router.post("/slots/book/public", status_code=201)
async def book_slot_public(
    body: PublicBookSlotRequest,
    booking: BookingService = Depends(get_booking_service),
):
    """Booking from a tenant website's widget, without signing in."""
    patient = body.model_dump(by_alias=True, exclude_none=True, include=_PATIENT_FIELDS)
    appointment = await _call(booking.book(
        parse_object_id(body.slot_id, "slot"), patient, service_page_id=body.service_page_id,
    ))
    return ok(appointment, message="Appointment booked successfully")


# ── Appointments ─────────────────────────────────────────────────────


@router.get("/appointments")
async def list_appointments(
    status: AppointmentStatus | None = None,
    user: dict = Depends(require_auth),
    booking: BookingService = Depends(get_booking_service),
):
    appointments = await booking.list_for(user, status)
    return ok(appointments, count=len(appointments))


@router.post("/appointments/{appointment_id}/cancel")
async def cancel_appointment(
    appointment_id: str,
    body: CancelAppointmentRequest | None = None,
    user: dict = Depends(require_auth),
    booking: BookingService = Depends(get_booking_service),
):
    reason = body.cancellation_reason if body else None
    appointment = await _call(booking.cancel(parse_object_id(appointment_id, "appointment"), user, reason))
    return ok(appointment, message="Appointment cancelled successfully")


@router.post("/appointments/{appointment_id}/reschedule")
async def reschedule_appointment(
    appointment_id: str,
    body: RescheduleRequest,
    user: dict = Depends(require_auth),
    booking: BookingService = Depends(get_booking_service),
):
    appointment = await _call(booking.reschedule(
        parse_object_id(appointment_id, "appointment"), user, parse_object_id(body.new_slot_id, "slot"),
    ))
    return ok(appointment, message="Appointment rescheduled successfully")
