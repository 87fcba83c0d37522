"""Users, calendar webhook channels and the slots synced from them."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from src.database import utcnow
from src.models.common import DocumentModel, PyObjectId

UserRole = Literal["doctor", "client", "staff"]
AppointmentStatus = Literal["scheduled", "cancelled", "rescheduled", "completed"]


class User(DocumentModel):
    email: str
    google_id: str | None = None
    name: str
    picture: str | None = None
    role: UserRole = "client"
    calendar_connected: bool = False
    google_calendar_id: str | None = None
    refresh_token: str | None = None


class CalendarSync(DocumentModel):
    user_id: PyObjectId
    channel_id: str
    resource_id: str
    sync_token: str | None = None
    expiration: datetime
    last_sync_time: datetime = Field(default_factory=utcnow)


class Slot(DocumentModel):
    doctor: PyObjectId
    start_time: datetime
    end_time: datetime
    duration: int = Field(..., ge=0)
    type: str = "Appointment"
    is_available: bool = False
    # Unset for slots opened by hand until someone books them
    google_event_id: str | None = None
    created_at: datetime = Field(default_factory=utcnow)


class AppointmentEvent(DocumentModel):
    action: Literal["created", "cancelled", "rescheduled", "completed"]
    timestamp: datetime = Field(default_factory=utcnow)
    performed_by: PyObjectId | None = None
    notes: str | None = None


class Appointment(DocumentModel):
    """A booked slot.  ``client`` stays empty for bookings from the public widget."""

    slot: PyObjectId
    doctor: PyObjectId
    client: PyObjectId | None = None
    patient_name: str = Field(..., min_length=1, max_length=100)
    patient_email: str = Field(..., min_length=3, max_length=254)
    patient_phone: str | None = Field(None, max_length=40)
    reason_for_visit: str = Field("", max_length=1000)
    notes: str = Field("", max_length=2000)
    service_page_id: PyObjectId | None = None
    status: AppointmentStatus = "scheduled"
    google_event_id: str | None = None
    # True when booking inserted the calendar event rather than taking over an existing one
    created_event: bool = False
    history: list[AppointmentEvent] = Field(default_factory=list)
    cancelled_by: PyObjectId | None = None
    cancellation_reason: str | None = None
    cancelled_at: datetime | None = None
