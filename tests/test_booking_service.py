"""Tests for booking, cancelling and rescheduling appointments."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from bson import ObjectId

from src.database import utcnow
from src.services.booking_service import BookingError, BookingService, booked_event
from src.services.google_calendar_client import GoogleCalendarAPIError

# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture
def calendar():
    client = MagicMock()
    client.insert_event.return_value = {"id": "evt-new"}
    client.patch_event.return_value = {}
    client.delete_event.return_value = True
    return client


@pytest.fixture
def booking(db, calendar):
    return BookingService(db, calendar)


@pytest.fixture
async def doctor(db):
    user = {
        "email": "dr.lee@example.com", "name": "Dr. Lee", "role": "doctor", "googleId": "g-1",
        "refreshToken": "1//refresh", "googleCalendarId": "dr.lee@example.com", "calendarConnected": True,
    }
    user["_id"] = (await db.users.insert_one(user)).inserted_id
    return user


@pytest.fixture
async def patient(db):
    user = {"email": "ana@example.com", "name": "Ana Silva", "role": "client", "googleId": "g-2"}
    user["_id"] = (await db.users.insert_one(user)).inserted_id
    return user


@pytest.fixture
def make_slot(booking, doctor):
    async def _make(hours_ahead: float = 72, **fields):
        start = utcnow() + timedelta(hours=hours_ahead)
        return await booking.slots.insert({
            "doctor": doctor["_id"],
            "startTime": start,
            "endTime": start + timedelta(minutes=30),
            "duration": 30,
            "type": "Cleaning",
            "isAvailable": True,
            **fields,
        })

    return _make


PATIENT = {"patientName": "Ana Silva", "patientEmail": "ana@example.com", "patientPhone": "+351 555 0101"}


# ── Slots ────────────────────────────────────────────────────────────


class TestSlots:
    async def test_available_slots_skip_the_lead_time(self, booking, doctor, make_slot):
        await make_slot(hours_ahead=0.5)
        later = await make_slot(hours_ahead=48)
        await make_slot(hours_ahead=24 * 40)
        slots = await booking.available_slots(doctor["_id"])
        assert [s["_id"] for s in slots] == [later["_id"]]

    async def test_inverted_window_is_empty(self, booking, doctor, make_slot):
        await make_slot()
        now = utcnow()
        assert await booking.available_slots(doctor["_id"], now + timedelta(days=5), now + timedelta(days=1)) == []

    async def test_create_slot_rejects_overlap(self, booking, doctor):
        start = utcnow() + timedelta(days=2)
        slot = await booking.create_slot(doctor, start, start + timedelta(minutes=45), "Checkup")
        assert (slot["duration"], slot["isAvailable"]) == (45, True)
        assert "googleEventId" not in slot
        with pytest.raises(BookingError) as exc_info:
            await booking.create_slot(doctor, start + timedelta(minutes=30), start + timedelta(hours=1), "Checkup")
        assert exc_info.value.code == "SLOT_OVERLAP"

    async def test_create_slot_rejects_inverted_times(self, booking, doctor):
        start = utcnow() + timedelta(days=2)
        with pytest.raises(BookingError) as exc_info:
            await booking.create_slot(doctor, start, start, "Checkup")
        assert exc_info.value.code == "INVALID_SLOT_TIMES"


# ── Booking ──────────────────────────────────────────────────────────


class TestBook:
    async def test_manual_slot_gets_a_new_event(self, booking, calendar, patient, make_slot):
        slot = await make_slot()
        appointment = await booking.book(slot["_id"], {}, client=patient)

        assert appointment["patientName"] == "Ana Silva"
        assert appointment["patientEmail"] == "ana@example.com"
        assert appointment["status"] == "scheduled"
        assert appointment["googleEventId"] == "evt-new"
        assert appointment["createdEvent"] is True
        assert appointment["history"][0]["action"] == "created"

        refresh_token, calendar_id, body = calendar.insert_event.call_args.args
        assert (refresh_token, calendar_id) == ("1//refresh", "dr.lee@example.com")
        assert body["transparency"] == "opaque"
        assert body["extendedProperties"]["private"]["appointmentId"] == str(appointment["_id"])

        stored = await booking.slots.get_by_id(slot["_id"])
        assert stored["isAvailable"] is False
        assert stored["googleEventId"] == "evt-new"
        assert stored["appointmentId"] == appointment["_id"]

    async def test_synced_slot_takes_over_its_event(self, booking, calendar, make_slot):
        slot = await make_slot(googleEventId="evt-open")
        appointment = await booking.book(slot["_id"], PATIENT)
        calendar.insert_event.assert_not_called()
        assert calendar.patch_event.call_args.args[2] == "evt-open"
        assert appointment["googleEventId"] == "evt-open"
        assert appointment["createdEvent"] is False
        assert "client" not in appointment

    async def test_taken_slot_is_refused(self, booking, make_slot):
        slot = await make_slot()
        await booking.book(slot["_id"], PATIENT)
        with pytest.raises(BookingError) as exc_info:
            await booking.book(slot["_id"], PATIENT)
        assert exc_info.value.code == "SLOT_UNAVAILABLE"

    async def test_lead_time(self, booking, make_slot):
        slot = await make_slot(hours_ahead=0.5)
        with pytest.raises(BookingError) as exc_info:
            await booking.book(slot["_id"], PATIENT)
        assert exc_info.value.code == "TOO_LATE_TO_BOOK"

    async def test_missing_patient_email(self, booking, make_slot):
        slot = await make_slot()
        with pytest.raises(BookingError) as exc_info:
            await booking.book(slot["_id"], {"patientName": "Ana"})
        assert exc_info.value.status_code == 422
        assert (await booking.slots.get_by_id(slot["_id"]))["isAvailable"] is True

    async def test_calendar_failure_releases_slot(self, booking, calendar, make_slot, db):
        calendar.insert_event.side_effect = GoogleCalendarAPIError("Server error 503", status_code=503)
        slot = await make_slot()
        with pytest.raises(BookingError) as exc_info:
            await booking.book(slot["_id"], PATIENT)
        assert exc_info.value.status_code == 502
        assert (await booking.slots.get_by_id(slot["_id"]))["isAvailable"] is True
        assert await db.appointments.count_documents({}) == 0

    async def test_doctor_without_calendar_books_without_event(self, booking, calendar, doctor, make_slot, db):
        await db.users.update_one({"_id": doctor["_id"]}, {"$unset": {"refreshToken": ""}})
        slot = await make_slot()
        appointment = await booking.book(slot["_id"], PATIENT)
        calendar.insert_event.assert_not_called()
        assert "googleEventId" not in appointment

    async def test_booking_counts_towards_page_analytics(self, booking, make_slot, db):
        service_id = (await db.dental_services.insert_one({"name": "Implants", "analytics": {"bookingCount": 0}})
                      ).inserted_id
        page_id = (await db.service_pages.insert_one({
            "serviceId": service_id, "analytics": {"views": 4, "uniqueViews": 4, "bookings": 0},
        })).inserted_id
        slot = await make_slot()
        await booking.book(slot["_id"], PATIENT, service_page_id=str(page_id))

        page = await db.service_pages.find_one({"_id": page_id})
        assert page["analytics"]["bookings"] == 1
        assert page["analytics"]["conversionRate"] == 25.0
        assert (await db.dental_services.find_one({"_id": service_id}))["analytics"]["bookingCount"] == 1


def test_public_bookings_are_marked_in_the_event():
    slot = {"startTime": utcnow(), "endTime": utcnow() + timedelta(minutes=30), "type": "Cleaning"}
    appointment = {"_id": ObjectId(), **PATIENT}
    body = booked_event(appointment, slot, {"email": "dr.lee@example.com"})
    assert body["summary"] == "Appointment: Ana Silva"
    assert "(Booked via public widget)" in body["description"]
    assert body["start"]["dateTime"].endswith("Z")
    assert body["attendees"] == [{"email": "dr.lee@example.com"}, {"email": "ana@example.com"}]


# ── Cancel and reschedule ────────────────────────────────────────────


class TestCancel:
    async def test_client_cancels_and_event_is_deleted(self, booking, calendar, patient, make_slot):
        slot = await make_slot()
        appointment = await booking.book(slot["_id"], {}, client=patient)
        cancelled = await booking.cancel(appointment["_id"], patient, "Feeling better")

        assert cancelled["status"] == "cancelled"
        assert cancelled["cancellationReason"] == "Feeling better"
        assert cancelled["cancelledBy"] == patient["_id"]
        assert [h["action"] for h in cancelled["history"]] == ["created", "cancelled"]
        calendar.delete_event.assert_called_once_with("1//refresh", "dr.lee@example.com", "evt-new")

        stored = await booking.slots.get_by_id(slot["_id"])
        assert stored["isAvailable"] is True
        assert "googleEventId" not in stored

    async def test_taken_over_event_is_reopened(self, booking, calendar, doctor, make_slot):
        slot = await make_slot(googleEventId="evt-open")
        appointment = await booking.book(slot["_id"], PATIENT)
        await booking.cancel(appointment["_id"], doctor)
        calendar.delete_event.assert_not_called()
        changes = calendar.patch_event.call_args.args[3]
        assert changes["summary"] == "Available: Cleaning"
        assert changes["transparency"] == "transparent"
        assert (await booking.slots.get_by_id(slot["_id"]))["googleEventId"] == "evt-open"

    async def test_client_needs_notice_but_doctor_does_not(self, booking, doctor, patient, make_slot):
        slot = await make_slot(hours_ahead=3)
        appointment = await booking.book(slot["_id"], {}, client=patient)
        with pytest.raises(BookingError) as exc_info:
            await booking.cancel(appointment["_id"], patient)
        assert exc_info.value.code == "TOO_LATE_TO_CHANGE"
        assert (await booking.cancel(appointment["_id"], doctor))["status"] == "cancelled"

    async def test_strangers_cannot_cancel(self, booking, make_slot):
        slot = await make_slot()
        appointment = await booking.book(slot["_id"], PATIENT)
        with pytest.raises(BookingError) as exc_info:
            await booking.cancel(appointment["_id"], {"_id": ObjectId(), "role": "client"})
        assert exc_info.value.status_code == 403

    async def test_calendar_failure_still_frees_slot(self, booking, calendar, doctor, make_slot):
        calendar.delete_event.side_effect = GoogleCalendarAPIError("Server error 500", status_code=500)
        slot = await make_slot()
        appointment = await booking.book(slot["_id"], PATIENT)
        await booking.cancel(appointment["_id"], doctor)
        assert (await booking.slots.get_by_id(slot["_id"]))["isAvailable"] is True

    async def test_cancelling_twice(self, booking, doctor, make_slot):
        slot = await make_slot()
        appointment = await booking.book(slot["_id"], PATIENT)
        await booking.cancel(appointment["_id"], doctor)
        with pytest.raises(BookingError) as exc_info:
            await booking.cancel(appointment["_id"], doctor)
        assert exc_info.value.code == "ALREADY_CANCELLED"


class TestReschedule:
    async def test_moves_to_new_slot(self, booking, calendar, patient, make_slot):
        old = await make_slot(hours_ahead=72)
        new = await make_slot(hours_ahead=96)
        appointment = await booking.book(old["_id"], {}, client=patient)
        calendar.insert_event.return_value = {"id": "evt-moved"}

        moved = await booking.reschedule(appointment["_id"], patient, new["_id"])
        assert moved["slot"] == new["_id"]
        assert moved["status"] == "rescheduled"
        assert moved["googleEventId"] == "evt-moved"
        assert moved["history"][-1]["action"] == "rescheduled"
        calendar.delete_event.assert_called_once_with("1//refresh", "dr.lee@example.com", "evt-new")
        assert (await booking.slots.get_by_id(old["_id"]))["isAvailable"] is True
        assert (await booking.slots.get_by_id(new["_id"]))["appointmentId"] == appointment["_id"]

    async def test_new_slot_must_be_free_and_same_doctor(self, booking, patient, make_slot):
        old = await make_slot()
        taken = await make_slot(hours_ahead=96, isAvailable=False)
        elsewhere = await make_slot(hours_ahead=100, doctor=ObjectId())
        appointment = await booking.book(old["_id"], {}, client=patient)
        for slot in (taken, elsewhere):
            with pytest.raises(BookingError) as exc_info:
                await booking.reschedule(appointment["_id"], patient, slot["_id"])
            assert exc_info.value.code == "SLOT_UNAVAILABLE"

    async def test_unknown_slot(self, booking, patient, make_slot):
        slot = await make_slot()
        appointment = await booking.book(slot["_id"], {}, client=patient)
        with pytest.raises(BookingError) as exc_info:
            await booking.reschedule(appointment["_id"], patient, ObjectId())
        assert exc_info.value.status_code == 404
