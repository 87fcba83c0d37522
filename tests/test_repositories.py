"""Tests for the MongoDB repositories (against mongomock-motor)."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from bson import ObjectId

from src.repositories.blogs import BlogRepository
from src.repositories.calendar import AppointmentRepository, SlotRepository, UserRepository
from src.repositories.services import ServicePageRepository, ServiceRepository
from src.repositories.websites import WebsiteRepository

GOOGLE_PROFILE = {"id": "g-1", "email": "dr.lee@example.com", "name": "Dr. Lee", "picture": None}


class TestBaseRepository:
    async def test_paginate(self, db):
        services = ServiceRepository(db)
        for n in range(5):
            await services.insert({"name": f"Service {n}", "isActive": True})
        items, pagination = await services.paginate({}, page=2, limit=2, sort=[("name", 1)])
        assert [i["name"] for i in items] == ["Service 2", "Service 3"]
        assert pagination == {"page": 2, "limit": 2, "total": 5, "totalPages": 3}

    async def test_invalid_ids_are_misses(self, db):
        services = ServiceRepository(db)
        assert await services.get_by_id("not-an-id") is None
        assert await services.update("not-an-id", {"x": 1}) is None
        assert await services.delete("not-an-id") is False


class TestServiceRepository:
    async def test_find_or_create_is_idempotent(self, db):
        services = ServiceRepository(db)
        first, created = await services.find_or_create("Dental Implants", keywords=["implants"])
        again, created_again = await services.find_or_create("dental implants")
        assert (created, created_again) == (True, False)
        assert again["_id"] == first["_id"]
        assert first["shortDescription"] == "Professional Dental Implants services"
        assert first["category"] == "general-dentistry"

    async def test_identifier_lookup(self, db):
        services = ServiceRepository(db)
        service, _ = await services.find_or_create("Veneers")
        assert (await services.get_by_identifier(str(service["_id"])))["slug"] == "veneers"
        assert (await services.get_by_identifier("veneers"))["_id"] == service["_id"]

    async def test_soft_delete_archives_pages(self, db):
        services = ServiceRepository(db)
        service, _ = await services.find_or_create("Veneers")
        await db.service_pages.insert_one({"serviceId": service["_id"], "status": "published"})
        await services.soft_delete(service["_id"])
        assert (await services.get_by_id(service["_id"]))["isActive"] is False
        assert (await db.service_pages.find_one({}))["status"] == "archived"

    async def test_names_without_a_slug_are_refused(self, db):
        services = ServiceRepository(db)
        with pytest.raises(ValueError):
            await services.find_or_create("Ортодонтия")
        with pytest.raises(ValueError):
            await services.find_or_create("牙齿美白")
        assert await db.dental_services.count_documents({}) == 0


class TestServicePageRepository:
    async def test_upsert_keeps_analytics_and_created_at(self, db):
        pages = ServicePageRepository(db)
        website_id, service_id = ObjectId(), ObjectId()
        page, created = await pages.upsert_for(website_id, service_id, {"title": "Implants", "slug": "implants"})
        assert created is True
        assert page["analytics"]["views"] == 0
        await pages.record_view(page["_id"])

        updated, created = await pages.upsert_for(
            website_id, service_id, {"title": "Implants in Porto", "analytics": {"views": 99}},
        )
        assert created is False
        assert updated["_id"] == page["_id"]
        assert updated["title"] == "Implants in Porto"
        assert updated["analytics"]["views"] == 1
        assert updated["createdAt"] == page["createdAt"]

    async def test_find_public_requires_publication(self, db):
        pages = ServicePageRepository(db)
        website_id = ObjectId()
        await pages.upsert_for(website_id, ObjectId(), {"slug": "draft", "status": "draft", "isActive": True})
        await pages.upsert_for(website_id, ObjectId(), {"slug": "live", "status": "published", "isActive": True})
        assert await pages.find_public(website_id, "draft") is None
        assert (await pages.find_public(website_id, "live"))["slug"] == "live"

    async def test_find_public_skips_archived_integrated_pages(self, db):
        pages = ServicePageRepository(db)
        website_id = ObjectId()
        await pages.upsert_for(
            website_id, ObjectId(), {"slug": "implants", "status": "archived", "isIntegrated": True, "isActive": True},
        )
        assert await pages.find_public(website_id, "implants") is None

    async def test_views_and_bookings_update_conversion_rate(self, db):
        pages = ServicePageRepository(db)
        page, _ = await pages.upsert_for(ObjectId(), ObjectId(), {"slug": "implants"})
        await pages.record_view(page["_id"], unique=True)
        await pages.record_view(page["_id"], unique=True)
        await pages.record_view(page["_id"])
        updated = await pages.record_booking(page["_id"])
        analytics = updated["analytics"]
        assert (analytics["views"], analytics["uniqueViews"], analytics["bookings"]) == (3, 2, 1)
        assert analytics["conversionRate"] == 50.0
        assert analytics["lastViewed"] is not None


class TestBlogRepository:
    async def test_unique_slug_per_website(self, db):
        blogs = BlogRepository(db)
        website_id = ObjectId()
        await blogs.insert({"slug": "implants-guide", "websiteId": website_id})
        await blogs.insert({"slug": "implants-guide-1", "websiteId": website_id})
        assert await blogs.unique_slug("implants-guide", website_id) == "implants-guide-2"
        assert await blogs.unique_slug("implants-guide", ObjectId()) == "implants-guide"

    async def test_upsert_generated_keeps_slug_and_counters(self, db):
        blogs = BlogRepository(db)
        website_id, service_id = ObjectId(), ObjectId()
        blog, created = await blogs.upsert_generated(
            website_id, service_id, "recovery", {"title": "First", "isPublished": True}, "implants-recovery",
        )
        await blogs.record_view(blog["_id"])
        refreshed, created_again = await blogs.upsert_generated(
            website_id, service_id, "recovery", {"title": "Second", "views": 0, "slug": "other"}, "implants-recovery",
        )
        assert (created, created_again) == (True, False)
        assert refreshed["_id"] == blog["_id"]
        assert refreshed["title"] == "Second"
        assert refreshed["slug"] == "implants-recovery"
        assert refreshed["views"] == 1

    async def test_set_published_keeps_first_date(self, db):
        blogs = BlogRepository(db)
        blog = await blogs.insert({"slug": "a", "isPublished": False})
        first = await blogs.set_published(blog["_id"], True)
        await blogs.set_published(blog["_id"], False)
        again = await blogs.set_published(blog["_id"], True)
        assert again["publishedAt"] == first["publishedAt"]


class TestWebsiteRepository:
    async def test_subdomain_availability_excludes_self(self, db):
        websites = WebsiteRepository(db)
        site = await websites.insert({"subdomain": "smile", "doctorId": ObjectId()})
        assert await websites.subdomain_available("SMILE") is False
        assert await websites.subdomain_available("smile", exclude_id=site["_id"]) is True

    async def test_get_owned(self, db):
        websites = WebsiteRepository(db)
        owner = ObjectId()
        site = await websites.insert({"subdomain": "smile", "doctorId": owner})
        assert await websites.get_owned(str(site["_id"]), owner) is not None
        assert await websites.get_owned(site["_id"], ObjectId()) is None


class TestUserRepository:
    async def test_first_sign_in_creates_user_with_role(self, db):
        users = UserRepository(db)
        user = await users.upsert_from_google(GOOGLE_PROFILE, role="doctor", refresh_token="1//r")
        assert user["role"] == "doctor"
        assert user["calendarConnected"] is True
        assert user["googleCalendarId"] == "dr.lee@example.com"

    async def test_later_sign_in_keeps_role_and_calendar(self, db):
        users = UserRepository(db)
        await users.upsert_from_google(GOOGLE_PROFILE, role="doctor", refresh_token="1//r")
        again = await users.upsert_from_google({**GOOGLE_PROFILE, "name": "Dr. A. Lee"}, role="client")
        assert again["role"] == "doctor"
        assert again["name"] == "Dr. A. Lee"
        assert again["refreshToken"] == "1//r"
        assert await db.users.count_documents({}) == 1


class TestSlotRepository:
    async def test_upsert_by_event_and_cancel(self, db):
        slots = SlotRepository(db)
        await slots.upsert_by_event("evt-1", {"duration": 30, "isAvailable": True, "googleEventId": "evt-1"})
        await slots.upsert_by_event("evt-1", {"duration": 45, "isAvailable": True})
        assert await db.slots.count_documents({}) == 1
        assert await slots.mark_unavailable("evt-1") == 1
        slot = await db.slots.find_one({"googleEventId": "evt-1"})
        assert (slot["duration"], slot["isAvailable"]) == (45, False)

    async def test_available_window_and_type(self, db):
        slots = SlotRepository(db)
        doctor = ObjectId()
        nine = datetime(2026, 3, 2, 9, 0)
        for offset, slot_type, available in [(0, "Cleaning", True), (1, "Checkup", True), (2, "Cleaning", False)]:
            start = nine + timedelta(hours=offset)
            await slots.insert({
                "doctor": doctor, "startTime": start, "endTime": start + timedelta(minutes=30),
                "type": slot_type, "isAvailable": available,
            })
        found = await slots.available(doctor, nine, nine + timedelta(hours=3))
        assert [s["type"] for s in found] == ["Cleaning", "Checkup"]
        assert len(await slots.available(doctor, nine, nine + timedelta(hours=3), slot_type="Checkup")) == 1
        assert await slots.available(ObjectId(), nine, nine + timedelta(hours=3)) == []

    async def test_overlapping(self, db):
        slots = SlotRepository(db)
        doctor = ObjectId()
        nine = datetime(2026, 3, 2, 9, 0)
        await slots.insert({"doctor": doctor, "startTime": nine, "endTime": nine + timedelta(minutes=30)})
        assert await slots.overlapping(doctor, nine + timedelta(minutes=15), nine + timedelta(minutes=45))
        assert await slots.overlapping(doctor, nine + timedelta(minutes=30), nine + timedelta(hours=1)) is None
        assert await slots.overlapping(ObjectId(), nine, nine + timedelta(minutes=30)) is None

    async def test_claim_is_first_come_first_served(self, db):
        slots = SlotRepository(db)
        slot = await slots.insert({"doctor": ObjectId(), "isAvailable": True, "googleEventId": "evt-1"})
        first, second = ObjectId(), ObjectId()
        claimed = await slots.claim(slot["_id"], first)
        assert claimed["appointmentId"] == first
        assert claimed["isAvailable"] is False
        assert await slots.claim(slot["_id"], second) is None

        await slots.release(slot["_id"], clear_event=True)
        released = await slots.get_by_id(slot["_id"])
        assert released["isAvailable"] is True
        assert "appointmentId" not in released
        assert "googleEventId" not in released


class TestAppointmentRepository:
    async def test_for_user_by_role(self, db):
        appointments = AppointmentRepository(db)
        doctor, client = {"_id": ObjectId(), "role": "doctor"}, {"_id": ObjectId(), "role": "client"}
        await appointments.insert({"doctor": doctor["_id"], "client": client["_id"], "status": "scheduled"})
        await appointments.insert({"doctor": doctor["_id"], "status": "cancelled"})
        assert len(await appointments.for_user(doctor)) == 2
        assert len(await appointments.for_user(doctor, status="cancelled")) == 1
        assert len(await appointments.for_user(client)) == 1

    async def test_record_appends_history(self, db):
        appointments = AppointmentRepository(db)
        appointment = await appointments.insert({"status": "scheduled", "history": [{"action": "created"}]})
        updated = await appointments.record(appointment["_id"], {"status": "cancelled"}, {"action": "cancelled"})
        assert updated["status"] == "cancelled"
        assert [h["action"] for h in updated["history"]] == ["created", "cancelled"]
