"""Dental service catalog and per-website service pages."""

from __future__ import annotations

import logging
from typing import Any

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from src.database import DENTAL_SERVICES, SERVICE_PAGES, slugify, to_object_id, utcnow
from src.models.common import CATEGORY_NAMES
from src.models.service import DentalService, conversion_rate
from src.repositories.base import BaseRepository, contains

logger = logging.getLogger(__name__)

_IMMUTABLE_PAGE_FIELDS = ("_id", "websiteId", "serviceId", "analytics", "createdAt")


class ServiceRepository(BaseRepository):
    collection_name = DENTAL_SERVICES

    async def list(
        self,
        *,
        category: str | None = None,
        search: str | None = None,
        is_active: bool | None = True,
        is_popular: bool | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[dict], dict[str, int]]:
        query: dict[str, Any] = {}
        if is_active is not None:
            query["isActive"] = is_active
        if category:
            query["category"] = category
        if is_popular is not None:
            query["isPopular"] = is_popular
        if search:
            query["$or"] = [
                {"name": contains(search)},
                {"shortDescription": contains(search)},
                {"seo.keywords": contains(search)},
            ]
        return await self.paginate(query, page=page, limit=limit, sort=[("name", ASCENDING)])

    async def search(self, text: str, categories: list[str] | None = None, limit: int = 20) -> list[dict]:
        query: dict[str, Any] = {
            "isActive": True,
            "$or": [
                {"name": contains(text)},
                {"shortDescription": contains(text)},
                {"fullDescription": contains(text)},
                {"seo.keywords": contains(text)},
            ],
        }
        if categories:
            query["category"] = {"$in": categories}
        return await self.find(query, sort=[("isPopular", DESCENDING), ("name", ASCENDING)], limit=limit)

    async def popular(self, limit: int = 10) -> list[dict]:
        return await self.find(
            {"isActive": True, "isPopular": True},
            sort=[("analytics.viewCount", DESCENDING), ("name", ASCENDING)],
            limit=limit,
        )

    async def by_category(self, category: str) -> list[dict]:
        return await self.find({"isActive": True, "category": category}, sort=[("name", ASCENDING)])

    async def category_counts(self) -> list[dict[str, Any]]:
        counts: dict[str, int] = {}
        for doc in await self.find({"isActive": True}):
            counts[doc.get("category")] = counts.get(doc.get("category"), 0) + 1
        return [
            {"id": key, "name": name, "count": counts.get(key, 0)}
            for key, name in CATEGORY_NAMES.items()
        ]

    async def get_by_slug(self, slug: str) -> dict | None:
        return await self.collection.find_one({"slug": slug, "isActive": True})

    async def get_by_identifier(self, identifier: str) -> dict | None:
        """Look a service up by ObjectId first, then by slug."""
        doc = await self.get_by_id(identifier)
        return doc or await self.get_by_slug(identifier)

    async def find_or_create(
        self,
        name: str,
        *,
        category: str | None = None,
        description: str | None = None,
        keywords: list[str] | None = None,
    ) -> tuple[dict, bool]:
        """Return ``(service, created)`` for the catalog entry named *name*."""
        slug = slugify(name)
        if not slug:
            raise ValueError(f"Service name {name!r} has no Latin letters or digits to build a slug from")
        existing = await self.collection.find_one({"slug": slug})
        if existing is not None:
            return existing, False
        service = DentalService(
            name=name,
            category=category or "general-dentistry",
            short_description=(description or f"Professional {name} services")[:200],
            seo={"keywords": keywords or []},
        )
        created = await self.insert(service.to_document())
        logger.info("Created dental service %s (%s)", created["slug"], created["_id"])
        return created, True

    async def record_view(self, service_id: Any) -> dict | None:
        return await self.increment(service_id, "analytics.viewCount", {"analytics.lastViewed": utcnow()})

    async def soft_delete(self, service_id: ObjectId) -> None:
        await self.update(service_id, {"isActive": False})
        await self.db[SERVICE_PAGES].update_many(
            {"serviceId": service_id}, {"$set": {"status": "archived", "updatedAt": utcnow()}},
        )

    async def hard_delete(self, service_id: ObjectId) -> int:
        """Delete the service and its pages; returns the number of pages removed."""
        pages = await self.db[SERVICE_PAGES].delete_many({"serviceId": service_id})
        await self.delete(service_id)
        return pages.deleted_count


class ServicePageRepository(BaseRepository):
    collection_name = SERVICE_PAGES

    async def get_for(self, website_id: ObjectId, service_id: ObjectId) -> dict | None:
        return await self.collection.find_one({"websiteId": website_id, "serviceId": service_id})

    async def upsert_for(
        self, website_id: ObjectId, service_id: ObjectId, fields: dict[str, Any],
    ) -> tuple[dict, bool]:
        """Create or update the page for *(website_id, service_id)*.

        Returns ``(page, created)``.  Analytics and ``createdAt`` survive an
        update; everything in *fields* is overwritten.
        """
        now = utcnow()
        fields = {k: v for k, v in fields.items() if k not in _IMMUTABLE_PAGE_FIELDS}
        existing = await self.get_for(website_id, service_id)
        page = await self.collection.find_one_and_update(
            {"websiteId": website_id, "serviceId": service_id},
            {
                "$set": {**fields, "updatedAt": now},
                "$setOnInsert": {
                    "createdAt": now,
                    "analytics": {"views": 0, "uniqueViews": 0, "bookings": 0, "conversionRate": 0.0},
                },
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return page, existing is None

    async def list(
        self,
        *,
        doctor_id: ObjectId | None = None,
        website_id: Any = None,
        status: str | None = None,
        is_integrated: bool | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[dict], dict[str, int]]:
        query: dict[str, Any] = {}
        if doctor_id is not None:
            query["doctorId"] = doctor_id
        if website_id is not None:
            oid = to_object_id(website_id)
            query["websiteId"] = oid if oid is not None else website_id
        if status:
            query["status"] = status
        if is_integrated is not None:
            query["isIntegrated"] = is_integrated
        return await self.paginate(query, page=page, limit=limit, sort=[("updatedAt", DESCENDING)])

    async def find_public(self, website_id: ObjectId, slug: str) -> dict | None:
        """A published (or integrated) page of *website_id* by slug; archived pages never match."""
        return await self.collection.find_one({
            "websiteId": website_id,
            "slug": slug,
            "isActive": True,
            "status": {"$ne": "archived"},
            "$or": [{"status": "published"}, {"isIntegrated": True}],
        })

    async def record_view(self, page_id: Any, *, unique: bool = False) -> dict | None:
        """Count a view (and a unique visitor when *unique*), refreshing the conversion rate."""
        counters = {"analytics.views": 1}
        if unique:
            counters["analytics.uniqueViews"] = 1
        return await self._bump(page_id, counters, {"analytics.lastViewed": utcnow()})

    async def record_booking(self, page_id: Any) -> dict | None:
        return await self._bump(page_id, {"analytics.bookings": 1})

    async def _bump(
        self, page_id: Any, counters: dict[str, int], extra: dict[str, Any] | None = None,
    ) -> dict | None:
        oid = to_object_id(page_id)
        if oid is None:
            return None
        update: dict[str, Any] = {"$inc": counters}
        if extra:
            update["$set"] = extra
        page = await self.collection.find_one_and_update(
            {"_id": oid}, update, return_document=ReturnDocument.AFTER,
        )
        if page is None:
            return None
        analytics = page.get("analytics") or {}
        rate = conversion_rate(analytics.get("bookings", 0), analytics.get("uniqueViews", 0))
        if analytics.get("conversionRate") != rate:
            await self.collection.update_one({"_id": oid}, {"$set": {"analytics.conversionRate": rate}})
            analytics["conversionRate"] = rate
        return page
