"""Tenant websites."""

from __future__ import annotations

from typing import Any

from bson import ObjectId
from pymongo import DESCENDING

from src.database import BLOGS, SERVICE_PAGES, WEBSITES, to_object_id, utcnow
from src.repositories.base import BaseRepository


class WebsiteRepository(BaseRepository):
    collection_name = WEBSITES

    async def subdomain_available(self, subdomain: str, exclude_id: ObjectId | None = None) -> bool:
        query: dict[str, Any] = {"subdomain": subdomain.lower()}
        if exclude_id is not None:
            query["_id"] = {"$ne": exclude_id}
        return await self.collection.find_one(query, {"_id": 1}) is None

    async def list_for_doctor(
        self, doctor_id: ObjectId, *, status: str | None = None, page: int = 1, limit: int = 20,
    ) -> tuple[list[dict], dict[str, int]]:
        query: dict[str, Any] = {"doctorId": doctor_id}
        if status:
            query["status"] = status
        return await self.paginate(query, page=page, limit=limit, sort=[("updatedAt", DESCENDING)])

    async def get_owned(self, website_id: Any, doctor_id: ObjectId) -> dict | None:
        oid = to_object_id(website_id)
        if oid is None:
            return None
        return await self.collection.find_one({"_id": oid, "doctorId": doctor_id})

    async def set_status(self, website_id: ObjectId, status: str) -> dict | None:
        changes: dict[str, Any] = {"status": status}
        if status == "published":
            current = await self.get_by_id(website_id)
            if current is None:
                return None
            changes["publishedAt"] = current.get("publishedAt") or utcnow()
        return await self.update(website_id, changes)

    async def delete_with_content(self, website_id: ObjectId) -> dict[str, int]:
        """Remove the website together with its pages and blogs."""
        pages = await self.db[SERVICE_PAGES].delete_many({"websiteId": website_id})
        blogs = await self.db[BLOGS].delete_many({"websiteId": website_id})
        await self.delete(website_id)
        return {"servicePages": pages.deleted_count, "blogs": blogs.deleted_count}
