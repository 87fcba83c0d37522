"""Blog articles."""

from __future__ import annotations

import logging
from typing import Any

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument

from src.database import BLOGS, to_object_id, utcnow
from src.repositories.base import BaseRepository, contains

logger = logging.getLogger(__name__)

# Fields returned for blog cards (lists, related, search)
CARD_PROJECTION = {
    "title": 1, "slug": 1, "introduction": 1, "readingTime": 1, "tags": 1,
    "publishedAt": 1, "author": 1, "category": 1, "blogType": 1, "featured": 1,
}
_NEWEST_FIRST = [("publishedAt", DESCENDING), ("createdAt", DESCENDING)]


class BlogRepository(BaseRepository):
    collection_name = BLOGS

    async def list(
        self,
        *,
        page: int = 1,
        limit: int = 10,
        category: str | None = None,
        featured: bool | None = None,
        website_id: Any = None,
        service_page_id: Any = None,
        search: str | None = None,
        published_only: bool = True,
    ) -> tuple[list[dict], dict[str, int]]:
        query: dict[str, Any] = {}
        if published_only:
            query["isPublished"] = True
        if category:
            query["category"] = category
        if featured:
            query["featured"] = True
        if website_id is not None:
            query["websiteId"] = to_object_id(website_id) or website_id
        if service_page_id is not None:
            query["servicePageId"] = to_object_id(service_page_id) or service_page_id
        if search:
            query["$or"] = _search_clauses(search)
        return await self.paginate(query, page=page, limit=limit, sort=_NEWEST_FIRST, max_limit=50)

    async def get_published_by_slug(self, slug: str) -> dict | None:
        return await self.collection.find_one({"slug": slug, "isPublished": True})

    async def by_service_page(self, service_page_id: Any, limit: int = 6) -> list[dict]:
        return await self._cards(
            {"servicePageId": to_object_id(service_page_id) or service_page_id, "isPublished": True},
            limit,
        )

    async def by_service(self, website_id: ObjectId, service_id: ObjectId, limit: int = 6) -> list[dict]:
        return await self._cards(
            {"websiteId": website_id, "serviceId": service_id, "isPublished": True}, limit,
        )

    async def featured(self, website_id: Any = None, limit: int = 3) -> list[dict]:
        query: dict[str, Any] = {"featured": True, "isPublished": True}
        if website_id is not None:
            query["websiteId"] = to_object_id(website_id) or website_id
        return await self._cards(query, limit)

    async def related(self, blog: dict, limit: int = 3) -> list[dict]:
        """Published blogs sharing a category, a tag or the service page."""
        clauses: list[dict[str, Any]] = [{"category": blog.get("category")}]
        if blog.get("tags"):
            clauses.append({"tags": {"$in": blog["tags"]}})
        if blog.get("servicePageId"):
            clauses.append({"servicePageId": blog["servicePageId"]})
        return await self._cards(
            {"_id": {"$ne": blog["_id"]}, "isPublished": True, "$or": clauses}, limit,
        )

    async def search(self, text: str, limit: int = 10) -> list[dict]:
        return await self._cards({"isPublished": True, "$or": _search_clauses(text)}, limit)

    async def _cards(self, query: dict[str, Any], limit: int) -> list[dict]:
        cursor = self.collection.find(query, CARD_PROJECTION).sort(_NEWEST_FIRST).limit(limit)
        return await cursor.to_list(length=None)

    async def record_view(self, blog_id: Any) -> dict | None:
        return await self.increment(blog_id, "views")

    async def set_published(self, blog_id: Any, publish: bool) -> dict | None:
        changes: dict[str, Any] = {"isPublished": publish}
        if publish:
            current = await self.get_by_id(blog_id)
            if current is None:
                return None
            changes["publishedAt"] = current.get("publishedAt") or utcnow()
        return await self.update(blog_id, changes)

    # ── Generated blogs ──────────────────────────────────────────────

    async def unique_slug(self, base: str, website_id: ObjectId, exclude_id: ObjectId | None = None) -> str:
        """*base*, or *base*-N for the first N that is free on *website_id*."""
        slug, counter = base, 1
        while True:
            query: dict[str, Any] = {"slug": slug, "websiteId": website_id}
            if exclude_id is not None:
                query["_id"] = {"$ne": exclude_id}
            if await self.collection.find_one(query, {"_id": 1}) is None:
                return slug
            slug = f"{base}-{counter}"
            counter += 1

    async def upsert_generated(
        self,
        website_id: ObjectId,
        service_id: ObjectId,
        blog_type: str,
        fields: dict[str, Any],
        base_slug: str,
    ) -> tuple[dict, bool]:
        """Create or refresh the generated blog of *blog_type* for a service.

        Existing blogs keep their slug, counters and ``createdAt``.
        """
        key = {"websiteId": website_id, "serviceId": service_id, "blogType": blog_type}
        existing = await self.collection.find_one(key)
        now = utcnow()
        fields = {
            k: v for k, v in fields.items()
            if k not in ("_id", "slug", "views", "likes", "shares", "createdAt")
        }
        if existing is None:
            slug = await self.unique_slug(base_slug, website_id)
            document = {
                **fields, **key, "slug": slug,
                "views": 0, "likes": 0, "shares": 0, "createdAt": now, "updatedAt": now,
            }
            result = await self.collection.insert_one(document)
            document["_id"] = result.inserted_id
            return document, True

        if existing.get("publishedAt") and fields.get("publishedAt"):
            fields["publishedAt"] = existing["publishedAt"]
        updated = await self.collection.find_one_and_update(
            {"_id": existing["_id"]},
            {"$set": {**fields, "updatedAt": now}},
            return_document=ReturnDocument.AFTER,
        )
        return updated, False

    async def delete_for_website(self, website_id: ObjectId) -> int:
        result = await self.collection.delete_many({"websiteId": website_id})
        return result.deleted_count


def _search_clauses(text: str) -> list[dict[str, Any]]:
    return [
        {"title": contains(text)},
        {"introduction": contains(text)},
        {"tags": contains(text)},
        {"seoKeywords": contains(text)},
    ]
