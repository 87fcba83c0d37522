"""Common CRUD plumbing shared by the collection repositories."""

from __future__ import annotations

import math
import re
from typing import Any

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, ReturnDocument

from src.database import to_object_id, utcnow

MAX_PAGE_SIZE = 100


def paginate_params(page: int, limit: int, *, max_limit: int = MAX_PAGE_SIZE) -> tuple[int, int]:
    page = max(1, page)
    limit = min(max(1, limit), max_limit)
    return page, limit


def contains(text: str) -> dict[str, str]:
    """Case-insensitive substring match for a ``find`` filter."""
    return {"$regex": re.escape(text), "$options": "i"}


class BaseRepository:
    collection_name: str = ""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self.db = db
        self.collection = db[self.collection_name]

    async def get_by_id(self, doc_id: Any) -> dict | None:
        oid = to_object_id(doc_id)
        if oid is None:
            return None
        return await self.collection.find_one({"_id": oid})

    async def insert(self, document: dict[str, Any]) -> dict:
        now = utcnow()
        document = {**document, "createdAt": now, "updatedAt": now}
        result = await self.collection.insert_one(document)
        document["_id"] = result.inserted_id
        return document

    async def update(self, doc_id: Any, changes: dict[str, Any]) -> dict | None:
        """``$set`` *changes* and return the updated document."""
        oid = to_object_id(doc_id)
        if oid is None:
            return None
        return await self.collection.find_one_and_update(
            {"_id": oid},
            {"$set": {**changes, "updatedAt": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )

    async def increment(self, doc_id: Any, field: str, extra: dict[str, Any] | None = None) -> dict | None:
        oid = to_object_id(doc_id)
        if oid is None:
            return None
        update: dict[str, Any] = {"$inc": {field: 1}}
        if extra:
            update["$set"] = extra
        return await self.collection.find_one_and_update(
            {"_id": oid}, update, return_document=ReturnDocument.AFTER,
        )

    async def delete(self, doc_id: Any) -> bool:
        oid = to_object_id(doc_id)
        if oid is None:
            return False
        result = await self.collection.delete_one({"_id": oid})
        return result.deleted_count == 1

    async def find(
        self,
        query: dict[str, Any],
        *,
        sort: list[tuple[str, int]] | None = None,
        limit: int = 0,
    ) -> list[dict]:
        cursor = self.collection.find(query)
        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(limit)
        return await cursor.to_list(length=None)

    async def paginate(
        self,
        query: dict[str, Any],
        *,
        page: int = 1,
        limit: int = 20,
        sort: list[tuple[str, int]] | None = None,
        max_limit: int = MAX_PAGE_SIZE,
    ) -> tuple[list[dict], dict[str, int]]:
        """One page of results plus ``{page, limit, total, totalPages}``."""
        page, limit = paginate_params(page, limit, max_limit=max_limit)
        total = await self.collection.count_documents(query)
        cursor = (
            self.collection.find(query)
            .sort(sort or [("_id", ASCENDING)])
            .skip((page - 1) * limit)
            .limit(limit)
        )
        items = await cursor.to_list(length=None)
        return items, {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": math.ceil(total / limit) if total else 0,
        }
