"""MongoDB connection management on top of the async ``motor`` driver.

A single :class:`DatabaseManager` owns the ``AsyncIOMotorClient`` for the
process.  The FastAPI lifespan calls :meth:`DatabaseManager.connect` and
stores the resulting database handle on ``app.state.db``; repositories
receive that handle explicitly so tests can pass an in-memory database.
"""

from __future__ import annotations

import logging
import re
import time
from datetime import UTC, datetime
from typing import Any

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import ConnectionFailure, PyMongoError, ServerSelectionTimeoutError

from src.config import MONGODB_DATABASE, MONGODB_SERVER_SELECTION_TIMEOUT_MS, MONGODB_URI

logger = logging.getLogger(__name__)

# ── Collection names ────────────────────────────────────────────────
DENTAL_SERVICES = "dental_services"
SERVICE_PAGES = "service_pages"
BLOGS = "blogs"
WEBSITES = "websites"
USERS = "users"
CALENDAR_SYNCS = "calendar_syncs"
SLOTS = "slots"
APPOINTMENTS = "appointments"

# (collection, keys, options)
INDEXES: list[tuple[str, list[tuple[str, int]], dict[str, Any]]] = [
    (DENTAL_SERVICES, [("slug", ASCENDING)], {"unique": True}),
    (DENTAL_SERVICES, [("category", ASCENDING), ("isActive", ASCENDING)], {}),
    (DENTAL_SERVICES, [("isPopular", ASCENDING), ("isActive", ASCENDING)], {}),
    (SERVICE_PAGES, [("websiteId", ASCENDING), ("serviceId", ASCENDING)], {"unique": True}),
    (SERVICE_PAGES, [("websiteId", ASCENDING), ("slug", ASCENDING)], {}),
    (SERVICE_PAGES, [("doctorId", ASCENDING), ("status", ASCENDING)], {}),
    (BLOGS, [("slug", ASCENDING), ("websiteId", ASCENDING)], {"unique": True}),
    (BLOGS, [("websiteId", ASCENDING), ("serviceId", ASCENDING), ("blogType", ASCENDING)], {}),
    (BLOGS, [("isPublished", ASCENDING), ("publishedAt", DESCENDING)], {}),
    (BLOGS, [("servicePageId", ASCENDING)], {}),
    (WEBSITES, [("subdomain", ASCENDING)], {"unique": True}),
    (WEBSITES, [("doctorId", ASCENDING), ("status", ASCENDING)], {}),
    (USERS, [("googleId", ASCENDING)], {"unique": True, "sparse": True}),
    (USERS, [("email", ASCENDING)], {}),
    (CALENDAR_SYNCS, [("userId", ASCENDING)], {"unique": True}),
    (CALENDAR_SYNCS, [("channelId", ASCENDING)], {}),
    (SLOTS, [("googleEventId", ASCENDING)], {}),
    (SLOTS, [("doctor", ASCENDING), ("startTime", ASCENDING)], {}),
    (SLOTS, [("doctor", ASCENDING), ("isAvailable", ASCENDING), ("startTime", ASCENDING)], {}),
    (APPOINTMENTS, [("doctor", ASCENDING), ("status", ASCENDING), ("createdAt", DESCENDING)], {}),
    (APPOINTMENTS, [("client", ASCENDING), ("status", ASCENDING), ("createdAt", DESCENDING)], {}),
    (APPOINTMENTS, [("slot", ASCENDING)], {}),
]

_SLUG_INVALID = re.compile(r"[^a-z0-9]+")


# ── Helpers ─────────────────────────────────────────────────────────

def utcnow() -> datetime:
    """Current UTC time as a naive datetime (what pymongo hands back)."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_object_id(value: Any) -> ObjectId | None:
    """Return *value* as an ``ObjectId``, or ``None`` if it is not one."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def slugify(text: str) -> str:
    """Lower-case *text* and collapse every non-alphanumeric run to ``-``."""
    return _SLUG_INVALID.sub("-", (text or "").lower()).strip("-")


def serialize_document(value: Any) -> Any:
    """Recursively convert ``ObjectId`` values so a document is JSON-safe."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {k: serialize_document(v) for k, v in value.items()}
    if isinstance(value, list):
        return [serialize_document(v) for v in value]
    return value


# ── Connection manager ──────────────────────────────────────────────

class DatabaseManager:
    """Owns the motor client and exposes the application database."""

    def __init__(self, uri: str | None = None, database_name: str | None = None) -> None:
        self._uri = uri or MONGODB_URI
        self._database_name = database_name or MONGODB_DATABASE
        self.client: AsyncIOMotorClient | None = None
        self.database: AsyncIOMotorDatabase | None = None

    async def connect(self) -> AsyncIOMotorDatabase:
        """Open the client and verify the server answers a ``ping``."""
        start = time.perf_counter()
        self.client = AsyncIOMotorClient(
            self._uri,
            serverSelectionTimeoutMS=MONGODB_SERVER_SELECTION_TIMEOUT_MS,
        )
        try:
            await self.client.admin.command("ping")
        except (ServerSelectionTimeoutError, ConnectionFailure):
            logger.exception("Could not reach MongoDB at startup")
            self.client.close()
            self.client = None
            raise
        self.database = self.client[self._database_name]
        logger.info(
            "MongoDB connected (database=%s) in %.3fs",
            self._database_name, time.perf_counter() - start,
        )
        return self.database

    async def disconnect(self) -> None:
        if self.client is not None:
            self.client.close()
            logger.info("MongoDB connection closed")
        self.client = None
        self.database = None

    async def health_check(self) -> bool:
        """Ping the server; ``False`` instead of raising when it is down."""
        if self.client is None:
            return False
        try:
            await self.client.admin.command("ping")
            return True
        except PyMongoError:
            logger.warning("MongoDB health check failed", exc_info=True)
            return False

    def get_collection(self, name: str) -> AsyncIOMotorCollection:
        if self.database is None:
            raise ConnectionError("Database not connected. Call connect() first.")
        return self.database[name]


async def ensure_indexes(database: AsyncIOMotorDatabase) -> None:
    """Create every index the repositories rely on (idempotent)."""
    for collection, keys, options in INDEXES:
        await database[collection].create_index(keys, **options)
    logger.info("Ensured %d MongoDB indexes", len(INDEXES))


# ── Module-level singleton ──────────────────────────────────────────
db_manager = DatabaseManager()
