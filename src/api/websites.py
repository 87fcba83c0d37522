"""Doctor-owned tenant websites."""

from __future__ import annotations

import logging
import re
from typing import Any

from fastapi import APIRouter, Body, Depends, Query

from src.api.dependencies import get_db, parse_object_id, require_doctor
from src.api.errors import APIError, ok, validated
from src.api.schemas import WebsiteRequest, WebsiteStatusRequest
from src.models.website import SUBDOMAIN_PATTERN, Website, public_url
from src.repositories.websites import WebsiteRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/websites", tags=["websites"])

_PROTECTED = ("_id", "doctorId", "status", "publishedAt", "createdAt", "updatedAt")


def _with_url(website: dict) -> dict:
    return {**website, "publicUrl": public_url(website)}


async def _owned(db, website_id: str, user: dict) -> dict:
    website = await WebsiteRepository(db).get_owned(parse_object_id(website_id, "website"), user["_id"])
    if website is None:
        raise APIError(404, "Website not found", code="WEBSITE_NOT_FOUND")
    return website


@router.get("/subdomain/{subdomain}/available")
async def subdomain_available(subdomain: str, user: dict = Depends(require_doctor), db=Depends(get_db)):
    candidate = subdomain.strip().lower()
    if not 2 <= len(candidate) <= 63 or not re.match(SUBDOMAIN_PATTERN, candidate):
        raise APIError(400, "Invalid subdomain format", code="INVALID_SUBDOMAIN")
    available = await WebsiteRepository(db).subdomain_available(candidate)
    return ok({"subdomain": candidate, "available": available})


@router.get("")
async def list_websites(
    status: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: dict = Depends(require_doctor),
    db=Depends(get_db),
):
    items, pagination = await WebsiteRepository(db).list_for_doctor(
        user["_id"], status=status, page=page, limit=limit,
    )
    return ok([_with_url(w) for w in items], pagination=pagination)


@router.get("/{website_id}")
async def get_website(website_id: str, user: dict = Depends(require_doctor), db=Depends(get_db)):
    return ok(_with_url(await _owned(db, website_id, user)))


@router.post("", status_code=201)
async def create_website(body: WebsiteRequest, user: dict = Depends(require_doctor), db=Depends(get_db)):
    websites = WebsiteRepository(db)
    website = validated(Website, {
        **body.model_dump(by_alias=True, exclude_none=True),
        "doctorId": user["_id"],
        "doctorName": body.doctor_name or user.get("name"),
    })
    if not await websites.subdomain_available(website.subdomain):
        raise APIError(409, "Subdomain is already taken", code="SUBDOMAIN_TAKEN")
    created = await websites.insert(website.to_document())
    logger.info("Website %s (%s) created for doctor %s", created["subdomain"], created["_id"], user["_id"])
    return ok(_with_url(created), message="Website created successfully")


@router.put("/{website_id}")
async def update_website(
    website_id: str,
    body: dict[str, Any] = Body(...),
    user: dict = Depends(require_doctor),
    db=Depends(get_db),
):
    websites = WebsiteRepository(db)
    existing = await _owned(db, website_id, user)
    website = validated(Website, {**existing, **{k: v for k, v in body.items() if k not in _PROTECTED}})
    if website.subdomain != existing["subdomain"] and not await websites.subdomain_available(
        website.subdomain, exclude_id=existing["_id"],
    ):
        raise APIError(409, "Subdomain is already taken", code="SUBDOMAIN_TAKEN")
    changes = {k: v for k, v in website.to_document().items() if k not in _PROTECTED}
    updated = await websites.update(existing["_id"], changes)
    return ok(_with_url(updated), message="Website updated successfully")


@router.patch("/{website_id}/status")
async def update_website_status(
    website_id: str,
    body: WebsiteStatusRequest,
    user: dict = Depends(require_doctor),
    db=Depends(get_db),
):
    website = await _owned(db, website_id, user)
    updated = await WebsiteRepository(db).set_status(website["_id"], body.status)
    return ok(_with_url(updated), message=f"Website status changed to {body.status}")


@router.delete("/{website_id}")
async def archive_website(website_id: str, user: dict = Depends(require_doctor), db=Depends(get_db)):
    website = await _owned(db, website_id, user)
    await WebsiteRepository(db).set_status(website["_id"], "archived")
    return ok(message="Website archived successfully")


@router.delete("/{website_id}/permanent")
async def delete_website(website_id: str, user: dict = Depends(require_doctor), db=Depends(get_db)):
    """Delete the website along with its service pages and blogs."""
    website = await _owned(db, website_id, user)
    removed = await WebsiteRepository(db).delete_with_content(website["_id"])
    logger.warning("Website %s permanently deleted by %s: %s", website["_id"], user["_id"], removed)
    return ok(message="Website permanently deleted", deleted=removed)
