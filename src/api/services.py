"""Service catalog, per-website service pages and content generation."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, Response

from src.api.dependencies import (
    get_db,
    get_llm_service,
    parse_object_id,
    require_auth,
    require_doctor,
)
from src.api.errors import APIError, ok, validated
from src.api.schemas import (
    GenerateContentRequest,
    GenerateSectionRequest,
    PageStatusRequest,
    ServicePageRequest,
)
from src.database import utcnow
from src.models.common import CATEGORY_NAMES
from src.models.service import DentalService, ServicePage
from src.models.website import public_url
from src.repositories.blogs import BlogRepository
from src.repositories.services import ServicePageRepository, ServiceRepository
from src.repositories.websites import WebsiteRepository
from src.services.content_generation import ContentGenerationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/services", tags=["services"])

# Never taken from a request body
_SERVICE_PROTECTED = ("_id", "slug", "analytics", "createdAt", "updatedAt")
_PAGE_PROTECTED = ("_id", "websiteId", "serviceId", "doctorId", "analytics", "createdAt", "updatedAt")


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "?")


def _strip(body: dict[str, Any], protected: tuple[str, ...]) -> dict[str, Any]:
    return {k: v for k, v in body.items() if k not in protected}


async def _owned_page(db, page_id: str, user: dict) -> dict:
    page = await ServicePageRepository(db).get_by_id(parse_object_id(page_id, "page"))
    if page is None:
        raise APIError(404, "Service page not found", code="PAGE_NOT_FOUND")
    if page.get("doctorId") != user["_id"]:
        raise HTTPException(status_code=403, detail="Access denied")
    return page


# ── Catalog ──────────────────────────────────────────────────────────


@router.get("")
async def list_services(
    category: str | None = None,
    search: str | None = None,
    is_active: bool | None = Query(True, alias="isActive"),
    is_popular: bool | None = Query(None, alias="isPopular"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    db=Depends(get_db),
):
    items, pagination = await ServiceRepository(db).list(
        category=category, search=search, is_active=is_active, is_popular=is_popular,
        page=page, limit=limit,
    )
    return ok(items, pagination=pagination)


@router.get("/search")
async def search_services(q: str = "", categories: str | None = None, db=Depends(get_db)):
    term = q.strip()
    if len(term) < 2:
        raise APIError(400, "Search term must be at least 2 characters", code="INVALID_SEARCH")
    wanted = [c.strip() for c in categories.split(",") if c.strip()] if categories else None
    results = await ServiceRepository(db).search(term, wanted)
    return ok(results, count=len(results))


@router.get("/popular")
async def popular_services(limit: int = Query(10, ge=1, le=50), db=Depends(get_db)):
    return ok(await ServiceRepository(db).popular(limit))


@router.get("/categories")
async def service_categories(db=Depends(get_db)):
    return ok(await ServiceRepository(db).category_counts())


@router.get("/category/{category}")
async def services_by_category(category: str, db=Depends(get_db)):
    if category not in CATEGORY_NAMES:
        raise APIError(400, "Invalid category", code="INVALID_CATEGORY")
    services = await ServiceRepository(db).by_category(category)
    return ok(services, category={"id": category, "name": CATEGORY_NAMES[category]})


@router.get("/llm/status")
async def llm_status(user: dict = Depends(require_auth), llm=Depends(get_llm_service)):
    return ok(llm.get_provider_status())


@router.delete("/llm/cache")
async def clear_llm_cache(
    service_name: str | None = Query(None, alias="serviceName"),
    user: dict = Depends(require_doctor),
    llm=Depends(get_llm_service),
):
    """Forget cached generations so the next request reaches a provider."""
    removed = llm.clear_cache(service_name)
    return ok({"removed": removed, "serviceName": service_name})


# ── Service pages ────────────────────────────────────────────────────


@router.get("/pages")
async def list_pages(
    website_id: str | None = Query(None, alias="websiteId"),
    status: str | None = None,
    is_integrated: bool | None = Query(None, alias="isIntegrated"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: dict = Depends(require_doctor),
    db=Depends(get_db),
):
    items, pagination = await ServicePageRepository(db).list(
        doctor_id=user["_id"], website_id=website_id, status=status,
        is_integrated=is_integrated, page=page, limit=limit,
    )
    return ok(items, pagination=pagination)


@router.post("/pages")
async def save_page(
    body: ServicePageRequest,
    response: Response,
    user: dict = Depends(require_doctor),
    db=Depends(get_db),
):
    """Create the page for (website, service), or update the one that exists."""
    website_id = parse_object_id(body.website_id, "website")
    service_id = parse_object_id(body.service_id, "service")
    if await WebsiteRepository(db).get_owned(website_id, user["_id"]) is None:
        raise APIError(404, "Website not found", code="WEBSITE_NOT_FOUND")
    service = await ServiceRepository(db).get_by_id(service_id)
    if service is None:
        raise APIError(404, "Service not found", code="SERVICE_NOT_FOUND")

    pages = ServicePageRepository(db)
    existing = await pages.get_for(website_id, service_id) or {}
    changes = body.model_dump(by_alias=True, exclude_none=True, exclude={"website_id", "service_id"})
    page_model = validated(ServicePage, {
        "title": service["name"],
        **existing,
        **changes,
        "websiteId": website_id,
        "serviceId": service_id,
        "doctorId": user["_id"],
    })
    page, created = await pages.upsert_for(website_id, service_id, page_model.to_document())
    response.status_code = 201 if created else 200
    message = "Service page created successfully" if created else "Service page updated successfully"
    return ok(page, message=message)


@router.get("/pages/{page_id}")
async def get_page(
    page_id: str,
    unique: bool = False,
    user: dict = Depends(require_auth),
    db=Depends(get_db),
):
    """Fetch a page, counting the view (and a unique visitor with ``?unique=true``)."""
    page = await ServicePageRepository(db).record_view(parse_object_id(page_id, "page"), unique=unique)
    if page is None:
        raise APIError(404, "Service page not found", code="PAGE_NOT_FOUND")
    return ok(page)


@router.put("/pages/{page_id}")
async def update_page(
    page_id: str,
    body: dict[str, Any] = Body(...),
    user: dict = Depends(require_doctor),
    db=Depends(get_db),
):
    page = await _owned_page(db, page_id, user)
    page_model = validated(ServicePage, {**page, **_strip(body, _PAGE_PROTECTED)})
    updated = await ServicePageRepository(db).update(
        page["_id"], _strip(page_model.to_document(), _PAGE_PROTECTED),
    )
    return ok(updated, message="Service page updated successfully")


@router.patch("/pages/{page_id}/status")
async def update_page_status(
    page_id: str,
    body: PageStatusRequest,
    user: dict = Depends(require_doctor),
    db=Depends(get_db),
):
    page = await _owned_page(db, page_id, user)
    changes: dict[str, Any] = {"status": body.status}
    if body.status == "published" and not page.get("publishedAt"):
        changes["publishedAt"] = utcnow()
    updated = await ServicePageRepository(db).update(page["_id"], changes)
    return ok(updated, message=f"Service page {body.status}")


@router.get("/public/page/{website_id}/{service_slug}")
async def public_page(website_id: str, service_slug: str, db=Depends(get_db)):
    """A live page of a tenant website with up to six related blog cards."""
    oid = parse_object_id(website_id, "website")
    website = await WebsiteRepository(db).get_by_id(oid)
    if website is None or website.get("status") == "archived":
        raise APIError(404, "Website not found", code="WEBSITE_NOT_FOUND")
    page = await ServicePageRepository(db).find_public(oid, service_slug)
    if page is not None:
        service = await ServiceRepository(db).get_by_id(page["serviceId"])
        if service is None or not service.get("isActive", True):
            page = None
    if page is None:
        raise APIError(404, "Service page not found", code="PAGE_NOT_FOUND")
    blogs = await BlogRepository(db).by_service(oid, page["serviceId"], limit=6)
    return ok({
        "page": page,
        "website": {
            "_id": website["_id"],
            "name": website["name"],
            "subdomain": website["subdomain"],
            "doctorName": website.get("doctorName"),
            "url": public_url(website),
        },
        "blogs": blogs,
    })


# ── Generation ───────────────────────────────────────────────────────


@router.post("/generate-content-from-data")
async def generate_content_from_data(
    body: GenerateContentRequest,
    request: Request,
    user: dict = Depends(require_doctor),
    db=Depends(get_db),
    llm=Depends(get_llm_service),
):
    """Generate a service page (and its blogs) for one of the doctor's websites.

    Repeating the call for the same website and service updates the
    existing page and blogs instead of creating new ones.
    """
    try:
        return await ContentGenerationService(db, llm).generate_from_service_data(body, user)
    except (APIError, HTTPException):
        raise
    except Exception as e:
        logger.exception("[%s] Error generating content for %r", _request_id(request), body.service_name)
        raise APIError(500, "Failed to generate content", code="GENERATION_FAILED") from e


@router.post("/{service_id}/generate-content")
async def generate_service_section(
    service_id: str,
    body: GenerateSectionRequest,
    request: Request,
    user: dict = Depends(require_doctor),
    db=Depends(get_db),
    llm=Depends(get_llm_service),
):
    oid = parse_object_id(service_id, "service")
    try:
        return await ContentGenerationService(db, llm).generate_service_section(oid, body, user)
    except (APIError, HTTPException):
        raise
    except Exception as e:
        logger.exception("[%s] Error generating %s for service %s", _request_id(request), body.content_type, oid)
        raise APIError(500, "Failed to generate content", code="GENERATION_FAILED") from e


# ── Catalog writes and lookups ───────────────────────────────────────


@router.get("/slug/{slug}")
async def get_service_by_slug(slug: str, db=Depends(get_db)):
    service = await ServiceRepository(db).get_by_slug(slug)
    if service is None:
        raise APIError(404, "Service not found", code="SERVICE_NOT_FOUND")
    return ok(service)


@router.post("/{service_id}/view")
async def record_service_view(service_id: str, db=Depends(get_db)):
    service = await ServiceRepository(db).record_view(parse_object_id(service_id, "service"))
    if service is None:
        raise APIError(404, "Service not found", code="SERVICE_NOT_FOUND")
    return ok({"viewCount": service.get("analytics", {}).get("viewCount", 0)})


@router.post("", status_code=201)
async def create_service(
    body: dict[str, Any] = Body(...),
    user: dict = Depends(require_doctor),
    db=Depends(get_db),
):
    services = ServiceRepository(db)
    service = validated(DentalService, _strip(body, _SERVICE_PROTECTED))
    if await services.find({"slug": service.slug}, limit=1):
        raise APIError(409, "A service with this name already exists", code="DUPLICATE_SERVICE")
    created = await services.insert(service.to_document())
    logger.info("Service %r created by %s", service.name, user["_id"])
    return ok(created, message="Service created successfully")


@router.put("/{service_id}")
async def update_service(
    service_id: str,
    body: dict[str, Any] = Body(...),
    user: dict = Depends(require_doctor),
    db=Depends(get_db),
):
    services = ServiceRepository(db)
    existing = await services.get_by_id(parse_object_id(service_id, "service"))
    if existing is None:
        raise APIError(404, "Service not found", code="SERVICE_NOT_FOUND")
    service = validated(DentalService, {**existing, **_strip(body, _SERVICE_PROTECTED)})
    updated = await services.update(existing["_id"], _strip(service.to_document(), _SERVICE_PROTECTED))
    return ok(updated, message="Service updated successfully")


@router.delete("/{service_id}")
async def delete_service(
    service_id: str,
    permanent: bool = False,
    user: dict = Depends(require_doctor),
    db=Depends(get_db),
):
    services = ServiceRepository(db)
    oid = parse_object_id(service_id, "service")
    if await services.get_by_id(oid) is None:
        raise APIError(404, "Service not found", code="SERVICE_NOT_FOUND")
    if permanent:
        removed_pages = await services.hard_delete(oid)
        logger.info("Service %s permanently deleted with %d pages", oid, removed_pages)
        return ok(message="Service permanently deleted", deletedPages=removed_pages)
    await services.soft_delete(oid)
    return ok(message="Service deactivated successfully")


@router.get("/{identifier}")
async def get_service(identifier: str, db=Depends(get_db)):
    """A service by id or slug; each lookup counts as a view."""
    services = ServiceRepository(db)
    service = await services.get_by_identifier(identifier)
    if service is None:
        raise APIError(404, "Service not found", code="SERVICE_NOT_FOUND")
    return ok(await services.record_view(service["_id"]) or service)
