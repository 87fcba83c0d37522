"""Blog articles: public reading endpoints and the doctor's editor."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, Response

from src.api.dependencies import get_db, get_llm_service, parse_object_id, require_doctor
from src.api.errors import APIError, ok, validated
from src.api.schemas import GenerateBlogRequest, PublishRequest
from src.database import slugify
from src.models.blog import Blog
from src.repositories.blogs import BlogRepository
from src.repositories.websites import WebsiteRepository
from src.services.content_generation import ContentGenerationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/blogs", tags=["blogs"])

_PROTECTED = ("_id", "websiteId", "views", "likes", "shares", "createdAt", "updatedAt")


async def _owned_blog(db, blog_id: str, user: dict) -> dict:
    blog = await BlogRepository(db).get_by_id(parse_object_id(blog_id, "blog"))
    if blog is None:
        raise APIError(404, "Blog not found", code="BLOG_NOT_FOUND")
    if blog.get("websiteId") and await WebsiteRepository(db).get_owned(blog["websiteId"], user["_id"]) is None:
        raise HTTPException(status_code=403, detail="Access denied")
    return blog


def _search_term(q: str) -> str:
    term = q.strip()
    if len(term) < 2:
        raise APIError(400, "Search query must be at least 2 characters", code="INVALID_SEARCH")
    return term


# ── Public ───────────────────────────────────────────────────────────


@router.get("")
async def list_blogs(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    category: str | None = None,
    featured: bool | None = None,
    website_id: str | None = Query(None, alias="websiteId"),
    service_page_id: str | None = Query(None, alias="servicePageId"),
    search: str | None = None,
    db=Depends(get_db),
):
    items, pagination = await BlogRepository(db).list(
        page=page, limit=limit, category=category, featured=featured,
        website_id=website_id, service_page_id=service_page_id, search=search,
    )
    return ok(items, pagination=pagination)


@router.get("/slug/{slug}")
async def get_blog_by_slug(
    slug: str,
    increment_view: bool = Query(False, alias="incrementView"),
    db=Depends(get_db),
):
    blogs = BlogRepository(db)
    blog = await blogs.get_published_by_slug(slug)
    if blog is None:
        raise APIError(404, "Blog not found", code="BLOG_NOT_FOUND")
    if increment_view:
        blog = await blogs.record_view(blog["_id"]) or blog
    return ok(blog)


@router.get("/service/{service_page_id}")
async def blogs_for_service_page(
    service_page_id: str, limit: int = Query(6, ge=1, le=50), db=Depends(get_db),
):
    return ok(await BlogRepository(db).by_service_page(service_page_id, limit))


@router.get("/featured")
async def featured_blogs(
    website_id: str | None = Query(None, alias="websiteId"),
    limit: int = Query(3, ge=1, le=20),
    db=Depends(get_db),
):
    return ok(await BlogRepository(db).featured(website_id, limit))


@router.get("/related/{blog_id}")
async def related_blogs(blog_id: str, limit: int = Query(3, ge=1, le=20), db=Depends(get_db)):
    blogs = BlogRepository(db)
    blog = await blogs.get_by_id(parse_object_id(blog_id, "blog"))
    if blog is None:
        raise APIError(404, "Blog not found", code="BLOG_NOT_FOUND")
    return ok(await blogs.related(blog, limit))


@router.get("/search")
async def search_blogs(q: str = "", limit: int = Query(10, ge=1, le=50), db=Depends(get_db)):
    results = await BlogRepository(db).search(_search_term(q), limit)
    return ok(results, count=len(results))


# ── Doctor ───────────────────────────────────────────────────────────


@router.post("", status_code=201)
async def create_blog(
    body: dict[str, Any] = Body(...),
    user: dict = Depends(require_doctor),
    db=Depends(get_db),
):
    website_id = parse_object_id(body.get("websiteId"), "website")
    if await WebsiteRepository(db).get_owned(website_id, user["_id"]) is None:
        raise APIError(404, "Website not found", code="WEBSITE_NOT_FOUND")

    blogs = BlogRepository(db)
    base = slugify(body.get("slug") or body.get("title") or "")
    fields = {k: v for k, v in body.items() if k not in _PROTECTED}
    if base:
        fields["slug"] = await blogs.unique_slug(base, website_id)
    blog = validated(Blog, {"author": user.get("name") or "Dr. Professional", **fields, "websiteId": website_id})
    created = await blogs.insert(blog.to_document())
    logger.info("Blog %s created on website %s", created["slug"], website_id)
    return ok(created, message="Blog created successfully")


@router.post("/generate")
async def generate_blog(
    body: GenerateBlogRequest,
    request: Request,
    response: Response,
    user: dict = Depends(require_doctor),
    db=Depends(get_db),
    llm=Depends(get_llm_service),
):
    """Generate one blog of *blogType* for a service page (or regenerate it)."""
    parse_object_id(body.service_page_id, "service page")
    try:
        result = await ContentGenerationService(db, llm).generate_blog(body, user)
    except (APIError, HTTPException):
        raise
    except Exception as e:
        logger.exception("[%s] Error generating %s blog", getattr(request.state, "request_id", "?"), body.blog_type)
        raise APIError(500, "Failed to generate blog", code="GENERATION_FAILED") from e
    response.status_code = 201 if result.pop("created") else 200
    return result


@router.put("/{blog_id}")
async def update_blog(
    blog_id: str,
    body: dict[str, Any] = Body(...),
    user: dict = Depends(require_doctor),
    db=Depends(get_db),
):
    blogs = BlogRepository(db)
    blog = await _owned_blog(db, blog_id, user)
    changes = {k: v for k, v in body.items() if k not in _PROTECTED}
    if changes.get("slug") and changes["slug"] != blog.get("slug"):
        changes["slug"] = await blogs.unique_slug(slugify(changes["slug"]), blog.get("websiteId"), blog["_id"])
    model = validated(Blog, {**blog, **changes})
    updated = await blogs.update(blog["_id"], {k: v for k, v in model.to_document().items() if k not in _PROTECTED})
    return ok(updated, message="Blog updated successfully")


@router.patch("/{blog_id}/publish")
async def publish_blog(
    blog_id: str,
    body: PublishRequest,
    user: dict = Depends(require_doctor),
    db=Depends(get_db),
):
    blog = await _owned_blog(db, blog_id, user)
    updated = await BlogRepository(db).set_published(blog["_id"], body.publish)
    message = "Blog published successfully" if body.publish else "Blog unpublished successfully"
    return ok(updated, message=message)


@router.delete("/{blog_id}")
async def delete_blog(blog_id: str, user: dict = Depends(require_doctor), db=Depends(get_db)):
    blog = await _owned_blog(db, blog_id, user)
    await BlogRepository(db).delete(blog["_id"])
    return ok(message="Blog deleted successfully")


@router.get("/{blog_id}/analytics")
async def blog_analytics(blog_id: str, user: dict = Depends(require_doctor), db=Depends(get_db)):
    blog = await _owned_blog(db, blog_id, user)
    return ok({
        "views": blog.get("views", 0),
        "likes": blog.get("likes", 0),
        "shares": blog.get("shares", 0),
        "readingTime": blog.get("readingTime", 0),
        "wordCount": blog.get("wordCount", 0),
        "isPublished": blog.get("isPublished", False),
        "publishedAt": blog.get("publishedAt"),
    })
