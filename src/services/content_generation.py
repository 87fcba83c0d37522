"""Service page and blog generation for a (website, service) pair.

One request produces (or refreshes) three kinds of documents:

1. the catalog ``DentalService`` (found by slug, created on first use);
2. the website's ``ServicePage`` for that service, upserted on
   ``(websiteId, serviceId)`` so repeating a request updates in place;
3. up to six ``Blog`` articles, upserted on
   ``(websiteId, serviceId, blogType)``.

Page content is parsed out of raw section texts into bounded structures
and validated by the pydantic document models before anything is written.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any

from pydantic import ValidationError
from pymongo.errors import PyMongoError

from src.api.errors import APIError
from src.api.schemas import GenerateBlogRequest, GenerateContentRequest, GenerateSectionRequest
from src.database import serialize_document, slugify, to_object_id, utcnow
from src.models.blog import Blog
from src.models.service import ServicePage
from src.prompts import BLOG_TYPES
from src.repositories.blogs import BlogRepository
from src.repositories.services import ServicePageRepository, ServiceRepository
from src.repositories.websites import WebsiteRepository
from src.services.content_parser import (
    clean_content,
    parse_aftercare,
    parse_bullet_points,
    parse_faq,
    parse_myths_and_facts,
    parse_seo_description,
    parse_seo_keywords,
    parse_seo_title,
    parse_steps,
)
from src.services.fast_mode import (
    build_blog_content_structure,
    build_emergency_blog,
    build_fast_mode_blog,
    build_fast_mode_blogs,
    build_fast_mode_content,
)
from src.services.llm_service import (
    LLMService,
    LLMServiceError,
    ProviderUnavailableError,
    UnknownContentTypeError,
)

logger = logging.getLogger(__name__)

BLOG_SECTION_MAX = 10000
BLOG_INTRODUCTION_MAX = 500
BLOG_FAQ_MAX = 20
TAG_MAX = 50

LLM_KEY_TAKEAWAYS = (
    "{s} is a safe and effective treatment when performed by qualified professionals",
    "Modern techniques significantly reduce discomfort and improve outcomes",
    "Early treatment prevents more complex problems and reduces overall costs",
    "Proper aftercare ensures optimal healing and long-term success",
    "Regular dental checkups help identify issues before they become serious",
)


# ── Page building ────────────────────────────────────────────────────

def _section_text(llm_content: dict[str, Any], key: str) -> str:
    section = llm_content.get("content", {}).get(key) or {}
    return section.get("content", "") if isinstance(section, dict) else ""


def build_page_content(
    llm_content: dict[str, Any],
    service_name: str,
    *,
    phone_number: str | None = None,
) -> dict[str, Any]:
    """Parse generated section texts into the service page content shape."""
    def text(key: str) -> str:
        return _section_text(llm_content, key)

    overview = clean_content(text("introduction"))[:3000] or (
        f"Professional {service_name} services tailored to your oral health needs."
    )
    benefits = parse_bullet_points(text("detailedExplanation"), "Benefits")
    symptoms = parse_bullet_points(text("symptoms"), "Symptoms")
    consequences = parse_bullet_points(text("consequences"), "Consequences")
    procedure_details = parse_steps(text("procedureSteps"), "Step")
    detailed_benefits = parse_bullet_points(text("procedureBenefits"), "Benefits")
    side_effects = parse_bullet_points(text("sideEffects"), "Side Effects")
    myths = parse_myths_and_facts(text("mythsAndFacts"), service_name)
    faq = parse_faq(text("comprehensiveFAQ"), service_name)

    return {
        "overview": overview,
        "benefits": benefits,
        "procedure": parse_steps(text("treatmentNeed"), "Treatment Need"),
        "symptoms": symptoms,
        "consequences": consequences,
        "procedureDetails": procedure_details,
        "aftercare": parse_aftercare(text("postTreatmentCare")),
        "detailedBenefits": detailed_benefits,
        "sideEffects": side_effects,
        "mythsAndFacts": myths,
        "faq": faq,
        "cta": {
            "title": f"Ready to Schedule Your {service_name}?"[:100],
            "subtitle": "Book a consultation with our team today.",
            "phoneNumber": phone_number,
        },
        "hero": {"title": service_name, "subtitle": overview[:300]},
        "comprehensiveContent": {
            "introduction": overview,
            "detailedExplanation": benefits,
            "treatmentNeed": parse_bullet_points(text("treatmentNeed"), "Treatment Need"),
            "symptoms": symptoms,
            "consequences": consequences,
            "procedureDetails": procedure_details,
            "postTreatmentCare": parse_bullet_points(text("postTreatmentCare"), "Aftercare"),
            "detailedBenefits": detailed_benefits,
            "sideEffects": side_effects,
            "mythsAndFacts": myths,
            "comprehensiveFAQ": faq,
        },
    }


def build_page_seo(
    llm_content: dict[str, Any], service_name: str, keywords: list[str], *, generate_seo: bool = True,
) -> dict[str, Any]:
    seo_text = _section_text(llm_content, "seoContent") if generate_seo else ""
    return {
        "metaTitle": parse_seo_title(seo_text, service_name),
        "metaDescription": parse_seo_description(seo_text),
        "keywords": parse_seo_keywords(seo_text, keywords),
        "focusKeyword": keywords[0] if keywords else service_name.lower(),
    }


def primary_provider(llm_content: dict[str, Any]) -> str:
    """The provider that produced most sections."""
    if llm_content.get("provider"):
        return llm_content["provider"]
    counts = Counter(
        v.get("provider") for v in llm_content.get("content", {}).values()
        if isinstance(v, dict) and v.get("provider")
    )
    return counts.most_common(1)[0][0] if counts else "unknown"


# ── Blog building ────────────────────────────────────────────────────

def _blog_tags(service_name: str, category: str | None, keywords: list[str], blog_type: str) -> list[str]:
    tags = [slugify(service_name), category or "general-dentistry", blog_type, *keywords[:5]]
    seen: list[str] = []
    for tag in tags:
        tag = tag.strip()[:TAG_MAX]
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def structure_llm_blog(
    service_name: str,
    entry: dict[str, Any],
    *,
    category: str | None = None,
    keywords: list[str] | None = None,
) -> dict[str, Any]:
    """Turn one generated blog (raw section texts) into blog document fields."""
    keywords = keywords or []
    texts = {
        key: value["content"].strip()
        for key, value in entry.get("sections", {}).items()
        if isinstance(value, dict) and value.get("content")
    }
    overrides = {k: t[:BLOG_SECTION_MAX] for k, t in texts.items() if k != "faq"}
    faq = [
        {"question": item["question"], "answer": item["answer"]}
        for item in parse_faq(texts.get("faq"), service_name, BLOG_FAQ_MAX, pad=False)
    ]

    introduction = clean_content(texts.get("introduction")) or (
        f"Everything patients should know about {service_name}, explained by our dental team."
    )
    if len(introduction) > BLOG_INTRODUCTION_MAX:
        introduction = introduction[: BLOG_INTRODUCTION_MAX - 3] + "..."

    metadata = entry.get("metadata", {})
    return {
        "blogType": entry["type"],
        "title": entry["title"][:200],
        "introduction": introduction,
        "content": build_blog_content_structure(service_name, overrides, faq or None),
        "keyTakeaways": [t.format(s=service_name)[:150] for t in LLM_KEY_TAKEAWAYS],
        "tags": _blog_tags(service_name, category, keywords, entry["type"]),
        "category": category or "general-dentistry",
        "seoKeywords": keywords,
        "llmGenerated": True,
        "generationProvider": metadata.get("provider"),
        "generationMetadata": {
            "tokensUsed": metadata.get("tokensUsed", 0),
            "sectionsGenerated": metadata.get("sectionsGenerated", 0),
            "totalSections": metadata.get("totalSections", 0),
            "generatedAt": utcnow(),
        },
    }


def blog_card(blog: dict[str, Any]) -> dict[str, Any]:
    return {
        "_id": blog["_id"],
        "title": blog.get("title"),
        "slug": blog.get("slug"),
        "blogType": blog.get("blogType"),
        "introduction": blog.get("introduction"),
        "readingTime": blog.get("readingTime"),
        "wordCount": blog.get("wordCount"),
        "url": f"/blog/{blog.get('slug')}",
        "publishedAt": blog.get("publishedAt"),
        "featured": blog.get("featured", False),
    }


# ── Service ──────────────────────────────────────────────────────────

class ContentGenerationService:
    """Orchestrates generation, parsing and persistence for one request."""

    def __init__(self, db, llm_service: LLMService) -> None:
        self.llm = llm_service
        self.websites = WebsiteRepository(db)
        self.services = ServiceRepository(db)
        self.pages = ServicePageRepository(db)
        self.blogs = BlogRepository(db)

    async def _load_website(self, website_id: str | None) -> dict:
        if not website_id:
            raise APIError(
                400, "Website ID is required to generate service content", code="WEBSITE_ID_REQUIRED",
            )
        oid = to_object_id(website_id)
        if oid is None:
            raise APIError(400, "Invalid website ID format", code="INVALID_WEBSITE_ID")
        website = await self.websites.get_by_id(oid)
        if website is None:
            raise APIError(404, "Website not found", code="WEBSITE_NOT_FOUND")
        return website

    @staticmethod
    def _website_context(website: dict | None, user: dict) -> dict[str, Any]:
        website = website or {}
        return {
            "website_id": str(website["_id"]) if website.get("_id") else None,
            "website_name": website.get("name"),
            "doctor_name": website.get("doctorName") or user.get("name"),
            "practice_location": website.get("location"),
        }

    # ── Full page + blogs ────────────────────────────────────────────

    async def generate_from_service_data(self, request: GenerateContentRequest, user: dict) -> dict[str, Any]:
        service_name = request.service_name.strip()
        if not service_name:
            raise APIError(400, "Service name is required", code="SERVICE_NAME_REQUIRED")
        if not slugify(service_name):
            raise APIError(
                400, "Service name must contain at least one Latin letter or digit", code="INVALID_SERVICE_NAME",
            )
        website = await self._load_website(request.website_id)
        context = self._website_context(website, user)
        keywords = request.keywords or [service_name.lower()]

        logger.info(
            "Generating content for %s on website %s (fast_mode=%s)",
            service_name, website["_id"], request.fast_mode,
        )
        if request.fast_mode:
            llm_content = build_fast_mode_content(
                service_name,
                category=request.category,
                keywords=keywords,
                website_name=context["website_name"],
                doctor_name=context["doctor_name"],
            )
        else:
            try:
                llm_content = await self.llm.generate_comprehensive_content(
                    service_name,
                    category=request.category,
                    keywords=keywords,
                    extra_sections=("seoContent",) if request.generate_seo else (),
                    **context,
                )
            except LLMServiceError as exc:
                raise APIError(
                    500, "Failed to generate content", error=str(exc), code="GENERATION_FAILED",
                ) from exc

        provider = primary_provider(llm_content)
        service, _ = await self.services.find_or_create(
            service_name,
            category=request.category,
            description=request.description,
            keywords=keywords,
        )
        service = await self.services.update(service["_id"], {
            "contentGeneration.lastGenerated": utcnow(),
            "contentGeneration.generatedBy": provider,
            "contentGeneration.isGenerated": True,
        }) or service

        existing = await self.pages.get_for(website["_id"], service["_id"])
        page_model = ServicePage(
            website_id=website["_id"],
            service_id=service["_id"],
            doctor_id=website.get("doctorId") or user["_id"],
            title=service_name,
            slug=service["slug"],
            status=existing.get("status", "draft") if existing else "draft",
            published_at=existing.get("publishedAt") if existing else None,
            is_integrated=True,
            content=build_page_content(
                llm_content, service_name, phone_number=(website.get("contact") or {}).get("phone"),
            ),
            seo=build_page_seo(llm_content, service_name, keywords, generate_seo=request.generate_seo),
            generation={
                "lastGenerated": utcnow(),
                "generatedBy": provider,
                "tokensUsed": llm_content.get("totalTokensUsed", 0),
                "fastMode": request.fast_mode,
            },
        )
        page, created = await self.pages.upsert_for(website["_id"], service["_id"], page_model.to_document())
        logger.info("%s service page %s for %s", "Created" if created else "Updated", page["_id"], service_name)

        blogs: list[dict] = []
        if request.generate_blogs:
            blogs = await self._generate_blogs(
                service=service,
                page=page,
                website=website,
                context=context,
                category=request.category or service.get("category"),
                keywords=keywords,
                fast_mode=request.fast_mode,
            )

        tokens_used = llm_content.get("totalTokensUsed", 0) + sum(
            (b.get("generationMetadata") or {}).get("tokensUsed", 0) for b in blogs
        )
        return {
            "success": True,
            "data": serialize_document({
                "service": service,
                "page": page,
                "llmContent": llm_content,
                "blogs": [blog_card(b) for b in blogs],
                "tokensUsed": tokens_used,
            }),
            "message": (
                "Service content generated successfully" if created
                else "Service content updated successfully"
            ),
            "blogsGenerated": len(blogs),
        }

    async def _generate_blogs(
        self,
        *,
        service: dict,
        page: dict,
        website: dict,
        context: dict[str, Any],
        category: str | None,
        keywords: list[str],
        fast_mode: bool,
    ) -> list[dict]:
        service_name = service["name"]
        if fast_mode:
            drafts = build_fast_mode_blogs(service_name, category)
        else:
            drafts = await self._llm_blog_drafts(service_name, category, keywords, context)

        stored: list[dict] = []
        for draft in drafts:
            try:
                blog, _ = await self._store_blog(
                    draft, service=service, page=page, website=website, author=context["doctor_name"],
                )
            except (ValidationError, PyMongoError):
                logger.exception("Could not store %s blog for %s", draft.get("blogType"), service_name)
                continue
            stored.append(blog)

        if not stored:
            logger.warning("No blog could be stored for %s; saving an emergency guide", service_name)
            blog, _ = await self._store_blog(
                build_emergency_blog(service_name, category),
                service=service, page=page, website=website, author=context["doctor_name"],
            )
            stored.append(blog)
        logger.info("Stored %d blogs for %s", len(stored), service_name)
        return stored

    async def _llm_blog_drafts(
        self, service_name: str, category: str | None, keywords: list[str], context: dict[str, Any],
    ) -> list[dict]:
        try:
            result = await self.llm.generate_service_blogs(
                service_name,
                keywords=keywords,
                website_name=context["website_name"] or "Our Practice",
                doctor_name=context["doctor_name"] or "Dr. Professional",
            )
        except LLMServiceError as exc:
            logger.warning("Blog generation failed for %s, using templates: %s", service_name, exc)
            return build_fast_mode_blogs(service_name, category)

        drafts = []
        for entry in result["blogs"]:
            if entry["success"]:
                drafts.append(structure_llm_blog(service_name, entry, category=category, keywords=keywords))
            else:
                drafts.append(build_fast_mode_blog(service_name, entry["type"], category))
        if not any(d.get("llmGenerated") for d in drafts):
            logger.warning("No blog generated by any provider for %s, using templates", service_name)
            return build_fast_mode_blogs(service_name, category)
        return drafts

    async def _store_blog(
        self,
        draft: dict[str, Any],
        *,
        service: dict,
        page: dict,
        website: dict,
        author: str | None,
        publish: bool = True,
    ) -> tuple[dict, bool]:
        base_slug = slugify(f"{service['slug']}-{draft['blogType']}")
        blog = Blog.model_validate({
            **draft,
            "slug": base_slug,
            "serviceId": service["_id"],
            "servicePageId": page["_id"],
            "websiteId": website["_id"],
            "author": author or "Dr. Professional",
            "isPublished": publish,
        })
        return await self.blogs.upsert_generated(
            website["_id"], service["_id"], blog.blog_type, blog.to_document(), base_slug,
        )

    # ── Single section / single blog ─────────────────────────────────

    async def generate_service_section(
        self, service_id: str, request: GenerateSectionRequest, user: dict,
    ) -> dict[str, Any]:
        service = await self.services.get_by_id(service_id)
        if service is None:
            raise APIError(404, "Service not found")
        website = await self._load_website(request.website_id) if request.website_id else None
        context = self._website_context(website, user)

        try:
            result = await self.llm.generate_dental_content(
                service["name"],
                request.content_type,
                keywords=request.keywords or (service.get("seo") or {}).get("keywords"),
                category=service.get("category"),
                custom_prompt=request.custom_prompt,
                provider=request.provider,
                temperature=request.temperature,
                max_tokens=request.max_tokens,
                **context,
            )
        except (UnknownContentTypeError, ProviderUnavailableError) as exc:
            raise APIError(400, str(exc), code="INVALID_GENERATION_REQUEST") from exc
        except LLMServiceError as exc:
            raise APIError(500, "Failed to generate content", error=str(exc), code="GENERATION_FAILED") from exc

        changes: dict[str, Any] = {
            "contentGeneration.lastGenerated": utcnow(),
            "contentGeneration.generatedBy": result["provider"],
            "contentGeneration.isGenerated": True,
        }
        if request.custom_prompt:
            changes["contentGeneration.customPrompt"] = request.custom_prompt
        await self.services.update(service["_id"], changes)

        return {
            "success": True,
            "message": "Content generated successfully",
            "data": {
                "serviceId": str(service["_id"]),
                "contentType": request.content_type,
                "content": result["content"],
                "provider": result["provider"],
                "tokensUsed": result.get("tokensUsed", 0),
                "cached": result.get("cached", False),
            },
        }

    async def generate_blog(self, request: GenerateBlogRequest, user: dict) -> dict[str, Any]:
        page = await self.pages.get_by_id(request.service_page_id)
        if page is None:
            raise APIError(404, "Service page not found")
        service = await self.services.get_by_id(page["serviceId"])
        if service is None:
            raise APIError(404, "Service not found")
        website = await self.websites.get_by_id(page["websiteId"])
        if website is None:
            raise APIError(404, "Website not found", code="WEBSITE_NOT_FOUND")
        context = self._website_context(website, user)
        keywords = request.keywords or (service.get("seo") or {}).get("keywords") or []

        outcome = await self.llm.generate_single_blog_content(
            service["name"],
            request.blog_type,
            website_name=context["website_name"] or "Our Practice",
            doctor_name=context["doctor_name"] or "Dr. Professional",
            keywords=keywords,
        )
        if not outcome["success"]:
            errors = [v["error"] for v in outcome["sections"].values() if "error" in v]
            raise APIError(
                500, "Failed to generate blog", error=errors[-1] if errors else None, code="GENERATION_FAILED",
            )

        title = dict(BLOG_TYPES)[request.blog_type].format(service=service["name"])
        draft = structure_llm_blog(
            service["name"],
            {"type": request.blog_type, "title": title, **outcome},
            category=service.get("category"),
            keywords=keywords,
        )
        blog, created = await self._store_blog(
            draft, service=service, page=page, website=website,
            author=context["doctor_name"], publish=request.auto_publish,
        )
        return {
            "success": True,
            "message": "Blog generated and created successfully" if created else "Blog regenerated successfully",
            "data": serialize_document({"blog": blog, "metadata": outcome["metadata"]}),
            "created": created,
        }
