"""Pydantic request bodies for the FastAPI endpoints.

Bodies arrive with camelCase keys from the dashboard; attributes are
snake_case like the document models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.models.blog import BlogType
from src.models.common import ServiceCategory
from src.models.service import PageStatus
from src.models.website import WebsiteStatus, WebsiteTemplate


class RequestBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Content generation ───────────────────────────────────────────────

class GenerateContentRequest(RequestBody):
    """Generate (or regenerate) a service page and its blogs for a website."""

    service_name: str = Field(..., min_length=1, max_length=100)
    website_id: str | None = None
    category: ServiceCategory | None = None
    description: str | None = Field(None, max_length=200)
    keywords: list[str] = Field(default_factory=list)
    fast_mode: bool = False
    generate_seo: bool = True
    generate_blogs: bool = True


class GenerateSectionRequest(RequestBody):
    content_type: str = Field(..., min_length=1)
    keywords: list[str] = Field(default_factory=list)
    website_id: str | None = None
    custom_prompt: str | None = Field(None, max_length=4000)
    provider: str = "auto"
    temperature: float = Field(0.7, ge=0, le=2)
    max_tokens: int = Field(1000, ge=50, le=4000)


class GenerateBlogRequest(RequestBody):
    service_page_id: str
    blog_type: BlogType = "comprehensive"
    keywords: list[str] = Field(default_factory=list)
    auto_publish: bool = False


# ── Service pages / blogs ────────────────────────────────────────────

class ServicePageRequest(RequestBody):
    website_id: str
    service_id: str
    title: str | None = Field(None, max_length=100)
    status: PageStatus | None = None
    is_integrated: bool | None = None
    content: dict[str, Any] | None = None
    seo: dict[str, Any] | None = None


class PageStatusRequest(RequestBody):
    status: PageStatus


class PublishRequest(RequestBody):
    publish: bool = True


# ── Websites ─────────────────────────────────────────────────────────

class WebsiteRequest(RequestBody):
    name: str = Field(..., min_length=1, max_length=100)
    subdomain: str = Field(..., min_length=2, max_length=63)
    description: str | None = Field(None, max_length=500)
    custom_domain: str | None = None
    template: WebsiteTemplate = "dental-modern"
    doctor_name: str | None = Field(None, max_length=100)
    location: str | None = Field(None, max_length=200)
    contact: dict[str, Any] | None = None


class WebsiteStatusRequest(RequestBody):
    status: WebsiteStatus


# ── Auth ─────────────────────────────────────────────────────────────

class GoogleCallbackRequest(RequestBody):
    """The authorization code Google redirected back with.

    The sign-up role travels through the OAuth ``state`` parameter; an
    explicit ``role`` takes precedence.
    """

    code: str = Field(..., min_length=1)
    state: str | None = None
    role: str | None = None


# ── Calendar ─────────────────────────────────────────────────────────

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class SlotRequest(RequestBody):
    start_time: datetime
    end_time: datetime
    type: str = Field("Appointment", min_length=1, max_length=100)


class BookSlotRequest(RequestBody):
    """Booking by a signed-in user; missing patient details come from their profile."""

    slot_id: str
    patient_name: str | None = Field(None, max_length=100)
    patient_email: str | None = Field(None, pattern=EMAIL_PATTERN)
    patient_phone: str | None = Field(None, max_length=40)
    reason_for_visit: str | None = Field(None, max_length=1000)
    notes: str | None = Field(None, max_length=2000)
    service_page_id: str | None = None


class PublicBookSlotRequest(BookSlotRequest):
    patient_name: str = Field(..., min_length=1, max_length=100)
    patient_email: str = Field(..., pattern=EMAIL_PATTERN)
    patient_phone: str = Field(..., min_length=3, max_length=40)


class CancelAppointmentRequest(RequestBody):
    cancellation_reason: str | None = Field(None, max_length=500)


class RescheduleRequest(RequestBody):
    new_slot_id: str


# ── Health ───────────────────────────────────────────────────────────

class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    service: str = "docwebsite-backend"
    database: str = "connected"
