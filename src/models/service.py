"""Dental service catalog entries and their per-website pages."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Literal

from pydantic import Field, model_validator

from src.database import slugify, utcnow
from src.models.common import DocumentModel, PyObjectId, ServiceCategory
from src.models.content import GenerationInfo, SEOFields, ServicePageContent

PageStatus = Literal["draft", "published", "archived"]

WORDS_PER_MINUTE = 200


class PriceRange(DocumentModel):
    min: float | None = Field(None, ge=0)
    max: float | None = Field(None, ge=0)


class Pricing(DocumentModel):
    has_fixed_price: bool = False
    base_price: float | None = Field(None, ge=0)
    price_range: PriceRange | None = None
    currency: str = Field("USD", max_length=3)
    price_note: str | None = Field(None, max_length=300)


class ContentGenerationInfo(DocumentModel):
    last_generated: datetime | None = None
    generated_by: str | None = None
    custom_prompt: str | None = None
    is_generated: bool = False


class ServiceAnalytics(DocumentModel):
    view_count: int = 0
    booking_count: int = 0
    last_viewed: datetime | None = None


class DentalService(DocumentModel):
    name: str = Field(..., min_length=1, max_length=100)
    slug: str = ""
    category: ServiceCategory = "general-dentistry"
    subcategory: str | None = Field(None, max_length=50)
    short_description: str = Field(..., min_length=1, max_length=200)
    full_description: str | None = Field(None, max_length=2000)
    pricing: Pricing = Field(default_factory=Pricing)
    duration: str | None = Field(None, max_length=100)
    seo: SEOFields = Field(default_factory=SEOFields)
    content_generation: ContentGenerationInfo = Field(default_factory=ContentGenerationInfo)
    is_active: bool = True
    is_popular: bool = False
    is_premium: bool = False
    analytics: ServiceAnalytics = Field(default_factory=ServiceAnalytics)

    @model_validator(mode="after")
    def _fill_defaults(self) -> DentalService:
        self.slug = slugify(self.slug or self.name)
        if not self.slug:
            raise ValueError("name must contain at least one Latin letter or digit")
        if not self.seo.meta_title:
            self.seo.meta_title = f"{self.name} | Professional Dental Care"[:60]
        if not self.seo.meta_description:
            self.seo.meta_description = self.short_description[:160]
        return self


def conversion_rate(bookings: int, unique_views: int) -> float:
    """Bookings per hundred unique visitors, rounded to two decimals."""
    if unique_views <= 0:
        return 0.0
    return round(bookings / unique_views * 100, 2)


class PageAnalytics(DocumentModel):
    views: int = 0
    unique_views: int = 0
    bookings: int = 0
    conversion_rate: float = 0.0
    last_viewed: datetime | None = None

    @model_validator(mode="after")
    def _derive_rate(self) -> PageAnalytics:
        self.conversion_rate = conversion_rate(self.bookings, self.unique_views)
        return self


class ServicePage(DocumentModel):
    website_id: PyObjectId
    service_id: PyObjectId
    doctor_id: PyObjectId | None = None
    title: str = Field(..., min_length=1, max_length=100)
    slug: str = ""
    status: PageStatus = "draft"
    is_active: bool = True
    is_integrated: bool = False
    content: ServicePageContent = Field(default_factory=ServicePageContent)
    seo: SEOFields = Field(default_factory=SEOFields)
    generation: GenerationInfo = Field(default_factory=GenerationInfo)
    analytics: PageAnalytics = Field(default_factory=PageAnalytics)
    published_at: datetime | None = None
    reading_time: int = Field(0, ge=0)

    @model_validator(mode="after")
    def _fill_defaults(self) -> ServicePage:
        self.slug = slugify(self.slug or self.title)
        self.reading_time = self.reading_time_minutes
        if self.status == "published" and self.published_at is None:
            self.published_at = utcnow()
        return self

    @property
    def reading_time_minutes(self) -> int:
        c = self.content
        texts = [c.overview]
        texts += [b.content for b in c.benefits + c.detailed_benefits]
        texts += [s.description for s in c.procedure + c.procedure_details]
        texts += [f.answer for f in c.faq]
        words = sum(len(t.split()) for t in texts if t)
        return max(1, math.ceil(words / WORDS_PER_MINUTE))
