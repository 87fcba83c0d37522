"""Blog article document with its eleven-section content schema."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import Field, StringConstraints, model_validator

from src.database import utcnow
from src.models.common import DocumentModel, PyObjectId, ServiceCategory

BlogType = Literal["comprehensive", "benefits", "procedure", "recovery", "cost", "myths"]

# Ordered as they render on the page
BLOG_SECTION_KEYS: tuple[str, ...] = (
    "introduction",
    "whatIsIt",
    "whyNeedIt",
    "signsSymptoms",
    "consequencesDelay",
    "treatmentProcess",
    "benefits",
    "recoveryAftercare",
    "mythsFacts",
    "costConsiderations",
)

MAX_READING_TIME = 30
WORDS_PER_MINUTE = 200


class BlogSection(DocumentModel):
    title: str = Field(..., max_length=200)
    content: str = Field("", max_length=10000)
    anchor: str = ""


class BlogFAQItem(DocumentModel):
    question: str = Field(..., max_length=200)
    answer: str = Field(..., max_length=800)


class BlogFAQ(DocumentModel):
    title: str = "Frequently Asked Questions"
    anchor: str = "faq"
    questions: list[BlogFAQItem] = Field(default_factory=list, max_length=25)


class BlogContent(DocumentModel):
    introduction: BlogSection | None = None
    what_is_it: BlogSection | None = None
    why_need_it: BlogSection | None = None
    signs_symptoms: BlogSection | None = None
    consequences_delay: BlogSection | None = None
    treatment_process: BlogSection | None = None
    benefits: BlogSection | None = None
    recovery_aftercare: BlogSection | None = None
    myths_facts: BlogSection | None = None
    cost_considerations: BlogSection | None = None
    faq: BlogFAQ | None = None

    def sections(self) -> list[BlogSection]:
        found = [
            self.introduction, self.what_is_it, self.why_need_it, self.signs_symptoms,
            self.consequences_delay, self.treatment_process, self.benefits,
            self.recovery_aftercare, self.myths_facts, self.cost_considerations,
        ]
        return [s for s in found if s is not None]


class Blog(DocumentModel):
    title: str = Field(..., min_length=1, max_length=200)
    slug: str = Field(..., pattern=r"^[a-z0-9-]+$")
    introduction: str = Field("", max_length=500)
    content: BlogContent = Field(default_factory=BlogContent)
    key_takeaways: list[Annotated[str, StringConstraints(max_length=150)]] = Field(default_factory=list)
    service_id: PyObjectId | None = None
    service_page_id: PyObjectId | None = None
    website_id: PyObjectId | None = None
    blog_type: BlogType = "comprehensive"
    author: str = "Dr. Professional"
    author_bio: str | None = Field(None, max_length=300)
    category: ServiceCategory = "general-dentistry"
    tags: list[Annotated[str, StringConstraints(max_length=50)]] = Field(default_factory=list)
    meta_title: str = Field("", max_length=60)
    meta_description: str = Field("", max_length=160)
    seo_keywords: list[str] = Field(default_factory=list)
    reading_time: int = Field(0, ge=0, le=MAX_READING_TIME)
    word_count: int = Field(0, ge=0)
    is_published: bool = False
    published_at: datetime | None = None
    featured: bool = False
    quality_score: int = Field(0, ge=0, le=100)
    llm_generated: bool = False
    generation_provider: str | None = None
    generation_metadata: dict[str, Any] = Field(default_factory=dict)
    views: int = 0
    likes: int = 0
    shares: int = 0

    @model_validator(mode="after")
    def _compute_derived_fields(self) -> Blog:
        texts = [s.content for s in self.content.sections()]
        if self.content.faq:
            texts += [f"{q.question} {q.answer}" for q in self.content.faq.questions]
        texts.append(self.introduction)
        self.word_count = sum(len(t.split()) for t in texts if t)
        self.reading_time = min(MAX_READING_TIME, math.ceil(self.word_count / WORDS_PER_MINUTE))

        if not self.meta_title:
            self.meta_title = self.title if len(self.title) <= 55 else self.title[:52] + "..."
        if not self.meta_description and self.introduction:
            intro = self.introduction
            self.meta_description = intro if len(intro) <= 155 else intro[:152] + "..."

        if self.is_published and self.published_at is None:
            self.published_at = utcnow()
        return self

    @property
    def url(self) -> str:
        return f"/blog/{self.slug}"
