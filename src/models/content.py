"""Bounded content blocks produced by the generation pipeline.

Every text field carries a ``max_length`` and every list a maximum item
count, so a generated page can never be persisted with oversized fields.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import Field

from src.models.common import DocumentModel

FAQCategory = Literal[
    "cost",
    "pain",
    "recovery",
    "candidacy",
    "risks",
    "alternatives",
    "results",
    "maintenance",
    "procedure",
    "general",
]

MAX_BULLETS = 5
MAX_FAQS = 25


class BulletPoint(DocumentModel):
    title: str = Field(..., max_length=150)
    content: str = Field(..., max_length=800)


class ProcedureStep(DocumentModel):
    step_number: int = Field(..., ge=1)
    title: str = Field(..., max_length=150)
    description: str = Field(..., max_length=800)


class FAQItem(DocumentModel):
    question: str = Field(..., max_length=300)
    answer: str = Field(..., max_length=1000)
    category: FAQCategory = "general"
    order: int = 0


class MythFact(DocumentModel):
    myth: str = Field(..., max_length=500)
    fact: str = Field(..., max_length=500)


class AftercareInstruction(DocumentModel):
    title: str = Field(..., max_length=80)
    description: str = Field(..., max_length=200)
    timeframe: str = Field("First 24 hours", max_length=50)


class CallToAction(DocumentModel):
    title: str = Field(..., max_length=100)
    subtitle: str = Field("", max_length=200)
    button_text: str = Field("Book Consultation", max_length=30)
    phone_number: str | None = None
    background_color: str = "#2563eb"


class HeroBlock(DocumentModel):
    title: str = Field("", max_length=100)
    subtitle: str = Field("", max_length=300)
    image: str | None = None


class ComprehensiveContent(DocumentModel):
    """The eleven generated sections, kept verbatim-but-parsed for reuse."""

    introduction: str = Field("", max_length=3000)
    detailed_explanation: list[BulletPoint] = Field(default_factory=list, max_length=MAX_BULLETS)
    treatment_need: list[BulletPoint] = Field(default_factory=list, max_length=MAX_BULLETS)
    symptoms: list[BulletPoint] = Field(default_factory=list, max_length=MAX_BULLETS)
    consequences: list[BulletPoint] = Field(default_factory=list, max_length=MAX_BULLETS)
    procedure_details: list[ProcedureStep] = Field(default_factory=list, max_length=MAX_BULLETS)
    post_treatment_care: list[BulletPoint] = Field(default_factory=list, max_length=MAX_BULLETS)
    detailed_benefits: list[BulletPoint] = Field(default_factory=list, max_length=MAX_BULLETS)
    side_effects: list[BulletPoint] = Field(default_factory=list, max_length=MAX_BULLETS)
    myths_and_facts: list[MythFact] = Field(default_factory=list, max_length=MAX_BULLETS)
    comprehensive_faq: list[FAQItem] = Field(default_factory=list, max_length=MAX_FAQS)


class ServicePageContent(DocumentModel):
    overview: str = Field("", max_length=3000)
    benefits: list[BulletPoint] = Field(default_factory=list, max_length=MAX_BULLETS)
    procedure: list[ProcedureStep] = Field(default_factory=list, max_length=MAX_BULLETS)
    symptoms: list[BulletPoint] = Field(default_factory=list, max_length=MAX_BULLETS)
    consequences: list[BulletPoint] = Field(default_factory=list, max_length=MAX_BULLETS)
    procedure_details: list[ProcedureStep] = Field(default_factory=list, max_length=MAX_BULLETS)
    aftercare: list[AftercareInstruction] = Field(default_factory=list, max_length=MAX_BULLETS)
    detailed_benefits: list[BulletPoint] = Field(default_factory=list, max_length=MAX_BULLETS)
    side_effects: list[BulletPoint] = Field(default_factory=list, max_length=MAX_BULLETS)
    myths_and_facts: list[MythFact] = Field(default_factory=list, max_length=MAX_BULLETS)
    faq: list[FAQItem] = Field(default_factory=list, max_length=MAX_FAQS)
    cta: CallToAction | None = None
    hero: HeroBlock | None = None
    pricing: dict[str, Any] = Field(default_factory=dict)
    before_after: list[dict[str, Any]] = Field(default_factory=list)
    custom_sections: list[dict[str, Any]] = Field(default_factory=list)
    comprehensive_content: ComprehensiveContent | None = None


class SEOFields(DocumentModel):
    meta_title: str = Field("", max_length=60)
    meta_description: str = Field("", max_length=160)
    keywords: list[str] = Field(default_factory=list)
    focus_keyword: str | None = None


class GenerationInfo(DocumentModel):
    last_generated: datetime | None = None
    generated_by: str | None = None
    tokens_used: int = 0
    fast_mode: bool = False
