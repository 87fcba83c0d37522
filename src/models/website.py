"""Tenant website owned by a doctor."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field, field_validator, model_validator

from src.config import PUBLIC_SITE_DOMAIN
from src.database import utcnow
from src.models.common import DocumentModel, PyObjectId

WebsiteStatus = Literal["draft", "preview", "published", "archived"]
WebsiteTemplate = Literal["dental-modern", "medical-classic", "healthcare-minimal", "custom"]

WEBSITE_STATUSES: tuple[str, ...] = ("draft", "preview", "published", "archived")
SUBDOMAIN_PATTERN = r"^[a-z0-9][a-z0-9-]*[a-z0-9]$"


class WebsiteContact(DocumentModel):
    phone: str | None = None
    email: str | None = None
    address: str | None = None


class Website(DocumentModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    subdomain: str = Field(..., min_length=2, max_length=63, pattern=SUBDOMAIN_PATTERN)
    custom_domain: str | None = None
    template: WebsiteTemplate = "dental-modern"
    status: WebsiteStatus = "draft"
    doctor_id: PyObjectId
    doctor_name: str | None = Field(None, max_length=100)
    location: str | None = Field(None, max_length=200)
    contact: WebsiteContact = Field(default_factory=WebsiteContact)
    published_at: datetime | None = None

    @field_validator("subdomain", mode="before")
    @classmethod
    def _normalise_subdomain(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @model_validator(mode="after")
    def _stamp_publication(self) -> Website:
        if self.status == "published" and self.published_at is None:
            self.published_at = utcnow()
        return self


def public_url(website: dict) -> str:
    """Public address of a stored website document."""
    if website.get("customDomain"):
        return f"https://{website['customDomain']}"
    return f"https://{website['subdomain']}.{PUBLIC_SITE_DOMAIN}"
