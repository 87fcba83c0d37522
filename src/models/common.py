"""Shared pydantic building blocks for the MongoDB document models.

Documents are stored with camelCase keys (the wire format the frontend
speaks); the Python attributes are snake_case and map onto those keys
through an alias generator.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, PlainSerializer, PlainValidator
from pydantic.alias_generators import to_camel

from src.database import to_object_id


def _validate_object_id(value: Any) -> ObjectId:
    oid = to_object_id(value)
    if oid is None:
        raise ValueError(f"Invalid ObjectId: {value!r}")
    return oid


PyObjectId = Annotated[
    ObjectId,
    PlainValidator(_validate_object_id),
    PlainSerializer(str, when_used="json"),
]

ServiceCategory = Literal[
    "general-dentistry",
    "cosmetic-dentistry",
    "orthodontics",
    "oral-surgery",
    "pediatric-dentistry",
    "emergency-dentistry",
    "periodontics",
    "endodontics",
    "prosthodontics",
    "oral-pathology",
]

CATEGORY_NAMES: dict[str, str] = {
    "general-dentistry": "General Dentistry",
    "cosmetic-dentistry": "Cosmetic Dentistry",
    "orthodontics": "Orthodontics",
    "oral-surgery": "Oral Surgery",
    "pediatric-dentistry": "Pediatric Dentistry",
    "emergency-dentistry": "Emergency Dentistry",
    "periodontics": "Periodontics",
    "endodontics": "Endodontics",
    "prosthodontics": "Prosthodontics",
    "oral-pathology": "Oral Pathology",
}


class DocumentModel(BaseModel):
    """Base class: camelCase aliases, ObjectId support, lenient extras."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        arbitrary_types_allowed=True,
        extra="ignore",
    )

    def to_document(self) -> dict[str, Any]:
        """Dump as a MongoDB-ready dict (camelCase keys, ObjectIds kept)."""
        return self.model_dump(by_alias=True, exclude_none=True)
