# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Base entity models with common fields and serialization conventions.

Records are stored in MongoDB and exposed over the API with camelCase field
names; Python code works with the snake_case attribute names.
"""

from datetime import datetime, timezone
from typing import Any, Dict
from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from bson import ObjectId


def generate_object_id() -> str:
    """Generate a new MongoDB ObjectId as string."""
    return str(ObjectId())


def utcnow() -> datetime:
    """Current UTC time as an aware datetime."""
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Pydantic model serialized with camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_assignment=True,
    )

    @field_validator("*", mode="after")
    @classmethod
    def assume_utc(cls, v):
        """Naive datetimes are taken to be UTC."""
        if isinstance(v, datetime) and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class BaseEntity(CamelModel):
    """Base entity with common fields for all stored records."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        # Allow population by field name or alias
        populate_by_name=True,
        # Use enum values instead of enum objects
        use_enum_values=True,
        # Validate assignment
        validate_assignment=True,
        # Stored documents carry bookkeeping fields we don't model
        extra="ignore",
    )

    id: str = Field(default_factory=generate_object_id, description="Unique identifier")
    created_at: datetime = Field(default_factory=utcnow, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=utcnow, description="Last update timestamp")

    def to_document(self) -> Dict[str, Any]:
        """Serialize to a camelCase document suitable for storage."""
        return self.model_dump(by_alias=True)

    def to_public(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible camelCase dict for API responses."""
        return self.model_dump(by_alias=True, mode="json")
