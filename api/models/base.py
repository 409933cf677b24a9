# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Base entity models with common fields and document mapping.
"""

from datetime import datetime, timezone
from typing import Any, Dict
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from bson import ObjectId


def generate_object_id() -> str:
    """Generate a new MongoDB ObjectId as string."""
    return str(ObjectId())


def utc_now() -> datetime:
    """Current UTC timestamp."""
    return datetime.now(timezone.utc)


class DocumentModel(BaseModel):
    """
    Base for models persisted as MongoDB documents.

    Python attributes are snake_case; stored documents use camelCase keys.
    """

    model_config = ConfigDict(
        # Accept both snake_case names and camelCase document keys
        populate_by_name=True,
        alias_generator=to_camel,
        # Store enum values instead of enum objects
        use_enum_values=True,
        validate_assignment=True,
        arbitrary_types_allowed=True
    )

    def to_document(self) -> Dict[str, Any]:
        """Serialize to a camelCase document for the ledger store."""
        return self.model_dump(by_alias=True, mode="python")

    @classmethod
    def from_document(cls, document: Dict[str, Any]):
        """Build the model from a stored document (``_id`` already mapped to ``id``)."""
        data = {k: v for k, v in document.items() if k != "_id"}
        return cls.model_validate(data)


class BaseEntity(DocumentModel):
    """Base entity with identity and timestamps."""

    id: str = Field(default_factory=generate_object_id, description="Unique identifier")
    created_at: datetime = Field(default_factory=utc_now, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=utc_now, description="Last update timestamp")

    def update_timestamp(self) -> None:
        """Bump the last update timestamp."""
        self.updated_at = utc_now()
