"""
Link Schemas

Request/response models for note links.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from noteweave.models.link import LinkType


class LinkCreate(BaseModel):
    """Request schema for POST /notes/{id}/links."""

    target_note_id: UUID
    link_type: LinkType = LinkType.MANUAL
    strength: float = Field(default=1.0, ge=0, le=1)


class LinkRead(BaseModel):
    """Stored link."""

    id: UUID
    source_note_id: UUID
    target_note_id: UUID
    link_type: LinkType
    strength: float
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
