"""
Related-Notes Schemas

Payloads for the related-notes endpoints (by note, by draft content).
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from noteweave.models.note import NoteType


class DraftRelatedRequest(BaseModel):
    """Draft content for live related-note suggestions while editing."""

    content: str = Field(default="", max_length=100_000)


class RelatedNote(BaseModel):
    """A neighbour note annotated for display."""

    id: UUID
    title: str
    preview: str = Field(description="Markdown-stripped excerpt")
    note_type: NoteType
    similarity: int = Field(description="Cosine similarity as a 0-100 percentage")
    created_at: datetime
    updated_at: datetime
    is_linked: bool = Field(description="An explicit link already exists")


class RelatedNotesResponse(BaseModel):
    """
    Related-notes result.

    ``has_embedding=False`` means no vector was available (note not embedded
    yet, or draft too short); it is a normal response, not an error.
    """

    related: list[RelatedNote] = Field(default_factory=list)
    has_embedding: bool
