"""
Note Schemas

Pydantic models for Note API request/response validation and for the
typed view over the JSONB ``metadata`` column.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from noteweave.models.note import EmbeddingStatus, NoteType


class NoteMetadata(BaseModel):
    """
    Typed view of ``notes.metadata``.

    Known fields are the ones the retrieval core reads and writes; anything
    else lives in the explicitly-typed ``extra`` map.
    """

    embedding_status: EmbeddingStatus = EmbeddingStatus.PENDING
    word_count: int = Field(default=0, ge=0)
    embedded_at: datetime | None = None
    embedding_error: str | None = None
    last_embed_attempt: datetime | None = None
    extra: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="ignore")

    def to_column(self) -> dict[str, Any]:
        """Serialize for storage in the JSONB column."""
        return self.model_dump(mode="json", exclude_none=True)


class NoteBase(BaseModel):
    """Base schema with shared validation rules for Note fields."""

    title: str = Field(
        ...,
        min_length=1,
        max_length=500,
        description="Note title (1-500 chars)",
    )
    content: str = Field(..., description="Markdown content")
    note_type: NoteType = Field(default=NoteType.NOTE)
    source_url: str | None = Field(default=None, max_length=2048)
    mood_score: int | None = Field(default=None, ge=1, le=10)
    quality_score: float | None = Field(default=None, ge=0, le=1)
    template_id: str | None = None


class NoteCreate(NoteBase):
    """Request schema for POST /notes."""

    metadata: dict[str, Any] | None = Field(
        default=None,
        description="Free-form extension fields stored under metadata.extra",
    )


class NoteUpdate(BaseModel):
    """
    Request schema for PATCH /notes/{id}.

    All fields optional to support partial updates. ``updated_at`` enables
    optimistic locking: when provided it must match the stored value.
    """

    title: str | None = Field(None, min_length=1, max_length=500)
    content: str | None = None
    note_type: NoteType | None = None
    source_url: str | None = Field(None, max_length=2048)
    mood_score: int | None = Field(None, ge=1, le=10)
    quality_score: float | None = Field(None, ge=0, le=1)
    template_id: str | None = None
    metadata: dict[str, Any] | None = None
    updated_at: datetime | None = None


class NoteRead(NoteBase):
    """Full Note representation including derived fields and timestamps."""

    id: UUID
    content_plain: str | None = None
    metadata: NoteMetadata = Field(
        default_factory=NoteMetadata,
        validation_alias=AliasChoices("note_metadata", "metadata"),
    )
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)  # Enables ORM model conversion


class NoteListParams(BaseModel):
    """Query parameters for GET /notes."""

    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)
    note_type: NoteType | None = None
    min_mood: int | None = Field(default=None, ge=1, le=10)
    max_mood: int | None = Field(default=None, ge=1, le=10)

    @model_validator(mode="after")
    def _check_mood_bounds(self) -> NoteListParams:
        if (
            self.min_mood is not None
            and self.max_mood is not None
            and self.min_mood > self.max_mood
        ):
            raise ValueError("min_mood cannot be greater than max_mood")
        return self


class NoteListResponse(BaseModel):
    """Paginated note listing."""

    notes: list[NoteRead]
    total: int
    limit: int
    offset: int
