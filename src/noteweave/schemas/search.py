"""
Search Schemas

Request parameters and response payloads for the hybrid search endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from noteweave.models.note import NoteType

SearchMode = Literal["hybrid", "keyword", "semantic"]


class SearchParams(BaseModel):
    """
    Validated search request.

    Mood bounds are checked against each other; everything else is
    validated field by field.
    """

    query: str = Field(..., min_length=1, max_length=2000)
    limit: int = Field(default=20, ge=1, le=50)
    offset: int = Field(default=0, ge=0)
    mode: SearchMode = "hybrid"
    semantic_weight: float = Field(default=0.6, ge=0, le=1)
    note_type: NoteType | None = None
    tags: list[str] | None = None
    min_mood: int | None = Field(default=None, ge=1, le=10)
    max_mood: int | None = Field(default=None, ge=1, le=10)
    include_count: bool = False

    @model_validator(mode="after")
    def _check_mood_bounds(self) -> SearchParams:
        if (
            self.min_mood is not None
            and self.max_mood is not None
            and self.min_mood > self.max_mood
        ):
            raise ValueError("min_mood cannot be greater than max_mood")
        return self


class SearchResultItem(BaseModel):
    """One hydrated note with its score breakdown."""

    id: UUID
    title: str
    content: str
    content_plain: str | None = None
    note_type: NoteType
    source_url: str | None = None
    mood_score: int | None = None
    created_at: datetime
    updated_at: datetime
    score: float = Field(description="Combined score used for ordering")
    lexical_rank: float | None = Field(
        default=None,
        description="Raw full-text rank (unnormalized)",
    )
    semantic_score: float | None = Field(
        default=None,
        description="Raw cosine similarity",
    )

    model_config = ConfigDict(from_attributes=True)


class SearchResponse(BaseModel):
    """Ranked, paginated search response."""

    results: list[SearchResultItem] = Field(default_factory=list)
    count: int = Field(default=0, description="Size of the fused candidate set")
    total_count: int | None = Field(
        default=None,
        description="Total lexical matches (when include_count is set)",
    )
    offset: int
    limit: int
    query: str
    mode: SearchMode
    semantic_weight: float | None = None
    degraded: bool = Field(
        default=False,
        description="True when the semantic path failed and results are lexical-only",
    )


class KeywordSearchResponse(BaseModel):
    """Lexical-only search response with pagination hints."""

    results: list[SearchResultItem] = Field(default_factory=list)
    query: str
    count: int
    total_count: int | None = None
    limit: int
    offset: int
    has_more: bool | None = None
