"""
Embedding Schemas

Lifecycle results and job messages for the embedding pipeline.
"""

from __future__ import annotations

from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field


class EmbedResult(BaseModel):
    """Outcome of one embedding job run."""

    note_id: UUID
    success: bool
    attempts: int = 0
    skipped: bool = Field(default=False, description="Already complete, nothing to do")
    error: str | None = None


class BatchEmbedRequest(BaseModel):
    """Request schema for POST /embeddings/batch."""

    note_ids: list[UUID] = Field(..., min_length=1, max_length=500)
    force: bool = False


class BatchEmbedResult(BaseModel):
    """Per-item outcomes plus success/failure counts."""

    results: list[EmbedResult] = Field(default_factory=list)
    succeeded: int = 0
    failed: int = 0


class EmbeddingJob(BaseModel):
    """
    Message handed to the background dispatcher.

    Handlers are idempotent, so a job may safely be delivered more than once.
    """

    action: Literal["embed", "reembed", "delete"]
    note_id: UUID
    owner_id: str = Field(..., min_length=1)
