"""
Note Embedding Model

Storage table of the pgvector-backed vector store. It is a derived,
eventually-consistent projection of ``notes``: no foreign key, never joined
with relational queries, written only through ``PgVectorStore``.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pgvector.sqlalchemy import Vector
from sqlalchemy import DateTime, String, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from noteweave.core.config import settings
from noteweave.models.base import Base

EMBEDDING_DIMENSION: int = settings.EMBEDDING_DIMENSION


class NoteEmbedding(Base):
    """
    Vector record for a note.

    Attributes:
        note_id: Note identifier (primary key, upsert target).
        owner_id: Owner copied from the note; the store filters on it.
        embedding: Fixed-dimension vector (cosine HNSW index).
        payload: Metadata mirror: owner_id, note_id, title, note_type,
            tags, created_at, updated_at.
    """

    __tablename__ = "note_embeddings"

    note_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    embedding: Mapped[list[float]] = mapped_column(
        Vector(EMBEDDING_DIMENSION),
        nullable=False,
    )
    payload: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSONB,
        nullable=False,
        default=dict,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<NoteEmbedding(note_id={self.note_id!s:.8})>"
