"""
Vector Store

Nearest-neighbour index for note embeddings, consumed as a black-box
service through the ``VectorStore`` interface:

    upsert / upsert_batch / query / fetch / delete

``PgVectorStore`` is the default implementation. It keeps vectors in the
``note_embeddings`` table with a cosine HNSW index, and opens its own
sessions: vector writes never share a transaction with relational writes.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, ClassVar
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import array, insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from noteweave.core.errors import OwnerRequiredError
from noteweave.models import NoteEmbedding

logger = logging.getLogger(__name__)

_TABLE = NoteEmbedding.__table__
_COLUMNS = _TABLE.c
# JSONB payload column ("metadata" in the database)
_PAYLOAD = NoteEmbedding.payload.property.columns[0]


@dataclass(frozen=True, slots=True)
class VectorFilter:
    """
    Metadata filter for nearest-neighbour queries.

    ``owner_id`` is mandatory: a query without an owner fails closed.
    ``tags`` matches records carrying any of the given tags.
    """

    owner_id: str
    note_type: str | None = None
    tags: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        if not self.owner_id:
            raise OwnerRequiredError("Vector queries require an owner identifier")

    def matches(self, metadata: dict[str, Any] | None) -> bool:
        """Evaluate the filter against an echoed metadata payload."""
        if not metadata or metadata.get("owner_id") != self.owner_id:
            return False
        if self.note_type is not None and metadata.get("note_type") != self.note_type:
            return False
        if self.tags:
            return bool(set(self.tags) & set(metadata.get("tags") or []))
        return True


@dataclass(frozen=True, slots=True)
class VectorMatch:
    """Query hit: note id, cosine similarity (higher = closer), optional metadata."""

    id: UUID
    score: float
    metadata: dict[str, Any] | None = None


@dataclass(frozen=True, slots=True)
class VectorRecord:
    """Stored vector with its metadata payload."""

    id: UUID
    vector: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)


class VectorStore(ABC):
    """Nearest-neighbour store interface."""

    #: True when ``query`` evaluates note_type/tags filters server-side.
    supports_metadata_filters: ClassVar[bool] = False

    @abstractmethod
    async def upsert(self, id: UUID, vector: list[float], metadata: dict[str, Any]) -> None:
        """Insert or replace one record (last write wins)."""

    @abstractmethod
    async def upsert_batch(self, records: Sequence[VectorRecord]) -> None:
        """Insert or replace many records."""

    @abstractmethod
    async def query(
        self,
        vector: list[float],
        top_k: int,
        filter: VectorFilter,
        include_metadata: bool = True,
    ) -> list[VectorMatch]:
        """Top-k records by cosine similarity, restricted by ``filter``."""

    @abstractmethod
    async def fetch(self, ids: Sequence[UUID]) -> list[VectorRecord]:
        """Stored records for ``ids`` (missing ids are simply absent)."""

    @abstractmethod
    async def delete(self, ids: Sequence[UUID]) -> None:
        """Remove records; unknown ids are ignored."""


class PgVectorStore(VectorStore):
    """
    pgvector-backed store.

    Similarity is ``1 - cosine_distance`` (range [-1, 1], higher = more
    similar), using the HNSW index on ``note_embeddings.embedding``.
    The owner filter is applied twice: on the ``owner_id`` column and on
    the metadata payload.
    """

    supports_metadata_filters = True

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @staticmethod
    def _row(id: UUID, vector: list[float], metadata: dict[str, Any]) -> dict[str, Any]:
        owner_id = metadata.get("owner_id")
        if not owner_id:
            raise OwnerRequiredError("Vector metadata must carry owner_id")
        return {
            _COLUMNS.note_id.key: id,
            _COLUMNS.owner_id.key: owner_id,
            _COLUMNS.embedding.key: vector,
            _PAYLOAD.key: metadata,
        }

    async def _upsert_rows(self, rows: list[dict[str, Any]]) -> None:
        stmt = insert(_TABLE).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=[_COLUMNS.note_id],
            set_={
                _COLUMNS.owner_id: stmt.excluded[_COLUMNS.owner_id.key],
                _COLUMNS.embedding: stmt.excluded[_COLUMNS.embedding.key],
                _PAYLOAD: stmt.excluded[_PAYLOAD.key],
                _COLUMNS.updated_at: func.now(),
            },
        )
        async with self._session_factory() as session:
            await session.execute(stmt)
            await session.commit()

    async def upsert(self, id: UUID, vector: list[float], metadata: dict[str, Any]) -> None:
        await self._upsert_rows([self._row(id, vector, metadata)])
        logger.debug("Upserted vector for note %s", id)

    async def upsert_batch(self, records: Sequence[VectorRecord]) -> None:
        if not records:
            return
        await self._upsert_rows([self._row(r.id, r.vector, r.metadata) for r in records])
        logger.info("Upserted %d vectors", len(records))

    async def query(
        self,
        vector: list[float],
        top_k: int,
        filter: VectorFilter,
        include_metadata: bool = True,
    ) -> list[VectorMatch]:
        distance = NoteEmbedding.embedding.cosine_distance(vector).label("distance")

        conditions = [
            NoteEmbedding.owner_id == filter.owner_id,
            NoteEmbedding.payload["owner_id"].astext == filter.owner_id,
        ]
        if filter.note_type is not None:
            conditions.append(NoteEmbedding.payload["note_type"].astext == filter.note_type)
        if filter.tags:
            conditions.append(NoteEmbedding.payload["tags"].has_any(array(list(filter.tags))))

        stmt = (
            select(NoteEmbedding.note_id, NoteEmbedding.payload, distance)
            .where(*conditions)
            .order_by(distance)
            .limit(top_k)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            rows = result.all()

        # Convert cosine distance -> similarity score
        return [
            VectorMatch(
                id=note_id,
                score=round(1.0 - float(dist), 4),
                metadata=payload if include_metadata else None,
            )
            for note_id, payload, dist in rows
        ]

    async def fetch(self, ids: Sequence[UUID]) -> list[VectorRecord]:
        if not ids:
            return []
        stmt = select(NoteEmbedding).where(NoteEmbedding.note_id.in_(list(ids)))
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            records = result.scalars().all()
        return [
            VectorRecord(
                id=r.note_id,
                vector=[float(x) for x in r.embedding],
                metadata=dict(r.payload or {}),
            )
            for r in records
        ]

    async def delete(self, ids: Sequence[UUID]) -> None:
        if not ids:
            return
        async with self._session_factory() as session:
            await session.execute(
                delete(NoteEmbedding).where(NoteEmbedding.note_id.in_(list(ids)))
            )
            await session.commit()
        logger.info("Deleted %d vectors", len(ids))
