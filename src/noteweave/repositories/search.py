"""
Lexical Search Repository

Keyword search over notes using PostgreSQL full-text search. The document
vector is built from ``content_plain`` and ``title`` and is served by the
GIN expression index created in the initial migration; the expression
below must stay byte-for-byte equivalent to that index for it to be used.

Ranks are returned raw (``ts_rank``). Normalization across ranking spaces
is the fusion engine's job, not this module's.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Final, NamedTuple

from sqlalchemy import func, literal_column, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from noteweave.core.isolation import OwnerScope
from noteweave.models import Note, NoteType

logger = logging.getLogger(__name__)

_UNSAFE_CHARS: Final[re.Pattern[str]] = re.compile(r"[<>{}\[\]\\]")
_WHITESPACE: Final[re.Pattern[str]] = re.compile(r"\s+")

_TS_CONFIG = literal_column("'english'::regconfig")

DOCUMENT_VECTOR = func.to_tsvector(
    _TS_CONFIG,
    func.coalesce(Note.content_plain, literal_column("''"))
    .op("||")(literal_column("' '"))
    .op("||")(func.coalesce(Note.title, literal_column("''"))),
)


def sanitize_search_query(query: str) -> str:
    """
    Make raw user input safe for ``plainto_tsquery``.

    Replaces characters the text-search parser chokes on with spaces,
    collapses whitespace and trims. Idempotent. An empty return value means
    "no searchable terms".
    """
    sanitized = _UNSAFE_CHARS.sub(" ", query)
    sanitized = _WHITESPACE.sub(" ", sanitized)
    return sanitized.strip()


@dataclass(frozen=True, slots=True)
class LexicalQuery:
    """Lexical search parameters (query is sanitized internally)."""

    query: str
    limit: int = 20
    offset: int = 0
    note_type: NoteType | None = None
    min_mood: int | None = None
    max_mood: int | None = None


class LexicalHit(NamedTuple):
    """A matching note with its raw full-text rank (higher = more relevant)."""

    note: Note
    rank: float


class LexicalSearchRepository:
    """
    Full-text search over the owner's notes.

    Ordering: rank descending, ties broken by most recently updated.
    """

    @staticmethod
    def _conditions(terms: str, params: LexicalQuery) -> list[ColumnElement[bool]]:
        ts_query = func.plainto_tsquery(_TS_CONFIG, terms)
        conditions: list[ColumnElement[bool]] = [DOCUMENT_VECTOR.op("@@")(ts_query)]
        if params.note_type is not None:
            conditions.append(Note.note_type == params.note_type)
        if params.min_mood is not None:
            conditions.append(Note.mood_score >= params.min_mood)
        if params.max_mood is not None:
            conditions.append(Note.mood_score <= params.max_mood)
        return conditions

    async def has_terms(self, session: AsyncSession, query: str) -> bool:
        """
        Whether the query keeps any lexemes once the text-search parser has
        dropped stopwords. ``"the and of"`` sanitizes to a non-empty string
        but parses to an empty tsquery.
        """
        terms = sanitize_search_query(query)
        if not terms:
            return False

        stmt = select(func.numnode(func.plainto_tsquery(_TS_CONFIG, terms)))
        result = await session.execute(stmt)
        return int(result.scalar_one() or 0) > 0

    async def search(
        self,
        session: AsyncSession,
        scope: OwnerScope,
        params: LexicalQuery,
    ) -> list[LexicalHit]:
        """
        Search notes by keyword.

        Args:
            session: Active async database session.
            scope: Owner scope (mandatory).
            params: Query text, filters and pagination.

        Returns:
            Hits ordered by rank, then recency. Empty when the query has
            no searchable terms after sanitization.
        """
        terms = sanitize_search_query(params.query)
        if not terms:
            return []

        rank = func.ts_rank(DOCUMENT_VECTOR, func.plainto_tsquery(_TS_CONFIG, terms)).label(
            "rank"
        )
        stmt = (
            select(Note, rank)
            .where(scope.where(Note, *self._conditions(terms, params)))
            .order_by(rank.desc(), Note.updated_at.desc(), Note.id)
            .limit(params.limit)
            .offset(params.offset)
        )
        result = await session.execute(stmt)
        hits = [LexicalHit(note=row[0], rank=float(row[1])) for row in result.all()]

        logger.debug("Lexical search '%s': %d hits", terms[:50], len(hits))
        return hits

    async def count(
        self,
        session: AsyncSession,
        scope: OwnerScope,
        params: LexicalQuery,
    ) -> int:
        """Total number of matches, ignoring limit/offset."""
        terms = sanitize_search_query(params.query)
        if not terms:
            return 0

        stmt = (
            select(func.count())
            .select_from(Note)
            .where(scope.where(Note, *self._conditions(terms, params)))
        )
        result = await session.execute(stmt)
        return int(result.scalar_one())


# Module-level singleton for convenience imports
lexical_search_repository = LexicalSearchRepository()
