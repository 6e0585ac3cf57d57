"""
Vector Searcher

Owner-isolated nearest-neighbour search on top of a ``VectorStore``.

The owner filter is always part of the query. Type and tag filters are
pushed to the store when it supports metadata filtering; otherwise the
searcher over-fetches and filters the echoed metadata itself.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from noteweave.core.isolation import OwnerScope
from noteweave.services.vector_store import VectorFilter, VectorMatch, VectorStore

logger = logging.getLogger(__name__)

# Over-fetch factor for stores that cannot filter on metadata server-side
FILTER_OVERFETCH = 4


class VectorSearcher:
    """Nearest-neighbour search restricted to one owner."""

    def __init__(self, store: VectorStore) -> None:
        self.store = store

    async def search(
        self,
        vector: list[float],
        scope: OwnerScope,
        top_k: int,
        note_type: str | None = None,
        tags: Sequence[str] | None = None,
    ) -> list[VectorMatch]:
        """
        Top-k matches for ``vector`` among the owner's notes.

        Args:
            vector: Query embedding.
            scope: Owner scope; its owner is always part of the filter.
            top_k: Maximum number of matches.
            note_type: Optional note type restriction.
            tags: Optional tag restriction (any of).

        Returns:
            Matches ordered by similarity descending.
        """
        if top_k <= 0:
            return []

        flt = VectorFilter(
            owner_id=scope.owner_id,
            note_type=note_type,
            tags=tuple(tags) if tags else None,
        )

        if self.store.supports_metadata_filters:
            matches = await self.store.query(vector, top_k, flt, include_metadata=True)
            # Stores may be eventually consistent; never trust an echo blindly
            return [m for m in matches if m.metadata is None or flt.matches(m.metadata)]

        owner_only = VectorFilter(owner_id=scope.owner_id)
        fetch_k = top_k * FILTER_OVERFETCH if (note_type or tags) else top_k
        matches = await self.store.query(vector, fetch_k, owner_only, include_metadata=True)
        filtered = [m for m in matches if flt.matches(m.metadata)]
        logger.debug(
            "Post-filtered vector matches: %d -> %d (top_k=%d)",
            len(matches),
            len(filtered),
            top_k,
        )
        return filtered[:top_k]
