"""
Score Fusion

Combines lexical ranks and semantic similarities into one ordering.

Each list is min-max normalized on its own, with bounds anchored to the
unit interval (``lo = min(values + [0])``, ``hi = max(values + [1])``) so a
single weak hit is not inflated to a perfect score. Normalized values are
blended linearly: lexical weighted by ``1 - w``, semantic by ``w``. Items
present in both lists receive both contributions.
"""

from __future__ import annotations

from collections.abc import Hashable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import TypeVar

from noteweave.core.errors import ValidationError

K = TypeVar("K", bound=Hashable)


@dataclass(slots=True)
class FusedScore:
    """Fused score of one note, with the raw inputs kept for display."""

    combined_score: float = 0.0
    lexical_rank: float | None = None
    semantic_score: float | None = None
    updated_at: datetime | None = None


def normalize_score(value: float, lo: float, hi: float) -> float:
    """Min-max normalize ``value`` into [0, 1]. A degenerate range maps to 1.0."""
    if hi == lo:
        return 1.0
    return (value - lo) / (hi - lo)


def _bounds(values: list[float]) -> tuple[float, float]:
    return min([*values, 0.0]), max([*values, 1.0])


def fuse_results(
    lexical: Mapping[K, float],
    semantic: Mapping[K, float],
    semantic_weight: float,
    updated_at: Mapping[K, datetime] | None = None,
) -> dict[K, FusedScore]:
    """
    Fuse two score maps into combined scores.

    Args:
        lexical: Note id -> raw full-text rank.
        semantic: Note id -> cosine similarity.
        semantic_weight: Weight ``w`` of the semantic side, in [0, 1].
        updated_at: Optional note id -> last update, used for tie-breaking.

    Returns:
        Note id -> FusedScore for every id in either input.

    Raises:
        ValidationError: If ``semantic_weight`` is outside [0, 1].
    """
    if not 0.0 <= semantic_weight <= 1.0:
        raise ValidationError(f"semantic_weight must be within [0, 1], got {semantic_weight}")

    updated_at = updated_at or {}
    fused: dict[K, FusedScore] = {}

    lex_lo, lex_hi = _bounds(list(lexical.values()))
    for key, rank in lexical.items():
        entry = fused.setdefault(key, FusedScore(updated_at=updated_at.get(key)))
        entry.lexical_rank = rank
        entry.combined_score += (1.0 - semantic_weight) * normalize_score(rank, lex_lo, lex_hi)

    sem_lo, sem_hi = _bounds(list(semantic.values()))
    for key, score in semantic.items():
        entry = fused.setdefault(key, FusedScore(updated_at=updated_at.get(key)))
        entry.semantic_score = score
        entry.combined_score += semantic_weight * normalize_score(score, sem_lo, sem_hi)

    return fused


def _sort_key(item: tuple[Hashable, FusedScore]) -> tuple[float, float, str]:
    key, score = item
    recency = score.updated_at.timestamp() if score.updated_at else float("-inf")
    return (-score.combined_score, -recency, str(key))


def rank_fused(fused: Mapping[K, FusedScore]) -> list[tuple[K, FusedScore]]:
    """Order by combined score, then most recently updated, then id."""
    return sorted(fused.items(), key=_sort_key)
