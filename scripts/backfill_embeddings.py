#!/usr/bin/env python3
"""
Backfill Embeddings Script

Re-runs the embedding lifecycle for an owner's notes that are still
pending or previously failed (e.g. after a provider outage, or after
switching embedding model).

Usage:
    Requires the Postgres stack running and POSTGRES_* env vars set:
    $ python scripts/backfill_embeddings.py --owner user-123
    $ python scripts/backfill_embeddings.py --owner user-123 --status failed
    $ python scripts/backfill_embeddings.py --owner user-123 --all --force
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

# Required for direct script execution without package installation
sys.path.append(os.path.join(os.path.dirname(__file__), "../src"))

from noteweave.core.database import dispose_engine, get_session_factory  # noqa: E402
from noteweave.core.isolation import OwnerScope  # noqa: E402
from noteweave.core.logging import setup_logging  # noqa: E402
from noteweave.models import EmbeddingStatus  # noqa: E402
from noteweave.repositories import note_repository  # noqa: E402
from noteweave.services.ai import check_embedding_dimension, get_embedding_provider  # noqa: E402
from noteweave.services.embeddings import get_embedding_manager  # noqa: E402

ALL_STATUSES = [s.value for s in EmbeddingStatus]


async def backfill(owner_id: str, statuses: list[str], force: bool) -> int:
    """
    Embed every note of ``owner_id`` whose status is in ``statuses``.

    Returns:
        Number of notes that still failed.
    """
    scope = OwnerScope(owner_id)
    async with get_session_factory()() as session:
        note_ids = await note_repository.list_ids_by_status(session, scope, statuses)

    if not note_ids:
        print(f"Nothing to backfill for owner '{owner_id}' ({', '.join(statuses)}).")
        return 0

    print(f"Backfilling {len(note_ids)} notes for owner '{owner_id}'...")
    result = await get_embedding_manager().embed_notes(note_ids, owner_id, force=force)
    print(f"Done: {result.succeeded} succeeded, {result.failed} failed.")
    for item in result.results:
        if not item.success:
            print(f"  ✗ {item.note_id}: {item.error}")
    return result.failed


async def main() -> int:
    parser = argparse.ArgumentParser(description="Backfill note embeddings")
    parser.add_argument("--owner", required=True, help="Owner whose notes are processed")
    parser.add_argument(
        "--status",
        action="append",
        choices=ALL_STATUSES,
        help="Embedding status to select (repeatable; default: pending and failed)",
    )
    parser.add_argument("--all", action="store_true", help="Select notes in every status")
    parser.add_argument(
        "--force", action="store_true", help="Re-embed notes that are already complete"
    )
    args = parser.parse_args()

    setup_logging("backfill")
    check_embedding_dimension(get_embedding_provider())
    statuses = ALL_STATUSES if args.all else (args.status or ["pending", "failed"])
    try:
        failed = await backfill(args.owner, statuses, args.force or args.all)
    finally:
        await dispose_engine()
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
