"""
Embeddings API Router

Operator endpoints for the embedding lifecycle: force a re-embed of one
note, or (re)process a batch of notes. Both run inline and report the
outcome; regular note writes embed in the background instead.
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from noteweave.api.deps import get_manager, get_owner_scope
from noteweave.core.database import get_db
from noteweave.core.isolation import OwnerScope
from noteweave.schemas.embeddings import BatchEmbedRequest, BatchEmbedResult, EmbedResult
from noteweave.services.embeddings import EmbeddingManager
from noteweave.services.notes import note_service

router = APIRouter()


@router.post("/notes/{note_id}/reembed", response_model=EmbedResult)
async def reembed_note(
    note_id: UUID,
    scope: OwnerScope = Depends(get_owner_scope),
    manager: EmbeddingManager = Depends(get_manager),
    db: AsyncSession = Depends(get_db),
):
    """Reset a note to pending and embed it again (404 for unknown notes)."""
    await note_service.get(db, scope, note_id)
    return await manager.reembed_note(note_id, scope.owner_id)


@router.post("/batch", response_model=BatchEmbedResult)
async def embed_batch(
    request: BatchEmbedRequest,
    scope: OwnerScope = Depends(get_owner_scope),
    manager: EmbeddingManager = Depends(get_manager),
):
    """
    Embed notes sequentially.

    Notes already embedded are skipped unless ``force`` is set. Unknown ids
    are reported as failures, not errors.
    """
    return await manager.embed_notes(request.note_ids, scope.owner_id, force=request.force)
