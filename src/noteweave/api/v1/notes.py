"""
Notes API Router

REST endpoints for note CRUD, related-note suggestions and note links.
Embedding work triggered by writes is dispatched in the background; the
response never waits for it.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from noteweave.api.deps import (
    get_dispatcher,
    get_owner_scope,
    get_related_engine,
    parse_params,
)
from noteweave.core.database import get_db
from noteweave.core.isolation import OwnerScope
from noteweave.models import NoteType
from noteweave.schemas.links import LinkCreate, LinkRead
from noteweave.schemas.notes import (
    NoteCreate,
    NoteListParams,
    NoteListResponse,
    NoteRead,
    NoteUpdate,
)
from noteweave.schemas.related import DraftRelatedRequest, RelatedNotesResponse
from noteweave.services.jobs import JobDispatcher
from noteweave.services.links import link_service
from noteweave.services.notes import note_service
from noteweave.services.related import RelatedNotesEngine

router = APIRouter()


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


@router.post("/", response_model=NoteRead, status_code=status.HTTP_201_CREATED)
async def create_note(
    note: NoteCreate,
    scope: OwnerScope = Depends(get_owner_scope),
    dispatcher: JobDispatcher = Depends(get_dispatcher),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a new note.

    The note is immediately readable and keyword-searchable. It appears in
    semantic search and related-notes once its embedding job completes.
    """
    return await note_service.create(db, scope, note, dispatcher)


@router.get("/", response_model=NoteListResponse)
async def list_notes(
    limit: int = 20,
    offset: int = 0,
    note_type: NoteType | None = None,
    min_mood: int | None = None,
    max_mood: int | None = None,
    scope: OwnerScope = Depends(get_owner_scope),
    db: AsyncSession = Depends(get_db),
):
    """List the owner's notes, most recently updated first."""
    params = parse_params(
        NoteListParams,
        limit=limit,
        offset=offset,
        note_type=note_type,
        min_mood=min_mood,
        max_mood=max_mood,
    )
    notes, total = await note_service.list(db, scope, params)
    return NoteListResponse(
        notes=[NoteRead.model_validate(n) for n in notes],
        total=total,
        limit=params.limit,
        offset=params.offset,
    )


@router.get("/{note_id}", response_model=NoteRead)
async def read_note(
    note_id: UUID,
    scope: OwnerScope = Depends(get_owner_scope),
    db: AsyncSession = Depends(get_db),
):
    """Retrieve a single note by ID."""
    return await note_service.get(db, scope, note_id)


@router.patch("/{note_id}", response_model=NoteRead)
async def update_note(
    note_id: UUID,
    changes: NoteUpdate,
    scope: OwnerScope = Depends(get_owner_scope),
    dispatcher: JobDispatcher = Depends(get_dispatcher),
    db: AsyncSession = Depends(get_db),
):
    """
    Partially update a note.

    Send the last seen ``updated_at`` to enable optimistic locking (409 on
    mismatch). Content changes schedule a re-embedding.
    """
    return await note_service.update(db, scope, note_id, changes, dispatcher)


@router.delete("/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_note(
    note_id: UUID,
    scope: OwnerScope = Depends(get_owner_scope),
    dispatcher: JobDispatcher = Depends(get_dispatcher),
    db: AsyncSession = Depends(get_db),
):
    """Delete a note. Its links are removed with it; its vector shortly after."""
    await note_service.delete(db, scope, note_id, dispatcher)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Related notes
# ---------------------------------------------------------------------------


@router.get("/{note_id}/related", response_model=RelatedNotesResponse)
async def related_notes(
    note_id: UUID,
    limit: int = Query(default=5),
    scope: OwnerScope = Depends(get_owner_scope),
    engine: RelatedNotesEngine = Depends(get_related_engine),
    db: AsyncSession = Depends(get_db),
):
    """
    Notes semantically related to a saved note.

    ``has_embedding=false`` means the note has not been embedded yet.
    """
    return await engine.for_note(db, scope, note_id, limit=limit)


@router.post("/{note_id}/related", response_model=RelatedNotesResponse)
async def related_to_draft(
    note_id: UUID,
    draft: DraftRelatedRequest,
    limit: int = Query(default=5),
    scope: OwnerScope = Depends(get_owner_scope),
    engine: RelatedNotesEngine = Depends(get_related_engine),
    db: AsyncSession = Depends(get_db),
):
    """
    Live suggestions for unsaved content of the note being edited.

    The draft is embedded on the fly and never stored; the note itself is
    excluded from the results.
    """
    return await engine.for_draft(
        db, scope, draft.content, exclude_note_id=note_id, limit=limit
    )


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------


@router.post(
    "/{note_id}/links",
    response_model=LinkRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_link(
    note_id: UUID,
    link: LinkCreate,
    scope: OwnerScope = Depends(get_owner_scope),
    db: AsyncSession = Depends(get_db),
):
    """Link this note to another one (409 if they are already linked)."""
    return await link_service.create_link(
        db,
        scope,
        note_id,
        link.target_note_id,
        link_type=link.link_type,
        strength=link.strength,
    )


@router.delete("/{note_id}/links/{target_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_link(
    note_id: UUID,
    target_id: UUID,
    scope: OwnerScope = Depends(get_owner_scope),
    db: AsyncSession = Depends(get_db),
):
    """Remove the link between two notes, whichever direction it was created in."""
    await link_service.delete_link(db, scope, note_id, target_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
