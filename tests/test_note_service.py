"""
Note Service Unit Tests

Derived fields, embedding status resets, optimistic locking and job
dispatch on note writes. Repositories are patched.
"""

import uuid
from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from noteweave.core.errors import ConflictError, NotFoundError
from noteweave.core.isolation import OwnerScope
from noteweave.models import NoteType
from noteweave.repositories import note_repository
from noteweave.schemas.notes import NoteCreate, NoteUpdate
from noteweave.services.jobs import RedisJobDispatcher
from noteweave.services.notes import note_service

SCOPE = OwnerScope("owner-alice")


@pytest.fixture
def dispatcher() -> MagicMock:
    stub = MagicMock()
    stub.dispatch = AsyncMock()
    return stub


@pytest.fixture
def repo(note_factory):
    note = note_factory(
        title="Original",
        content="Original body",
        metadata={"embedding_status": "complete", "word_count": 2, "extra": {"mood": "ok"}},
    )

    def _apply(session, db_obj, changes):
        for field, value in changes.items():
            setattr(db_obj, field, value)
        return db_obj

    with (
        patch.object(note_repository, "get_by_id", new_callable=AsyncMock) as get_by_id,
        patch.object(note_repository, "create", new_callable=AsyncMock) as create,
        patch.object(note_repository, "update", new_callable=AsyncMock) as update,
        patch.object(note_repository, "delete_by_id", new_callable=AsyncMock) as delete,
    ):
        get_by_id.return_value = note
        create.side_effect = lambda session, scope, values: note_factory(
            owner_id=scope.owner_id,
            metadata=values.pop("note_metadata"),
            **values,
        )
        update.side_effect = _apply
        delete.return_value = True
        yield SimpleNamespace(
            note=note, get_by_id=get_by_id, create=create, update=update, delete=delete
        )


class TestCreate:
    @pytest.mark.asyncio
    async def test_derives_plain_text_and_dispatches(self, repo, dispatcher) -> None:
        data = NoteCreate(
            title="Hello",
            content="# Heading\n\nSome **bold** words",
            metadata={"source": "import"},
        )

        note = await note_service.create(None, SCOPE, data, dispatcher)

        values = repo.create.call_args.args[2]
        assert values["content_plain"] == "Heading\n\nSome bold words"
        assert note.note_metadata["embedding_status"] == "pending"
        assert note.note_metadata["word_count"] == 4
        assert note.note_metadata["extra"] == {"source": "import"}
        job = dispatcher.dispatch.call_args.args[0]
        assert (job.action, job.note_id, job.owner_id) == ("embed", note.id, "owner-alice")

    @pytest.mark.asyncio
    async def test_queue_outage_does_not_fail_the_write(self, repo) -> None:
        queue = MagicMock()
        queue.push = AsyncMock(side_effect=ConnectionError("redis down"))

        note = await note_service.create(
            None, SCOPE, NoteCreate(title="Hello", content="Body"), RedisJobDispatcher(queue)
        )

        repo.create.assert_awaited_once()
        queue.push.assert_awaited_once()
        assert note.note_metadata["embedding_status"] == "pending"


class TestUpdate:
    @pytest.mark.asyncio
    async def test_content_change_resets_status_and_reembeds(self, repo, dispatcher) -> None:
        note = await note_service.update(
            None, SCOPE, repo.note.id, NoteUpdate(content="New **content** here"), dispatcher
        )

        assert note.content_plain == "New content here"
        assert note.note_metadata["embedding_status"] == "pending"
        assert note.note_metadata["word_count"] == 3
        assert note.note_metadata["extra"] == {"mood": "ok"}
        assert dispatcher.dispatch.call_args.args[0].action == "reembed"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "changes",
        [{"title": "Renamed"}, {"note_type": NoteType.JOURNAL}],
    )
    async def test_embedded_field_changes_reembed(self, repo, dispatcher, changes) -> None:
        await note_service.update(None, SCOPE, repo.note.id, NoteUpdate(**changes), dispatcher)

        assert repo.note.note_metadata["embedding_status"] == "pending"
        dispatcher.dispatch.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_other_fields_keep_embedding(self, repo, dispatcher) -> None:
        note = await note_service.update(
            None, SCOPE, repo.note.id, NoteUpdate(mood_score=7), dispatcher
        )

        assert note.mood_score == 7
        assert note.note_metadata["embedding_status"] == "complete"
        dispatcher.dispatch.assert_not_called()

    @pytest.mark.asyncio
    async def test_unchanged_content_does_not_reembed(self, repo, dispatcher) -> None:
        await note_service.update(
            None, SCOPE, repo.note.id, NoteUpdate(content="Original body"), dispatcher
        )

        assert repo.note.note_metadata["embedding_status"] == "complete"
        dispatcher.dispatch.assert_not_called()

    @pytest.mark.asyncio
    async def test_null_title_ignored(self, repo, dispatcher) -> None:
        note = await note_service.update(
            None, SCOPE, repo.note.id, NoteUpdate(title=None), dispatcher
        )

        assert note.title == "Original"

    @pytest.mark.asyncio
    async def test_metadata_merges_into_extra(self, repo, dispatcher) -> None:
        note = await note_service.update(
            None, SCOPE, repo.note.id, NoteUpdate(metadata={"weather": "rain"}), dispatcher
        )

        assert note.note_metadata["extra"] == {"mood": "ok", "weather": "rain"}

    @pytest.mark.asyncio
    async def test_stale_updated_at_conflicts(self, repo, dispatcher) -> None:
        stale = repo.note.updated_at - timedelta(minutes=1)

        with pytest.raises(ConflictError) as exc_info:
            await note_service.update(
                None, SCOPE, repo.note.id, NoteUpdate(title="x", updated_at=stale), dispatcher
            )

        assert exc_info.value.details["current_updated_at"] == repo.note.updated_at.isoformat()
        repo.update.assert_not_called()

    @pytest.mark.asyncio
    async def test_matching_naive_updated_at_accepted(self, repo, dispatcher) -> None:
        current = repo.note.updated_at.replace(tzinfo=None)

        note = await note_service.update(
            None, SCOPE, repo.note.id, NoteUpdate(title="x", updated_at=current), dispatcher
        )

        assert note.title == "x"

    @pytest.mark.asyncio
    async def test_missing_note(self, repo, dispatcher) -> None:
        repo.get_by_id.return_value = None

        with pytest.raises(NotFoundError):
            await note_service.update(None, SCOPE, uuid.uuid4(), NoteUpdate(title="x"), dispatcher)


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_dispatches_vector_removal(self, repo, dispatcher) -> None:
        await note_service.delete(None, SCOPE, repo.note.id, dispatcher)

        job = dispatcher.dispatch.call_args.args[0]
        assert (job.action, job.note_id) == ("delete", repo.note.id)

    @pytest.mark.asyncio
    async def test_delete_missing(self, repo, dispatcher) -> None:
        repo.delete.return_value = False

        with pytest.raises(NotFoundError):
            await note_service.delete(None, SCOPE, uuid.uuid4(), dispatcher)
        dispatcher.dispatch.assert_not_called()
