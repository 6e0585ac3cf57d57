"""
Base Repository

Generic owner-scoped repository for async SQLAlchemy CRUD operations.
Every statement is built through an ``OwnerScope``; there is no method
that reads or writes without one.
"""

from collections.abc import Sequence
from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from noteweave.core.isolation import OwnerScope
from noteweave.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class OwnedRepository(Generic[ModelType]):
    """
    Generic repository providing owner-scoped CRUD operations.

    All methods expect an externally managed session (injected via FastAPI
    dependency or opened by a background job) and an ``OwnerScope``.

    Usage:
        class NoteRepository(OwnedRepository[Note]):
            def __init__(self):
                super().__init__(Note)
    """

    def __init__(self, model: type[ModelType]):
        self.model = model

    async def create(
        self,
        session: AsyncSession,
        scope: OwnerScope,
        obj_in: Any,
    ) -> ModelType:
        """
        Create a new record stamped with the scope's owner.

        Args:
            session: Active database session.
            scope: Owner scope; overrides any owner_id in ``obj_in``.
            obj_in: Pydantic schema or dict with entity data.

        Returns:
            The created entity with database-generated fields populated.
        """
        data = obj_in.model_dump() if hasattr(obj_in, "model_dump") else obj_in
        db_obj = self.model(**scope.values(data))
        session.add(db_obj)
        await session.commit()
        await session.refresh(db_obj)  # Load DB-generated fields (created_at, ...)
        return db_obj

    async def get_by_id(
        self,
        session: AsyncSession,
        scope: OwnerScope,
        id: UUID,
    ) -> ModelType | None:
        """Get a record by primary key. None if missing or owned by someone else."""
        result = await session.execute(
            select(self.model).where(
                scope.where(self.model, self.model.id == id)  # type: ignore[attr-defined]
            )
        )
        return result.scalars().first()

    async def get_many(
        self,
        session: AsyncSession,
        scope: OwnerScope,
        ids: Sequence[UUID],
    ) -> Sequence[ModelType]:
        """Batch fetch by primary key (order not guaranteed)."""
        if not ids:
            return []
        result = await session.execute(
            select(self.model).where(
                scope.where(self.model, self.model.id.in_(list(ids)))  # type: ignore[attr-defined]
            )
        )
        return result.scalars().all()

    async def count(
        self,
        session: AsyncSession,
        scope: OwnerScope,
        *conditions: ColumnElement[bool],
    ) -> int:
        """Count the owner's records matching ``conditions``."""
        result = await session.execute(
            select(func.count())
            .select_from(self.model)
            .where(scope.where(self.model, *conditions))
        )
        return int(result.scalar_one())

    async def update(
        self,
        session: AsyncSession,
        db_obj: ModelType,
        obj_in: Any,
    ) -> ModelType:
        """
        Update a record with partial data.

        Args:
            session: Active database session.
            db_obj: Existing entity, previously loaded through a scoped read.
            obj_in: Pydantic schema or dict (only provided fields are updated).
        """
        update_data = (
            obj_in.model_dump(exclude_unset=True)  # Partial update support
            if hasattr(obj_in, "model_dump")
            else obj_in
        )
        update_data.pop("owner_id", None)  # ownership never changes
        for field, value in update_data.items():
            setattr(db_obj, field, value)
        await session.commit()
        await session.refresh(db_obj)
        return db_obj

    async def delete_by_id(
        self,
        session: AsyncSession,
        scope: OwnerScope,
        id: UUID,
    ) -> bool:
        """Hard delete. Returns False when nothing matched for this owner."""
        result = await session.execute(
            delete(self.model).where(
                scope.where(self.model, self.model.id == id)  # type: ignore[attr-defined]
            )
        )
        await session.commit()
        return bool(result.rowcount)
