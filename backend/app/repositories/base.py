"""Base repository class for data access patterns."""

from abc import ABC
from typing import Generic, Iterable, List, Optional, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import BaseModel

ModelType = TypeVar("ModelType", bound=BaseModel)


class BaseRepository(ABC, Generic[ModelType]):
    """Base repository providing common read operations."""

    def __init__(self, db: AsyncSession, model: type[ModelType]):
        self.db = db
        self.model = model

    async def get_by_id(self, id: UUID, fresh: bool = False) -> Optional[ModelType]:
        """Get a single record by ID.

        ``fresh`` re-reads the row even if the instance is already in the
        session, so callers see writes made by bulk UPDATE statements.
        """
        query = select(self.model).where(self.model.id == id)
        if fresh:
            query = query.execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_many(self, ids: Iterable[UUID]) -> List[ModelType]:
        """Get all records whose ID is in ``ids``."""
        ids = list(ids)
        if not ids:
            return []
        result = await self.db.execute(select(self.model).where(self.model.id.in_(ids)))
        return list(result.scalars().all())

