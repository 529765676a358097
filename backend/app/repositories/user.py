"""User repository for data access operations."""

from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import RoleName
from app.models.organization import User
from app.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for user lookups."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, User)

    async def get_main_role(self, user_id: UUID) -> Optional[RoleName]:
        """Get the user's platform role."""
        result = await self.db.execute(select(User.role).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_department_id(self, user_id: UUID) -> Optional[UUID]:
        """Get the department the user belongs to."""
        result = await self.db.execute(select(User.department_id).where(User.id == user_id))
        return result.scalar_one_or_none()
