"""Template repository - read access to template structure."""

from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.template import TemplateForm
from app.repositories.base import BaseRepository


class TemplateRepository(BaseRepository[TemplateForm]):
    """Repository for assessment templates. Templates are never written here."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, TemplateForm)

    async def get_with_structure(self, template_id: UUID) -> Optional[TemplateForm]:
        """Get a template with its sections and fields, in display order."""
        return await self.get_by_id(template_id)
