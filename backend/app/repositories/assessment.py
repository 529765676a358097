"""Assessment repositories - forms, sections and values.

Status writes that depend on the current state are conditional UPDATE
statements; callers treat zero affected rows as a lost race.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Set, Tuple
from uuid import UUID

from sqlalchemy import ColumnElement, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.assessment import AssessmentForm, AssessmentSection, AssessmentValue
from app.models.enums import AssessmentStatus, SectionStatus
from app.models.organization import User
from app.models.template import TemplateForm
from app.repositories.base import BaseRepository


@dataclass
class AssessmentFilters:
    """Caller filters plus the role scope applied by the service layer."""

    status: Optional[AssessmentStatus] = None
    template_id: Optional[UUID] = None
    subject_id: Optional[UUID] = None
    course_id: Optional[UUID] = None
    trainee_id: Optional[UUID] = None
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    search: Optional[str] = None

    # Role scope
    scope_trainee_id: Optional[UUID] = None
    scope_subject_ids: Optional[List[UUID]] = None
    scope_course_ids: Optional[List[UUID]] = None
    scope_department_id: Optional[UUID] = None
    excluded_statuses: FrozenSet[AssessmentStatus] = field(default_factory=frozenset)


def build_conditions(filters: AssessmentFilters, search_trainee: bool = True) -> List[ColumnElement]:
    """Translate filters into WHERE conditions on ``AssessmentForm``."""
    conditions: List[ColumnElement] = []

    if filters.status is not None:
        conditions.append(AssessmentForm.status == filters.status)
    if filters.excluded_statuses:
        conditions.append(AssessmentForm.status.not_in(list(filters.excluded_statuses)))
    if filters.template_id is not None:
        conditions.append(AssessmentForm.template_id == filters.template_id)
    if filters.subject_id is not None:
        conditions.append(AssessmentForm.subject_id == filters.subject_id)
    if filters.course_id is not None:
        conditions.append(AssessmentForm.course_id == filters.course_id)
    if filters.trainee_id is not None:
        conditions.append(AssessmentForm.trainee_id == filters.trainee_id)
    if filters.from_date is not None:
        conditions.append(AssessmentForm.occurrence_date >= filters.from_date)
    if filters.to_date is not None:
        conditions.append(AssessmentForm.occurrence_date <= filters.to_date)
    if filters.search:
        pattern = f"%{filters.search.strip()}%"
        matches = [AssessmentForm.name.ilike(pattern)]
        if search_trainee:
            matches.append(
                AssessmentForm.trainee_id.in_(
                    select(User.id).where(
                        or_(
                            User.eid.ilike(pattern),
                            User.first_name.ilike(pattern),
                            User.last_name.ilike(pattern),
                        )
                    )
                )
            )
        conditions.append(or_(*matches))

    if filters.scope_trainee_id is not None:
        conditions.append(AssessmentForm.trainee_id == filters.scope_trainee_id)
    if filters.scope_subject_ids is not None or filters.scope_course_ids is not None:
        conditions.append(
            or_(
                AssessmentForm.subject_id.in_(filters.scope_subject_ids or []),
                AssessmentForm.course_id.in_(filters.scope_course_ids or []),
            )
        )
    if filters.scope_department_id is not None:
        conditions.append(
            AssessmentForm.template_id.in_(
                select(TemplateForm.id).where(TemplateForm.department_id == filters.scope_department_id)
            )
        )
    return conditions


class AssessmentFormRepository(BaseRepository[AssessmentForm]):
    """Repository for assessment forms."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, AssessmentForm)

    async def get_with_tree(self, form_id: UUID) -> Optional[AssessmentForm]:
        """Get a form with sections, values and template references, re-read from the database."""
        return await self.get_by_id(form_id, fresh=True)

    async def add_forms(self, forms: Sequence[AssessmentForm]) -> None:
        """Stage whole form trees (sections and values cascade) and flush them."""
        self.db.add_all(forms)
        await self.db.flush()

    async def find_existing_trainee_ids(
        self,
        trainee_ids: Sequence[UUID],
        template_id: UUID,
        occurrence_date: date,
        subject_id: Optional[UUID] = None,
        course_id: Optional[UUID] = None,
    ) -> Set[UUID]:
        """Trainees that already have a form for this template, date and subject/course."""
        if not trainee_ids:
            return set()
        query = select(AssessmentForm.trainee_id).where(
            AssessmentForm.trainee_id.in_(list(trainee_ids)),
            AssessmentForm.template_id == template_id,
            AssessmentForm.occurrence_date == occurrence_date,
        )
        if subject_id is not None:
            query = query.where(AssessmentForm.subject_id == subject_id)
        else:
            query = query.where(AssessmentForm.course_id == course_id)
        result = await self.db.execute(query)
        return set(result.scalars().all())

    async def lock_status(self, form_id: UUID) -> Optional[AssessmentStatus]:
        """Read the current status under a row lock.

        Mutations of one form take this lock first so that status derivation
        always sees the sections committed by the previous writer.
        """
        result = await self.db.execute(
            select(AssessmentForm.status).where(AssessmentForm.id == form_id).with_for_update()
        )
        return result.scalar_one_or_none()

    async def transition_status(
        self,
        form_id: UUID,
        from_status: AssessmentStatus,
        to_status: AssessmentStatus,
        **values: Any,
    ) -> bool:
        """Move a form to ``to_status`` only if it is still in ``from_status``."""
        result = await self.db.execute(
            update(AssessmentForm)
            .where(AssessmentForm.id == form_id, AssessmentForm.status == from_status)
            .values(status=to_status, **values)
        )
        return result.rowcount == 1

    async def set_trainee_lock(self, form_id: UUID, locked: bool) -> None:
        await self.db.execute(
            update(AssessmentForm).where(AssessmentForm.id == form_id).values(is_trainee_locked=locked)
        )

    async def search(
        self,
        filters: AssessmentFilters,
        page: int,
        limit: int,
    ) -> Tuple[List[AssessmentForm], int]:
        """Paginated forms matching ``filters``, newest occurrence first."""
        conditions = build_conditions(filters)

        total = await self.db.execute(
            select(func.count(AssessmentForm.id)).where(*conditions)
        )
        query = (
            select(AssessmentForm)
            .where(*conditions)
            .order_by(AssessmentForm.occurrence_date.desc(), AssessmentForm.name)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), total.scalar() or 0


class AssessmentSectionRepository(BaseRepository[AssessmentSection]):
    """Repository for assessment sections."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, AssessmentSection)

    async def get_form_id(self, section_id: UUID) -> Optional[UUID]:
        result = await self.db.execute(
            select(AssessmentSection.assessment_form_id).where(AssessmentSection.id == section_id)
        )
        return result.scalar_one_or_none()

    async def claim(self, section_id: UUID, user_id: UUID) -> bool:
        """Claim an unassessed section for ``user_id``.

        Compare-and-swap on ``assessed_by_id IS NULL``: exactly one concurrent
        caller gets ``True``.
        """
        result = await self.db.execute(
            update(AssessmentSection)
            .where(AssessmentSection.id == section_id, AssessmentSection.assessed_by_id.is_(None))
            .values(assessed_by_id=user_id, status=SectionStatus.DRAFT)
        )
        return result.rowcount == 1

    async def force_draft(self, section_ids: Sequence[UUID], user_id: UUID) -> None:
        """Mark sections completed by ``user_id`` regardless of their claim."""
        if not section_ids:
            return
        await self.db.execute(
            update(AssessmentSection)
            .where(AssessmentSection.id.in_(list(section_ids)))
            .values(assessed_by_id=user_id, status=SectionStatus.DRAFT)
        )

    async def get_for_form(self, form_id: UUID) -> List[AssessmentSection]:
        """Current sections of a form, re-read inside the running transaction."""
        result = await self.db.execute(
            select(AssessmentSection)
            .where(AssessmentSection.assessment_form_id == form_id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def count_assessed_by(self, form_id: UUID, user_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(AssessmentSection.id)).where(
                AssessmentSection.assessment_form_id == form_id,
                AssessmentSection.assessed_by_id == user_id,
            )
        )
        return result.scalar() or 0


class AssessmentValueRepository(BaseRepository[AssessmentValue]):
    """Repository for assessment values. Rows are pre-created; only answers change."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, AssessmentValue)

    async def set_answers(self, answers: Dict[UUID, Optional[str]]) -> int:
        """Overwrite ``answer_value`` for each value id; returns rows written."""
        written = 0
        for value_id, answer in answers.items():
            result = await self.db.execute(
                update(AssessmentValue)
                .where(AssessmentValue.id == value_id)
                .values(answer_value=answer)
            )
            written += result.rowcount
        return written
