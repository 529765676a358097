"""Assessment event queries.

An event is every form sharing (subject|course, template, occurrence date).
There is no event table; everything here is computed from the forms.
"""

from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import and_, case, distinct, func, select, update
from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.assessment import AssessmentForm, AssessmentSection
from app.models.enums import AssessmentResult, AssessmentStatus, EditBy
from app.models.template import TemplateForm, TemplateSection
from app.models.training import Course, Subject
from app.repositories.assessment import AssessmentFilters, build_conditions

EventKey = Tuple[Optional[UUID], Optional[UUID], UUID, date]


@dataclass(frozen=True)
class EventIdentity:
    """Identifies one event: exactly one of subject_id / course_id is set."""

    template_id: UUID
    occurrence_date: date
    subject_id: Optional[UUID] = None
    course_id: Optional[UUID] = None

    @property
    def key(self) -> EventKey:
        return (self.subject_id, self.course_id, self.template_id, self.occurrence_date)


def _count_where(condition):
    return func.sum(case((condition, 1), else_=0))


_GROUP_COLUMNS = (
    AssessmentForm.subject_id,
    AssessmentForm.course_id,
    AssessmentForm.template_id,
    AssessmentForm.occurrence_date,
)


class AssessmentEventRepository:
    """Grouped read views and event-wide status updates."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _event_conditions(self, event: EventIdentity) -> list:
        conditions = [
            AssessmentForm.template_id == event.template_id,
            AssessmentForm.occurrence_date == event.occurrence_date,
        ]
        if event.subject_id is not None:
            conditions.append(AssessmentForm.subject_id == event.subject_id)
        else:
            conditions.append(AssessmentForm.course_id == event.course_id)
        return conditions

    async def group_forms(self, filters: AssessmentFilters) -> List[Row]:
        """One row of counters per event matching ``filters``."""
        status = AssessmentForm.status
        query = (
            select(
                *_GROUP_COLUMNS,
                func.min(AssessmentForm.name).label("sample_name"),
                func.count(AssessmentForm.id).label("total_assessments"),
                func.count(distinct(AssessmentForm.trainee_id)).label("total_trainees"),
                _count_where(status == AssessmentStatus.NOT_STARTED).label("not_started"),
                _count_where(status == AssessmentStatus.APPROVED).label("approved"),
                _count_where(status == AssessmentStatus.REJECTED).label("rejected"),
                _count_where(status == AssessmentStatus.CANCELLED).label("cancelled"),
                _count_where(status == AssessmentStatus.SUBMITTED).label("submitted"),
                _count_where(AssessmentForm.result_text == AssessmentResult.PASS).label("passed"),
                _count_where(AssessmentForm.result_text == AssessmentResult.FAIL).label("failed"),
            )
            .where(*build_conditions(filters, search_trainee=False))
            .group_by(*_GROUP_COLUMNS)
            .order_by(AssessmentForm.occurrence_date.desc())
        )
        result = await self.db.execute(query)
        return list(result.all())

    async def count_trainers(self, filters: AssessmentFilters) -> Dict[EventKey, int]:
        """Distinct assessors of TRAINER sections per event."""
        query = (
            select(*_GROUP_COLUMNS, func.count(distinct(AssessmentSection.assessed_by_id)))
            .join(AssessmentSection, AssessmentSection.assessment_form_id == AssessmentForm.id)
            .join(TemplateSection, TemplateSection.id == AssessmentSection.template_section_id)
            .where(
                TemplateSection.edit_by == EditBy.TRAINER,
                AssessmentSection.assessed_by_id.is_not(None),
                *build_conditions(filters, search_trainee=False),
            )
            .group_by(*_GROUP_COLUMNS)
        )
        result = await self.db.execute(query)
        return {(row[0], row[1], row[2], row[3]): row[4] for row in result.all()}

    async def get_subject_labels(self, ids: Sequence[UUID]) -> Dict[UUID, Row]:
        return await self._labels(Subject, ids)

    async def get_course_labels(self, ids: Sequence[UUID]) -> Dict[UUID, Row]:
        return await self._labels(Course, ids)

    async def get_template_names(self, ids: Sequence[UUID]) -> Dict[UUID, str]:
        if not ids:
            return {}
        result = await self.db.execute(
            select(TemplateForm.id, TemplateForm.name).where(TemplateForm.id.in_(list(ids)))
        )
        return {row.id: row.name for row in result.all()}

    async def _labels(self, model, ids: Sequence[UUID]) -> Dict[UUID, Row]:
        if not ids:
            return {}
        result = await self.db.execute(
            select(model.id, model.name, model.code).where(model.id.in_(list(ids)))
        )
        return {row.id: row for row in result.all()}

    async def get_event_forms(
        self,
        event: EventIdentity,
        status: Optional[AssessmentStatus] = None,
    ) -> List[AssessmentForm]:
        query = select(AssessmentForm).where(*self._event_conditions(event))
        if status is not None:
            query = query.where(AssessmentForm.status == status)
        result = await self.db.execute(query.execution_options(populate_existing=True))
        return list(result.scalars().all())

    async def transition_event(
        self,
        event: EventIdentity,
        from_status: AssessmentStatus,
        to_status: AssessmentStatus,
    ) -> int:
        """Move every form of the event still in ``from_status``; returns rows changed."""
        result = await self.db.execute(
            update(AssessmentForm)
            .where(*self._event_conditions(event), AssessmentForm.status == from_status)
            .values(status=to_status)
        )
        return result.rowcount

    async def activate_due(self, on_date: date) -> int:
        """Start every NOT_STARTED form whose occurrence date is on or before ``on_date``."""
        result = await self.db.execute(
            update(AssessmentForm)
            .where(
                and_(
                    AssessmentForm.status == AssessmentStatus.NOT_STARTED,
                    AssessmentForm.occurrence_date <= on_date,
                )
            )
            .values(status=AssessmentStatus.ON_GOING)
        )
        return result.rowcount
