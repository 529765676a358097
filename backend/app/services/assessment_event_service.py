"""Assessment events - forms grouped by (subject|course, template, occurrence date).

Events have no table of their own: listings are computed from the current
form rows on every call and event actions are bulk status updates on them.
"""

import logging
from datetime import date
from typing import List, Optional, Sequence

from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import clock
from app.core.exceptions import (
    AssessmentAlreadyExistsError,
    AuthorizationError,
    BothSubjectAndCourseProvidedError,
    BusinessLogicError,
    EventNotFoundError,
    OccurrenceDateError,
    SubjectOrCourseRequiredError,
    ValidationError,
)
from app.models.assessment import AssessmentForm
from app.models.enums import AssessmentStatus, EventStatus, RoleName
from app.models.organization import CurrentUser
from app.repositories.assessment import AssessmentFilters, AssessmentFormRepository
from app.repositories.assessment_event import AssessmentEventRepository, EventIdentity
from app.repositories.user import UserRepository
from app.schemas.assessment import EntityInfo, Pagination
from app.schemas.assessment_event import (
    AssessmentEventItem,
    AssessmentEventListResponse,
    DepartmentAssessmentEventItem,
    DepartmentAssessmentEventListResponse,
    EventKeyRequest,
    EventMutationResponse,
    TemplateInfo,
    UpdateAssessmentEventRequest,
)
from app.services.assessment_service import AssessmentService
from app.services.assessment_state import AssessmentEvent, derive_event_status, event_transition

logger = logging.getLogger(__name__)

NAME_SEPARATOR = " - "


def base_name(form_name: str) -> str:
    """Event name shared by all forms: the form name without its trainee suffix."""
    return form_name.rsplit(NAME_SEPARATOR, 1)[0]


def event_status(row: Row) -> EventStatus:
    return derive_event_status(row.total_assessments, row.not_started, row.approved, row.cancelled)


def event_identity(request: EventKeyRequest) -> EventIdentity:
    if request.subject_id is None and request.course_id is None:
        raise SubjectOrCourseRequiredError()
    if request.subject_id is not None and request.course_id is not None:
        raise BothSubjectAndCourseProvidedError()
    return EventIdentity(
        template_id=request.template_id,
        occurrence_date=request.occurrence_date,
        subject_id=request.subject_id,
        course_id=request.course_id,
    )


class AssessmentEventService:
    """Event listings and event-wide actions."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.event_repository = AssessmentEventRepository(db)
        self.form_repository = AssessmentFormRepository(db)
        self.user_repository = UserRepository(db)
        self.queries = AssessmentService(db)

    # ============================================================================
    # LISTINGS
    # ============================================================================

    async def _grouped(
        self,
        filters: AssessmentFilters,
        status: Optional[EventStatus],
    ) -> List[Row]:
        rows = await self.event_repository.group_forms(filters)
        if status is None:
            return rows
        return [row for row in rows if event_status(row) == status]

    @staticmethod
    def _page(rows: Sequence[Row], page: int, limit: int) -> List[Row]:
        start = (page - 1) * limit
        return list(rows[start:start + limit])

    async def _base_items(self, rows: Sequence[Row]) -> List[dict]:
        subjects = await self.event_repository.get_subject_labels(
            [row.subject_id for row in rows if row.subject_id is not None]
        )
        courses = await self.event_repository.get_course_labels(
            [row.course_id for row in rows if row.course_id is not None]
        )
        templates = await self.event_repository.get_template_names({row.template_id for row in rows})

        items = []
        for row in rows:
            if row.subject_id is not None:
                label, entity_type = subjects[row.subject_id], "subject"
            else:
                label, entity_type = courses[row.course_id], "course"
            items.append(
                dict(
                    name=base_name(row.sample_name),
                    subject_id=row.subject_id,
                    course_id=row.course_id,
                    template_id=row.template_id,
                    occurrence_date=row.occurrence_date,
                    status=event_status(row),
                    total_trainees=row.total_trainees,
                    total_passed=row.passed or 0,
                    total_failed=row.failed or 0,
                    entity_info=EntityInfo(id=label.id, name=label.name, code=label.code, type=entity_type),
                    template_info=TemplateInfo(id=row.template_id, name=templates.get(row.template_id, "")),
                )
            )
        return items

    async def list_events(
        self,
        actor: CurrentUser,
        filters: AssessmentFilters,
        status: Optional[EventStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> AssessmentEventListResponse:
        """Events visible to the actor, newest occurrence first."""
        scoped = await self.queries.apply_role_scope(filters, actor)
        if scoped is None:
            return AssessmentEventListResponse(events=[], pagination=Pagination.build(page, limit, 0))
        # Event listings show every lifecycle stage
        scoped.excluded_statuses = frozenset()

        rows = await self._grouped(scoped, status)
        items = await self._base_items(self._page(rows, page, limit))
        return AssessmentEventListResponse(
            events=[AssessmentEventItem(**item) for item in items],
            pagination=Pagination.build(page, limit, len(rows)),
        )

    async def list_department_events(
        self,
        actor: CurrentUser,
        filters: AssessmentFilters,
        status: Optional[EventStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> DepartmentAssessmentEventListResponse:
        """Events of the department head's department with review counters."""
        if actor.role_name != RoleName.DEPARTMENT_HEAD:
            raise AuthorizationError("Only department heads can list department events")
        department_id = await self.user_repository.get_department_id(actor.id)
        if department_id is None:
            raise AuthorizationError("Department head is not assigned to a department")
        filters.scope_department_id = department_id

        rows = await self._grouped(filters, status)
        page_rows = self._page(rows, page, limit)
        trainers = await self.event_repository.count_trainers(filters)
        items = await self._base_items(page_rows)

        events = []
        for row, item in zip(page_rows, items):
            key = (row.subject_id, row.course_id, row.template_id, row.occurrence_date)
            events.append(
                DepartmentAssessmentEventItem(
                    **item,
                    total_assessments=row.total_assessments,
                    total_reviewed_form=row.approved + row.rejected,
                    total_cancelled_form=row.cancelled,
                    total_submitted_form=row.submitted,
                    total_trainers=trainers.get(key, 0),
                )
            )
        return DepartmentAssessmentEventListResponse(
            events=events,
            pagination=Pagination.build(page, limit, len(rows)),
        )

    # ============================================================================
    # EVENT ACTIONS
    # ============================================================================

    async def _event_forms(self, event: EventIdentity) -> List[AssessmentForm]:
        forms = await self.event_repository.get_event_forms(event)
        if not forms:
            raise EventNotFoundError()
        return forms

    @staticmethod
    def _mutation_response(
        message: str,
        updated_count: int,
        event: EventIdentity,
        forms: Sequence[AssessmentForm],
        name: Optional[str] = None,
        occurrence_date: Optional[date] = None,
    ) -> EventMutationResponse:
        return EventMutationResponse(
            message=message,
            updated_count=updated_count,
            name=name or base_name(forms[0].name),
            subject_id=event.subject_id,
            course_id=event.course_id,
            template_id=event.template_id,
            occurrence_date=occurrence_date or event.occurrence_date,
            total_assessment_forms=len(forms),
        )

    async def update_event(self, request: UpdateAssessmentEventRequest, actor: CurrentUser) -> EventMutationResponse:
        """Rename and/or reschedule the NOT_STARTED forms of a future event."""
        event = event_identity(request)
        if not request.name and request.new_occurrence_date is None:
            raise ValidationError("At least one field (name or new_occurrence_date) must be provided")

        try:
            forms = await self._event_forms(event)
            today = clock.today()
            if event.occurrence_date <= today:
                raise BusinessLogicError("Only events scheduled after today can be updated")

            new_date = request.new_occurrence_date
            if new_date is not None:
                self._check_new_date(new_date, forms[0], today)

            pending = [form for form in forms if form.status == AssessmentStatus.NOT_STARTED]
            if not pending:
                raise BusinessLogicError("Event has no NOT_STARTED assessments to update")

            if new_date is not None and new_date != event.occurrence_date:
                clashes = await self.form_repository.find_existing_trainee_ids(
                    [form.trainee_id for form in pending],
                    event.template_id,
                    new_date,
                    subject_id=event.subject_id,
                    course_id=event.course_id,
                )
                if clashes:
                    raise AssessmentAlreadyExistsError([
                        {"trainee_id": str(form.trainee_id), "eid": form.trainee.eid, "trainee_name": form.trainee.full_name}
                        for form in pending
                        if form.trainee_id in clashes
                    ])

            new_name = request.name.strip() if request.name else None
            for form in pending:
                if new_name:
                    form.name = f"{new_name}{NAME_SEPARATOR}{form.trainee.eid}"
                if new_date is not None:
                    form.occurrence_date = new_date
                form.updated_by_id = actor.id
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"[ASSESSMENT_EVENTS] {actor.id} updated {len(pending)} form(s) of event "
            f"{event.template_id}/{event.occurrence_date}"
        )
        return self._mutation_response(
            "Assessment event updated successfully",
            len(pending),
            event,
            forms,
            name=new_name,
            occurrence_date=new_date,
        )

    @staticmethod
    def _check_new_date(new_date: date, form: AssessmentForm, today: date) -> None:
        if new_date <= today:
            raise OccurrenceDateError("Occurrence date must be in the future")
        entity = form.subject if form.subject_id is not None else form.course
        entity_type = "subject" if form.subject_id is not None else "course"
        if new_date < entity.start_date:
            raise OccurrenceDateError(
                f"Occurrence date cannot be before the {entity_type} start date ({entity.start_date.isoformat()})"
            )
        if entity.end_date is not None and new_date > entity.end_date:
            raise OccurrenceDateError(
                f"Occurrence date cannot be after the {entity_type} end date ({entity.end_date.isoformat()})"
            )

    async def archive_event(self, request: EventKeyRequest, actor: CurrentUser) -> EventMutationResponse:
        """Cancel every NOT_STARTED form of the event. Repeating it cancels nothing more."""
        event = event_identity(request)
        from_status, to_status = event_transition(AssessmentEvent.ARCHIVED)
        try:
            forms = await self._event_forms(event)
            count = await self.event_repository.transition_event(event, from_status, to_status)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"[ASSESSMENT_EVENTS] {actor.id} archived {count} form(s) of event {event.key}")
        return self._mutation_response(f"Archived {count} assessment(s)", count, event, forms)

    async def activate_event(self, request: EventKeyRequest, actor: CurrentUser) -> EventMutationResponse:
        """Start every NOT_STARTED form of an event whose date has arrived."""
        event = event_identity(request)
        from_status, to_status = event_transition(AssessmentEvent.OCCURRENCE_DATE_ARRIVED)
        try:
            forms = await self._event_forms(event)
            if event.occurrence_date > clock.today():
                raise BusinessLogicError("Cannot activate an event before its occurrence date")
            count = await self.event_repository.transition_event(event, from_status, to_status)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"[ASSESSMENT_EVENTS] {actor.id} activated {count} form(s) of event {event.key}")
        return self._mutation_response(f"Activated {count} assessment(s)", count, event, forms)

    async def activate_due_assessments(self, on_date: Optional[date] = None) -> int:
        """Start every NOT_STARTED form dated on or before ``on_date`` (default today)."""
        today = clock.today()
        on_date = on_date or today
        if on_date > today:
            raise BusinessLogicError("Cannot activate assessments for a future date")
        try:
            count = await self.event_repository.activate_due(on_date)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"[ASSESSMENT_EVENTS] Activated {count} due assessment(s) up to {on_date}")
        return count
