"""Assessment queries - role-scoped listings, form detail and section views."""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    AssessmentNotFoundError,
    AssessmentSectionNotFoundError,
    AuthorizationError,
    SectionPermissionDeniedError,
)
from app.models.assessment import AssessmentForm, AssessmentSection
from app.models.enums import AssessmentStatus, EditBy, RoleName
from app.models.organization import CurrentUser
from app.repositories.assessment import (
    AssessmentFilters,
    AssessmentFormRepository,
    AssessmentSectionRepository,
)
from app.repositories.training import InstructorRepository
from app.repositories.user import UserRepository
from app.schemas.assessment import (
    AssessmentDetailResponse,
    AssessmentFormResponse,
    AssessmentListResponse,
    AssessmentSectionsResponse,
    EntityInfo,
    FieldValueResponse,
    Pagination,
    SectionFieldsResponse,
    SectionResponse,
    SectionSummary,
    SectionWithFieldsResponse,
    TraineeSectionsResponse,
    UserSummary,
)
from app.services.assessment_access import AssessmentAccessService, FormActor
from app.services.section_permissions import SectionPermission

logger = logging.getLogger(__name__)

# Department heads only see forms once the trainer side is finished
DEPARTMENT_HIDDEN_STATUSES = frozenset({
    AssessmentStatus.NOT_STARTED,
    AssessmentStatus.ON_GOING,
    AssessmentStatus.DRAFT,
    AssessmentStatus.SIGNATURE_PENDING,
    AssessmentStatus.READY_TO_SUBMIT,
})


def entity_info(form: AssessmentForm) -> EntityInfo:
    if form.subject is not None:
        return EntityInfo(id=form.subject.id, name=form.subject.name, code=form.subject.code, type="subject")
    return EntityInfo(id=form.course.id, name=form.course.name, code=form.course.code, type="course")


def section_response(
    section: AssessmentSection,
    permission: SectionPermission,
    display_order: Optional[int] = None,
) -> SectionResponse:
    template_section = section.template_section
    return SectionResponse(
        id=section.id,
        assessment_form_id=section.assessment_form_id,
        template_section_id=section.template_section_id,
        label=template_section.label,
        display_order=template_section.display_order if display_order is None else display_order,
        edit_by=template_section.edit_by,
        role_in_subject=template_section.role_in_subject,
        role_requirement=permission.role_requirement,
        is_submittable=template_section.is_submittable,
        is_toggle_dependent=template_section.is_toggle_dependent,
        status=section.status,
        assessed_by_id=section.assessed_by_id,
        assessed_by_name=section.assessed_by.full_name if section.assessed_by is not None else None,
        can_assess=permission.can_assess,
        can_save=permission.can_save,
        can_update=permission.can_update,
    )


def field_values(section: AssessmentSection) -> List[FieldValueResponse]:
    return [
        FieldValueResponse(
            template_field_id=value.template_field_id,
            assessment_value_id=value.id,
            label=value.template_field.label,
            field_name=value.template_field.field_name,
            field_type=value.template_field.field_type,
            role_required=value.template_field.role_required,
            display_order=value.template_field.display_order,
            answer_value=value.answer_value,
        )
        for value in section.ordered_values
    ]


class AssessmentService:
    """
    Read side of the assessment module.

    Every lookup of a single form goes through the form access check; section
    level rights come from the section permission resolver.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.form_repository = AssessmentFormRepository(db)
        self.section_repository = AssessmentSectionRepository(db)
        self.instructor_repository = InstructorRepository(db)
        self.user_repository = UserRepository(db)
        self.access = AssessmentAccessService(db)

    # ============================================================================
    # LISTINGS
    # ============================================================================

    async def apply_role_scope(self, filters: AssessmentFilters, actor: CurrentUser) -> Optional[AssessmentFilters]:
        """Restrict ``filters`` to what the actor may see.

        Returns ``None`` when nothing can match, e.g. a department head asking
        for an early lifecycle status.
        """
        role = actor.role_name
        if role == RoleName.TRAINEE:
            filters.scope_trainee_id = actor.id
        elif role == RoleName.TRAINER:
            filters.scope_subject_ids = await self.instructor_repository.get_assigned_subject_ids(actor.id)
            filters.scope_course_ids = await self.instructor_repository.get_assigned_course_ids(actor.id)
        elif role == RoleName.DEPARTMENT_HEAD:
            department_id = await self.user_repository.get_department_id(actor.id)
            if department_id is None:
                return None
            if filters.status in DEPARTMENT_HIDDEN_STATUSES:
                return None
            filters.scope_department_id = department_id
            filters.excluded_statuses = DEPARTMENT_HIDDEN_STATUSES
        return filters

    async def list_assessments(
        self,
        actor: CurrentUser,
        filters: AssessmentFilters,
        page: int = 1,
        limit: int = 20,
    ) -> AssessmentListResponse:
        """Paginated forms visible to the actor."""
        scoped = await self.apply_role_scope(filters, actor)
        if scoped is None:
            return AssessmentListResponse(items=[], pagination=Pagination.build(page, limit, 0))

        forms, total = await self.form_repository.search(scoped, page, limit)
        logger.debug(f"[ASSESSMENTS] {actor.role_name.value} {actor.id} listed {len(forms)}/{total} forms")
        return AssessmentListResponse(
            items=[AssessmentFormResponse.model_validate(form) for form in forms],
            pagination=Pagination.build(page, limit, total),
        )

    async def list_department_assessments(
        self,
        actor: CurrentUser,
        filters: AssessmentFilters,
        page: int = 1,
        limit: int = 20,
    ) -> AssessmentListResponse:
        """Forms of the department head's own department, review stages only."""
        if actor.role_name != RoleName.DEPARTMENT_HEAD:
            raise AuthorizationError("Only department heads can list department assessments")
        if await self.user_repository.get_department_id(actor.id) is None:
            raise AuthorizationError("Department head is not assigned to a department")
        return await self.list_assessments(actor, filters, page, limit)

    # ============================================================================
    # SINGLE FORM
    # ============================================================================

    async def load_form(self, form_id: UUID) -> AssessmentForm:
        form = await self.form_repository.get_with_tree(form_id)
        if form is None:
            raise AssessmentNotFoundError(form_id)
        return form

    async def get_assessment(self, form_id: UUID, actor: CurrentUser) -> AssessmentDetailResponse:
        form = await self.load_form(form_id)
        await self.access.ensure_form_access(form, actor)

        base = AssessmentFormResponse.model_validate(form).model_dump()
        return AssessmentDetailResponse(
            **base,
            template_name=form.template.name,
            department_id=form.department_id,
            entity=entity_info(form),
            approved_by=UserSummary.model_validate(form.approved_by) if form.approved_by else None,
            sections=[
                SectionSummary(
                    id=section.id,
                    template_section_id=section.template_section_id,
                    label=section.template_section.label,
                    display_order=section.template_section.display_order,
                    edit_by=section.template_section.edit_by,
                    status=section.status,
                    assessed_by_id=section.assessed_by_id,
                )
                for section in form.ordered_sections
            ],
        )

    async def get_assessment_sections(self, form_id: UUID, actor: CurrentUser) -> AssessmentSectionsResponse:
        """Sections the actor may view, renumbered in display order.

        Signature-only trainee sections are left out; they are completed by
        confirm-participation and listed by :meth:`get_trainee_sections`.
        """
        form = await self.load_form(form_id)
        form_actor = await self.access.ensure_form_access(form, actor)

        visible = []
        for section in form.ordered_sections:
            if section.template_section.is_signature_only:
                continue
            permission = self.access.section_permission(form, section, form_actor)
            if permission.can_view:
                visible.append((section, permission))

        return AssessmentSectionsResponse(
            assessment_form_id=form.id,
            status=form.status,
            is_trainee_locked=form.is_trainee_locked,
            user_role=await self._user_role(form_actor),
            sections=[
                section_response(section, permission, display_order=index)
                for index, (section, permission) in enumerate(visible, start=1)
            ],
        )

    async def get_trainee_sections(self, form_id: UUID, actor: CurrentUser) -> TraineeSectionsResponse:
        """Every trainee-authored section, signature-only ones included."""
        form = await self.load_form(form_id)
        form_actor = await self.access.ensure_form_access(form, actor)

        sections = []
        for section in form.ordered_sections:
            if section.template_section.edit_by != EditBy.TRAINEE:
                continue
            permission = self.access.section_permission(form, section, form_actor)
            sections.append(
                SectionWithFieldsResponse(
                    **section_response(section, permission).model_dump(),
                    fields=field_values(section),
                )
            )

        return TraineeSectionsResponse(
            assessment_form_id=form.id,
            trainee=UserSummary.model_validate(form.trainee),
            sections=sections,
        )

    async def get_section_fields(self, section_id: UUID, actor: CurrentUser) -> SectionFieldsResponse:
        form, section = await self.load_section(section_id)
        form_actor = await self.access.ensure_form_access(form, actor)

        permission = self.access.section_permission(form, section, form_actor)
        if not permission.can_view:
            raise SectionPermissionDeniedError("view")

        fields = field_values(section)
        return SectionFieldsResponse(
            section=section_response(section, permission),
            trainee=UserSummary.model_validate(form.trainee),
            fields=fields,
            total_fields=len(fields),
        )

    async def load_section(self, section_id: UUID):
        """Load a section together with its (fresh) form."""
        form_id = await self.section_repository.get_form_id(section_id)
        if form_id is None:
            raise AssessmentSectionNotFoundError(section_id)
        form = await self.load_form(form_id)
        section = next((s for s in form.sections if s.id == section_id), None)
        if section is None:
            raise AssessmentSectionNotFoundError(section_id)
        return form, section

    async def _user_role(self, actor: FormActor) -> str:
        if actor.assessment_role is not None:
            return actor.assessment_role.value
        main_role = await self.user_repository.get_main_role(actor.id)
        return (main_role or actor.role).value
