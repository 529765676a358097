"""Form-level access checks and section permission lookups."""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AssessmentNotAccessibleError
from app.models.assessment import AssessmentForm, AssessmentSection
from app.models.enums import RoleInAssessment, RoleName
from app.models.organization import CurrentUser
from app.repositories.training import InstructorRepository
from app.repositories.user import UserRepository
from app.services.section_permissions import (
    SectionAccessContext,
    SectionPermission,
    resolve_section_permission,
)

logger = logging.getLogger(__name__)

# Roles that see every form
GLOBAL_VIEW_ROLES = frozenset({RoleName.ADMINISTRATOR, RoleName.ACADEMIC_DEPARTMENT})


@dataclass(frozen=True)
class FormActor:
    """The caller as seen from one particular form."""

    user: CurrentUser
    is_assigned: bool = False
    assessment_role: Optional[RoleInAssessment] = None

    @property
    def id(self):
        return self.user.id

    @property
    def role(self) -> RoleName:
        return self.user.role_name


class AssessmentAccessService:
    """Answers "may this actor open this form" and "what may they do with this section"."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.instructor_repository = InstructorRepository(db)
        self.user_repository = UserRepository(db)

    async def get_form_actor(self, form: AssessmentForm, user: CurrentUser) -> FormActor:
        """Resolve the caller's instructor assignment for the form's subject or course."""
        if user.role_name != RoleName.TRAINER:
            return FormActor(user=user)
        assignment = await self.instructor_repository.get_assignment(
            user.id, subject_id=form.subject_id, course_id=form.course_id
        )
        if assignment is None:
            return FormActor(user=user)
        return FormActor(user=user, is_assigned=True, assessment_role=assignment.role_in_assessment)

    async def ensure_form_access(self, form: AssessmentForm, user: CurrentUser) -> FormActor:
        """Return the caller's form context or raise if they may not see the form.

        Allowed: the form's trainee, its creator, administrators and the academic
        department, trainers assigned to the form's subject/course and heads of
        the template's department.
        """
        actor = await self.get_form_actor(form, user)

        if form.trainee_id == user.id or form.created_by_id == user.id:
            return actor
        if user.role_name in GLOBAL_VIEW_ROLES:
            return actor
        if user.role_name == RoleName.TRAINER and actor.is_assigned:
            return actor
        if user.role_name == RoleName.DEPARTMENT_HEAD:
            department_id = await self.user_repository.get_department_id(user.id)
            if department_id is not None and department_id == form.department_id:
                return actor

        logger.warning(f"[ASSESSMENT_ACCESS] User {user.id} ({user.role_name.value}) denied access to form {form.id}")
        raise AssessmentNotAccessibleError()

    @staticmethod
    def section_context(
        form: AssessmentForm,
        section: AssessmentSection,
        actor: FormActor,
    ) -> SectionAccessContext:
        template_section = section.template_section
        return SectionAccessContext(
            actor_id=actor.id,
            actor_role=actor.role,
            actor_assessment_role=actor.assessment_role,
            actor_is_assigned=actor.is_assigned,
            edit_by=template_section.edit_by,
            role_in_subject=template_section.role_in_subject,
            assessed_by_id=section.assessed_by_id,
            section_status=section.status,
            trainee_id=form.trainee_id,
            is_trainee_locked=form.is_trainee_locked,
            form_status=form.status,
        )

    def section_permission(
        self,
        form: AssessmentForm,
        section: AssessmentSection,
        actor: FormActor,
    ) -> SectionPermission:
        return resolve_section_permission(self.section_context(form, section, actor))
