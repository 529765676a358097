"""Assessment creation - seeds one form tree per trainee from a published template."""

import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Sequence, Union
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core import clock
from app.core.exceptions import (
    AllTraineesExcludedError,
    ApplicationError,
    AssessmentAlreadyExistsError,
    AssessmentCreationFailedError,
    BothSubjectAndCourseProvidedError,
    CourseNotFoundError,
    DepartmentAccessDeniedError,
    EntityNotActiveError,
    NoEnrolledTraineesFoundError,
    OccurrenceDateError,
    SubjectNotFoundError,
    SubjectOrCourseRequiredError,
    TemplateDepartmentMismatchError,
    TemplateNotFoundError,
    TemplateNotPublishedError,
    TemplateScoringMismatchError,
    TemplateStructureEmptyError,
    TemplateWithoutAssessableSectionsError,
    TraineeInvalidRoleError,
    TraineeNotActiveError,
    TraineeNotEnrolledError,
    TraineeNotFoundError,
    ValidationError,
)
from app.models.assessment import AssessmentForm, AssessmentSection, AssessmentValue
from app.models.enums import (
    AssessmentStatus,
    FieldType,
    RoleName,
    SectionStatus,
    TemplateStatus,
    TrainingStatus,
    UserStatus,
)
from app.models.organization import CurrentUser, User
from app.models.template import TemplateForm
from app.models.training import Course, Subject
from app.repositories.assessment import AssessmentFormRepository
from app.repositories.template import TemplateRepository
from app.repositories.training import CourseRepository, EnrollmentRepository, SubjectRepository
from app.repositories.user import UserRepository
from app.schemas.assessment import (
    AssessmentFormResponse,
    BulkCreateAssessmentRequest,
    BulkCreateAssessmentResponse,
    CreateAssessmentRequest,
    CreateAssessmentResponse,
    EntityInfo,
    SkippedTrainee,
)
from app.services.assessment_state import initial_status

logger = logging.getLogger(__name__)

ASSESSABLE_ENTITY_STATUSES = (TrainingStatus.PLANNED, TrainingStatus.ON_GOING)

EXCLUDED_REASON = "Manually excluded from assessment creation"
EXISTING_REASON = "Assessment form already exists for this subject/course"

CreationRequest = Union[CreateAssessmentRequest, BulkCreateAssessmentRequest]


@dataclass
class CreationTarget:
    """Validated template and subject/course a batch of forms will be seeded from."""

    template: TemplateForm
    entity: Union[Subject, Course]
    entity_type: str
    occurrence_date: date

    @property
    def subject_id(self) -> Optional[UUID]:
        return self.entity.id if self.entity_type == "subject" else None

    @property
    def course_id(self) -> Optional[UUID]:
        return self.entity.id if self.entity_type == "course" else None

    @property
    def entity_info(self) -> EntityInfo:
        return EntityInfo(
            id=self.entity.id, name=self.entity.name, code=self.entity.code, type=self.entity_type
        )


class AssessmentCreationService:
    """
    Creates assessment forms.

    Every business rule is checked before the first write; all forms of one
    call are then inserted and committed as a single transaction.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.form_repository = AssessmentFormRepository(db)
        self.template_repository = TemplateRepository(db)
        self.subject_repository = SubjectRepository(db)
        self.course_repository = CourseRepository(db)
        self.enrollment_repository = EnrollmentRepository(db)
        self.user_repository = UserRepository(db)

    # ============================================================================
    # PUBLIC OPERATIONS
    # ============================================================================

    async def create_assessments(
        self,
        request: CreateAssessmentRequest,
        actor: CurrentUser,
    ) -> CreateAssessmentResponse:
        """Create one form per listed trainee, all or nothing."""
        logger.info(
            f"[ASSESSMENT_CREATE] User {actor.id} creating '{request.name}' for "
            f"{len(request.trainee_ids)} trainee(s) on {request.occurrence_date}"
        )
        try:
            trainee_ids = list(dict.fromkeys(request.trainee_ids))
            if not trainee_ids:
                raise ValidationError("At least one trainee must be provided", field="trainee_ids")

            target = await self._resolve_target(request, actor)
            trainees = await self._validate_trainees(trainee_ids, target)
            await self._ensure_no_duplicates(trainees, target)

            forms = await self._create_forms(request.name, trainees, target, actor)
            await self.db.commit()
        except ApplicationError:
            await self.db.rollback()
            raise
        except Exception:
            await self.db.rollback()
            logger.exception("[ASSESSMENT_CREATE] Unexpected failure while creating assessments")
            raise AssessmentCreationFailedError()

        logger.info(f"[ASSESSMENT_CREATE] Created {len(forms)} assessment(s) from template {target.template.id}")
        return CreateAssessmentResponse(
            message=f"Successfully created {len(forms)} assessment(s)",
            assessments=[AssessmentFormResponse.model_validate(form) for form in forms],
            total_created=len(forms),
        )

    async def create_bulk_assessments(
        self,
        request: BulkCreateAssessmentRequest,
        actor: CurrentUser,
    ) -> BulkCreateAssessmentResponse:
        """Create forms for every enrolled trainee, reporting the ones skipped."""
        logger.info(
            f"[ASSESSMENT_CREATE] User {actor.id} bulk creating '{request.name}' on {request.occurrence_date}"
        )
        try:
            target = await self._resolve_target(request, actor)

            enrolled = await self.enrollment_repository.get_enrolled_trainees(
                subject_id=target.subject_id, course_id=target.course_id
            )
            if not enrolled:
                raise NoEnrolledTraineesFoundError(target.entity_type, target.entity.name)

            excluded_ids = set(request.exclude_trainee_ids)
            eligible = [t for t in enrolled if t.id not in excluded_ids]
            if not eligible:
                raise AllTraineesExcludedError(len(enrolled))

            existing_ids = await self.form_repository.find_existing_trainee_ids(
                [t.id for t in eligible],
                target.template.id,
                target.occurrence_date,
                subject_id=target.subject_id,
                course_id=target.course_id,
            )

            skipped = [
                SkippedTrainee(trainee_id=t.id, eid=t.eid, full_name=t.full_name, reason=EXCLUDED_REASON)
                for t in enrolled
                if t.id in excluded_ids
            ]
            skipped.extend(
                SkippedTrainee(trainee_id=t.id, eid=t.eid, full_name=t.full_name, reason=EXISTING_REASON)
                for t in eligible
                if t.id in existing_ids
            )
            remaining = [t for t in eligible if t.id not in existing_ids]

            if not remaining:
                logger.info(f"[ASSESSMENT_CREATE] Nothing to create for {target.entity_type} {target.entity.id}")
                return BulkCreateAssessmentResponse(
                    message="No assessments created - all eligible trainees already have assessments or were excluded",
                    assessments=[],
                    total_created=0,
                    total_enrolled=len(enrolled),
                    skipped_trainees=skipped,
                    entity_info=target.entity_info,
                )

            forms = await self._create_forms(request.name, remaining, target, actor)
            await self.db.commit()
        except ApplicationError:
            await self.db.rollback()
            raise
        except Exception:
            await self.db.rollback()
            logger.exception("[ASSESSMENT_CREATE] Unexpected failure while bulk creating assessments")
            raise AssessmentCreationFailedError()

        logger.info(
            f"[ASSESSMENT_CREATE] Bulk created {len(forms)} assessment(s), skipped {len(skipped)} "
            f"for {target.entity_type} {target.entity.id}"
        )
        return BulkCreateAssessmentResponse(
            message=(
                f"Successfully created {len(forms)} assessment(s) for "
                f"{target.entity_type}: {target.entity.name}"
            ),
            assessments=[AssessmentFormResponse.model_validate(form) for form in forms],
            total_created=len(forms),
            total_enrolled=len(enrolled),
            skipped_trainees=skipped,
            entity_info=target.entity_info,
        )

    # ============================================================================
    # VALIDATION
    # ============================================================================

    async def _resolve_target(self, request: CreationRequest, actor: CurrentUser) -> CreationTarget:
        """Validate template, subject/course, department and date."""
        if request.subject_id is None and request.course_id is None:
            raise SubjectOrCourseRequiredError()
        if request.subject_id is not None and request.course_id is not None:
            raise BothSubjectAndCourseProvidedError()

        template = await self.template_repository.get_with_structure(request.template_id)
        if template is None:
            raise TemplateNotFoundError(request.template_id)
        if template.status != TemplateStatus.PUBLISHED:
            raise TemplateNotPublishedError(request.template_id)

        if request.subject_id is not None:
            entity = await self.subject_repository.get_by_id(request.subject_id)
            if entity is None:
                raise SubjectNotFoundError(request.subject_id)
            entity_type = "subject"
            department_id = entity.course.department_id
        else:
            entity = await self.course_repository.get_by_id(request.course_id)
            if entity is None:
                raise CourseNotFoundError(request.course_id)
            entity_type = "course"
            department_id = entity.department_id

        if entity.status not in ASSESSABLE_ENTITY_STATUSES:
            raise EntityNotActiveError(entity_type)

        self._check_scoring_compatibility(template, entity, entity_type)

        if template.department_id != department_id:
            raise TemplateDepartmentMismatchError()
        if actor.role_name == RoleName.DEPARTMENT_HEAD:
            actor_department_id = await self.user_repository.get_department_id(actor.id)
            if actor_department_id != department_id:
                logger.warning(
                    f"[ASSESSMENT_CREATE] Department head {actor.id} tried to create outside department {department_id}"
                )
                raise DepartmentAccessDeniedError()

        self._check_occurrence_date(request.occurrence_date, entity, entity_type)
        self._check_structure(template)

        return CreationTarget(
            template=template,
            entity=entity,
            entity_type=entity_type,
            occurrence_date=request.occurrence_date,
        )

    @staticmethod
    def _check_scoring_compatibility(template: TemplateForm, entity: Union[Subject, Course], entity_type: str) -> None:
        has_score_field = any(
            field.field_type == FieldType.FINAL_SCORE_NUM
            for section in template.sections
            for field in section.fields
        )
        label = entity_type.capitalize()
        if entity.pass_score is None and has_score_field:
            raise TemplateScoringMismatchError(
                f"The template needs a final score to assess trainees, but this {label} "
                f"does not use a score to assess trainees",
                field="template_id",
            )
        if entity.pass_score is not None and not has_score_field:
            raise TemplateScoringMismatchError(
                f"This {label} requires a final score to assess trainees, but the template "
                f"has no field to record a score",
                field="template_id",
            )

    @staticmethod
    def _check_occurrence_date(occurrence_date: date, entity: Union[Subject, Course], entity_type: str) -> None:
        if occurrence_date < clock.today():
            raise OccurrenceDateError("Cannot create assessment with occurrence date in the past")
        if occurrence_date < entity.start_date:
            raise OccurrenceDateError(
                f"Occurrence date cannot be before the {entity_type} start date ({entity.start_date.isoformat()})"
            )
        if entity.end_date is not None and occurrence_date > entity.end_date:
            raise OccurrenceDateError(
                f"Occurrence date cannot be after the {entity_type} end date ({entity.end_date.isoformat()})"
            )

    @staticmethod
    def _check_structure(template: TemplateForm) -> None:
        if not template.sections:
            raise TemplateStructureEmptyError()
        empty = [section.id for section in template.sections if not section.fields]
        if empty:
            raise TemplateStructureEmptyError(empty)
        if all(section.is_signature_only for section in template.sections):
            raise TemplateWithoutAssessableSectionsError()

    async def _validate_trainees(self, trainee_ids: List[UUID], target: CreationTarget) -> List[User]:
        """Load the requested trainees, reporting offenders in a fixed order."""
        users = {user.id: user for user in await self.user_repository.get_many(trainee_ids)}

        not_found = [i for i in trainee_ids if i not in users]
        if not_found:
            raise TraineeNotFoundError(not_found)

        invalid_role = [i for i in trainee_ids if users[i].role != RoleName.TRAINEE]
        if invalid_role:
            raise TraineeInvalidRoleError(invalid_role)

        inactive = [i for i in trainee_ids if users[i].status != UserStatus.ACTIVE]
        if inactive:
            raise TraineeNotActiveError(inactive)

        enrolled = await self.enrollment_repository.get_enrolled_ids(
            trainee_ids, subject_id=target.subject_id, course_id=target.course_id
        )
        not_enrolled = [i for i in trainee_ids if i not in enrolled]
        if not_enrolled:
            raise TraineeNotEnrolledError(not_enrolled, target.entity_type)

        return [users[i] for i in trainee_ids]

    async def _ensure_no_duplicates(self, trainees: Sequence[User], target: CreationTarget) -> None:
        existing = await self.form_repository.find_existing_trainee_ids(
            [t.id for t in trainees],
            target.template.id,
            target.occurrence_date,
            subject_id=target.subject_id,
            course_id=target.course_id,
        )
        if existing:
            raise AssessmentAlreadyExistsError([
                {"trainee_id": str(t.id), "eid": t.eid, "trainee_name": t.full_name}
                for t in trainees
                if t.id in existing
            ])

    # ============================================================================
    # WRITES
    # ============================================================================

    async def _create_forms(
        self,
        base_name: str,
        trainees: Sequence[User],
        target: CreationTarget,
        actor: CurrentUser,
    ) -> List[AssessmentForm]:
        """Stage one form tree per trainee and flush them together."""
        status = initial_status(target.occurrence_date == clock.today())
        forms = [self._build_form(base_name, trainee, target, status, actor) for trainee in trainees]
        await self.form_repository.add_forms(forms)
        return forms

    @staticmethod
    def _build_form(
        base_name: str,
        trainee: User,
        target: CreationTarget,
        status: AssessmentStatus,
        actor: CurrentUser,
    ) -> AssessmentForm:
        sections = [
            AssessmentSection(
                template_section=template_section,
                status=SectionStatus.REQUIRED_ASSESSMENT,
                values=[
                    AssessmentValue(template_field=field, created_by_id=actor.id)
                    for field in template_section.fields
                ],
            )
            for template_section in target.template.sections
        ]
        return AssessmentForm(
            template=target.template,
            name=f"{base_name.strip()} - {trainee.eid}",
            subject_id=target.subject_id,
            course_id=target.course_id,
            occurrence_date=target.occurrence_date,
            trainee=trainee,
            status=status,
            is_trainee_locked=True,
            created_by_id=actor.id,
            updated_by_id=actor.id,
            sections=sections,
        )
