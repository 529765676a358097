"""Approval and rejection of submitted assessments."""

import logging
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core import clock
from app.core.exceptions import AssessmentNotFoundError, AssessmentStatusNotAllowedError, AuthorizationError
from app.models.assessment import AssessmentForm
from app.models.enums import AssessmentStatus, FieldType, ReviewAction, RoleName
from app.models.organization import CurrentUser
from app.repositories.assessment import AssessmentFormRepository, AssessmentValueRepository
from app.repositories.user import UserRepository
from app.schemas.assessment import ApproveRejectRequest, ApproveRejectResponse
from app.services.assessment_scoring import ScoreCandidate, ScoringOutcome, resolve_result
from app.services.assessment_service import AssessmentService
from app.services.assessment_state import AssessmentEvent, next_status

logger = logging.getLogger(__name__)

REVIEWER_ROLES = frozenset({RoleName.DEPARTMENT_HEAD, RoleName.ADMINISTRATOR})
SCORE_FIELD_TYPES = (FieldType.FINAL_SCORE_NUM, FieldType.FINAL_SCORE_TEXT)


class AssessmentApprovalService:
    """
    Reviewer decision on a SUBMITTED form.

    Approval materializes signature images, resolves the final score and
    result, and records the approver. Rejection only stores the comment; the
    assessors reopen the form by editing their sections.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.form_repository = AssessmentFormRepository(db)
        self.value_repository = AssessmentValueRepository(db)
        self.user_repository = UserRepository(db)
        self.queries = AssessmentService(db)

    async def approve_reject(
        self,
        form_id: UUID,
        request: ApproveRejectRequest,
        actor: CurrentUser,
    ) -> ApproveRejectResponse:
        logger.info(f"[ASSESSMENT_APPROVAL] {actor.id} requested {request.action.value} on form {form_id}")
        try:
            form = await self.queries.load_form(form_id)
            await self._ensure_reviewer(form, actor)

            current = await self.form_repository.lock_status(form.id)
            if current is None:
                raise AssessmentNotFoundError(form_id)
            if current != AssessmentStatus.SUBMITTED:
                raise AssessmentStatusNotAllowedError(
                    current.value, [AssessmentStatus.SUBMITTED.value], "review the assessment"
                )

            if request.action == ReviewAction.REJECTED:
                response = await self._reject(form, current, request, actor)
            else:
                response = await self._approve(form, current, request, actor)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"[ASSESSMENT_APPROVAL] Form {form_id} {response.status.value} by {actor.id} "
            f"(score={response.result_score}, result={response.result_text})"
        )
        return response

    async def _ensure_reviewer(self, form: AssessmentForm, actor: CurrentUser) -> None:
        """Reviewers are department heads of the template's department and administrators,
        never the trainee or anyone who assessed a section of the form."""
        allowed = actor.role_name in REVIEWER_ROLES
        if allowed and actor.role_name == RoleName.DEPARTMENT_HEAD:
            allowed = await self.user_repository.get_department_id(actor.id) == form.department_id
        if allowed and actor.id == form.trainee_id:
            allowed = False
        if allowed and any(section.assessed_by_id == actor.id for section in form.sections):
            allowed = False
        if not allowed:
            logger.warning(f"[ASSESSMENT_APPROVAL] User {actor.id} is not a reviewer of form {form.id}")
            raise AuthorizationError("You do not have permission to approve or reject this assessment")

    async def _transition(self, form: AssessmentForm, current: AssessmentStatus, event: AssessmentEvent, **values):
        target = next_status(current, event)
        if not await self.form_repository.transition_status(form.id, current, target, **values):
            raise AssessmentStatusNotAllowedError(
                current.value, [AssessmentStatus.SUBMITTED.value], "review the assessment"
            )
        return target

    async def _reject(
        self,
        form: AssessmentForm,
        current: AssessmentStatus,
        request: ApproveRejectRequest,
        actor: CurrentUser,
    ) -> ApproveRejectResponse:
        target = await self._transition(
            form,
            current,
            AssessmentEvent.REJECTED,
            comment=request.comment,
            result_score=None,
            result_text=None,
            approved_by_id=None,
            approved_at=None,
            updated_by_id=actor.id,
        )
        return ApproveRejectResponse(
            message="Assessment rejected successfully",
            assessment_form_id=form.id,
            status=target,
            previous_status=current,
            comment=request.comment,
        )

    async def _approve(
        self,
        form: AssessmentForm,
        current: AssessmentStatus,
        request: ApproveRejectRequest,
        actor: CurrentUser,
    ) -> ApproveRejectResponse:
        outcome = self._score(form)

        comment = request.comment
        if outcome.missing_pass_score and not comment:
            entity = "Subject" if form.subject_id is not None else "Course"
            comment = f"Cannot calculate result because {entity} does not have a pass score defined"

        approved_at = clock.now()
        target = await self._transition(
            form,
            current,
            AssessmentEvent.APPROVED,
            comment=comment,
            result_score=outcome.result_score,
            result_text=outcome.result_text,
            approved_by_id=actor.id,
            approved_at=approved_at,
            updated_by_id=actor.id,
        )

        answers = await self._signature_answers(form)
        answers.update({value_id: outcome.result_text.value for value_id in outcome.text_value_ids})
        await self.value_repository.set_answers(answers)

        return ApproveRejectResponse(
            message="Assessment approved successfully",
            assessment_form_id=form.id,
            status=target,
            previous_status=current,
            result_score=outcome.result_score,
            result_text=outcome.result_text,
            approved_by_id=actor.id,
            approved_at=approved_at,
            comment=comment,
        )

    @staticmethod
    def _score(form: AssessmentForm) -> ScoringOutcome:
        pass_score: Optional[float] = (
            form.subject.pass_score if form.subject_id is not None else form.course.pass_score
        )
        candidates: List[ScoreCandidate] = [
            ScoreCandidate(
                value_id=value.id,
                field_type=value.template_field.field_type,
                answer_value=value.answer_value,
                section_order=section.template_section.display_order,
                field_order=value.template_field.display_order,
            )
            for section in form.sections
            for value in section.values
            if value.template_field.field_type in SCORE_FIELD_TYPES
        ]
        return resolve_result(candidates, pass_score)

    async def _signature_answers(self, form: AssessmentForm) -> Dict[UUID, Optional[str]]:
        """SIGNATURE_IMG values take the section assessor's signature image, else their full name."""
        slots = [
            (section.assessed_by_id, value.id)
            for section in form.sections
            for value in section.values
            if value.template_field.field_type == FieldType.SIGNATURE_IMG and section.assessed_by_id is not None
        ]
        if not slots:
            return {}

        assessors = {
            user.id: user for user in await self.user_repository.get_many({user_id for user_id, _ in slots})
        }
        answers: Dict[UUID, Optional[str]] = {}
        for user_id, value_id in slots:
            assessor = assessors.get(user_id)
            if assessor is not None:
                answers[value_id] = assessor.signature_image_url or assessor.full_name
        return answers
