"""Assessment mutations - saving and updating section values and form actions.

Each public operation is one transaction. The form row is locked first, the
section claim is a compare-and-swap, and the new form status always comes
from :mod:`app.services.assessment_state`.
"""

import logging
from contextlib import asynccontextmanager
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core import clock
from app.core.exceptions import (
    AssessmentNotFoundError,
    AssessmentStatusNotAllowedError,
    AssessmentValueNotFoundError,
    AuthorizationError,
    BusinessLogicError,
    InvalidAssessmentValuesError,
    OriginalAssessorOnlyError,
    SectionAlreadyAssessedError,
    SectionDraftStatusOnlyError,
    SectionPermissionDeniedError,
)
from app.models.assessment import AssessmentForm, AssessmentSection
from app.models.enums import AssessmentStatus, EditBy, FieldType, SectionStatus
from app.models.organization import CurrentUser
from app.repositories.assessment import (
    AssessmentFormRepository,
    AssessmentSectionRepository,
    AssessmentValueRepository,
)
from app.schemas.assessment import (
    ConfirmParticipationRequest,
    ConfirmParticipationResponse,
    SaveValuesRequest,
    SubmitAssessmentResponse,
    ToggleTraineeLockRequest,
    ToggleTraineeLockResponse,
    ValueInput,
    ValueMutationResponse,
)
from app.services.assessment_service import AssessmentService
from app.services.assessment_state import (
    EDITABLE_STATUSES,
    LOCK_TOGGLE_STATUSES,
    SAVEABLE_STATUSES,
    AssessmentEvent,
    SectionProgress,
    next_status,
)

logger = logging.getLogger(__name__)


def _status_names(statuses) -> List[str]:
    return sorted(status.value for status in statuses)


class AssessmentValueService:
    """Write side of the assessment lifecycle up to submission."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.form_repository = AssessmentFormRepository(db)
        self.section_repository = AssessmentSectionRepository(db)
        self.value_repository = AssessmentValueRepository(db)
        self.queries = AssessmentService(db)

    @asynccontextmanager
    async def _unit_of_work(self):
        try:
            yield
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

    async def _locked_status(self, form_id: UUID) -> AssessmentStatus:
        status = await self.form_repository.lock_status(form_id)
        if status is None:
            raise AssessmentNotFoundError(form_id)
        return status

    async def _transition(
        self,
        form_id: UUID,
        current: AssessmentStatus,
        target: AssessmentStatus,
        action: str,
        **values,
    ) -> None:
        """Persist ``current -> target``; a concurrent change surfaces as a conflict."""
        if not await self.form_repository.transition_status(form_id, current, target, **values):
            logger.warning(f"[ASSESSMENT_VALUES] Lost status race on form {form_id}: {current.value} -> {target.value}")
            raise AssessmentStatusNotAllowedError(current.value, [current.value], action)

    async def _progress(self, form_id: UUID) -> SectionProgress:
        sections = await self.section_repository.get_for_form(form_id)
        return SectionProgress.from_sections(
            (section.status, section.template_section.is_signature_only) for section in sections
        )

    @staticmethod
    def _collect_answers(section: AssessmentSection, values: Sequence[ValueInput]) -> Dict[UUID, Optional[str]]:
        """Map value id to answer, rejecting foreign ids and blank signatures."""
        by_id = {value.id: value for value in section.values}

        unknown = [item.assessment_value_id for item in values if item.assessment_value_id not in by_id]
        if unknown:
            raise AssessmentValueNotFoundError(unknown)

        blank_signatures = [
            item.assessment_value_id
            for item in values
            if by_id[item.assessment_value_id].template_field.field_type == FieldType.SIGNATURE_DRAW
            and not (item.answer_value or "").strip()
        ]
        if blank_signatures:
            raise InvalidAssessmentValuesError("Signature fields cannot be empty", blank_signatures)

        return {item.assessment_value_id: item.answer_value for item in values}

    # ============================================================================
    # SECTION VALUES
    # ============================================================================

    async def save_values(
        self,
        section_id: UUID,
        request: SaveValuesRequest,
        actor: CurrentUser,
    ) -> ValueMutationResponse:
        """First save of a section: claims it for the actor and moves it to DRAFT."""
        logger.info(f"[ASSESSMENT_VALUES] User {actor.id} saving section {section_id}")

        async with self._unit_of_work():
            form, section = await self.queries.load_section(section_id)
            form_actor = await self.queries.access.ensure_form_access(form, actor)

            if section.template_section.is_signature_only:
                raise InvalidAssessmentValuesError(
                    "Signature sections are completed by confirming participation"
                )

            current = await self._locked_status(form.id)
            if current not in SAVEABLE_STATUSES:
                raise AssessmentStatusNotAllowedError(
                    current.value, _status_names(SAVEABLE_STATUSES), "save assessment values"
                )

            permission = self.queries.access.section_permission(form, section, form_actor)
            if not permission.can_assess:
                logger.warning(f"[ASSESSMENT_VALUES] User {actor.id} may not assess section {section_id}")
                raise SectionPermissionDeniedError("assess")
            if section.assessed_by_id is not None:
                raise SectionAlreadyAssessedError(section_id)

            answers = self._collect_answers(section, request.values)

            if not await self.section_repository.claim(section_id, actor.id):
                logger.warning(f"[ASSESSMENT_VALUES] Section {section_id} was claimed concurrently")
                raise SectionAlreadyAssessedError(section_id)

            written = await self.value_repository.set_answers(answers)

            progress = await self._progress(form.id)
            target = next_status(current, AssessmentEvent.SECTION_SAVED, progress)
            if target != current:
                await self._transition(
                    form.id, current, target, "save assessment values", updated_by_id=actor.id
                )

        logger.info(
            f"[ASSESSMENT_VALUES] Section {section_id} saved by {actor.id}; form {form.id} "
            f"{current.value} -> {target.value} ({progress.draft_count}/{progress.effective_total})"
        )
        return ValueMutationResponse(
            message="Assessment values saved successfully",
            assessment_section_id=section_id,
            updated_values=written,
            section_status=SectionStatus.DRAFT,
            assessment_form_status=target,
        )

    async def update_values(
        self,
        section_id: UUID,
        request: SaveValuesRequest,
        actor: CurrentUser,
    ) -> ValueMutationResponse:
        """Re-edit a claimed section. A REJECTED form returns to READY_TO_SUBMIT."""
        logger.info(f"[ASSESSMENT_VALUES] User {actor.id} updating section {section_id}")

        async with self._unit_of_work():
            form, section = await self.queries.load_section(section_id)
            await self.queries.access.ensure_form_access(form, actor)

            if section.assessed_by_id != actor.id:
                raise OriginalAssessorOnlyError()
            if section.status != SectionStatus.DRAFT:
                raise SectionDraftStatusOnlyError()

            current = await self._locked_status(form.id)
            if current not in EDITABLE_STATUSES:
                raise AssessmentStatusNotAllowedError(
                    current.value, _status_names(EDITABLE_STATUSES), "update assessment values"
                )

            answers = self._collect_answers(section, request.values)
            written = await self.value_repository.set_answers(answers)

            target = next_status(current, AssessmentEvent.VALUES_UPDATED)
            if target != current:
                await self._transition(
                    form.id, current, target, "update assessment values", updated_by_id=actor.id
                )

        if target != current:
            logger.info(f"[ASSESSMENT_VALUES] Form {form.id} reopened: {current.value} -> {target.value}")
            message = (
                "Assessment values updated successfully and assessment status changed to "
                f"{target.value}"
            )
        else:
            message = "Assessment values updated successfully"
        return ValueMutationResponse(
            message=message,
            assessment_section_id=section_id,
            updated_values=written,
            section_status=SectionStatus.DRAFT,
            assessment_form_status=target,
        )

    # ============================================================================
    # FORM ACTIONS
    # ============================================================================

    async def confirm_participation(
        self,
        form_id: UUID,
        request: ConfirmParticipationRequest,
        actor: CurrentUser,
    ) -> ConfirmParticipationResponse:
        """Trainee signs: fills every trainee SIGNATURE_DRAW and readies the form for submission."""
        async with self._unit_of_work():
            form = await self.queries.load_form(form_id)
            if form.trainee_id != actor.id:
                raise AuthorizationError("Only the trainee of this assessment can confirm participation")

            current = await self._locked_status(form.id)
            if current != AssessmentStatus.SIGNATURE_PENDING:
                raise AssessmentStatusNotAllowedError(
                    current.value, [AssessmentStatus.SIGNATURE_PENDING.value], "confirm participation"
                )

            signature_values: Dict[UUID, Optional[str]] = {}
            signed_section_ids: List[UUID] = []
            for section in self._trainee_sections(form):
                draws = [
                    value
                    for value in section.values
                    if value.template_field.field_type == FieldType.SIGNATURE_DRAW
                ]
                if draws:
                    signed_section_ids.append(section.id)
                    signature_values.update({value.id: request.trainee_signature_url for value in draws})

            written = await self.value_repository.set_answers(signature_values)
            await self.section_repository.force_draft(signed_section_ids, actor.id)

            target = next_status(current, AssessmentEvent.PARTICIPATION_CONFIRMED)
            await self._transition(form.id, current, target, "confirm participation", updated_by_id=actor.id)

        logger.info(
            f"[ASSESSMENT_VALUES] Trainee {actor.id} confirmed participation on form {form_id}, "
            f"{len(signed_section_ids)} signature section(s)"
        )
        return ConfirmParticipationResponse(
            message="Assessment participation confirmed successfully",
            assessment_form_id=form_id,
            trainee_id=actor.id,
            confirmed_at=clock.now(),
            status=target,
            previous_status=current,
            signature_saved=written > 0,
        )

    @staticmethod
    def _trainee_sections(form: AssessmentForm) -> List[AssessmentSection]:
        return [s for s in form.ordered_sections if s.template_section.edit_by == EditBy.TRAINEE]

    async def toggle_trainee_lock(
        self,
        form_id: UUID,
        request: ToggleTraineeLockRequest,
        actor: CurrentUser,
    ) -> ToggleTraineeLockResponse:
        """Open or close the trainee sections; only on the occurrence date, by an assessor."""
        async with self._unit_of_work():
            form = await self.queries.load_form(form_id)
            await self.queries.access.ensure_form_access(form, actor)

            current = await self._locked_status(form.id)
            if current not in LOCK_TOGGLE_STATUSES:
                raise AssessmentStatusNotAllowedError(
                    current.value, _status_names(LOCK_TOGGLE_STATUSES), "change the trainee lock"
                )
            if form.occurrence_date != clock.today():
                raise BusinessLogicError("Trainee lock can only be changed on the occurrence date")

            assessed = await self.section_repository.count_assessed_by(form.id, actor.id)
            if assessed == 0:
                raise AuthorizationError(
                    "Only users who have assessed a section of this assessment can change the trainee lock"
                )

            await self.form_repository.set_trainee_lock(form.id, request.is_trainee_locked)

        state = "enabled" if request.is_trainee_locked else "disabled"
        logger.info(f"[ASSESSMENT_VALUES] Trainee lock {state} on form {form_id} by {actor.id}")
        return ToggleTraineeLockResponse(
            message=f"Trainee lock {state} successfully",
            assessment_form_id=form_id,
            is_trainee_locked=request.is_trainee_locked,
            status=current,
            assessed_sections_count=assessed,
        )

    async def submit(self, form_id: UUID, actor: CurrentUser) -> SubmitAssessmentResponse:
        """READY_TO_SUBMIT -> SUBMITTED, by an assessor of a submittable section."""
        async with self._unit_of_work():
            form = await self.queries.load_form(form_id)
            await self.queries.access.ensure_form_access(form, actor)

            current = await self._locked_status(form.id)
            if current != AssessmentStatus.READY_TO_SUBMIT:
                raise AssessmentStatusNotAllowedError(
                    current.value, [AssessmentStatus.READY_TO_SUBMIT.value], "submit the assessment"
                )

            sections = await self.section_repository.get_for_form(form.id)
            if any(section.status != SectionStatus.DRAFT for section in sections):
                raise BusinessLogicError("All sections must be completed before submitting the assessment")
            if not any(
                section.template_section.is_submittable and section.assessed_by_id == actor.id
                for section in sections
            ):
                raise AuthorizationError("Only the assessor of a submittable section can submit this assessment")

            submitted_at = clock.now()
            target = next_status(current, AssessmentEvent.SUBMITTED)
            await self._transition(
                form.id,
                current,
                target,
                "submit the assessment",
                submitted_at=submitted_at,
                updated_by_id=actor.id,
            )

        logger.info(f"[ASSESSMENT_VALUES] Form {form_id} submitted by {actor.id}")
        return SubmitAssessmentResponse(
            message="Assessment submitted successfully",
            assessment_form_id=form_id,
            submitted_at=submitted_at,
            submitted_by=actor.id,
            status=target,
        )
