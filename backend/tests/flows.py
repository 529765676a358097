"""Lifecycle shortcuts that drive forms through the services."""

from datetime import timedelta
from typing import Dict, List, Mapping, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core import clock
from app.models.assessment import AssessmentSection
from app.models.enums import FieldType
from app.models.organization import User
from app.schemas.assessment import (
    ConfirmParticipationRequest,
    CreateAssessmentRequest,
    SaveValuesRequest,
    ToggleTraineeLockRequest,
    ValueInput,
    ValueMutationResponse,
)
from app.services.assessment_creation_service import AssessmentCreationService
from app.services.assessment_service import AssessmentService
from app.services.assessment_value_service import AssessmentValueService
from factories import as_actor

TRAINEE_SIGNATURE = "https://cdn.example.com/sig/trainee.png"


async def create_forms(
    session: AsyncSession,
    world,
    template,
    subject,
    trainees: Sequence[User],
    days_ahead: int = 0,
    name: str = "Checkride",
) -> List[UUID]:
    request = CreateAssessmentRequest(
        template_id=template.id,
        subject_id=subject.id,
        occurrence_date=clock.today() + timedelta(days=days_ahead),
        name=name,
        trainee_ids=[t.id for t in trainees],
    )
    response = await AssessmentCreationService(session).create_assessments(request, as_actor(world.academic))
    return [form.id for form in response.assessments]


async def sections_of(session: AsyncSession, form_id: UUID) -> Dict[str, AssessmentSection]:
    form = await AssessmentService(session).load_form(form_id)
    return {section.template_section.label: section for section in form.sections}


def values_of(section: AssessmentSection) -> Dict[FieldType, Optional[str]]:
    return {value.template_field.field_type: value.answer_value for value in section.values}


def fill(section: AssessmentSection, answers: Mapping[FieldType, str]) -> SaveValuesRequest:
    return SaveValuesRequest(
        values=[
            ValueInput(assessment_value_id=value.id, answer_value=answers[value.template_field.field_type])
            for value in section.values
            if value.template_field.field_type in answers
        ]
    )


async def save(
    session: AsyncSession,
    user: User,
    form_id: UUID,
    label: str,
    answers: Mapping[FieldType, str],
) -> ValueMutationResponse:
    section = (await sections_of(session, form_id))[label]
    return await AssessmentValueService(session).save_values(section.id, fill(section, answers), as_actor(user))


async def update(
    session: AsyncSession,
    user: User,
    form_id: UUID,
    label: str,
    answers: Mapping[FieldType, str],
) -> ValueMutationResponse:
    section = (await sections_of(session, form_id))[label]
    return await AssessmentValueService(session).update_values(section.id, fill(section, answers), as_actor(user))


async def unlock_for_trainee(session: AsyncSession, user: User, form_id: UUID):
    return await AssessmentValueService(session).toggle_trainee_lock(
        form_id, ToggleTraineeLockRequest(is_trainee_locked=False), as_actor(user)
    )


async def fill_scored_form(session: AsyncSession, world, form_id: UUID, trainee: User, score: str = "85") -> None:
    """Complete every section of a scored form and collect the trainee signature."""
    await save(session, world.examiner, form_id, "Examiner evaluation", {
        FieldType.TEXT: "Stable approach, good radio work",
        FieldType.FINAL_SCORE_NUM: score,
        FieldType.FINAL_SCORE_TEXT: "FAIL",
    })
    await save(session, world.second_examiner, form_id, "Second examiner", {FieldType.TEXT: "Agreed"})
    await unlock_for_trainee(session, world.examiner, form_id)
    await save(session, trainee, form_id, "Trainee feedback", {FieldType.TEXT: "Useful debrief"})
    await AssessmentValueService(session).confirm_participation(
        form_id, ConfirmParticipationRequest(trainee_signature_url=TRAINEE_SIGNATURE), as_actor(trainee)
    )


async def submitted_scored_form(session: AsyncSession, world, score: str = "85") -> UUID:
    trainee = world.trainees[0]
    [form_id] = await create_forms(session, world, world.scored_template, world.scored_subject, [trainee])
    await fill_scored_form(session, world, form_id, trainee, score)
    await AssessmentValueService(session).submit(form_id, as_actor(world.examiner))
    return form_id
