"""Section saves, updates and form actions up to submission."""

from datetime import timedelta

import pytest

from app.core import clock
from app.core.exceptions import (
    AssessmentNotAccessibleError,
    AssessmentStatusNotAllowedError,
    AssessmentValueNotFoundError,
    AuthorizationError,
    BusinessLogicError,
    InvalidAssessmentValuesError,
    OriginalAssessorOnlyError,
    SectionAlreadyAssessedError,
    SectionPermissionDeniedError,
)
from app.models.enums import AssessmentStatus, FieldType, ReviewAction, SectionStatus
from app.repositories.assessment import AssessmentSectionRepository
from app.schemas.assessment import (
    ApproveRejectRequest,
    ConfirmParticipationRequest,
    SaveValuesRequest,
    ToggleTraineeLockRequest,
    ValueInput,
)
from app.services.assessment_approval_service import AssessmentApprovalService
from app.services.assessment_event_service import AssessmentEventService
from app.services.assessment_service import AssessmentService
from app.services.assessment_value_service import AssessmentValueService
from factories import as_actor
from flows import (
    TRAINEE_SIGNATURE,
    create_forms,
    fill_scored_form,
    save,
    sections_of,
    submitted_scored_form,
    unlock_for_trainee,
    update,
    values_of,
)


async def form_status(session, form_id):
    form = await AssessmentService(session).load_form(form_id)
    return form.status


class TestSave:
    async def test_single_section_form_skips_draft(self, db_session, world):
        form_ids = await create_forms(
            db_session, world, world.single_template, world.plain_subject, world.trainees[:2]
        )
        for form_id in form_ids:
            assert await form_status(db_session, form_id) == AssessmentStatus.ON_GOING
            response = await save(db_session, world.examiner, form_id, "Observation", {
                FieldType.TEXT: "Briefing complete",
                FieldType.CHECK_BOX: "true",
            })
            assert response.message == "Assessment values saved successfully"
            assert response.updated_values == 2
            assert response.section_status == SectionStatus.DRAFT
            assert response.assessment_form_status == AssessmentStatus.SIGNATURE_PENDING

    async def test_multi_section_form_progression(self, db_session, world, monkeypatch):
        trainee = world.trainees[0]
        [form_id] = await create_forms(
            db_session, world, world.scored_template, world.scored_subject, [trainee], days_ahead=5
        )
        assert await form_status(db_session, form_id) == AssessmentStatus.NOT_STARTED

        with pytest.raises(AssessmentStatusNotAllowedError):
            await save(db_session, world.examiner, form_id, "Second examiner", {FieldType.TEXT: "early"})

        occurrence = clock.today() + timedelta(days=5)
        monkeypatch.setattr(clock, "today", lambda: occurrence)
        assert await AssessmentEventService(db_session).activate_due_assessments() == 1
        assert await form_status(db_session, form_id) == AssessmentStatus.ON_GOING

        first = await save(db_session, world.examiner, form_id, "Examiner evaluation", {FieldType.FINAL_SCORE_NUM: "88"})
        assert first.assessment_form_status == AssessmentStatus.DRAFT

        second = await save(db_session, world.second_examiner, form_id, "Second examiner", {FieldType.TEXT: "ok"})
        assert second.assessment_form_status == AssessmentStatus.DRAFT

        with pytest.raises(SectionPermissionDeniedError):
            await save(db_session, trainee, form_id, "Trainee feedback", {FieldType.TEXT: "locked"})

        await unlock_for_trainee(db_session, world.examiner, form_id)
        last = await save(db_session, trainee, form_id, "Trainee feedback", {FieldType.TEXT: "Thanks"})
        assert last.assessment_form_status == AssessmentStatus.SIGNATURE_PENDING

    async def test_claimed_section_conflicts_and_keeps_original_answer(self, db_session, world):
        [form_id] = await create_forms(
            db_session, world, world.scored_template, world.scored_subject, world.trainees[:1]
        )
        await save(db_session, world.examiner, form_id, "Second examiner", {FieldType.TEXT: "first"})

        with pytest.raises(SectionAlreadyAssessedError):
            await save(db_session, world.second_examiner, form_id, "Second examiner", {FieldType.TEXT: "second"})

        section = (await sections_of(db_session, form_id))["Second examiner"]
        assert section.assessed_by_id == world.examiner.id
        assert values_of(section)[FieldType.TEXT] == "first"

    async def test_claim_is_compare_and_swap(self, db_session, world):
        [form_id] = await create_forms(
            db_session, world, world.single_template, world.plain_subject, world.trainees[:1]
        )
        section = (await sections_of(db_session, form_id))["Observation"]
        repository = AssessmentSectionRepository(db_session)

        assert await repository.claim(section.id, world.examiner.id) is True
        assert await repository.claim(section.id, world.second_examiner.id) is False
        await db_session.rollback()

    async def test_unassigned_trainer_cannot_open_form(self, db_session, world):
        [form_id] = await create_forms(
            db_session, world, world.single_template, world.plain_subject, world.trainees[:1]
        )
        with pytest.raises(AssessmentNotAccessibleError):
            await save(db_session, world.outsider, form_id, "Observation", {FieldType.TEXT: "x"})

    async def test_values_must_belong_to_section(self, db_session, world):
        [form_id] = await create_forms(
            db_session, world, world.scored_template, world.scored_subject, world.trainees[:1]
        )
        sections = await sections_of(db_session, form_id)
        foreign = sections["Examiner evaluation"].values[0]
        request = SaveValuesRequest(values=[ValueInput(assessment_value_id=foreign.id, answer_value="x")])

        with pytest.raises(AssessmentValueNotFoundError):
            await AssessmentValueService(db_session).save_values(
                sections["Second examiner"].id, request, as_actor(world.examiner)
            )
        section = (await sections_of(db_session, form_id))["Second examiner"]
        assert section.assessed_by_id is None

    async def test_signature_section_is_not_saved_directly(self, db_session, world):
        trainee = world.trainees[0]
        [form_id] = await create_forms(
            db_session, world, world.scored_template, world.scored_subject, [trainee]
        )
        await save(db_session, world.examiner, form_id, "Second examiner", {FieldType.TEXT: "ok"})
        await unlock_for_trainee(db_session, world.examiner, form_id)

        with pytest.raises(InvalidAssessmentValuesError):
            await save(db_session, trainee, form_id, "Trainee signature", {FieldType.SIGNATURE_DRAW: "data:image/png"})


class TestUpdate:
    async def test_only_original_assessor_updates(self, db_session, world):
        [form_id] = await create_forms(
            db_session, world, world.scored_template, world.scored_subject, world.trainees[:1]
        )
        await save(db_session, world.examiner, form_id, "Second examiner", {FieldType.TEXT: "first"})

        with pytest.raises(OriginalAssessorOnlyError):
            await update(db_session, world.second_examiner, form_id, "Second examiner", {FieldType.TEXT: "mine"})

        response = await update(db_session, world.examiner, form_id, "Second examiner", {FieldType.TEXT: "revised"})
        assert response.message == "Assessment values updated successfully"
        assert response.assessment_form_status == AssessmentStatus.DRAFT
        section = (await sections_of(db_session, form_id))["Second examiner"]
        assert values_of(section)[FieldType.TEXT] == "revised"

    async def test_update_after_rejection_reopens_form(self, db_session, world):
        form_id = await submitted_scored_form(db_session, world)
        await AssessmentApprovalService(db_session).approve_reject(
            form_id,
            ApproveRejectRequest(action=ReviewAction.REJECTED, comment="needs signature"),
            as_actor(world.head),
        )
        assert await form_status(db_session, form_id) == AssessmentStatus.REJECTED

        response = await update(db_session, world.second_examiner, form_id, "Second examiner", {FieldType.TEXT: "signed"})
        assert response.assessment_form_status == AssessmentStatus.READY_TO_SUBMIT
        assert response.message.endswith("assessment status changed to READY_TO_SUBMIT")
        assert await form_status(db_session, form_id) == AssessmentStatus.READY_TO_SUBMIT

    async def test_no_update_while_submitted(self, db_session, world):
        form_id = await submitted_scored_form(db_session, world)
        with pytest.raises(AssessmentStatusNotAllowedError):
            await update(db_session, world.examiner, form_id, "Examiner evaluation", {FieldType.TEXT: "late"})


class TestTraineeLock:
    async def test_requires_an_assessed_section(self, db_session, world):
        [form_id] = await create_forms(
            db_session, world, world.scored_template, world.scored_subject, world.trainees[:1]
        )
        with pytest.raises(AuthorizationError):
            await unlock_for_trainee(db_session, world.examiner, form_id)

        await save(db_session, world.examiner, form_id, "Second examiner", {FieldType.TEXT: "ok"})
        response = await unlock_for_trainee(db_session, world.examiner, form_id)
        assert response.message == "Trainee lock disabled successfully"
        assert response.assessed_sections_count == 1
        assert response.is_trainee_locked is False

        relock = await AssessmentValueService(db_session).toggle_trainee_lock(
            form_id, ToggleTraineeLockRequest(is_trainee_locked=True), as_actor(world.examiner)
        )
        assert relock.message == "Trainee lock enabled successfully"

    async def test_only_on_occurrence_date(self, db_session, world, monkeypatch):
        [form_id] = await create_forms(
            db_session, world, world.scored_template, world.scored_subject, world.trainees[:1]
        )
        await save(db_session, world.examiner, form_id, "Second examiner", {FieldType.TEXT: "ok"})

        tomorrow = clock.today() + timedelta(days=1)
        monkeypatch.setattr(clock, "today", lambda: tomorrow)
        with pytest.raises(BusinessLogicError):
            await unlock_for_trainee(db_session, world.examiner, form_id)


class TestConfirmAndSubmit:
    async def test_confirm_participation_fills_signature(self, db_session, world):
        trainee = world.trainees[0]
        [form_id] = await create_forms(
            db_session, world, world.scored_template, world.scored_subject, [trainee]
        )
        await fill_scored_form(db_session, world, form_id, trainee)

        assert await form_status(db_session, form_id) == AssessmentStatus.READY_TO_SUBMIT
        signature = (await sections_of(db_session, form_id))["Trainee signature"]
        assert signature.status == SectionStatus.DRAFT
        assert signature.assessed_by_id == trainee.id
        assert values_of(signature)[FieldType.SIGNATURE_DRAW] == TRAINEE_SIGNATURE

    async def test_only_the_trainee_confirms(self, db_session, world):
        trainee = world.trainees[0]
        [form_id] = await create_forms(
            db_session, world, world.single_template, world.plain_subject, [trainee]
        )
        await save(db_session, world.examiner, form_id, "Observation", {FieldType.TEXT: "ok"})

        with pytest.raises(AuthorizationError):
            await AssessmentValueService(db_session).confirm_participation(
                form_id,
                ConfirmParticipationRequest(trainee_signature_url=TRAINEE_SIGNATURE),
                as_actor(world.examiner),
            )

        response = await AssessmentValueService(db_session).confirm_participation(
            form_id, ConfirmParticipationRequest(trainee_signature_url=TRAINEE_SIGNATURE), as_actor(trainee)
        )
        assert response.previous_status == AssessmentStatus.SIGNATURE_PENDING
        assert response.status == AssessmentStatus.READY_TO_SUBMIT
        assert response.signature_saved is False

    async def test_submit_by_submittable_section_assessor(self, db_session, world):
        trainee = world.trainees[0]
        [form_id] = await create_forms(
            db_session, world, world.scored_template, world.scored_subject, [trainee]
        )
        await fill_scored_form(db_session, world, form_id, trainee)
        service = AssessmentValueService(db_session)

        with pytest.raises(AuthorizationError):
            await service.submit(form_id, as_actor(world.second_examiner))

        response = await service.submit(form_id, as_actor(world.examiner))
        assert response.status == AssessmentStatus.SUBMITTED
        assert response.submitted_by == world.examiner.id

        form = await AssessmentService(db_session).load_form(form_id)
        assert form.submitted_at is not None

        with pytest.raises(AssessmentStatusNotAllowedError):
            await service.submit(form_id, as_actor(world.examiner))

    async def test_submit_requires_ready_to_submit(self, db_session, world):
        [form_id] = await create_forms(
            db_session, world, world.single_template, world.plain_subject, world.trainees[:1]
        )
        with pytest.raises(AssessmentStatusNotAllowedError):
            await AssessmentValueService(db_session).submit(form_id, as_actor(world.examiner))
