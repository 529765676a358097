"""Reviewer decisions on submitted assessments."""

import pytest

from app.core.exceptions import AssessmentStatusNotAllowedError, AuthorizationError
from app.models.enums import AssessmentResult, AssessmentStatus, FieldType, ReviewAction
from app.models.training import Subject
from app.schemas.assessment import ApproveRejectRequest
from app.services.assessment_approval_service import AssessmentApprovalService
from app.services.assessment_service import AssessmentService
from factories import as_actor
from flows import create_forms, sections_of, submitted_scored_form, values_of

APPROVE = ApproveRejectRequest(action=ReviewAction.APPROVED)


async def review(session, form_id, user, request=APPROVE):
    return await AssessmentApprovalService(session).approve_reject(form_id, request, as_actor(user))


async def clear_pass_score(session, subject):
    loaded = await session.get(Subject, subject.id)
    loaded.pass_score = None
    await session.commit()


class TestApprove:
    async def test_passing_score_materializes_result_and_signatures(self, db_session, world):
        form_id = await submitted_scored_form(db_session, world, score="85")

        response = await review(db_session, form_id, world.head)

        assert response.status == AssessmentStatus.APPROVED
        assert response.previous_status == AssessmentStatus.SUBMITTED
        assert response.result_score == 85
        assert response.result_text == AssessmentResult.PASS
        assert response.approved_by_id == world.head.id

        form = await AssessmentService(db_session).load_form(form_id)
        assert form.status == AssessmentStatus.APPROVED
        assert form.approved_by_id == world.head.id
        assert form.approved_at is not None

        evaluation = values_of((await sections_of(db_session, form_id))["Examiner evaluation"])
        assert evaluation[FieldType.FINAL_SCORE_TEXT] == "PASS"
        assert evaluation[FieldType.SIGNATURE_IMG] == world.examiner.signature_image_url

    async def test_score_below_pass_mark_fails(self, db_session, world):
        form_id = await submitted_scored_form(db_session, world, score="70")

        response = await review(db_session, form_id, world.admin)

        assert response.result_score == 70
        assert response.result_text == AssessmentResult.FAIL
        evaluation = values_of((await sections_of(db_session, form_id))["Examiner evaluation"])
        assert evaluation[FieldType.FINAL_SCORE_TEXT] == "FAIL"

    async def test_missing_pass_score_is_not_applicable(self, db_session, world):
        form_id = await submitted_scored_form(db_session, world)
        await clear_pass_score(db_session, world.scored_subject)

        response = await review(db_session, form_id, world.head)

        assert response.result_text == AssessmentResult.NOT_APPLICABLE
        assert response.comment == "Cannot calculate result because Subject does not have a pass score defined"

    async def test_reviewer_comment_is_kept(self, db_session, world):
        form_id = await submitted_scored_form(db_session, world)
        await clear_pass_score(db_session, world.scored_subject)

        response = await review(
            db_session, form_id, world.head, ApproveRejectRequest(action=ReviewAction.APPROVED, comment="Manual pass")
        )
        assert response.comment == "Manual pass"


class TestReject:
    async def test_reject_stores_comment(self, db_session, world):
        form_id = await submitted_scored_form(db_session, world)

        response = await review(
            db_session,
            form_id,
            world.head,
            ApproveRejectRequest(action=ReviewAction.REJECTED, comment="Score not justified"),
        )

        assert response.status == AssessmentStatus.REJECTED
        form = await AssessmentService(db_session).load_form(form_id)
        assert form.comment == "Score not justified"
        assert form.result_text is None
        assert form.approved_by_id is None


class TestReviewerRules:
    @pytest.mark.parametrize("reviewer", ["examiner", "other_head", "academic"])
    async def test_not_a_reviewer(self, db_session, world, reviewer):
        form_id = await submitted_scored_form(db_session, world)
        with pytest.raises(AuthorizationError):
            await review(db_session, form_id, getattr(world, reviewer))

        form = await AssessmentService(db_session).load_form(form_id)
        assert form.status == AssessmentStatus.SUBMITTED

    async def test_only_submitted_forms(self, db_session, world):
        [form_id] = await create_forms(
            db_session, world, world.single_template, world.plain_subject, world.trainees[:1]
        )
        with pytest.raises(AssessmentStatusNotAllowedError):
            await review(db_session, form_id, world.admin)

    async def test_no_second_decision(self, db_session, world):
        form_id = await submitted_scored_form(db_session, world)
        await review(db_session, form_id, world.head)

        with pytest.raises(AssessmentStatusNotAllowedError):
            await review(db_session, form_id, world.admin)
