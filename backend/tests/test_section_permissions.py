"""Section permission resolver."""

import uuid
from dataclasses import replace

import pytest

from app.models.enums import AssessmentStatus, EditBy, RoleInAssessment, RoleName, SectionStatus
from app.services.section_permissions import SectionAccessContext, resolve_section_permission

TRAINEE_ID = uuid.uuid4()
TRAINER_ID = uuid.uuid4()


def context(**overrides) -> SectionAccessContext:
    base = SectionAccessContext(
        actor_id=TRAINER_ID,
        actor_role=RoleName.TRAINER,
        actor_assessment_role=RoleInAssessment.EXAMINER,
        actor_is_assigned=True,
        edit_by=EditBy.TRAINER,
        role_in_subject=None,
        assessed_by_id=None,
        section_status=SectionStatus.REQUIRED_ASSESSMENT,
        trainee_id=TRAINEE_ID,
        is_trainee_locked=True,
        form_status=AssessmentStatus.ON_GOING,
    )
    return replace(base, **overrides)


def test_assigned_trainer_can_claim_open_trainer_section():
    permission = resolve_section_permission(context())
    assert permission.can_view and permission.can_assess and permission.can_save
    assert not permission.can_update
    assert permission.role_requirement == "TRAINER"


def test_unassigned_trainer_sees_nothing():
    permission = resolve_section_permission(context(actor_is_assigned=False, actor_assessment_role=None))
    assert not permission.can_view
    assert not permission.can_save


def test_specific_role_section_requires_matching_role():
    permission = resolve_section_permission(
        context(role_in_subject=RoleInAssessment.EXAMINER, actor_assessment_role=RoleInAssessment.EXAMINER)
    )
    assert permission.can_assess
    assert permission.role_requirement == "EXAMINER"


def test_reviewer_views_but_cannot_assess_examiner_section():
    permission = resolve_section_permission(
        context(
            role_in_subject=RoleInAssessment.EXAMINER,
            actor_assessment_role=RoleInAssessment.ASSESSMENT_REVIEWER,
        )
    )
    assert permission.can_view
    assert not permission.can_assess
    assert not permission.can_save


def test_claimed_section_cannot_be_saved_again():
    permission = resolve_section_permission(
        context(assessed_by_id=uuid.uuid4(), section_status=SectionStatus.DRAFT)
    )
    assert permission.can_assess
    assert not permission.can_save
    assert not permission.can_update


def test_original_assessor_can_update_while_editable():
    permission = resolve_section_permission(
        context(assessed_by_id=TRAINER_ID, section_status=SectionStatus.DRAFT, form_status=AssessmentStatus.REJECTED)
    )
    assert permission.can_update


def test_no_update_after_submission():
    permission = resolve_section_permission(
        context(assessed_by_id=TRAINER_ID, section_status=SectionStatus.DRAFT, form_status=AssessmentStatus.SUBMITTED)
    )
    assert not permission.can_update


def test_trainee_section_needs_unlocked_form():
    locked = resolve_section_permission(
        context(actor_id=TRAINEE_ID, actor_role=RoleName.TRAINEE, actor_is_assigned=False, edit_by=EditBy.TRAINEE)
    )
    assert locked.can_view
    assert not locked.can_assess

    unlocked = resolve_section_permission(
        context(
            actor_id=TRAINEE_ID,
            actor_role=RoleName.TRAINEE,
            actor_is_assigned=False,
            edit_by=EditBy.TRAINEE,
            is_trainee_locked=False,
        )
    )
    assert unlocked.can_assess and unlocked.can_save
    assert unlocked.role_requirement == "TRAINEE"


def test_other_trainee_cannot_view():
    permission = resolve_section_permission(
        context(actor_id=uuid.uuid4(), actor_role=RoleName.TRAINEE, edit_by=EditBy.TRAINEE, is_trainee_locked=False)
    )
    assert not permission.can_view


def test_trainer_only_views_trainee_section():
    permission = resolve_section_permission(context(edit_by=EditBy.TRAINEE, is_trainee_locked=False))
    assert permission.can_view
    assert not permission.can_assess


@pytest.mark.parametrize("role", [RoleName.DEPARTMENT_HEAD, RoleName.ADMINISTRATOR, RoleName.ACADEMIC_DEPARTMENT])
@pytest.mark.parametrize("edit_by", [EditBy.TRAINER, EditBy.TRAINEE])
def test_management_roles_are_view_only(role, edit_by):
    permission = resolve_section_permission(
        context(actor_role=role, actor_is_assigned=False, actor_assessment_role=None, edit_by=edit_by)
    )
    assert permission.can_view
    assert not (permission.can_assess or permission.can_save or permission.can_update)


def test_department_head_never_updates_own_claim():
    permission = resolve_section_permission(
        context(
            actor_role=RoleName.DEPARTMENT_HEAD,
            assessed_by_id=TRAINER_ID,
            section_status=SectionStatus.DRAFT,
            form_status=AssessmentStatus.DRAFT,
        )
    )
    assert not permission.can_update
