"""Section permission resolver.

Decides what an actor may do with one assessment section. The decision is a
pure function of the actor, the section's template settings and the form
state; the rules live in a table so that new roles or section kinds are added
as rows.

Rule lookup is keyed on ``(section.edit_by, section role requirement, actor
main role)``. A row yields the *base* rights (view and assess); claim rules
are layered on top:

* ``can_save``: first claim, only while the section is unclaimed.
* ``can_update``: re-edit, only by the actor that claimed the section and only
  while the form is in an editable status.

Department heads can never save or update, whatever a row says.
"""
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple
from uuid import UUID

from app.models.enums import AssessmentStatus, EditBy, RoleInAssessment, RoleName, SectionStatus
from app.services.assessment_state import EDITABLE_STATUSES, SAVEABLE_STATUSES


@dataclass(frozen=True)
class SectionAccessContext:
    actor_id: UUID
    actor_role: RoleName
    actor_assessment_role: Optional[RoleInAssessment]
    actor_is_assigned: bool
    edit_by: EditBy
    role_in_subject: Optional[RoleInAssessment]
    assessed_by_id: Optional[UUID]
    section_status: SectionStatus
    trainee_id: UUID
    is_trainee_locked: bool
    form_status: AssessmentStatus


@dataclass(frozen=True)
class SectionPermission:
    can_view: bool = False
    can_assess: bool = False
    can_save: bool = False
    can_update: bool = False
    role_requirement: Optional[str] = None


Predicate = Callable[[SectionAccessContext], bool]


def _never(ctx: SectionAccessContext) -> bool:
    return False


def _always(ctx: SectionAccessContext) -> bool:
    return True


def _assigned(ctx: SectionAccessContext) -> bool:
    return ctx.actor_is_assigned


def _holds_required_role(ctx: SectionAccessContext) -> bool:
    return ctx.actor_is_assigned and ctx.actor_assessment_role == ctx.role_in_subject


def _holds_required_role_or_reviewer(ctx: SectionAccessContext) -> bool:
    return _holds_required_role(ctx) or (
        ctx.actor_is_assigned and ctx.actor_assessment_role == RoleInAssessment.ASSESSMENT_REVIEWER
    )


def _is_form_trainee(ctx: SectionAccessContext) -> bool:
    return ctx.actor_id == ctx.trainee_id


def _is_unlocked_form_trainee(ctx: SectionAccessContext) -> bool:
    return _is_form_trainee(ctx) and not ctx.is_trainee_locked


@dataclass(frozen=True)
class SectionRule:
    view: Predicate
    assess: Predicate


# Role requirement keys
OPEN = "OPEN"          # editBy=TRAINER, no specific role in subject
SPECIFIC = "SPECIFIC"  # editBy=TRAINER, roleInSubject set
ANY = "ANY"            # editBy=TRAINEE, role in subject irrelevant

VIEW_ONLY = SectionRule(view=_always, assess=_never)

SECTION_RULES: Dict[Tuple[EditBy, str, RoleName], SectionRule] = {
    # Trainer sections open to every assigned trainer
    (EditBy.TRAINER, OPEN, RoleName.TRAINER): SectionRule(view=_assigned, assess=_assigned),
    (EditBy.TRAINER, OPEN, RoleName.DEPARTMENT_HEAD): VIEW_ONLY,
    (EditBy.TRAINER, OPEN, RoleName.ADMINISTRATOR): VIEW_ONLY,
    (EditBy.TRAINER, OPEN, RoleName.ACADEMIC_DEPARTMENT): VIEW_ONLY,
    # Trainer sections reserved for a role in subject
    (EditBy.TRAINER, SPECIFIC, RoleName.TRAINER): SectionRule(
        view=_holds_required_role_or_reviewer, assess=_holds_required_role
    ),
    (EditBy.TRAINER, SPECIFIC, RoleName.DEPARTMENT_HEAD): VIEW_ONLY,
    (EditBy.TRAINER, SPECIFIC, RoleName.ADMINISTRATOR): VIEW_ONLY,
    (EditBy.TRAINER, SPECIFIC, RoleName.ACADEMIC_DEPARTMENT): VIEW_ONLY,
    # Trainee sections
    (EditBy.TRAINEE, ANY, RoleName.TRAINEE): SectionRule(view=_is_form_trainee, assess=_is_unlocked_form_trainee),
    (EditBy.TRAINEE, ANY, RoleName.TRAINER): SectionRule(view=_assigned, assess=_never),
    (EditBy.TRAINEE, ANY, RoleName.DEPARTMENT_HEAD): VIEW_ONLY,
    (EditBy.TRAINEE, ANY, RoleName.ADMINISTRATOR): VIEW_ONLY,
    (EditBy.TRAINEE, ANY, RoleName.ACADEMIC_DEPARTMENT): VIEW_ONLY,
}

NO_ACCESS = SectionPermission()


def _requirement_key(ctx: SectionAccessContext) -> str:
    if ctx.edit_by == EditBy.TRAINEE:
        return ANY
    return SPECIFIC if ctx.role_in_subject is not None else OPEN


def _role_requirement_label(ctx: SectionAccessContext) -> str:
    if ctx.edit_by == EditBy.TRAINEE:
        return EditBy.TRAINEE.value
    if ctx.role_in_subject is not None:
        return ctx.role_in_subject.value
    return EditBy.TRAINER.value


def resolve_section_permission(ctx: SectionAccessContext) -> SectionPermission:
    """Resolve the actor's rights on one section."""
    rule = SECTION_RULES.get((ctx.edit_by, _requirement_key(ctx), ctx.actor_role))
    if rule is None:
        return NO_ACCESS

    can_view = rule.view(ctx)
    can_assess = can_view and rule.assess(ctx)

    can_save = (
        can_assess
        and ctx.assessed_by_id is None
        and ctx.section_status == SectionStatus.REQUIRED_ASSESSMENT
        and ctx.form_status in SAVEABLE_STATUSES
    )
    can_update = (
        ctx.assessed_by_id is not None
        and ctx.assessed_by_id == ctx.actor_id
        and ctx.section_status == SectionStatus.DRAFT
        and ctx.form_status in EDITABLE_STATUSES
    )
    if ctx.actor_role == RoleName.DEPARTMENT_HEAD:
        can_save = False
        can_update = False

    return SectionPermission(
        can_view=can_view,
        can_assess=can_assess,
        can_save=can_save,
        can_update=can_update,
        role_requirement=_role_requirement_label(ctx),
    )
