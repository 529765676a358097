"""Assessment form state machine.

The form status is derived from the statuses of its sections plus a handful of
explicit business events. Every mutation asks :func:`next_status` for the
status it should persist instead of computing it locally.
"""
import enum
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

from app.models.enums import AssessmentStatus, EventStatus, SectionStatus


class AssessmentEvent(str, enum.Enum):
    OCCURRENCE_DATE_ARRIVED = "OCCURRENCE_DATE_ARRIVED"
    SECTION_SAVED = "SECTION_SAVED"
    VALUES_UPDATED = "VALUES_UPDATED"
    PARTICIPATION_CONFIRMED = "PARTICIPATION_CONFIRMED"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    ARCHIVED = "ARCHIVED"


# Statuses in which a claimed section may still be re-edited by its assessor
EDITABLE_STATUSES: FrozenSet[AssessmentStatus] = frozenset({
    AssessmentStatus.DRAFT,
    AssessmentStatus.SIGNATURE_PENDING,
    AssessmentStatus.READY_TO_SUBMIT,
    AssessmentStatus.REJECTED,
})

# Statuses in which an unclaimed section may be saved for the first time
SAVEABLE_STATUSES: FrozenSet[AssessmentStatus] = frozenset({
    AssessmentStatus.ON_GOING,
    AssessmentStatus.DRAFT,
})

LOCK_TOGGLE_STATUSES: FrozenSet[AssessmentStatus] = frozenset({
    AssessmentStatus.ON_GOING,
    AssessmentStatus.DRAFT,
})

# Fixed transitions: event -> (required current status, next status)
_EVENT_TRANSITIONS: Dict[AssessmentEvent, Tuple[AssessmentStatus, AssessmentStatus]] = {
    AssessmentEvent.OCCURRENCE_DATE_ARRIVED: (AssessmentStatus.NOT_STARTED, AssessmentStatus.ON_GOING),
    AssessmentEvent.PARTICIPATION_CONFIRMED: (AssessmentStatus.SIGNATURE_PENDING, AssessmentStatus.READY_TO_SUBMIT),
    AssessmentEvent.SUBMITTED: (AssessmentStatus.READY_TO_SUBMIT, AssessmentStatus.SUBMITTED),
    AssessmentEvent.APPROVED: (AssessmentStatus.SUBMITTED, AssessmentStatus.APPROVED),
    AssessmentEvent.REJECTED: (AssessmentStatus.SUBMITTED, AssessmentStatus.REJECTED),
    AssessmentEvent.ARCHIVED: (AssessmentStatus.NOT_STARTED, AssessmentStatus.CANCELLED),
}


class InvalidTransition(Exception):
    """The event is not allowed from the current status."""

    def __init__(self, current: AssessmentStatus, event: AssessmentEvent):
        super().__init__(f"{event.value} is not allowed from {current.value}")
        self.current = current
        self.event = event


@dataclass(frozen=True)
class SectionProgress:
    """Completion counters of a form, excluding signature-only trainee sections."""

    effective_total: int
    draft_count: int

    @classmethod
    def from_sections(cls, sections: Iterable[Tuple[SectionStatus, bool]]) -> "SectionProgress":
        """Build from ``(section_status, is_signature_only)`` pairs."""
        total = 0
        drafts = 0
        for status, signature_only in sections:
            if signature_only:
                continue
            total += 1
            if status == SectionStatus.DRAFT:
                drafts += 1
        return cls(effective_total=total, draft_count=drafts)


def derive_status(current: AssessmentStatus, progress: SectionProgress) -> AssessmentStatus:
    """Form status implied by section completion.

    Only ON_GOING and DRAFT forms are driven by section completion; any other
    status is returned unchanged.
    """
    if current not in (AssessmentStatus.ON_GOING, AssessmentStatus.DRAFT):
        return current
    if progress.draft_count == 0:
        return current
    if progress.effective_total <= 1 or progress.draft_count >= progress.effective_total:
        return AssessmentStatus.SIGNATURE_PENDING
    return AssessmentStatus.DRAFT


def next_status(
    current: AssessmentStatus,
    event: AssessmentEvent,
    progress: Optional[SectionProgress] = None,
) -> AssessmentStatus:
    """Return the status a form moves to when ``event`` happens.

    Raises:
        InvalidTransition: if the event is not allowed from ``current``.
    """
    if event == AssessmentEvent.SECTION_SAVED:
        if current not in SAVEABLE_STATUSES:
            raise InvalidTransition(current, event)
        if progress is None:
            raise ValueError("SECTION_SAVED requires section progress")
        return derive_status(current, progress)

    if event == AssessmentEvent.VALUES_UPDATED:
        if current not in EDITABLE_STATUSES:
            raise InvalidTransition(current, event)
        if current == AssessmentStatus.REJECTED:
            return AssessmentStatus.READY_TO_SUBMIT
        return current

    required, target = _EVENT_TRANSITIONS[event]
    if current != required:
        raise InvalidTransition(current, event)
    return target


def initial_status(occurrence_is_today: bool) -> AssessmentStatus:
    return AssessmentStatus.ON_GOING if occurrence_is_today else AssessmentStatus.NOT_STARTED


def event_transition(event: AssessmentEvent) -> Tuple[AssessmentStatus, AssessmentStatus]:
    """``(from_status, to_status)`` of an event applied to many forms at once."""
    return _EVENT_TRANSITIONS[event]


def derive_event_status(total: int, not_started: int, approved: int, cancelled: int) -> EventStatus:
    """Status of an event from the statuses of its member forms."""
    if total and not_started == total:
        return EventStatus.NOT_STARTED
    if total and approved + cancelled == total:
        return EventStatus.FINISHED
    return EventStatus.ON_GOING
