"""Pydantic schemas for assessment event endpoints.

An event is the set of forms sharing (subject|course, template, occurrence date).
"""

from datetime import date
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.models.enums import EventStatus
from app.schemas.assessment import EntityInfo, Pagination


class TemplateInfo(BaseModel):
    id: UUID
    name: str


class AssessmentEventItem(BaseModel):
    """One event with counters derived from its member forms."""

    name: str
    subject_id: Optional[UUID] = None
    course_id: Optional[UUID] = None
    template_id: UUID
    occurrence_date: date
    status: EventStatus
    total_trainees: int
    total_passed: int
    total_failed: int
    entity_info: EntityInfo
    template_info: TemplateInfo


class DepartmentAssessmentEventItem(AssessmentEventItem):
    """Event with the extra counters shown to department heads."""

    total_assessments: int
    total_reviewed_form: int
    total_cancelled_form: int
    total_submitted_form: int
    total_trainers: int


class AssessmentEventListResponse(BaseModel):
    events: List[AssessmentEventItem] = Field(default_factory=list)
    pagination: Pagination


class DepartmentAssessmentEventListResponse(BaseModel):
    events: List[DepartmentAssessmentEventItem] = Field(default_factory=list)
    pagination: Pagination


class EventKeyRequest(BaseModel):
    """Identifies one event; exactly one of subject_id / course_id must be given."""

    template_id: UUID
    occurrence_date: date
    subject_id: Optional[UUID] = None
    course_id: Optional[UUID] = None


class UpdateAssessmentEventRequest(EventKeyRequest):
    """Rename or reschedule the NOT_STARTED forms of an event."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    new_occurrence_date: Optional[date] = None


class EventMutationResponse(BaseModel):
    success: bool = True
    message: str
    updated_count: int
    name: str
    subject_id: Optional[UUID] = None
    course_id: Optional[UUID] = None
    template_id: UUID
    occurrence_date: date
    total_assessment_forms: int
