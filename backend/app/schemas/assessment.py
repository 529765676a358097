"""Pydantic schemas for assessment API endpoints."""

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.models.enums import (
    AssessmentResult,
    AssessmentStatus,
    EditBy,
    FieldType,
    ReviewAction,
    RoleInAssessment,
    SectionStatus,
)


# ============================================================================
# SHARED
# ============================================================================

class UserSummary(BaseModel):
    """Short user reference embedded in assessment responses."""

    id: UUID
    eid: str
    full_name: str
    email: str

    model_config = {"from_attributes": True}


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        total_pages = (total + limit - 1) // limit if limit else 0
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


class EntityInfo(BaseModel):
    """The subject or course an assessment belongs to."""

    id: UUID
    name: str
    code: str
    type: str = Field(description="'subject' or 'course'")


# ============================================================================
# ASSESSMENT FORMS
# ============================================================================

class AssessmentFormResponse(BaseModel):
    """Assessment form response schema."""

    id: UUID
    name: str
    template_id: UUID
    subject_id: Optional[UUID] = None
    course_id: Optional[UUID] = None
    occurrence_date: date
    trainee_id: UUID
    trainee: Optional[UserSummary] = None
    status: AssessmentStatus
    is_trainee_locked: bool
    submitted_at: Optional[datetime] = None
    comment: Optional[str] = None
    approved_by_id: Optional[UUID] = None
    approved_at: Optional[datetime] = None
    result_score: Optional[float] = None
    result_text: Optional[AssessmentResult] = None
    pdf_url: Optional[str] = None
    created_by_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class SectionSummary(BaseModel):
    id: UUID
    template_section_id: UUID
    label: str
    display_order: int
    edit_by: EditBy
    status: SectionStatus
    assessed_by_id: Optional[UUID] = None


class AssessmentDetailResponse(AssessmentFormResponse):
    """Assessment form with its references and section summaries."""

    template_name: str
    department_id: UUID
    entity: EntityInfo
    approved_by: Optional[UserSummary] = None
    sections: List[SectionSummary] = Field(default_factory=list)


class AssessmentListResponse(BaseModel):
    """Paginated assessment forms."""

    items: List[AssessmentFormResponse] = Field(default_factory=list)
    pagination: Pagination


# ============================================================================
# CREATION
# ============================================================================

class CreateAssessmentRequest(BaseModel):
    """Create one assessment form per listed trainee."""

    template_id: UUID
    subject_id: Optional[UUID] = None
    course_id: Optional[UUID] = None
    occurrence_date: date
    name: str = Field(..., min_length=1, max_length=200)
    trainee_ids: List[UUID] = Field(..., min_length=1)


class BulkCreateAssessmentRequest(BaseModel):
    """Create assessment forms for every enrolled trainee of a subject or course."""

    template_id: UUID
    subject_id: Optional[UUID] = None
    course_id: Optional[UUID] = None
    occurrence_date: date
    name: str = Field(..., min_length=1, max_length=200)
    exclude_trainee_ids: List[UUID] = Field(default_factory=list)


class CreateAssessmentResponse(BaseModel):
    success: bool = True
    message: str
    assessments: List[AssessmentFormResponse] = Field(default_factory=list)
    total_created: int


class SkippedTrainee(BaseModel):
    trainee_id: UUID
    eid: str
    full_name: str
    reason: str


class BulkCreateAssessmentResponse(CreateAssessmentResponse):
    total_enrolled: int
    skipped_trainees: List[SkippedTrainee] = Field(default_factory=list)
    entity_info: EntityInfo


# ============================================================================
# SECTIONS AND VALUES
# ============================================================================

class SectionResponse(BaseModel):
    """One assessment section with the caller's rights on it."""

    id: UUID
    assessment_form_id: UUID
    template_section_id: UUID
    label: str
    display_order: int
    edit_by: EditBy
    role_in_subject: Optional[RoleInAssessment] = None
    role_requirement: Optional[str] = None
    is_submittable: bool
    is_toggle_dependent: bool
    status: SectionStatus
    assessed_by_id: Optional[UUID] = None
    assessed_by_name: Optional[str] = None
    can_assess: bool = False
    can_save: bool = False
    can_update: bool = False


class FieldValueResponse(BaseModel):
    """A template field together with the form's answer for it."""

    template_field_id: UUID
    assessment_value_id: UUID
    label: str
    field_name: str
    field_type: FieldType
    role_required: Optional[EditBy] = None
    display_order: int
    answer_value: Optional[str] = None


class SectionWithFieldsResponse(SectionResponse):
    fields: List[FieldValueResponse] = Field(default_factory=list)


class AssessmentSectionsResponse(BaseModel):
    assessment_form_id: UUID
    status: AssessmentStatus
    is_trainee_locked: bool
    user_role: str
    sections: List[SectionResponse] = Field(default_factory=list)


class TraineeSectionsResponse(BaseModel):
    assessment_form_id: UUID
    trainee: UserSummary
    sections: List[SectionWithFieldsResponse] = Field(default_factory=list)


class SectionFieldsResponse(BaseModel):
    section: SectionResponse
    trainee: UserSummary
    fields: List[FieldValueResponse] = Field(default_factory=list)
    total_fields: int


class ValueInput(BaseModel):
    assessment_value_id: UUID
    answer_value: Optional[str] = Field(None, max_length=2000)


class SaveValuesRequest(BaseModel):
    values: List[ValueInput] = Field(..., min_length=1)


class ValueMutationResponse(BaseModel):
    success: bool = True
    message: str
    assessment_section_id: UUID
    updated_values: int
    section_status: SectionStatus
    assessment_form_status: AssessmentStatus


# ============================================================================
# FORM ACTIONS
# ============================================================================

class ToggleTraineeLockRequest(BaseModel):
    is_trainee_locked: bool


class ToggleTraineeLockResponse(BaseModel):
    success: bool = True
    message: str
    assessment_form_id: UUID
    is_trainee_locked: bool
    status: AssessmentStatus
    assessed_sections_count: int


class SubmitAssessmentResponse(BaseModel):
    success: bool = True
    message: str
    assessment_form_id: UUID
    submitted_at: datetime
    submitted_by: UUID
    status: AssessmentStatus


class ConfirmParticipationRequest(BaseModel):
    trainee_signature_url: str = Field(..., min_length=1)


class ConfirmParticipationResponse(BaseModel):
    success: bool = True
    message: str
    assessment_form_id: UUID
    trainee_id: UUID
    confirmed_at: datetime
    status: AssessmentStatus
    previous_status: AssessmentStatus
    signature_saved: bool


class ApproveRejectRequest(BaseModel):
    action: ReviewAction
    comment: Optional[str] = Field(None, max_length=1000)


class ApproveRejectResponse(BaseModel):
    success: bool = True
    message: str
    assessment_form_id: UUID
    status: AssessmentStatus
    previous_status: AssessmentStatus
    result_score: Optional[float] = None
    result_text: Optional[AssessmentResult] = None
    approved_by_id: Optional[UUID] = None
    approved_at: Optional[datetime] = None
    comment: Optional[str] = None
