"""Pydantic schemas for API requests and responses."""

from .assessment import (
    ApproveRejectRequest,
    ApproveRejectResponse,
    AssessmentDetailResponse,
    AssessmentFormResponse,
    AssessmentListResponse,
    AssessmentSectionsResponse,
    BulkCreateAssessmentRequest,
    BulkCreateAssessmentResponse,
    CreateAssessmentRequest,
    CreateAssessmentResponse,
    Pagination,
    SaveValuesRequest,
    ValueMutationResponse,
)
from .assessment_event import (
    AssessmentEventItem,
    AssessmentEventListResponse,
    DepartmentAssessmentEventListResponse,
    EventKeyRequest,
    EventMutationResponse,
    UpdateAssessmentEventRequest,
)

__all__ = [
    # Assessment forms
    "ApproveRejectRequest",
    "ApproveRejectResponse",
    "AssessmentDetailResponse",
    "AssessmentFormResponse",
    "AssessmentListResponse",
    "AssessmentSectionsResponse",
    "BulkCreateAssessmentRequest",
    "BulkCreateAssessmentResponse",
    "CreateAssessmentRequest",
    "CreateAssessmentResponse",
    "Pagination",
    "SaveValuesRequest",
    "ValueMutationResponse",
    # Events
    "AssessmentEventItem",
    "AssessmentEventListResponse",
    "DepartmentAssessmentEventListResponse",
    "EventKeyRequest",
    "EventMutationResponse",
    "UpdateAssessmentEventRequest",
]
