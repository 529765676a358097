"""Assessment API endpoints.

Routes stay thin: services raise ``ApplicationError`` subclasses and the
application-wide handler in ``app.main`` maps them to HTTP responses.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi import status as http_status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import (
    PageParams,
    assessment_filters,
    get_async_session,
    get_current_user,
    require_creator,
    require_department_head,
)
from app.models.enums import AssessmentStatus
from app.models.organization import CurrentUser
from app.repositories.assessment import AssessmentFilters
from app.schemas.assessment import (
    ApproveRejectRequest,
    ApproveRejectResponse,
    AssessmentDetailResponse,
    AssessmentListResponse,
    AssessmentSectionsResponse,
    BulkCreateAssessmentRequest,
    BulkCreateAssessmentResponse,
    ConfirmParticipationRequest,
    ConfirmParticipationResponse,
    CreateAssessmentRequest,
    CreateAssessmentResponse,
    SaveValuesRequest,
    SectionFieldsResponse,
    SubmitAssessmentResponse,
    ToggleTraineeLockRequest,
    ToggleTraineeLockResponse,
    TraineeSectionsResponse,
    ValueMutationResponse,
)
from app.services.assessment_approval_service import AssessmentApprovalService
from app.services.assessment_creation_service import AssessmentCreationService
from app.services.assessment_service import AssessmentService
from app.services.assessment_value_service import AssessmentValueService

router = APIRouter(prefix="/assessments", tags=["assessments"])


# ============================================================================
# CREATION
# ============================================================================

@router.post(
    "/",
    response_model=CreateAssessmentResponse,
    status_code=http_status.HTTP_201_CREATED,
    summary="Create assessments",
    description="Create one assessment form per listed trainee from a published template.",
)
async def create_assessments(
    request_data: CreateAssessmentRequest,
    current_user: CurrentUser = Depends(require_creator),
    db: AsyncSession = Depends(get_async_session),
) -> CreateAssessmentResponse:
    return await AssessmentCreationService(db).create_assessments(request_data, current_user)


@router.post(
    "/bulk",
    response_model=BulkCreateAssessmentResponse,
    status_code=http_status.HTTP_201_CREATED,
    summary="Create assessments for all enrolled trainees",
    description="Create forms for every trainee enrolled in the subject or course, minus exclusions.",
)
async def create_bulk_assessments(
    request_data: BulkCreateAssessmentRequest,
    current_user: CurrentUser = Depends(require_creator),
    db: AsyncSession = Depends(get_async_session),
) -> BulkCreateAssessmentResponse:
    return await AssessmentCreationService(db).create_bulk_assessments(request_data, current_user)


# ============================================================================
# LISTINGS
# ============================================================================

@router.get(
    "/",
    response_model=AssessmentListResponse,
    summary="List assessments",
    description="Paginated assessments visible to the current user's role.",
)
async def list_assessments(
    status: Optional[AssessmentStatus] = Query(None, description="Filter by form status"),
    filters: AssessmentFilters = Depends(assessment_filters),
    paging: PageParams = Depends(),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> AssessmentListResponse:
    filters.status = status
    return await AssessmentService(db).list_assessments(current_user, filters, paging.page, paging.limit)


@router.get(
    "/department",
    response_model=AssessmentListResponse,
    summary="List department assessments",
    description="Assessments awaiting or past review in the department head's department.",
)
async def list_department_assessments(
    status: Optional[AssessmentStatus] = Query(None, description="Filter by form status"),
    filters: AssessmentFilters = Depends(assessment_filters),
    paging: PageParams = Depends(),
    current_user: CurrentUser = Depends(require_department_head),
    db: AsyncSession = Depends(get_async_session),
) -> AssessmentListResponse:
    filters.status = status
    return await AssessmentService(db).list_department_assessments(
        current_user, filters, paging.page, paging.limit
    )


# ============================================================================
# SECTIONS AND VALUES
# ============================================================================

@router.get(
    "/sections/{section_id}/fields",
    response_model=SectionFieldsResponse,
    summary="Get section fields",
)
async def get_section_fields(
    section_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> SectionFieldsResponse:
    return await AssessmentService(db).get_section_fields(section_id, current_user)


@router.post(
    "/sections/{section_id}/values",
    response_model=ValueMutationResponse,
    summary="Save section values",
    description="First save of a section; claims it for the current user.",
)
async def save_section_values(
    section_id: UUID,
    request_data: SaveValuesRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> ValueMutationResponse:
    return await AssessmentValueService(db).save_values(section_id, request_data, current_user)


@router.put(
    "/sections/{section_id}/values",
    response_model=ValueMutationResponse,
    summary="Update section values",
    description="Edit a section already saved by the current user.",
)
async def update_section_values(
    section_id: UUID,
    request_data: SaveValuesRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> ValueMutationResponse:
    return await AssessmentValueService(db).update_values(section_id, request_data, current_user)


# ============================================================================
# SINGLE FORM
# ============================================================================

@router.get(
    "/{assessment_id}",
    response_model=AssessmentDetailResponse,
    summary="Get assessment",
)
async def get_assessment(
    assessment_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> AssessmentDetailResponse:
    return await AssessmentService(db).get_assessment(assessment_id, current_user)


@router.get(
    "/{assessment_id}/sections",
    response_model=AssessmentSectionsResponse,
    summary="Get assessment sections",
    description="Sections the current user may view, with per-section permissions.",
)
async def get_assessment_sections(
    assessment_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> AssessmentSectionsResponse:
    return await AssessmentService(db).get_assessment_sections(assessment_id, current_user)


@router.get(
    "/{assessment_id}/trainee-sections",
    response_model=TraineeSectionsResponse,
    summary="Get trainee sections",
)
async def get_trainee_sections(
    assessment_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> TraineeSectionsResponse:
    return await AssessmentService(db).get_trainee_sections(assessment_id, current_user)


@router.put(
    "/{assessment_id}/trainee-lock",
    response_model=ToggleTraineeLockResponse,
    summary="Toggle trainee lock",
)
async def toggle_trainee_lock(
    assessment_id: UUID,
    request_data: ToggleTraineeLockRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> ToggleTraineeLockResponse:
    return await AssessmentValueService(db).toggle_trainee_lock(assessment_id, request_data, current_user)


@router.post(
    "/{assessment_id}/submit",
    response_model=SubmitAssessmentResponse,
    summary="Submit assessment",
)
async def submit_assessment(
    assessment_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> SubmitAssessmentResponse:
    return await AssessmentValueService(db).submit(assessment_id, current_user)


@router.post(
    "/{assessment_id}/confirm-participation",
    response_model=ConfirmParticipationResponse,
    summary="Confirm participation",
    description="The trainee signs the assessment, which readies it for submission.",
)
async def confirm_participation(
    assessment_id: UUID,
    request_data: ConfirmParticipationRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> ConfirmParticipationResponse:
    return await AssessmentValueService(db).confirm_participation(assessment_id, request_data, current_user)


@router.put(
    "/{assessment_id}/approve-reject",
    response_model=ApproveRejectResponse,
    summary="Approve or reject assessment",
)
async def approve_reject_assessment(
    assessment_id: UUID,
    request_data: ApproveRejectRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> ApproveRejectResponse:
    return await AssessmentApprovalService(db).approve_reject(assessment_id, request_data, current_user)
