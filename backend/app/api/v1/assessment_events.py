"""Assessment event API endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import (
    PageParams,
    assessment_filters,
    get_async_session,
    get_current_user,
    require_department_head,
    require_event_manager,
)
from app.models.enums import EventStatus
from app.models.organization import CurrentUser
from app.repositories.assessment import AssessmentFilters
from app.schemas.assessment_event import (
    AssessmentEventListResponse,
    DepartmentAssessmentEventListResponse,
    EventKeyRequest,
    EventMutationResponse,
    UpdateAssessmentEventRequest,
)
from app.services.assessment_event_service import AssessmentEventService

router = APIRouter(prefix="/assessment-events", tags=["assessment-events"])


@router.get(
    "/",
    response_model=AssessmentEventListResponse,
    summary="List assessment events",
    description="Forms grouped by subject or course, template and occurrence date.",
)
async def list_events(
    status: Optional[EventStatus] = Query(None, description="Filter by derived event status"),
    filters: AssessmentFilters = Depends(assessment_filters),
    paging: PageParams = Depends(),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> AssessmentEventListResponse:
    return await AssessmentEventService(db).list_events(
        current_user, filters, status, paging.page, paging.limit
    )


@router.get(
    "/department",
    response_model=DepartmentAssessmentEventListResponse,
    summary="List department assessment events",
)
async def list_department_events(
    status: Optional[EventStatus] = Query(None, description="Filter by derived event status"),
    filters: AssessmentFilters = Depends(assessment_filters),
    paging: PageParams = Depends(),
    current_user: CurrentUser = Depends(require_department_head),
    db: AsyncSession = Depends(get_async_session),
) -> DepartmentAssessmentEventListResponse:
    return await AssessmentEventService(db).list_department_events(
        current_user, filters, status, paging.page, paging.limit
    )


@router.put(
    "/",
    response_model=EventMutationResponse,
    summary="Update assessment event",
    description="Rename or reschedule the NOT_STARTED forms of a future event.",
)
async def update_event(
    request_data: UpdateAssessmentEventRequest,
    current_user: CurrentUser = Depends(require_event_manager),
    db: AsyncSession = Depends(get_async_session),
) -> EventMutationResponse:
    return await AssessmentEventService(db).update_event(request_data, current_user)


@router.post(
    "/archive",
    response_model=EventMutationResponse,
    summary="Archive assessment event",
    description="Cancel every NOT_STARTED form of the event.",
)
async def archive_event(
    request_data: EventKeyRequest,
    current_user: CurrentUser = Depends(require_event_manager),
    db: AsyncSession = Depends(get_async_session),
) -> EventMutationResponse:
    return await AssessmentEventService(db).archive_event(request_data, current_user)


@router.post(
    "/activate",
    response_model=EventMutationResponse,
    summary="Activate assessment event",
    description="Start every NOT_STARTED form of an event whose occurrence date has arrived.",
)
async def activate_event(
    request_data: EventKeyRequest,
    current_user: CurrentUser = Depends(require_event_manager),
    db: AsyncSession = Depends(get_async_session),
) -> EventMutationResponse:
    return await AssessmentEventService(db).activate_event(request_data, current_user)
