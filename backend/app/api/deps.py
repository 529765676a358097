"""API Dependencies."""
from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import Query

from app.core.auth import get_current_user, require_any_role
from app.core.config import settings
from app.core.database import get_async_session
from app.models.enums import RoleName
from app.models.organization import CurrentUser
from app.repositories.assessment import AssessmentFilters


# Role requirements shared by several routers
require_creator = require_any_role(
    [RoleName.ACADEMIC_DEPARTMENT, RoleName.ADMINISTRATOR, RoleName.DEPARTMENT_HEAD]
)
require_event_manager = require_any_role([RoleName.ACADEMIC_DEPARTMENT, RoleName.ADMINISTRATOR])
require_department_head = require_any_role([RoleName.DEPARTMENT_HEAD])


class PageParams:
    """``page``/``limit`` query parameters bounded by the configured page size."""

    def __init__(
        self,
        page: int = Query(1, ge=1, description="Page number, starting at 1"),
        limit: Optional[int] = Query(None, ge=1, le=settings.MAX_PAGE_SIZE, description="Items per page"),
    ):
        self.page = page
        self.limit = limit or settings.DEFAULT_PAGE_SIZE


def assessment_filters(
    template_id: Optional[UUID] = None,
    subject_id: Optional[UUID] = None,
    course_id: Optional[UUID] = None,
    trainee_id: Optional[UUID] = None,
    from_date: Optional[date] = Query(None, description="Earliest occurrence date (inclusive)"),
    to_date: Optional[date] = Query(None, description="Latest occurrence date (inclusive)"),
    search: Optional[str] = Query(None, max_length=200, description="Matches form name or trainee EID/name"),
) -> AssessmentFilters:
    """Listing filters shared by form and event endpoints; status is added per endpoint."""
    return AssessmentFilters(
        template_id=template_id,
        subject_id=subject_id,
        course_id=course_id,
        trainee_id=trainee_id,
        from_date=from_date,
        to_date=to_date,
        search=search or None,
    )


# Re-export auth dependencies for convenience
__all__ = [
    "get_async_session",
    "get_current_user",
    "require_any_role",
    "require_creator",
    "require_event_manager",
    "require_department_head",
    "PageParams",
    "assessment_filters",
    "CurrentUser",
]
