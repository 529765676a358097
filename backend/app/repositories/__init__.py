"""Repository layer for data access."""

from .assessment import (
    AssessmentFilters,
    AssessmentFormRepository,
    AssessmentSectionRepository,
    AssessmentValueRepository,
)
from .assessment_event import AssessmentEventRepository, EventIdentity
from .base import BaseRepository
from .template import TemplateRepository
from .training import CourseRepository, EnrollmentRepository, InstructorRepository, SubjectRepository
from .user import UserRepository

__all__ = [
    "BaseRepository",
    "AssessmentFilters",
    "AssessmentFormRepository",
    "AssessmentSectionRepository",
    "AssessmentValueRepository",
    "AssessmentEventRepository",
    "EventIdentity",
    "TemplateRepository",
    "SubjectRepository",
    "CourseRepository",
    "EnrollmentRepository",
    "InstructorRepository",
    "UserRepository",
]
