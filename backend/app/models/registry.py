"""
Model registry to ensure proper import order and avoid circular dependencies.
Import all models here in dependency order.
"""

# Import base model first
from app.models.base import BaseModel

# Reference data owned by other modules
from app.models.organization import Department, User
from app.models.training import Course, CourseInstructor, Subject, SubjectEnrollment, SubjectInstructor
from app.models.template import TemplateField, TemplateForm, TemplateSection

# Assessment aggregate
from app.models.assessment import AssessmentForm, AssessmentSection, AssessmentValue

# Export all models
__all__ = [
    'BaseModel',
    'Department',
    'User',
    'Course',
    'CourseInstructor',
    'Subject',
    'SubjectEnrollment',
    'SubjectInstructor',
    'TemplateForm',
    'TemplateSection',
    'TemplateField',
    'AssessmentForm',
    'AssessmentSection',
    'AssessmentValue',
]
