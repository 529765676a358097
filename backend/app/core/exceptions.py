"""Custom exceptions for the application."""

from typing import Any, Dict, List, Optional
from uuid import UUID


class ApplicationError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(ApplicationError):
    """Raised when validation fails."""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.field = field
        if field:
            self.details["field"] = field


class NotFoundError(ApplicationError):
    """Raised when a requested resource is not found."""
    pass


class AuthenticationError(ApplicationError):
    """Raised when authentication fails."""
    pass


class AuthorizationError(ApplicationError):
    """Raised when authorization fails."""
    pass


class ConflictError(ApplicationError):
    """Raised when there's a conflict with existing data."""
    pass


class BusinessLogicError(ApplicationError):
    """Raised when business logic constraints are violated."""
    pass


def _ids(ids: List[UUID]) -> List[str]:
    return [str(i) for i in ids]


# ============================================================================
# ASSESSMENT CREATION
# ============================================================================

class TemplateNotFoundError(NotFoundError):
    def __init__(self, template_id: UUID):
        super().__init__("Template not found", {"template_id": str(template_id)})


class TemplateNotPublishedError(ValidationError):
    def __init__(self, template_id: UUID):
        super().__init__(
            "Template is not published", field="template_id", details={"template_id": str(template_id)}
        )


class TemplateDepartmentMismatchError(ValidationError):
    def __init__(self):
        super().__init__(
            "Template does not belong to the same department as the subject/course", field="template_id"
        )


class TemplateScoringMismatchError(ValidationError):
    """Template score fields and subject/course pass score disagree."""


class TemplateStructureEmptyError(ValidationError):
    def __init__(self, empty_section_ids: Optional[List[UUID]] = None):
        message = (
            "Template has sections without fields"
            if empty_section_ids
            else "Template has no sections"
        )
        super().__init__(
            message,
            field="template_id",
            details={"empty_section_ids": _ids(empty_section_ids or [])},
        )


class TemplateWithoutAssessableSectionsError(ValidationError):
    def __init__(self):
        super().__init__(
            "Template has no sections to assess besides the trainee signature", field="template_id"
        )


class SubjectOrCourseRequiredError(ValidationError):
    def __init__(self):
        super().__init__("Either subject_id or course_id must be provided", field="subject_id")


class BothSubjectAndCourseProvidedError(ValidationError):
    def __init__(self):
        super().__init__("Cannot provide both subject_id and course_id, only one is allowed", field="subject_id")


class SubjectNotFoundError(NotFoundError):
    def __init__(self, subject_id: UUID):
        super().__init__("Subject not found", {"subject_id": str(subject_id)})


class CourseNotFoundError(NotFoundError):
    def __init__(self, course_id: UUID):
        super().__init__("Course not found", {"course_id": str(course_id)})


class EntityNotActiveError(ValidationError):
    def __init__(self, entity_type: str):
        super().__init__(
            f"{entity_type.capitalize()} is not active or has been archived", field=f"{entity_type}_id"
        )


class OccurrenceDateError(ValidationError):
    def __init__(self, message: str):
        super().__init__(message, field="occurrence_date")


class TraineeValidationError(ValidationError):
    """Base for errors that enumerate offending trainee ids."""

    def __init__(self, message: str, trainee_ids: List[UUID]):
        super().__init__(message, field="trainee_ids", details={"trainee_ids": _ids(trainee_ids)})
        self.trainee_ids = list(trainee_ids)


class TraineeNotFoundError(TraineeValidationError):
    def __init__(self, trainee_ids: List[UUID]):
        super().__init__("One or more trainees not found", trainee_ids)


class TraineeInvalidRoleError(TraineeValidationError):
    def __init__(self, trainee_ids: List[UUID]):
        super().__init__("One or more users do not have TRAINEE role", trainee_ids)


class TraineeNotActiveError(TraineeValidationError):
    def __init__(self, trainee_ids: List[UUID]):
        super().__init__("One or more trainees are not active", trainee_ids)


class TraineeNotEnrolledError(TraineeValidationError):
    def __init__(self, trainee_ids: List[UUID], entity_type: str):
        super().__init__(f"One or more trainees are not enrolled in this {entity_type}", trainee_ids)
        self.details["entity_type"] = entity_type


class NoEnrolledTraineesFoundError(ValidationError):
    def __init__(self, entity_type: str, entity_name: str):
        super().__init__(
            f"No enrolled trainees found for {entity_type}: {entity_name}",
            details={"entity_type": entity_type, "entity_name": entity_name},
        )


class AllTraineesExcludedError(ValidationError):
    def __init__(self, total_enrolled: int):
        super().__init__(
            "All enrolled trainees were excluded from assessment creation",
            field="exclude_trainee_ids",
            details={"total_enrolled": total_enrolled},
        )


class AssessmentAlreadyExistsError(ConflictError):
    def __init__(self, duplicates: List[Dict[str, Any]]):
        super().__init__(
            "Assessment already exists for one or more trainees on the specified date",
            {"duplicates": duplicates},
        )


class DepartmentAccessDeniedError(AuthorizationError):
    def __init__(self):
        super().__init__("Access denied: You can only manage assessments for your own department")


class AssessmentCreationFailedError(ApplicationError):
    def __init__(self):
        super().__init__("Failed to create assessment form. Please try again.")


# ============================================================================
# ASSESSMENT LIFECYCLE
# ============================================================================

class AssessmentNotFoundError(NotFoundError):
    def __init__(self, assessment_id: UUID):
        super().__init__("Assessment not found", {"assessment_id": str(assessment_id)})


class AssessmentSectionNotFoundError(NotFoundError):
    def __init__(self, section_id: UUID):
        super().__init__("Assessment section not found", {"assessment_section_id": str(section_id)})


class AssessmentNotAccessibleError(AuthorizationError):
    def __init__(self):
        super().__init__("You do not have permission to access this assessment")


class SectionPermissionDeniedError(AuthorizationError):
    def __init__(self, action: str = "edit"):
        super().__init__(f"You do not have permission to {action} this assessment section")


class SectionAlreadyAssessedError(ConflictError):
    def __init__(self, section_id: UUID):
        super().__init__(
            "This section has already been assessed by another user. "
            "Please refresh and check the current status.",
            {"assessment_section_id": str(section_id)},
        )


class OriginalAssessorOnlyError(AuthorizationError):
    def __init__(self):
        super().__init__("Only the original assessor can update this section")


class SectionDraftStatusOnlyError(BusinessLogicError):
    def __init__(self):
        super().__init__("Only sections in DRAFT status can be updated")


class AssessmentStatusNotAllowedError(ConflictError):
    def __init__(self, current_status: str, allowed: List[str], action: str):
        super().__init__(
            f"Cannot {action} while assessment is in {current_status} status",
            {"current_status": current_status, "allowed_statuses": allowed},
        )


class InvalidAssessmentValuesError(ValidationError):
    def __init__(self, message: str, value_ids: Optional[List[UUID]] = None):
        super().__init__(
            message, field="values", details={"assessment_value_ids": _ids(value_ids or [])}
        )


class AssessmentValueNotFoundError(NotFoundError):
    def __init__(self, value_ids: List[UUID]):
        super().__init__(
            "One or more values do not belong to this section", {"assessment_value_ids": _ids(value_ids)}
        )


class EventNotFoundError(NotFoundError):
    def __init__(self):
        super().__init__("No assessments found for the specified event")
