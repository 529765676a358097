"""Enumerations shared by the training and assessment models."""
import enum


class RoleName(str, enum.Enum):
    ADMINISTRATOR = "ADMINISTRATOR"
    ACADEMIC_DEPARTMENT = "ACADEMIC_DEPARTMENT"
    DEPARTMENT_HEAD = "DEPARTMENT_HEAD"
    TRAINER = "TRAINER"
    TRAINEE = "TRAINEE"


class UserStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    DISABLED = "DISABLED"


class TrainingStatus(str, enum.Enum):
    """Lifecycle of courses and subjects."""

    PLANNED = "PLANNED"
    ON_GOING = "ON_GOING"
    COMPLETED = "COMPLETED"
    ARCHIVED = "ARCHIVED"


class EnrollmentStatus(str, enum.Enum):
    ENROLLED = "ENROLLED"
    ON_GOING = "ON_GOING"
    CANCELLED = "CANCELLED"
    FINISHED = "FINISHED"


class TemplateStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    DISABLED = "DISABLED"


class EditBy(str, enum.Enum):
    TRAINER = "TRAINER"
    TRAINEE = "TRAINEE"


class RoleInAssessment(str, enum.Enum):
    EXAMINER = "EXAMINER"
    ASSESSMENT_REVIEWER = "ASSESSMENT_REVIEWER"


class FieldType(str, enum.Enum):
    TEXT = "TEXT"
    NUMBER = "NUMBER"
    TOGGLE = "TOGGLE"
    PART = "PART"
    CHECK_BOX = "CHECK_BOX"
    VALUE_LIST = "VALUE_LIST"
    SECTION_CONTROL_TOGGLE = "SECTION_CONTROL_TOGGLE"
    SIGNATURE_DRAW = "SIGNATURE_DRAW"
    SIGNATURE_IMG = "SIGNATURE_IMG"
    FINAL_SCORE_NUM = "FINAL_SCORE_NUM"
    FINAL_SCORE_TEXT = "FINAL_SCORE_TEXT"


class AssessmentStatus(str, enum.Enum):
    NOT_STARTED = "NOT_STARTED"
    ON_GOING = "ON_GOING"
    DRAFT = "DRAFT"
    SIGNATURE_PENDING = "SIGNATURE_PENDING"
    READY_TO_SUBMIT = "READY_TO_SUBMIT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class SectionStatus(str, enum.Enum):
    REQUIRED_ASSESSMENT = "REQUIRED_ASSESSMENT"
    DRAFT = "DRAFT"


class AssessmentResult(str, enum.Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    NOT_APPLICABLE = "NOT_APPLICABLE"


class EventStatus(str, enum.Enum):
    NOT_STARTED = "NOT_STARTED"
    ON_GOING = "ON_GOING"
    FINISHED = "FINISHED"


class ReviewAction(str, enum.Enum):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
