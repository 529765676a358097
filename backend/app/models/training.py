"""Courses, subjects and the people assigned to them."""
import uuid
from datetime import date
from typing import List, Optional

from sqlalchemy import Date, Enum as SAEnum, Float, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel
from app.models.enums import EnrollmentStatus, RoleInAssessment, TrainingStatus


class Course(BaseModel):
    """A course groups subjects and belongs to one department."""

    __tablename__ = "courses"

    department_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("departments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    status: Mapped[TrainingStatus] = mapped_column(
        SAEnum(TrainingStatus, native_enum=False, length=20), default=TrainingStatus.PLANNED, nullable=False
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    pass_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    subjects: Mapped[List["Subject"]] = relationship("Subject", back_populates="course")

    def __repr__(self) -> str:
        return f"<Course(code={self.code})>"


class Subject(BaseModel):
    """A subject inside a course; its department is the course's department."""

    __tablename__ = "subjects"

    course_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    status: Mapped[TrainingStatus] = mapped_column(
        SAEnum(TrainingStatus, native_enum=False, length=20), default=TrainingStatus.PLANNED, nullable=False
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    pass_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    course: Mapped["Course"] = relationship("Course", back_populates="subjects", lazy="selectin")

    def __repr__(self) -> str:
        return f"<Subject(code={self.code})>"


class SubjectEnrollment(BaseModel):
    __tablename__ = "subject_enrollments"

    subject_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    trainee_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[EnrollmentStatus] = mapped_column(
        SAEnum(EnrollmentStatus, native_enum=False, length=20), default=EnrollmentStatus.ENROLLED, nullable=False
    )

    __table_args__ = (UniqueConstraint("subject_id", "trainee_user_id"),)


class SubjectInstructor(BaseModel):
    __tablename__ = "subject_instructors"

    subject_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    trainer_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role_in_assessment: Mapped[Optional[RoleInAssessment]] = mapped_column(
        SAEnum(RoleInAssessment, native_enum=False, length=30), nullable=True
    )

    __table_args__ = (UniqueConstraint("subject_id", "trainer_user_id"),)


class CourseInstructor(BaseModel):
    __tablename__ = "course_instructors"

    course_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    trainer_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role_in_assessment: Mapped[Optional[RoleInAssessment]] = mapped_column(
        SAEnum(RoleInAssessment, native_enum=False, length=30), nullable=True
    )

    __table_args__ = (UniqueConstraint("course_id", "trainer_user_id"),)
