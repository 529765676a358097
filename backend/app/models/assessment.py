"""Assessment models - forms, sections and values seeded from a template."""
import uuid
from datetime import date, datetime
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum as SAEnum,
    Float,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel
from app.models.enums import AssessmentResult, AssessmentStatus, SectionStatus

# Forward references for type hints
if TYPE_CHECKING:
    from app.models.organization import User
    from app.models.template import TemplateField, TemplateForm, TemplateSection
    from app.models.training import Course, Subject


class AssessmentForm(BaseModel):
    """One trainee's assessment for a (template, occurrence date, subject|course).

    Exactly one of ``subject_id`` / ``course_id`` is set; the creation engine
    enforces it. Forms are never deleted, archiving moves them to CANCELLED.
    """

    __tablename__ = "assessment_forms"

    template_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("template_forms.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    subject_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("subjects.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    course_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("courses.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    occurrence_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    trainee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    status: Mapped[AssessmentStatus] = mapped_column(
        SAEnum(AssessmentStatus, native_enum=False, length=30),
        default=AssessmentStatus.NOT_STARTED,
        nullable=False,
        index=True,
    )
    is_trainee_locked: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Review outcome
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    approved_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    result_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    result_text: Mapped[Optional[AssessmentResult]] = mapped_column(
        SAEnum(AssessmentResult, native_enum=False, length=20), nullable=True
    )
    pdf_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    created_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    updated_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    # Relationships
    template: Mapped["TemplateForm"] = relationship("TemplateForm", lazy="selectin")
    subject: Mapped[Optional["Subject"]] = relationship("Subject", lazy="selectin")
    course: Mapped[Optional["Course"]] = relationship("Course", lazy="selectin")
    trainee: Mapped["User"] = relationship("User", foreign_keys=[trainee_id], lazy="selectin")
    approved_by: Mapped[Optional["User"]] = relationship(
        "User", foreign_keys=[approved_by_id], lazy="selectin"
    )
    sections: Mapped[List["AssessmentSection"]] = relationship(
        "AssessmentSection",
        back_populates="assessment_form",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def department_id(self) -> uuid.UUID:
        return self.template.department_id

    @property
    def ordered_sections(self) -> List["AssessmentSection"]:
        return sorted(self.sections, key=lambda s: s.template_section.display_order)

    def __repr__(self) -> str:
        return f"<AssessmentForm(name={self.name}, status={self.status})>"


class AssessmentSection(BaseModel):
    """A form's copy of one template section; claimed by exactly one assessor."""

    __tablename__ = "assessment_sections"

    assessment_form_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("assessment_forms.id", ondelete="CASCADE"), nullable=False, index=True
    )
    template_section_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("template_sections.id", ondelete="RESTRICT"), nullable=False
    )
    assessed_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    status: Mapped[SectionStatus] = mapped_column(
        SAEnum(SectionStatus, native_enum=False, length=30),
        default=SectionStatus.REQUIRED_ASSESSMENT,
        nullable=False,
    )

    assessment_form: Mapped["AssessmentForm"] = relationship("AssessmentForm", back_populates="sections")
    template_section: Mapped["TemplateSection"] = relationship("TemplateSection", lazy="selectin")
    assessed_by: Mapped[Optional["User"]] = relationship("User", lazy="selectin")
    values: Mapped[List["AssessmentValue"]] = relationship(
        "AssessmentValue",
        back_populates="assessment_section",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (UniqueConstraint("assessment_form_id", "template_section_id"),)

    @property
    def ordered_values(self) -> List["AssessmentValue"]:
        return sorted(self.values, key=lambda v: v.template_field.display_order)


class AssessmentValue(BaseModel):
    """Answer slot for one template field; pre-created empty, only answer_value changes."""

    __tablename__ = "assessment_values"

    assessment_section_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("assessment_sections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    template_field_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("template_fields.id", ondelete="RESTRICT"), nullable=False
    )
    answer_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    assessment_section: Mapped["AssessmentSection"] = relationship(
        "AssessmentSection", back_populates="values"
    )
    template_field: Mapped["TemplateField"] = relationship("TemplateField", lazy="selectin")

    __table_args__ = (UniqueConstraint("assessment_section_id", "template_field_id"),)
