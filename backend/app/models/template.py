"""Assessment templates: the structure every assessment form is seeded from."""
import uuid
from typing import List, Optional

from sqlalchemy import Boolean, Enum as SAEnum, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel
from app.models.enums import EditBy, FieldType, RoleInAssessment, TemplateStatus


class TemplateForm(BaseModel):
    """A template owned by a department. Only PUBLISHED templates can seed assessments."""

    __tablename__ = "template_forms"

    department_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("departments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[TemplateStatus] = mapped_column(
        SAEnum(TemplateStatus, native_enum=False, length=20), default=TemplateStatus.DRAFT, nullable=False
    )

    sections: Mapped[List["TemplateSection"]] = relationship(
        "TemplateSection",
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="TemplateSection.display_order",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<TemplateForm(name={self.name}, status={self.status})>"


class TemplateSection(BaseModel):
    __tablename__ = "template_sections"

    template_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("template_forms.id", ondelete="CASCADE"), nullable=False, index=True
    )
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False)
    edit_by: Mapped[EditBy] = mapped_column(SAEnum(EditBy, native_enum=False, length=20), nullable=False)
    role_in_subject: Mapped[Optional[RoleInAssessment]] = mapped_column(
        SAEnum(RoleInAssessment, native_enum=False, length=30), nullable=True
    )
    is_submittable: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_toggle_dependent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    template: Mapped["TemplateForm"] = relationship("TemplateForm", back_populates="sections")
    fields: Mapped[List["TemplateField"]] = relationship(
        "TemplateField",
        back_populates="section",
        cascade="all, delete-orphan",
        order_by="TemplateField.display_order",
        lazy="selectin",
    )

    @property
    def is_signature_only(self) -> bool:
        """Trainee section holding exactly one SIGNATURE_DRAW field.

        These sections are completed by the confirm-participation flow and do not
        count towards section completion.
        """
        if self.edit_by != EditBy.TRAINEE:
            return False
        draws = [f for f in self.fields if f.field_type == FieldType.SIGNATURE_DRAW]
        return len(draws) == 1 and len(self.fields) == 1


class TemplateField(BaseModel):
    __tablename__ = "template_fields"

    section_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("template_sections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    field_name: Mapped[str] = mapped_column(String(255), nullable=False)
    field_type: Mapped[FieldType] = mapped_column(SAEnum(FieldType, native_enum=False, length=30), nullable=False)
    role_required: Mapped[Optional[EditBy]] = mapped_column(
        SAEnum(EditBy, native_enum=False, length=20), nullable=True
    )
    display_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    section: Mapped["TemplateSection"] = relationship("TemplateSection", back_populates="fields")
