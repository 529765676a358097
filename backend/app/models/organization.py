"""Organization models - departments and users."""
import uuid
from typing import List, Optional

from pydantic import BaseModel as PydanticBaseModel
from sqlalchemy import Enum as SAEnum, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel
from app.models.enums import RoleName, UserStatus


class Department(BaseModel):
    """Training department owning courses and templates."""

    __tablename__ = "departments"

    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    users: Mapped[List["User"]] = relationship("User", back_populates="department")

    def __repr__(self) -> str:
        return f"<Department(code={self.code})>"


class User(BaseModel):
    """Platform user. Identity and credentials are managed by the identity service."""

    __tablename__ = "users"

    eid: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    middle_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    role: Mapped[RoleName] = mapped_column(SAEnum(RoleName, native_enum=False, length=30), nullable=False)
    status: Mapped[UserStatus] = mapped_column(
        SAEnum(UserStatus, native_enum=False, length=20), default=UserStatus.ACTIVE, nullable=False
    )
    department_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("departments.id", ondelete="SET NULL"), nullable=True, index=True
    )
    signature_image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    department: Mapped[Optional["Department"]] = relationship("Department", back_populates="users")

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.middle_name, self.last_name]
        return " ".join(part.strip() for part in parts if part and part.strip())

    def __repr__(self) -> str:
        return f"<User(eid={self.eid}, role={self.role})>"


# Pydantic model for authenticated user (not stored in DB)
class CurrentUser(PydanticBaseModel):
    """Authenticated actor built from the bearer token."""
    id: uuid.UUID
    role_name: RoleName
    email: Optional[str] = None
    name: Optional[str] = None
