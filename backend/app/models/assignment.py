import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base
from app.models.supervisor import SupervisorRole


class AssignmentMethod(str, Enum):
    manual = "manual"
    automatic = "automatic"


class Assignment(Base):
    __tablename__ = "assignments"
    __table_args__ = (
        UniqueConstraint("student_id", "session_id", "role", name="uq_assignments_student_session_role"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    student_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    session_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    supervisor_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    role: Mapped[SupervisorRole] = mapped_column(SAEnum(SupervisorRole, name="supervisor_role"), nullable=False)
    method: Mapped[AssignmentMethod] = mapped_column(
        SAEnum(AssignmentMethod, name="assignment_method"),
        nullable=False,
        default=AssignmentMethod.manual,
    )
    assigned_by_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
