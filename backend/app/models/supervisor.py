import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class SupervisorRole(str, Enum):
    school = "school"
    industry = "industry"


class Supervisor(Base):
    __tablename__ = "supervisors"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    role: Mapped[SupervisorRole] = mapped_column(SAEnum(SupervisorRole, name="supervisor_role"), nullable=False)
    department_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    placement_organization_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    is_active: Mapped[bool] = mapped_column(nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())


class SupervisorLoad(Base):
    """Cached per-session assignment count; rebuildable from ``assignments``."""

    __tablename__ = "supervisor_loads"
    __table_args__ = (UniqueConstraint("supervisor_id", "session_id", name="uq_supervisor_loads_supervisor_session"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    supervisor_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    session_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    current_load: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())
