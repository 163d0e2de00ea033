import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, Integer, JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base
from app.models.supervisor import SupervisorRole


class WeekStatus(str, Enum):
    draft = "draft"
    submitted = "submitted"
    locked = "locked"


class LogbookWeek(Base):
    __tablename__ = "logbook_weeks"
    __table_args__ = (
        UniqueConstraint("student_id", "session_id", "week_number", name="uq_logbook_weeks_student_session_week"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    student_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    session_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    week_number: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[WeekStatus] = mapped_column(
        SAEnum(WeekStatus, name="week_status"),
        nullable=False,
        default=WeekStatus.draft,
    )
    entries: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False, default=dict)
    locked_by_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    locked_by_role: Mapped[SupervisorRole | None] = mapped_column(
        SAEnum(SupervisorRole, name="supervisor_role"),
        nullable=True,
    )
    locked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    lock_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    review_requested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}


class WeeklyComment(Base):
    __tablename__ = "weekly_comments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    week_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    author_id: Mapped[str] = mapped_column(String(36), nullable=False)
    author_role: Mapped[SupervisorRole] = mapped_column(SAEnum(SupervisorRole, name="supervisor_role"), nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
