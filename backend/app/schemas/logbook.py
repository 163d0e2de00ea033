from datetime import datetime

from pydantic import BaseModel, Field

from app.models.logbook import WeekStatus
from app.models.supervisor import SupervisorRole


class DayEntryUpdate(BaseModel):
    content: str


class WeeklyCommentCreate(BaseModel):
    text: str


class LockWeekRequest(BaseModel):
    reason: str | None = None


class WeeklyCommentOut(BaseModel):
    id: str
    week_id: str
    author_id: str
    author_role: SupervisorRole
    text: str
    created_at: datetime

    model_config = {"from_attributes": True}


class LogbookWeekOut(BaseModel):
    id: str
    student_id: str
    session_id: str
    week_number: int
    status: WeekStatus
    entries: dict[str, str]
    locked_by_id: str | None = None
    locked_by_role: SupervisorRole | None = None
    locked_at: datetime | None = None
    lock_reason: str | None = None
    review_requested_at: datetime | None = None
    version: int

    model_config = {"from_attributes": True}


class LogbookWeekDetailOut(LogbookWeekOut):
    comments: list[WeeklyCommentOut] = Field(default_factory=list)


class AssignedStudentOut(BaseModel):
    id: str
    name: str
    email: str
    matric_number: str
    department_id: str
    placement_organization_id: str | None = None

    model_config = {"from_attributes": True}
