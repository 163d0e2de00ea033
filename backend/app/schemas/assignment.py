from datetime import datetime

from pydantic import BaseModel, Field

from app.models.assignment import AssignmentMethod
from app.models.supervisor import SupervisorRole


class ManualAssignmentCreate(BaseModel):
    student_id: str = Field(min_length=1, max_length=36)
    session_id: str = Field(min_length=1, max_length=36)
    supervisor_id: str = Field(min_length=1, max_length=36)
    role: SupervisorRole


class AutoAssignRequest(BaseModel):
    session_id: str = Field(min_length=1, max_length=36)
    role: SupervisorRole
    dry_run: bool = False
    batch_id: str | None = Field(default=None, max_length=64)


class AssignmentOut(BaseModel):
    id: str
    student_id: str
    session_id: str
    supervisor_id: str
    role: SupervisorRole
    method: AssignmentMethod
    assigned_by_id: str | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
