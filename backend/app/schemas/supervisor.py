from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, model_validator

from app.models.supervisor import SupervisorRole


class SupervisorCreate(BaseModel):
    name: str = Field(min_length=2, max_length=200)
    email: EmailStr
    role: SupervisorRole
    department_id: str | None = Field(default=None, max_length=36)
    placement_organization_id: str | None = Field(default=None, max_length=36)
    capacity: int = Field(default=10, ge=0, le=500)

    @model_validator(mode="after")
    def validate_department(self) -> "SupervisorCreate":
        if self.role == SupervisorRole.school and not self.department_id:
            raise ValueError("School supervisors must belong to a department")
        return self


class SupervisorBulkCreate(BaseModel):
    items: list[SupervisorCreate] = Field(min_length=1, max_length=1000)


class SupervisorOut(BaseModel):
    id: str
    name: str
    email: str
    role: SupervisorRole
    department_id: str | None = None
    placement_organization_id: str | None = None
    capacity: int
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class WorkloadEntryOut(BaseModel):
    supervisor_id: str
    name: str
    role: SupervisorRole
    department_id: str | None = None
    capacity: int
    current_load: int
    assigned_count: int
    is_active: bool

    model_config = {"from_attributes": True}


class LoadCorrectionOut(BaseModel):
    session_id: str
    corrected: dict[str, int]
