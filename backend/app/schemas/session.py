from datetime import date, datetime

from pydantic import BaseModel, Field, model_validator

from app.models.enrollment import EnrollmentStatus
from app.models.internship_session import SessionStatus


class InternshipSessionCreate(BaseModel):
    label: str = Field(min_length=2, max_length=255)
    start_date: date
    end_date: date
    total_weeks: int | None = None

    @model_validator(mode="after")
    def validate_dates(self) -> "InternshipSessionCreate":
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class InternshipSessionOut(BaseModel):
    id: str
    label: str
    start_date: date
    end_date: date
    total_weeks: int
    status: SessionStatus
    closed_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class EnrollmentCreate(BaseModel):
    student_id: str = Field(min_length=1, max_length=36)


class BulkEnrollmentCreate(BaseModel):
    student_ids: list[str] = Field(min_length=1, max_length=5000)


class EnrollmentOut(BaseModel):
    id: str
    student_id: str
    session_id: str
    status: EnrollmentStatus
    enrolled_at: datetime
    withdrawn_at: datetime | None = None

    model_config = {"from_attributes": True}
