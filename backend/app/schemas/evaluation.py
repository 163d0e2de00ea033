from datetime import datetime

from pydantic import BaseModel, Field

from app.models.supervisor import SupervisorRole


class FinalEvaluationCreate(BaseModel):
    student_id: str = Field(min_length=1, max_length=36)
    session_id: str = Field(min_length=1, max_length=36)
    comment: str
    rating: int | None = None


class FinalEvaluationOut(BaseModel):
    id: str
    student_id: str
    session_id: str
    author_id: str
    author_role: SupervisorRole
    comment: str
    rating: int | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
