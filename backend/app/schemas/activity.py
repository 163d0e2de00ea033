from datetime import datetime

from pydantic import BaseModel, Field


class ActivityLogOut(BaseModel):
    id: str
    actor_id: str | None = None
    actor_role: str
    action: str
    session_id: str | None = None
    entity_type: str | None = None
    entity_id: str | None = None
    details: dict = Field(default_factory=dict)
    created_at: datetime

    model_config = {"from_attributes": True}
