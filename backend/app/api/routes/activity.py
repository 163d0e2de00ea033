from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_roles
from app.core.security import Caller, CallerRole
from app.schemas.activity import ActivityLogOut
from app.services.audit import list_activity

router = APIRouter()


@router.get("/activity/logs", response_model=list[ActivityLogOut])
def list_activity_logs(
    session_id: str | None = Query(default=None, max_length=36),
    actor_id: str | None = Query(default=None, max_length=36),
    action: str | None = Query(default=None, max_length=100, description="Action prefix, e.g. `logbook.`"),
    entity_type: str | None = Query(default=None, max_length=100),
    entity_id: str | None = Query(default=None, max_length=36),
    limit: int = Query(default=200, ge=1, le=500),
    current_caller: Caller = Depends(require_roles(CallerRole.admin)),
    db: Session = Depends(get_db),
) -> list[ActivityLogOut]:
    return list_activity(
        db,
        session_id=session_id,
        actor_id=actor_id,
        action_prefix=action,
        entity_type=entity_type,
        entity_id=entity_id,
        limit=limit,
    )
