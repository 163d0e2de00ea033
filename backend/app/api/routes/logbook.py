from fastapi import APIRouter, Depends, Query

from app.api.deps import get_current_caller, get_engine, require_roles, unwrap
from app.core.security import Caller, CallerRole
from app.schemas.logbook import DayEntryUpdate, LogbookWeekOut
from app.services.workflow import WorkflowEngine

router = APIRouter()


@router.get("/weeks", response_model=list[LogbookWeekOut])
def list_weeks(
    session_id: str,
    student_id: str | None = Query(default=None),
    current_caller: Caller = Depends(get_current_caller),
    engine: WorkflowEngine = Depends(get_engine),
) -> list[LogbookWeekOut]:
    return unwrap(engine.list_weeks(current_caller, session_id=session_id, student_id=student_id))


@router.put("/weeks/{week_id}/entries/{day}", response_model=LogbookWeekOut)
def save_entry(
    week_id: str,
    day: str,
    payload: DayEntryUpdate,
    current_caller: Caller = Depends(require_roles(CallerRole.student)),
    engine: WorkflowEngine = Depends(get_engine),
) -> LogbookWeekOut:
    return unwrap(engine.save_entry(current_caller, week_id, day=day, content=payload.content))


@router.delete("/weeks/{week_id}/entries/{day}", response_model=LogbookWeekOut)
def clear_entry(
    week_id: str,
    day: str,
    current_caller: Caller = Depends(require_roles(CallerRole.student)),
    engine: WorkflowEngine = Depends(get_engine),
) -> LogbookWeekOut:
    return unwrap(engine.clear_entry(current_caller, week_id, day=day))


@router.post("/weeks/{week_id}/request-review", response_model=LogbookWeekOut)
def request_review(
    week_id: str,
    current_caller: Caller = Depends(require_roles(CallerRole.student)),
    engine: WorkflowEngine = Depends(get_engine),
) -> LogbookWeekOut:
    return unwrap(engine.request_review(current_caller, week_id))
