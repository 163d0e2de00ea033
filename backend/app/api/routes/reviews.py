from fastapi import APIRouter, Depends, status

from app.api.deps import get_current_caller, get_engine, require_roles, unwrap
from app.core.security import Caller, CallerRole
from app.schemas.logbook import (
    AssignedStudentOut,
    LockWeekRequest,
    LogbookWeekDetailOut,
    LogbookWeekOut,
    WeeklyCommentCreate,
    WeeklyCommentOut,
)
from app.services.workflow import WorkflowEngine

router = APIRouter()

supervisor_roles = require_roles(CallerRole.school_supervisor, CallerRole.industry_supervisor)


@router.get("/students", response_model=list[AssignedStudentOut])
def list_assigned_students(
    session_id: str,
    current_caller: Caller = Depends(supervisor_roles),
    engine: WorkflowEngine = Depends(get_engine),
) -> list[AssignedStudentOut]:
    return unwrap(engine.list_assigned_students(current_caller, session_id=session_id))


@router.get("/pending", response_model=list[LogbookWeekOut])
def list_pending_reviews(
    session_id: str,
    current_caller: Caller = Depends(supervisor_roles),
    engine: WorkflowEngine = Depends(get_engine),
) -> list[LogbookWeekOut]:
    return unwrap(engine.list_pending_reviews(current_caller, session_id=session_id))


@router.get("/weeks/{week_id}", response_model=LogbookWeekDetailOut)
def get_week(
    week_id: str,
    current_caller: Caller = Depends(get_current_caller),
    engine: WorkflowEngine = Depends(get_engine),
) -> LogbookWeekDetailOut:
    detail = unwrap(engine.get_week(current_caller, week_id))
    week = LogbookWeekOut.model_validate(detail.week)
    return LogbookWeekDetailOut(
        **week.model_dump(),
        comments=[WeeklyCommentOut.model_validate(item) for item in detail.comments],
    )


@router.post("/weeks/{week_id}/comments", response_model=WeeklyCommentOut, status_code=status.HTTP_201_CREATED)
def add_weekly_comment(
    week_id: str,
    payload: WeeklyCommentCreate,
    current_caller: Caller = Depends(supervisor_roles),
    engine: WorkflowEngine = Depends(get_engine),
) -> WeeklyCommentOut:
    return unwrap(engine.add_weekly_comment(current_caller, week_id, text=payload.text))


@router.post("/weeks/{week_id}/lock", response_model=LogbookWeekOut)
def lock_week(
    week_id: str,
    payload: LockWeekRequest | None = None,
    current_caller: Caller = Depends(supervisor_roles),
    engine: WorkflowEngine = Depends(get_engine),
) -> LogbookWeekOut:
    reason = payload.reason if payload is not None else None
    return unwrap(engine.lock_week(current_caller, week_id, reason=reason))


@router.post("/weeks/{week_id}/unlock", response_model=LogbookWeekOut)
def unlock_week(
    week_id: str,
    current_caller: Caller = Depends(supervisor_roles),
    engine: WorkflowEngine = Depends(get_engine),
) -> LogbookWeekOut:
    return unwrap(engine.unlock_week(current_caller, week_id))
