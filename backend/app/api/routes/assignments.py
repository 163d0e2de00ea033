import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.deps import get_engine, require_roles, unwrap
from app.core.security import Caller, CallerRole
from app.models.supervisor import SupervisorRole
from app.schemas.assignment import AssignmentOut, AutoAssignRequest, ManualAssignmentCreate
from app.schemas.batch import AutoAssignOut, manifest_out
from app.schemas.supervisor import LoadCorrectionOut, WorkloadEntryOut
from app.services.batch_registry import batch_registry
from app.services.workflow import WorkflowEngine

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=list[AssignmentOut])
def list_assignments(
    session_id: str,
    role: SupervisorRole | None = Query(default=None),
    current_caller: Caller = Depends(require_roles(CallerRole.admin)),
    engine: WorkflowEngine = Depends(get_engine),
) -> list[AssignmentOut]:
    return unwrap(engine.get_assignments(current_caller, session_id, role))


@router.post("/", response_model=AssignmentOut, status_code=status.HTTP_201_CREATED)
def manual_assign(
    payload: ManualAssignmentCreate,
    current_caller: Caller = Depends(require_roles(CallerRole.admin)),
    engine: WorkflowEngine = Depends(get_engine),
) -> AssignmentOut:
    return unwrap(
        engine.manual_assign(
            current_caller,
            student_id=payload.student_id,
            session_id=payload.session_id,
            supervisor_id=payload.supervisor_id,
            role=payload.role,
        )
    )


@router.delete("/{assignment_id}", response_model=AssignmentOut)
def remove_assignment(
    assignment_id: str,
    current_caller: Caller = Depends(require_roles(CallerRole.admin)),
    engine: WorkflowEngine = Depends(get_engine),
) -> AssignmentOut:
    return unwrap(engine.remove_assignment(current_caller, assignment_id))


@router.post("/auto", response_model=AutoAssignOut)
def auto_assign(
    payload: AutoAssignRequest,
    current_caller: Caller = Depends(require_roles(CallerRole.admin)),
    engine: WorkflowEngine = Depends(get_engine),
) -> AutoAssignOut:
    batch_id, cancel_event = batch_registry.start(payload.batch_id)
    try:
        manifest = unwrap(
            engine.auto_assign(
                current_caller,
                session_id=payload.session_id,
                role=payload.role,
                dry_run=payload.dry_run,
                cancel_event=cancel_event,
            )
        )
    finally:
        batch_registry.finish(batch_id)
    return manifest_out(manifest, batch_id=batch_id)


@router.post("/auto/{batch_id}/cancel")
def cancel_auto_assign(
    batch_id: str,
    current_caller: Caller = Depends(require_roles(CallerRole.admin)),
) -> dict:
    if not batch_registry.cancel(batch_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No running batch with this id")
    logger.info("Cancellation requested for auto-assign batch %s by %s", batch_id, current_caller.id)
    return {"batch_id": batch_id, "cancelling": True}


@router.get("/workload", response_model=list[WorkloadEntryOut])
def workload_report(
    session_id: str,
    current_caller: Caller = Depends(require_roles(CallerRole.admin)),
    engine: WorkflowEngine = Depends(get_engine),
) -> list[WorkloadEntryOut]:
    return unwrap(engine.workload_report(current_caller, session_id))


@router.post("/loads/rebuild", response_model=LoadCorrectionOut)
def rebuild_loads(
    session_id: str,
    current_caller: Caller = Depends(require_roles(CallerRole.admin)),
    engine: WorkflowEngine = Depends(get_engine),
) -> LoadCorrectionOut:
    corrected = unwrap(engine.rebuild_loads(current_caller, session_id))
    return LoadCorrectionOut(session_id=session_id, corrected=corrected)
