from fastapi import APIRouter, Depends, Query

from app.api.deps import get_engine, require_roles, unwrap
from app.core.security import Caller, CallerRole
from app.models.supervisor import SupervisorRole
from app.schemas.batch import BatchManifestOut, manifest_out
from app.schemas.supervisor import SupervisorBulkCreate, SupervisorOut
from app.services.workflow import WorkflowEngine

router = APIRouter()


@router.get("/", response_model=list[SupervisorOut])
def list_supervisors(
    role: SupervisorRole | None = Query(default=None),
    include_inactive: bool = Query(default=False),
    current_caller: Caller = Depends(require_roles(CallerRole.admin)),
    engine: WorkflowEngine = Depends(get_engine),
) -> list[SupervisorOut]:
    return unwrap(engine.list_supervisors(current_caller, role, include_inactive))


@router.post("/bulk", response_model=BatchManifestOut)
def bulk_create_supervisors(
    payload: SupervisorBulkCreate,
    current_caller: Caller = Depends(require_roles(CallerRole.admin)),
    engine: WorkflowEngine = Depends(get_engine),
) -> BatchManifestOut:
    return manifest_out(unwrap(engine.bulk_create_supervisors(current_caller, payload.items)))


@router.post("/{supervisor_id}/deactivate", response_model=SupervisorOut)
def deactivate_supervisor(
    supervisor_id: str,
    current_caller: Caller = Depends(require_roles(CallerRole.admin)),
    engine: WorkflowEngine = Depends(get_engine),
) -> SupervisorOut:
    return unwrap(engine.deactivate_supervisor(current_caller, supervisor_id))
