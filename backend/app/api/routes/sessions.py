from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_current_caller, get_engine, require_roles, unwrap
from app.core.security import Caller, CallerRole
from app.models.enrollment import EnrollmentStatus
from app.models.internship_session import SessionStatus
from app.schemas.batch import BatchManifestOut, manifest_out
from app.schemas.session import (
    BulkEnrollmentCreate,
    EnrollmentCreate,
    EnrollmentOut,
    InternshipSessionCreate,
    InternshipSessionOut,
)
from app.services.workflow import WorkflowEngine

router = APIRouter()


@router.get("/", response_model=list[InternshipSessionOut])
def list_sessions(
    status_filter: SessionStatus | None = Query(default=None, alias="status"),
    current_caller: Caller = Depends(get_current_caller),
    engine: WorkflowEngine = Depends(get_engine),
) -> list[InternshipSessionOut]:
    return unwrap(engine.list_sessions(current_caller, status_filter))


@router.post("/", response_model=InternshipSessionOut, status_code=status.HTTP_201_CREATED)
def create_session(
    payload: InternshipSessionCreate,
    current_caller: Caller = Depends(require_roles(CallerRole.admin)),
    engine: WorkflowEngine = Depends(get_engine),
) -> InternshipSessionOut:
    return unwrap(
        engine.create_session(
            current_caller,
            label=payload.label,
            start_date=payload.start_date,
            end_date=payload.end_date,
            total_weeks=payload.total_weeks,
        )
    )


@router.post("/{session_id}/close", response_model=InternshipSessionOut)
def close_session(
    session_id: str,
    current_caller: Caller = Depends(require_roles(CallerRole.admin)),
    engine: WorkflowEngine = Depends(get_engine),
) -> InternshipSessionOut:
    return unwrap(engine.close_session(current_caller, session_id))


@router.get("/{session_id}/enrollments", response_model=list[EnrollmentOut])
def list_enrollments(
    session_id: str,
    status_filter: EnrollmentStatus | None = Query(default=None, alias="status"),
    current_caller: Caller = Depends(require_roles(CallerRole.admin)),
    engine: WorkflowEngine = Depends(get_engine),
) -> list[EnrollmentOut]:
    return unwrap(engine.list_enrollments(current_caller, session_id, status_filter))


@router.post("/{session_id}/enrollments", response_model=EnrollmentOut, status_code=status.HTTP_201_CREATED)
def enroll_student(
    session_id: str,
    payload: EnrollmentCreate,
    current_caller: Caller = Depends(require_roles(CallerRole.admin)),
    engine: WorkflowEngine = Depends(get_engine),
) -> EnrollmentOut:
    return unwrap(engine.enroll_student(current_caller, student_id=payload.student_id, session_id=session_id))


@router.post("/{session_id}/enrollments/bulk", response_model=BatchManifestOut)
def bulk_enroll_students(
    session_id: str,
    payload: BulkEnrollmentCreate,
    current_caller: Caller = Depends(require_roles(CallerRole.admin)),
    engine: WorkflowEngine = Depends(get_engine),
) -> BatchManifestOut:
    manifest = unwrap(
        engine.bulk_enroll_students(current_caller, session_id=session_id, student_ids=payload.student_ids)
    )
    return manifest_out(manifest)


@router.post("/enrollments/{enrollment_id}/withdraw", response_model=EnrollmentOut)
def withdraw_enrollment(
    enrollment_id: str,
    current_caller: Caller = Depends(require_roles(CallerRole.admin)),
    engine: WorkflowEngine = Depends(get_engine),
) -> EnrollmentOut:
    return unwrap(engine.withdraw_enrollment(current_caller, enrollment_id))
