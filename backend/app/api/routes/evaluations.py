from fastapi import APIRouter, Depends, status

from app.api.deps import get_current_caller, get_engine, require_roles, unwrap
from app.core.security import Caller, CallerRole
from app.schemas.evaluation import FinalEvaluationCreate, FinalEvaluationOut
from app.services.workflow import WorkflowEngine

router = APIRouter()


@router.get("/", response_model=list[FinalEvaluationOut])
def list_final_evaluations(
    student_id: str,
    session_id: str,
    current_caller: Caller = Depends(get_current_caller),
    engine: WorkflowEngine = Depends(get_engine),
) -> list[FinalEvaluationOut]:
    return unwrap(engine.list_final_comments(current_caller, student_id=student_id, session_id=session_id))


@router.post("/", response_model=FinalEvaluationOut, status_code=status.HTTP_201_CREATED)
def add_final_evaluation(
    payload: FinalEvaluationCreate,
    current_caller: Caller = Depends(
        require_roles(CallerRole.school_supervisor, CallerRole.industry_supervisor)
    ),
    engine: WorkflowEngine = Depends(get_engine),
) -> FinalEvaluationOut:
    return unwrap(
        engine.add_final_comment(
            current_caller,
            student_id=payload.student_id,
            session_id=payload.session_id,
            comment=payload.comment,
            rating=payload.rating,
        )
    )
