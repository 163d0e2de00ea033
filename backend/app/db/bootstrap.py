from __future__ import annotations

import logging

from sqlalchemy import inspect, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from app.db.base import Base
from app.db.session import SessionLocal, engine
from app.models.internship_session import InternshipSession, SessionStatus

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "students": {"id", "email", "matric_number", "department_id", "placement_organization_id"},
    "supervisors": {"id", "email", "role", "department_id", "capacity", "is_active"},
    "supervisor_loads": {"id", "supervisor_id", "session_id", "current_load"},
    "assignments": {"id", "student_id", "session_id", "supervisor_id", "role", "method"},
    "logbook_weeks": {"id", "student_id", "session_id", "week_number", "status", "entries", "version"},
    "final_evaluations": {"id", "student_id", "session_id", "author_role", "rating"},
    "activity_logs": {"id", "actor_id", "actor_role", "action", "session_id"},
}


def _assert_required_columns(bind: Engine) -> None:
    with bind.begin() as connection:
        inspector = inspect(connection)
        table_names = set(inspector.get_table_names())
        missing_tables = [name for name in REQUIRED_COLUMNS if name not in table_names]
        if missing_tables:
            raise RuntimeError(f"Missing required tables: {', '.join(sorted(missing_tables))}")

        missing_columns: list[str] = []
        for table_name, required in REQUIRED_COLUMNS.items():
            existing = {item["name"] for item in inspector.get_columns(table_name)}
            for column_name in sorted(required - existing):
                missing_columns.append(f"{table_name}.{column_name}")
        if missing_columns:
            raise RuntimeError(f"Missing required columns: {', '.join(missing_columns)}")


def rebuild_open_session_loads(session_factory: sessionmaker = SessionLocal) -> dict[str, dict[str, int]]:
    """Recompute the supervisor load cache of every open session from its assignments."""
    from app.services.workflow import WorkflowEngine

    corrections: dict[str, dict[str, int]] = {}
    db = session_factory()
    try:
        session_ids = list(
            db.execute(
                select(InternshipSession.id).where(InternshipSession.status == SessionStatus.open)
            ).scalars()
        )
        workflow = WorkflowEngine(db)
        for session_id in session_ids:
            corrected = workflow.rebuild_loads(None, session_id).unwrap()
            if corrected:
                corrections[session_id] = corrected
    finally:
        db.close()
    return corrections


def ensure_runtime_schema_compatibility(bind: Engine = engine, session_factory: sessionmaker = SessionLocal) -> None:
    try:
        Base.metadata.create_all(bind=bind)
        _assert_required_columns(bind)
        corrections = rebuild_open_session_loads(session_factory)
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema compatibility bootstrap failed")
        raise RuntimeError("Runtime schema compatibility bootstrap failed") from exc
    if corrections:
        logger.warning("Corrected supervisor loads for %d open session(s) at start-up", len(corrections))
