from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.exceptions import InvalidStateError, NotFoundError
from app.models.assignment import Assignment
from app.models.enrollment import Enrollment, EnrollmentStatus
from app.models.internship_session import InternshipSession, SessionStatus
from app.models.student import Student
from app.models.supervisor import Supervisor, SupervisorRole


def get_session(db: Session, session_id: str) -> InternshipSession:
    session = db.get(InternshipSession, session_id)
    if session is None:
        raise NotFoundError("Session", session_id)
    return session


def get_open_session(db: Session, session_id: str) -> InternshipSession:
    session = get_session(db, session_id)
    if session.status == SessionStatus.closed:
        raise InvalidStateError(
            f"Session {session.label} is closed",
            details={"session_id": session_id},
        )
    return session


def get_student(db: Session, student_id: str) -> Student:
    student = db.get(Student, student_id)
    if student is None:
        raise NotFoundError("Student", student_id)
    return student


def get_supervisor(db: Session, supervisor_id: str) -> Supervisor:
    supervisor = db.get(Supervisor, supervisor_id)
    if supervisor is None:
        raise NotFoundError("Supervisor", supervisor_id)
    return supervisor


def find_enrollment(db: Session, student_id: str, session_id: str) -> Enrollment | None:
    return db.execute(
        select(Enrollment).where(
            Enrollment.student_id == student_id,
            Enrollment.session_id == session_id,
        )
    ).scalar_one_or_none()


def get_active_enrollment(db: Session, student_id: str, session_id: str) -> Enrollment:
    enrollment = find_enrollment(db, student_id, session_id)
    if enrollment is None or enrollment.status != EnrollmentStatus.active:
        raise NotFoundError("Active enrollment", f"{student_id}/{session_id}")
    return enrollment


def find_assignment(
    db: Session,
    *,
    student_id: str,
    session_id: str,
    role: SupervisorRole,
    supervisor_id: str | None = None,
) -> Assignment | None:
    query = select(Assignment).where(
        Assignment.student_id == student_id,
        Assignment.session_id == session_id,
        Assignment.role == role,
    )
    if supervisor_id is not None:
        query = query.where(Assignment.supervisor_id == supervisor_id)
    return db.execute(query).scalar_one_or_none()
