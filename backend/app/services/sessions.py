from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.exceptions import ErrorKind, InvalidInputError, InvalidStateError, NotFoundError, WorkflowError
from app.models.enrollment import Enrollment, EnrollmentStatus
from app.models.internship_session import InternshipSession, SessionStatus
from app.services.allocator import AssignmentAllocator
from app.services.logbook import LogbookService
from app.services.lookups import find_enrollment, get_open_session, get_session, get_student
from app.services.results import BatchManifest

logger = logging.getLogger(__name__)


class SessionManager:
    def __init__(
        self,
        db: Session,
        settings: Settings | None = None,
        allocator: AssignmentAllocator | None = None,
        logbook: LogbookService | None = None,
    ) -> None:
        self._db = db
        self._settings = settings or get_settings()
        self._allocator = allocator or AssignmentAllocator(db)
        self._logbook = logbook or LogbookService(db, self._settings)

    def create_session(
        self,
        *,
        label: str,
        start_date: date,
        end_date: date,
        total_weeks: int | None = None,
    ) -> InternshipSession:
        name = (label or "").strip()
        if not name:
            raise InvalidInputError("Session label is required")
        if end_date <= start_date:
            raise InvalidInputError(
                "Session end date must be after its start date",
                details={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
            )
        weeks = total_weeks if total_weeks is not None else self._settings.default_session_weeks
        if not 1 <= weeks <= self._settings.max_session_weeks:
            raise InvalidInputError(
                f"Total weeks must be between 1 and {self._settings.max_session_weeks}",
                details={"total_weeks": weeks},
            )

        overlapping = self._db.execute(
            select(InternshipSession).where(
                InternshipSession.status == SessionStatus.open,
                InternshipSession.start_date <= end_date,
                InternshipSession.end_date >= start_date,
            )
        ).scalars().first()
        if overlapping is not None:
            raise InvalidStateError(
                f"Open session {overlapping.label} overlaps the requested dates",
                details={"session_id": overlapping.id},
            )
        existing_label = self._db.execute(
            select(InternshipSession.id).where(InternshipSession.label == name)
        ).scalar_one_or_none()
        if existing_label is not None:
            raise InvalidInputError(f"Session label {name} already exists")

        session = InternshipSession(
            label=name,
            start_date=start_date,
            end_date=end_date,
            total_weeks=weeks,
            status=SessionStatus.open,
        )
        self._db.add(session)
        self._db.flush()
        logger.info("Created session %s (%s to %s, %d weeks)", name, start_date, end_date, weeks)
        return session

    def close_session(self, session_id: str) -> InternshipSession:
        session = get_open_session(self._db, session_id)
        session.status = SessionStatus.closed
        session.closed_at = datetime.now(timezone.utc)
        self._db.flush()
        logger.info("Closed session %s", session.label)
        return session

    def list_sessions(self, status: SessionStatus | None = None) -> list[InternshipSession]:
        query = select(InternshipSession)
        if status is not None:
            query = query.where(InternshipSession.status == status)
        return list(self._db.execute(query.order_by(InternshipSession.start_date.desc())).scalars())

    def list_enrollments(self, session_id: str, status: EnrollmentStatus | None = None) -> list[Enrollment]:
        get_session(self._db, session_id)
        query = select(Enrollment).where(Enrollment.session_id == session_id)
        if status is not None:
            query = query.where(Enrollment.status == status)
        return list(self._db.execute(query.order_by(Enrollment.enrolled_at, Enrollment.student_id)).scalars())

    def enroll_student(self, student_id: str, session_id: str) -> Enrollment:
        session = get_open_session(self._db, session_id)
        student = get_student(self._db, student_id)
        if not student.is_active:
            raise InvalidStateError(
                f"Student {student.matric_number} is inactive",
                details={"student_id": student_id},
            )

        enrollment = find_enrollment(self._db, student_id, session_id)
        if enrollment is not None and enrollment.status == EnrollmentStatus.active:
            raise InvalidStateError(
                f"Student {student.matric_number} is already enrolled in {session.label}",
                details={"enrollment_id": enrollment.id},
            )
        if enrollment is None:
            enrollment = Enrollment(student_id=student_id, session_id=session_id)
            self._db.add(enrollment)
        else:
            enrollment.status = EnrollmentStatus.active
            enrollment.enrolled_at = datetime.now(timezone.utc)
            enrollment.withdrawn_at = None
        try:
            self._db.flush()
        except IntegrityError as exc:
            raise InvalidStateError(
                f"Student {student.matric_number} is already enrolled in {session.label}",
                details={"student_id": student_id, "session_id": session_id},
            ) from exc

        created = self._logbook.create_weeks(
            student_id=student_id,
            session_id=session_id,
            total_weeks=session.total_weeks,
        )
        logger.info(
            "Enrolled student %s in session %s with %d new logbook week(s)",
            student_id,
            session.label,
            created,
        )
        return enrollment

    def withdraw_enrollment(self, enrollment_id: str) -> Enrollment:
        enrollment = self._db.get(Enrollment, enrollment_id)
        if enrollment is None:
            raise NotFoundError("Enrollment", enrollment_id)
        get_open_session(self._db, enrollment.session_id)
        if enrollment.status == EnrollmentStatus.withdrawn:
            raise InvalidStateError("Enrollment is already withdrawn", details={"enrollment_id": enrollment_id})

        removed = self._allocator.remove_for_student(enrollment.student_id, enrollment.session_id)
        enrollment.status = EnrollmentStatus.withdrawn
        enrollment.withdrawn_at = datetime.now(timezone.utc)
        self._db.flush()
        logger.info(
            "Withdrew student %s from session %s, released %d assignment(s)",
            enrollment.student_id,
            enrollment.session_id,
            len(removed),
        )
        return enrollment

    def bulk_enroll_students(self, session_id: str, student_ids: Iterable[str]) -> BatchManifest:
        get_open_session(self._db, session_id)
        manifest = BatchManifest()
        seen: set[str] = set()
        for student_id in student_ids:
            item = {"student_id": student_id}
            if student_id in seen:
                manifest.record_failure(item, ErrorKind.invalid_input, "Student listed more than once")
                continue
            seen.add(student_id)
            try:
                enrollment = self.enroll_student(student_id, session_id)
                enrollment_id = enrollment.id
                self._db.commit()
            except WorkflowError as exc:
                self._db.rollback()
                manifest.record_failure(item, exc.kind, exc.message)
                continue
            manifest.record_success({**item, "enrollment_id": enrollment_id})

        logger.info(
            "Bulk enrollment into session %s: %d enrolled, %d failed",
            session_id,
            manifest.success_count,
            manifest.failure_count,
        )
        return manifest
