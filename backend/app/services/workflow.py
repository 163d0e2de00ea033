from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date
from typing import TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import ForbiddenError, InvalidStateError, WorkflowError
from app.core.security import Caller, CallerRole
from app.models.assignment import Assignment
from app.models.enrollment import Enrollment, EnrollmentStatus
from app.models.final_evaluation import FinalEvaluation
from app.models.internship_session import InternshipSession, SessionStatus
from app.models.logbook import LogbookWeek, WeeklyComment
from app.models.student import Student
from app.models.supervisor import Supervisor, SupervisorRole
from app.schemas.supervisor import SupervisorCreate
from app.services.allocator import AssignmentAllocator, WorkloadEntry
from app.services.audit import log_activity
from app.services.capacity import CapacityDirectory
from app.services.evaluation import FinalEvaluationTracker
from app.services.logbook import LogbookService
from app.services.lookups import get_session
from app.services.results import BatchManifest, OperationResult
from app.services.sessions import SessionManager
from app.services.supervisors import SupervisorRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class WeekDetail:
    week: LogbookWeek
    comments: list[WeeklyComment] = field(default_factory=list)


def _require_admin(caller: Caller) -> None:
    if caller.role != CallerRole.admin:
        raise ForbiddenError("Administrator access is required")


class WorkflowEngine:
    """Single entry point for every state-changing workflow operation.

    Each public method runs in the request's SQLAlchemy session, commits once
    on success and rolls back on failure. Failures come back as a failed
    ``OperationResult`` carrying a ``WorkflowError``; they are never raised.
    """

    def __init__(self, db: Session) -> None:
        self._db = db
        self.capacity = CapacityDirectory(db)
        self.allocator = AssignmentAllocator(db, capacity=self.capacity)
        self.logbook = LogbookService(db)
        self.evaluations = FinalEvaluationTracker(db)
        self.sessions = SessionManager(db, allocator=self.allocator, logbook=self.logbook)
        self.supervisors = SupervisorRegistry(db)

    def _run(self, operation: Callable[[], T], *, commit: bool = True) -> OperationResult[T]:
        try:
            value = operation()
            if commit:
                self._db.commit()
        except WorkflowError as exc:
            self._db.rollback()
            logger.info("Workflow operation rejected (%s): %s", exc.kind.value, exc.message)
            return OperationResult.failure(exc)
        except StaleDataError:
            self._db.rollback()
            logger.warning("Concurrent update detected; operation rolled back")
            return OperationResult.failure(
                InvalidStateError("The record was changed by another request. Reload and try again.")
            )
        except IntegrityError as exc:
            self._db.rollback()
            logger.warning("Integrity violation rolled back: %s", exc.orig)
            return OperationResult.failure(
                InvalidStateError("The change conflicts with existing data. Reload and try again.")
            )
        return OperationResult.success(value)

    # Sessions and enrollment

    def create_session(
        self,
        caller: Caller,
        *,
        label: str,
        start_date: date,
        end_date: date,
        total_weeks: int | None = None,
    ) -> OperationResult[InternshipSession]:
        def operation() -> InternshipSession:
            _require_admin(caller)
            session = self.sessions.create_session(
                label=label,
                start_date=start_date,
                end_date=end_date,
                total_weeks=total_weeks,
            )
            log_activity(
                self._db,
                actor=caller,
                action="session.create",
                session_id=session.id,
                entity_type="internship_session",
                entity_id=session.id,
                details={"label": session.label, "total_weeks": session.total_weeks},
            )
            return session

        return self._run(operation)

    def close_session(self, caller: Caller, session_id: str) -> OperationResult[InternshipSession]:
        def operation() -> InternshipSession:
            _require_admin(caller)
            session = self.sessions.close_session(session_id)
            log_activity(
                self._db,
                actor=caller,
                action="session.close",
                session_id=session.id,
                entity_type="internship_session",
                entity_id=session.id,
            )
            return session

        return self._run(operation)

    def list_sessions(
        self, caller: Caller, status: SessionStatus | None = None
    ) -> OperationResult[list[InternshipSession]]:
        return self._run(lambda: self.sessions.list_sessions(status), commit=False)

    def list_enrollments(
        self, caller: Caller, session_id: str, status: EnrollmentStatus | None = None
    ) -> OperationResult[list[Enrollment]]:
        def operation() -> list[Enrollment]:
            _require_admin(caller)
            return self.sessions.list_enrollments(session_id, status)

        return self._run(operation, commit=False)

    def enroll_student(self, caller: Caller, *, student_id: str, session_id: str) -> OperationResult[Enrollment]:
        def operation() -> Enrollment:
            _require_admin(caller)
            enrollment = self.sessions.enroll_student(student_id, session_id)
            log_activity(
                self._db,
                actor=caller,
                action="enrollment.create",
                session_id=session_id,
                entity_type="enrollment",
                entity_id=enrollment.id,
                details={"student_id": student_id, "session_id": session_id},
            )
            return enrollment

        return self._run(operation)

    def bulk_enroll_students(
        self, caller: Caller, *, session_id: str, student_ids: Iterable[str]
    ) -> OperationResult[BatchManifest]:
        def operation() -> BatchManifest:
            _require_admin(caller)
            manifest = self.sessions.bulk_enroll_students(session_id, student_ids)
            log_activity(
                self._db,
                actor=caller,
                action="enrollment.bulk_create",
                session_id=session_id,
                entity_type="internship_session",
                entity_id=session_id,
                details={"succeeded": manifest.success_count, "failed": manifest.failure_count},
            )
            return manifest

        return self._run(operation)

    def withdraw_enrollment(self, caller: Caller, enrollment_id: str) -> OperationResult[Enrollment]:
        def operation() -> Enrollment:
            _require_admin(caller)
            enrollment = self.sessions.withdraw_enrollment(enrollment_id)
            log_activity(
                self._db,
                actor=caller,
                action="enrollment.withdraw",
                session_id=enrollment.session_id,
                entity_type="enrollment",
                entity_id=enrollment.id,
                details={"student_id": enrollment.student_id, "session_id": enrollment.session_id},
            )
            return enrollment

        return self._run(operation)

    # Supervisors

    def bulk_create_supervisors(
        self, caller: Caller, items: Iterable[SupervisorCreate]
    ) -> OperationResult[BatchManifest]:
        def operation() -> BatchManifest:
            _require_admin(caller)
            manifest = self.supervisors.bulk_create_supervisors(items)
            log_activity(
                self._db,
                actor=caller,
                action="supervisor.bulk_create",
                entity_type="supervisor",
                details={"succeeded": manifest.success_count, "failed": manifest.failure_count},
            )
            return manifest

        return self._run(operation)

    def deactivate_supervisor(self, caller: Caller, supervisor_id: str) -> OperationResult[Supervisor]:
        def operation() -> Supervisor:
            _require_admin(caller)
            supervisor = self.supervisors.deactivate_supervisor(supervisor_id)
            log_activity(
                self._db,
                actor=caller,
                action="supervisor.deactivate",
                entity_type="supervisor",
                entity_id=supervisor.id,
            )
            return supervisor

        return self._run(operation)

    def list_supervisors(
        self, caller: Caller, role: SupervisorRole | None = None, include_inactive: bool = False
    ) -> OperationResult[list[Supervisor]]:
        def operation() -> list[Supervisor]:
            _require_admin(caller)
            return self.supervisors.list_supervisors(role, include_inactive)

        return self._run(operation, commit=False)

    # Assignments

    def manual_assign(
        self,
        caller: Caller,
        *,
        student_id: str,
        session_id: str,
        supervisor_id: str,
        role: SupervisorRole,
    ) -> OperationResult[Assignment]:
        def operation() -> Assignment:
            _require_admin(caller)
            assignment = self.allocator.manual_assign(
                student_id=student_id,
                session_id=session_id,
                supervisor_id=supervisor_id,
                role=role,
                assigned_by_id=caller.id,
            )
            log_activity(
                self._db,
                actor=caller,
                action="assignment.create",
                session_id=session_id,
                entity_type="assignment",
                entity_id=assignment.id,
                details={"student_id": student_id, "supervisor_id": supervisor_id, "role": role.value},
            )
            return assignment

        return self._run(operation)

    def remove_assignment(self, caller: Caller, assignment_id: str) -> OperationResult[dict]:
        def operation() -> dict:
            _require_admin(caller)
            snapshot = self.allocator.remove_assignment(assignment_id)
            log_activity(
                self._db,
                actor=caller,
                action="assignment.remove",
                session_id=snapshot["session_id"],
                entity_type="assignment",
                entity_id=assignment_id,
                details={
                    "student_id": snapshot["student_id"],
                    "supervisor_id": snapshot["supervisor_id"],
                    "role": snapshot["role"].value,
                },
            )
            return snapshot

        return self._run(operation)

    def auto_assign(
        self,
        caller: Caller,
        *,
        session_id: str,
        role: SupervisorRole,
        dry_run: bool = False,
        cancel_event: threading.Event | None = None,
    ) -> OperationResult[BatchManifest]:
        def operation() -> BatchManifest:
            _require_admin(caller)
            manifest = self.allocator.auto_assign(
                session_id=session_id,
                role=role,
                assigned_by_id=caller.id,
                dry_run=dry_run,
                cancel_event=cancel_event,
            )
            if not dry_run:
                log_activity(
                    self._db,
                    actor=caller,
                    action="assignment.auto_assign",
                    session_id=session_id,
                    entity_type="internship_session",
                    entity_id=session_id,
                    details={
                        "role": role.value,
                        "succeeded": manifest.success_count,
                        "failed": manifest.failure_count,
                        "cancelled": manifest.cancelled,
                    },
                )
            return manifest

        return self._run(operation, commit=not dry_run)

    def get_assignments(
        self, caller: Caller, session_id: str, role: SupervisorRole | None = None
    ) -> OperationResult[list[Assignment]]:
        def operation() -> list[Assignment]:
            _require_admin(caller)
            return self.allocator.get_assignments(session_id, role)

        return self._run(operation, commit=False)

    def workload_report(self, caller: Caller, session_id: str) -> OperationResult[list[WorkloadEntry]]:
        def operation() -> list[WorkloadEntry]:
            _require_admin(caller)
            return self.allocator.workload_report(session_id)

        return self._run(operation, commit=False)

    def rebuild_loads(self, caller: Caller | None, session_id: str) -> OperationResult[dict[str, int]]:
        """Recompute the capacity cache from assignments; ``caller=None`` is the start-up bootstrap."""

        def operation() -> dict[str, int]:
            if caller is not None:
                _require_admin(caller)
            get_session(self._db, session_id)
            corrected = self.capacity.rebuild(session_id)
            if corrected:
                log_activity(
                    self._db,
                    actor=caller,
                    action="capacity.rebuild",
                    session_id=session_id,
                    entity_type="internship_session",
                    entity_id=session_id,
                    details={"corrected": corrected},
                )
            return corrected

        return self._run(operation)

    # Logbook

    def list_weeks(
        self, caller: Caller, *, session_id: str, student_id: str | None = None
    ) -> OperationResult[list[LogbookWeek]]:
        def operation() -> list[LogbookWeek]:
            owner_id = caller.id if caller.role == CallerRole.student else student_id
            if owner_id is None:
                raise ForbiddenError("A student must be selected to view a logbook")
            get_session(self._db, session_id)
            self.logbook.ensure_can_view_student(owner_id, session_id, caller)
            return self.logbook.list_weeks(owner_id, session_id)

        return self._run(operation, commit=False)

    def list_assigned_students(self, caller: Caller, *, session_id: str) -> OperationResult[list[Student]]:
        def operation() -> list[Student]:
            get_session(self._db, session_id)
            return self.logbook.list_assigned_students(session_id, caller)

        return self._run(operation, commit=False)

    def list_pending_reviews(self, caller: Caller, *, session_id: str) -> OperationResult[list[LogbookWeek]]:
        def operation() -> list[LogbookWeek]:
            get_session(self._db, session_id)
            return self.logbook.list_pending_reviews(session_id, caller)

        return self._run(operation, commit=False)

    def get_week(self, caller: Caller, week_id: str) -> OperationResult[WeekDetail]:
        def operation() -> WeekDetail:
            week = self.logbook.get_week(week_id)
            self.logbook.ensure_can_view(week, caller)
            return WeekDetail(week=week, comments=self.logbook.list_comments(week.id))

        return self._run(operation, commit=False)

    def save_entry(self, caller: Caller, week_id: str, *, day: str, content: str) -> OperationResult[LogbookWeek]:
        return self._run(lambda: self.logbook.save_entry(week_id, caller, day, content))

    def clear_entry(self, caller: Caller, week_id: str, *, day: str) -> OperationResult[LogbookWeek]:
        return self._run(lambda: self.logbook.clear_entry(week_id, caller, day))

    def request_review(self, caller: Caller, week_id: str) -> OperationResult[LogbookWeek]:
        def operation() -> LogbookWeek:
            week = self.logbook.request_review(week_id, caller)
            log_activity(
                self._db,
                actor=caller,
                action="logbook.request_review",
                session_id=week.session_id,
                entity_type="logbook_week",
                entity_id=week.id,
                details={"week_number": week.week_number},
            )
            return week

        return self._run(operation)

    def add_weekly_comment(self, caller: Caller, week_id: str, *, text: str) -> OperationResult[WeeklyComment]:
        def operation() -> WeeklyComment:
            comment = self.logbook.add_weekly_comment(week_id, caller, text)
            week = self.logbook.get_week(week_id)
            log_activity(
                self._db,
                actor=caller,
                action="logbook.comment",
                session_id=week.session_id,
                entity_type="logbook_week",
                entity_id=week_id,
                details={"comment_id": comment.id},
            )
            return comment

        return self._run(operation)

    def lock_week(self, caller: Caller, week_id: str, *, reason: str | None = None) -> OperationResult[LogbookWeek]:
        def operation() -> LogbookWeek:
            week = self.logbook.lock_week(week_id, caller, reason)
            log_activity(
                self._db,
                actor=caller,
                action="logbook.lock",
                session_id=week.session_id,
                entity_type="logbook_week",
                entity_id=week.id,
                details={"reason": week.lock_reason},
            )
            return week

        return self._run(operation)

    def unlock_week(self, caller: Caller, week_id: str) -> OperationResult[LogbookWeek]:
        def operation() -> LogbookWeek:
            week = self.logbook.unlock_week(week_id, caller)
            log_activity(
                self._db,
                actor=caller,
                action="logbook.unlock",
                session_id=week.session_id,
                entity_type="logbook_week",
                entity_id=week.id,
            )
            return week

        return self._run(operation)

    # Final evaluation

    def add_final_comment(
        self,
        caller: Caller,
        *,
        student_id: str,
        session_id: str,
        comment: str,
        rating: int | None = None,
    ) -> OperationResult[FinalEvaluation]:
        def operation() -> FinalEvaluation:
            evaluation = self.evaluations.add_final_comment(
                student_id=student_id,
                session_id=session_id,
                caller=caller,
                comment=comment,
                rating=rating,
            )
            log_activity(
                self._db,
                actor=caller,
                action="evaluation.create",
                session_id=session_id,
                entity_type="final_evaluation",
                entity_id=evaluation.id,
                details={"student_id": student_id, "session_id": session_id, "rating": rating},
            )
            return evaluation

        return self._run(operation)

    def list_final_comments(
        self, caller: Caller, *, student_id: str, session_id: str
    ) -> OperationResult[list[FinalEvaluation]]:
        def operation() -> list[FinalEvaluation]:
            get_session(self._db, session_id)
            self.logbook.ensure_can_view_student(student_id, session_id, caller)
            return self.evaluations.list_final_comments(student_id, session_id)

        return self._run(operation, commit=False)
