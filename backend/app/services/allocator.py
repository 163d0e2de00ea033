from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import (
    CapacityExceededError,
    DuplicateAssignmentError,
    ErrorKind,
    IneligibleSupervisorError,
    NotFoundError,
    WorkflowError,
)
from app.models.assignment import Assignment, AssignmentMethod
from app.models.enrollment import Enrollment, EnrollmentStatus
from app.models.student import Student
from app.models.supervisor import Supervisor, SupervisorRole
from app.services.capacity import CapacityDirectory
from app.services.eligibility import EligibilityResolver
from app.services.lookups import (
    find_assignment,
    get_active_enrollment,
    get_open_session,
    get_session,
    get_student,
    get_supervisor,
)
from app.services.results import BatchManifest

logger = logging.getLogger(__name__)


@dataclass
class WorkloadEntry:
    supervisor_id: str
    name: str
    role: SupervisorRole
    department_id: str | None
    capacity: int
    current_load: int
    assigned_count: int
    is_active: bool


def assignment_snapshot(assignment: Assignment) -> dict:
    return {
        "id": assignment.id,
        "student_id": assignment.student_id,
        "session_id": assignment.session_id,
        "supervisor_id": assignment.supervisor_id,
        "role": assignment.role,
        "method": assignment.method,
        "assigned_by_id": assignment.assigned_by_id,
        "created_at": assignment.created_at,
    }


class AssignmentAllocator:
    def __init__(
        self,
        db: Session,
        capacity: CapacityDirectory | None = None,
        eligibility: EligibilityResolver | None = None,
    ) -> None:
        self._db = db
        self._capacity = capacity or CapacityDirectory(db)
        self._eligibility = eligibility or EligibilityResolver(db)

    def _create(
        self,
        *,
        student_id: str,
        session_id: str,
        supervisor: Supervisor,
        role: SupervisorRole,
        method: AssignmentMethod,
        assigned_by_id: str | None,
    ) -> Assignment:
        # Reservation and row are flushed together and only ever committed together.
        try:
            self._capacity.reserve(supervisor.id, session_id)
        except (IntegrityError, StaleDataError) as exc:
            raise CapacityExceededError(
                f"Load for supervisor {supervisor.name} changed while reserving a slot",
                details={"supervisor_id": supervisor.id, "session_id": session_id},
            ) from exc
        assignment = Assignment(
            student_id=student_id,
            session_id=session_id,
            supervisor_id=supervisor.id,
            role=role,
            method=method,
            assigned_by_id=assigned_by_id,
        )
        self._db.add(assignment)
        try:
            self._db.flush()
        except IntegrityError as exc:
            raise DuplicateAssignmentError(
                f"Student already has a {role.value} supervisor in this session",
                details={"student_id": student_id, "session_id": session_id, "role": role.value},
            ) from exc
        return assignment

    def manual_assign(
        self,
        *,
        student_id: str,
        session_id: str,
        supervisor_id: str,
        role: SupervisorRole,
        assigned_by_id: str | None = None,
    ) -> Assignment:
        get_open_session(self._db, session_id)
        student = get_student(self._db, student_id)
        supervisor = get_supervisor(self._db, supervisor_id)
        get_active_enrollment(self._db, student_id, session_id)

        if find_assignment(self._db, student_id=student_id, session_id=session_id, role=role) is not None:
            raise DuplicateAssignmentError(
                f"Student already has a {role.value} supervisor in this session",
                details={"student_id": student_id, "session_id": session_id, "role": role.value},
            )
        if supervisor.role != role:
            raise IneligibleSupervisorError(
                f"{supervisor.name} is not a {role.value} supervisor",
                details={"supervisor_id": supervisor_id, "role": role.value},
            )
        eligible_ids = {item.id for item in self._eligibility.eligible_for(student, role)}
        if supervisor.id not in eligible_ids:
            raise IneligibleSupervisorError(
                f"{supervisor.name} is not eligible to supervise this student",
                details={"supervisor_id": supervisor_id, "student_id": student_id},
            )
        if not self._capacity.has_capacity(supervisor.id, session_id):
            raise CapacityExceededError(
                f"Supervisor {supervisor.name} has reached capacity ({supervisor.capacity})",
                details={"supervisor_id": supervisor_id, "capacity": supervisor.capacity},
            )

        assignment = self._create(
            student_id=student_id,
            session_id=session_id,
            supervisor=supervisor,
            role=role,
            method=AssignmentMethod.manual,
            assigned_by_id=assigned_by_id,
        )
        logger.info(
            "Assigned student %s to %s supervisor %s in session %s",
            student_id,
            role.value,
            supervisor.id,
            session_id,
        )
        return assignment

    def remove_assignment(self, assignment_id: str) -> dict:
        assignment = self._db.get(Assignment, assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment", assignment_id)
        get_open_session(self._db, assignment.session_id)
        return self._remove(assignment)

    def _remove(self, assignment: Assignment) -> dict:
        snapshot = assignment_snapshot(assignment)
        self._capacity.release(assignment.supervisor_id, assignment.session_id)
        self._db.delete(assignment)
        self._db.flush()
        logger.info("Removed assignment %s", snapshot["id"])
        return snapshot

    def remove_for_student(self, student_id: str, session_id: str) -> list[dict]:
        assignments = list(
            self._db.execute(
                select(Assignment).where(
                    Assignment.student_id == student_id,
                    Assignment.session_id == session_id,
                )
            ).scalars()
        )
        return [self._remove(item) for item in assignments]

    def _unassigned_student_ids(self, session_id: str, role: SupervisorRole) -> list[str]:
        assigned = select(Assignment.student_id).where(
            Assignment.session_id == session_id,
            Assignment.role == role,
        )
        return list(
            self._db.execute(
                select(Enrollment.student_id)
                .where(
                    Enrollment.session_id == session_id,
                    Enrollment.status == EnrollmentStatus.active,
                    Enrollment.student_id.not_in(assigned),
                )
                .order_by(Enrollment.enrolled_at, Enrollment.student_id)
            ).scalars()
        )

    def _candidates_for(self, student: Student, role: SupervisorRole) -> list[Supervisor]:
        eligible = self._eligibility.eligible_for(student, role)
        match role:
            case SupervisorRole.industry if student.placement_organization_id:
                return [
                    item
                    for item in eligible
                    if item.placement_organization_id == student.placement_organization_id
                ]
            case _:
                return eligible

    @staticmethod
    def _least_loaded(candidates: list[Supervisor], loads: dict[str, int]) -> Supervisor | None:
        available = [item for item in candidates if loads.get(item.id, 0) < item.capacity]
        if not available:
            return None
        return min(available, key=lambda item: (loads.get(item.id, 0), item.id))

    def auto_assign(
        self,
        *,
        session_id: str,
        role: SupervisorRole,
        assigned_by_id: str | None = None,
        dry_run: bool = False,
        cancel_event: threading.Event | None = None,
    ) -> BatchManifest:
        """Greedy least-loaded allocation of every unassigned active enrollment.

        Each student is committed on its own, so later students see the loads
        left by earlier ones and an interrupted run leaves a consistent prefix.
        With ``dry_run`` the same plan is computed against in-memory loads and
        nothing is written.
        """
        get_open_session(self._db, session_id)
        student_ids = self._unassigned_student_ids(session_id, role)
        manifest = BatchManifest(dry_run=dry_run)
        planned: dict[str, int] = {}

        logger.info(
            "Auto-assigning %d student(s) to %s supervisors in session %s (dry_run=%s)",
            len(student_ids),
            role.value,
            session_id,
            dry_run,
        )

        for student_id in student_ids:
            if cancel_event is not None and cancel_event.is_set():
                manifest.cancelled = True
                logger.warning(
                    "Auto-assign for session %s cancelled after %d student(s)",
                    session_id,
                    manifest.success_count + manifest.failure_count,
                )
                break

            item = {"student_id": student_id}
            student = self._db.get(Student, student_id)
            if student is None:
                manifest.record_failure(item, ErrorKind.not_found, "Student record is missing")
                continue
            candidates = self._candidates_for(student, role)
            if not candidates:
                logger.warning("No eligible %s supervisor for student %s", role.value, student_id)
                manifest.record_failure(
                    item,
                    ErrorKind.no_eligible_supervisor,
                    f"No eligible {role.value} supervisor",
                )
                continue

            loads = self._capacity.loads(session_id, (candidate.id for candidate in candidates))
            if dry_run:
                loads.update({key: value for key, value in planned.items() if key in loads})
            choice = self._least_loaded(candidates, loads)
            if choice is None:
                manifest.record_failure(
                    item,
                    ErrorKind.capacity_exceeded,
                    f"All eligible {role.value} supervisors are at capacity",
                )
                continue

            if dry_run:
                planned[choice.id] = loads[choice.id] + 1
                manifest.record_success({**item, "supervisor_id": choice.id, "assignment_id": None})
                continue

            try:
                assignment = self._create(
                    student_id=student_id,
                    session_id=session_id,
                    supervisor=choice,
                    role=role,
                    method=AssignmentMethod.automatic,
                    assigned_by_id=assigned_by_id,
                )
                assignment_id = assignment.id
                self._db.commit()
            except WorkflowError as exc:
                self._db.rollback()
                manifest.record_failure(item, exc.kind, exc.message)
                continue
            except (IntegrityError, StaleDataError):
                self._db.rollback()
                logger.warning("Auto-assign conflict for student %s in session %s", student_id, session_id)
                manifest.record_failure(
                    item, ErrorKind.invalid_state, "The change conflicts with existing data. Reload and try again."
                )
                continue
            manifest.record_success({**item, "supervisor_id": choice.id, "assignment_id": assignment_id})

        logger.info(
            "Auto-assign finished for session %s: %d assigned, %d failed",
            session_id,
            manifest.success_count,
            manifest.failure_count,
        )
        return manifest

    def get_assignments(self, session_id: str, role: SupervisorRole | None = None) -> list[Assignment]:
        get_session(self._db, session_id)
        query = select(Assignment).where(Assignment.session_id == session_id)
        if role is not None:
            query = query.where(Assignment.role == role)
        return list(self._db.execute(query.order_by(Assignment.created_at, Assignment.id)).scalars())

    def workload_report(self, session_id: str) -> list[WorkloadEntry]:
        get_session(self._db, session_id)
        counts: dict[str, int] = {}
        for assignment in self.get_assignments(session_id):
            counts[assignment.supervisor_id] = counts.get(assignment.supervisor_id, 0) + 1

        supervisors = list(
            self._db.execute(
                select(Supervisor)
                .where((Supervisor.is_active.is_(True)) | (Supervisor.id.in_(list(counts))))
                .order_by(Supervisor.role, Supervisor.name, Supervisor.id)
            ).scalars()
        )
        loads = self._capacity.loads(session_id, (item.id for item in supervisors))
        return [
            WorkloadEntry(
                supervisor_id=item.id,
                name=item.name,
                role=item.role,
                department_id=item.department_id,
                capacity=item.capacity,
                current_load=loads.get(item.id, 0),
                assigned_count=counts.get(item.id, 0),
                is_active=item.is_active,
            )
            for item in supervisors
        ]

