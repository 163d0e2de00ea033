from __future__ import annotations

from typing import assert_never

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.student import Student
from app.models.supervisor import Supervisor, SupervisorRole


class EligibilityResolver:
    """Which supervisors may receive a given student.

    Results are ordered by supervisor id so allocation is reproducible. An
    empty list means nobody is eligible; it is not an error.
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def eligible_school_supervisors(self, student: Student) -> list[Supervisor]:
        return list(
            self._db.execute(
                select(Supervisor)
                .where(
                    Supervisor.role == SupervisorRole.school,
                    Supervisor.department_id == student.department_id,
                    Supervisor.is_active.is_(True),
                )
                .order_by(Supervisor.id)
            ).scalars()
        )

    def eligible_industry_supervisors(self) -> list[Supervisor]:
        # Matching to the student's placement organization is left to the caller.
        return list(
            self._db.execute(
                select(Supervisor)
                .where(
                    Supervisor.role == SupervisorRole.industry,
                    Supervisor.is_active.is_(True),
                )
                .order_by(Supervisor.id)
            ).scalars()
        )

    def eligible_for(self, student: Student, role: SupervisorRole) -> list[Supervisor]:
        match role:
            case SupervisorRole.school:
                return self.eligible_school_supervisors(student)
            case SupervisorRole.industry:
                return self.eligible_industry_supervisors()
            case _:
                assert_never(role)
