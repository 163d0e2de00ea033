from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.exceptions import DuplicateEvaluationError, ForbiddenError, InvalidInputError
from app.core.security import Caller
from app.models.final_evaluation import FinalEvaluation
from app.models.supervisor import SupervisorRole
from app.services.logbook import active_supervisor_role
from app.services.lookups import find_assignment, get_session, get_student

logger = logging.getLogger(__name__)


class FinalEvaluationTracker:
    """One end-of-session evaluation per (student, session, supervisor role).

    Evaluations are write-once; there is no update or delete path.
    """

    def __init__(self, db: Session, settings: Settings | None = None) -> None:
        self._db = db
        self._settings = settings or get_settings()

    def _find(self, student_id: str, session_id: str, role: SupervisorRole) -> FinalEvaluation | None:
        return self._db.execute(
            select(FinalEvaluation).where(
                FinalEvaluation.student_id == student_id,
                FinalEvaluation.session_id == session_id,
                FinalEvaluation.author_role == role,
            )
        ).scalar_one_or_none()

    def _validate(self, comment: str, rating: int | None) -> str:
        text = (comment or "").strip()
        min_length = self._settings.comment_min_length
        max_length = self._settings.comment_max_length
        if len(text) < min_length or len(text) > max_length:
            raise InvalidInputError(
                f"Comment must be between {min_length} and {max_length} characters",
                details={"length": len(text)},
            )
        if rating is not None and not (self._settings.rating_min <= rating <= self._settings.rating_max):
            raise InvalidInputError(
                f"Rating must be between {self._settings.rating_min} and {self._settings.rating_max}",
                details={"rating": rating},
            )
        return text

    def add_final_comment(
        self,
        *,
        student_id: str,
        session_id: str,
        caller: Caller,
        comment: str,
        rating: int | None = None,
    ) -> FinalEvaluation:
        get_session(self._db, session_id)
        get_student(self._db, student_id)
        role = active_supervisor_role(self._db, caller)
        assignment = find_assignment(
            self._db,
            student_id=student_id,
            session_id=session_id,
            role=role,
            supervisor_id=caller.id,
        )
        if assignment is None:
            raise ForbiddenError(
                "Supervisor is not assigned to this student",
                details={"student_id": student_id, "role": role.value},
            )
        text = self._validate(comment, rating)

        duplicate_error = DuplicateEvaluationError(
            f"A {role.value} supervisor has already evaluated this student for the session",
            details={"student_id": student_id, "session_id": session_id, "role": role.value},
        )
        if self._find(student_id, session_id, role) is not None:
            raise duplicate_error

        evaluation = FinalEvaluation(
            student_id=student_id,
            session_id=session_id,
            author_id=caller.id,
            author_role=role,
            comment=text,
            rating=rating,
        )
        self._db.add(evaluation)
        try:
            self._db.flush()
        except IntegrityError as exc:
            raise duplicate_error from exc

        logger.info(
            "Final %s evaluation recorded for student %s in session %s",
            role.value,
            student_id,
            session_id,
        )
        return evaluation

    def list_final_comments(self, student_id: str, session_id: str) -> list[FinalEvaluation]:
        return list(
            self._db.execute(
                select(FinalEvaluation)
                .where(
                    FinalEvaluation.student_id == student_id,
                    FinalEvaluation.session_id == session_id,
                )
                .order_by(FinalEvaluation.author_role, FinalEvaluation.created_at)
            ).scalars()
        )
