from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from enum import Enum
from typing import assert_never

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.exceptions import ForbiddenError, InvalidInputError, InvalidStateError, NotFoundError
from app.core.security import Caller, CallerRole
from app.models.assignment import Assignment
from app.models.logbook import LogbookWeek, WeeklyComment, WeekStatus
from app.models.student import Student
from app.models.supervisor import Supervisor, SupervisorRole
from app.services.lookups import find_assignment, get_open_session

logger = logging.getLogger(__name__)

LOGBOOK_DAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday")

UNSAFE_CONTENT_PATTERNS = (
    re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE),
    re.compile(r"<iframe\b[^<]*(?:(?!</iframe>)<[^<]*)*</iframe>", re.IGNORECASE),
    re.compile(r"\bon\w+\s*=", re.IGNORECASE),
)


class WeekAction(str, Enum):
    request_review = "request_review"
    comment = "comment"
    lock = "lock"
    unlock = "unlock"


TRANSITIONS: dict[WeekAction, tuple[frozenset[WeekStatus], WeekStatus]] = {
    WeekAction.request_review: (frozenset({WeekStatus.draft}), WeekStatus.submitted),
    WeekAction.comment: (frozenset({WeekStatus.submitted}), WeekStatus.locked),
    WeekAction.lock: (frozenset({WeekStatus.draft, WeekStatus.submitted}), WeekStatus.locked),
    WeekAction.unlock: (frozenset({WeekStatus.locked}), WeekStatus.submitted),
}


def next_status(current: WeekStatus, action: WeekAction) -> WeekStatus:
    sources, target = TRANSITIONS[action]
    if current not in sources:
        raise InvalidStateError(
            f"Cannot {action.value.replace('_', ' ')} a week that is {current.value}",
            details={"status": current.value, "action": action.value},
        )
    return target


def supervisor_role_for(caller: Caller) -> SupervisorRole:
    match caller.role:
        case CallerRole.school_supervisor:
            return SupervisorRole.school
        case CallerRole.industry_supervisor:
            return SupervisorRole.industry
        case CallerRole.student | CallerRole.admin:
            raise ForbiddenError("Only supervisors can review logbook weeks")
        case _:
            assert_never(caller.role)


def active_supervisor_role(db: Session, caller: Caller) -> SupervisorRole:
    role = supervisor_role_for(caller)
    supervisor = db.get(Supervisor, caller.id)
    if supervisor is None or not supervisor.is_active or supervisor.role != role:
        raise ForbiddenError("Supervisor account is not active for this role")
    return role


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LogbookService:
    """Weekly logbook lifecycle: draft -> submitted -> locked, with unlock back to submitted."""

    def __init__(self, db: Session, settings: Settings | None = None) -> None:
        self._db = db
        self._settings = settings or get_settings()

    def get_week(self, week_id: str) -> LogbookWeek:
        week = self._db.get(LogbookWeek, week_id)
        if week is None:
            raise NotFoundError("Logbook week", week_id)
        return week

    def _require_owner(self, week: LogbookWeek, caller: Caller) -> None:
        if caller.role != CallerRole.student or caller.id != week.student_id:
            raise ForbiddenError(
                "Week does not belong to this student",
                details={"week_id": week.id},
            )

    def _require_assigned_supervisor(self, week: LogbookWeek, caller: Caller) -> SupervisorRole:
        return self._require_assignment(week.student_id, week.session_id, caller)

    def _require_assignment(self, student_id: str, session_id: str, caller: Caller) -> SupervisorRole:
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
        return role

    def _validate_text(self, value: str, *, field: str, min_length: int, max_length: int) -> str:
        text = (value or "").strip()
        if len(text) < min_length:
            raise InvalidInputError(f"{field} must be at least {min_length} characters")
        if len(text) > max_length:
            raise InvalidInputError(f"{field} must be at most {max_length} characters")
        return text

    def create_weeks(self, *, student_id: str, session_id: str, total_weeks: int) -> int:
        existing = set(
            self._db.execute(
                select(LogbookWeek.week_number).where(
                    LogbookWeek.student_id == student_id,
                    LogbookWeek.session_id == session_id,
                )
            ).scalars()
        )
        created = 0
        for week_number in range(1, total_weeks + 1):
            if week_number in existing:
                continue
            self._db.add(
                LogbookWeek(
                    student_id=student_id,
                    session_id=session_id,
                    week_number=week_number,
                    status=WeekStatus.draft,
                    entries={},
                )
            )
            created += 1
        self._db.flush()
        return created

    def list_weeks(self, student_id: str, session_id: str) -> list[LogbookWeek]:
        return list(
            self._db.execute(
                select(LogbookWeek)
                .where(
                    LogbookWeek.student_id == student_id,
                    LogbookWeek.session_id == session_id,
                )
                .order_by(LogbookWeek.week_number)
            ).scalars()
        )

    def _assigned_student_ids(self, session_id: str, caller: Caller):
        role = active_supervisor_role(self._db, caller)
        return select(Assignment.student_id).where(
            Assignment.session_id == session_id,
            Assignment.supervisor_id == caller.id,
            Assignment.role == role,
        )

    def list_assigned_students(self, session_id: str, caller: Caller) -> list[Student]:
        assigned = self._assigned_student_ids(session_id, caller)
        return list(
            self._db.execute(
                select(Student).where(Student.id.in_(assigned)).order_by(Student.name, Student.id)
            ).scalars()
        )

    def list_pending_reviews(self, session_id: str, caller: Caller) -> list[LogbookWeek]:
        """Submitted weeks of the caller's students, oldest review request first."""
        assigned = self._assigned_student_ids(session_id, caller)
        return list(
            self._db.execute(
                select(LogbookWeek)
                .where(
                    LogbookWeek.session_id == session_id,
                    LogbookWeek.status == WeekStatus.submitted,
                    LogbookWeek.student_id.in_(assigned),
                )
                .order_by(LogbookWeek.review_requested_at, LogbookWeek.student_id, LogbookWeek.week_number)
            ).scalars()
        )

    def list_comments(self, week_id: str) -> list[WeeklyComment]:
        return list(
            self._db.execute(
                select(WeeklyComment)
                .where(WeeklyComment.week_id == week_id)
                .order_by(WeeklyComment.created_at, WeeklyComment.id)
            ).scalars()
        )

    def ensure_can_view_student(self, student_id: str, session_id: str, caller: Caller) -> None:
        match caller.role:
            case CallerRole.admin:
                return
            case CallerRole.student:
                if caller.id != student_id:
                    raise ForbiddenError("Students can only view their own logbook")
            case CallerRole.school_supervisor | CallerRole.industry_supervisor:
                self._require_assignment(student_id, session_id, caller)
            case _:
                assert_never(caller.role)

    def ensure_can_view(self, week: LogbookWeek, caller: Caller) -> None:
        self.ensure_can_view_student(week.student_id, week.session_id, caller)

    def save_entry(self, week_id: str, caller: Caller, day: str, content: str) -> LogbookWeek:
        week = self.get_week(week_id)
        self._require_owner(week, caller)
        day_key = (day or "").strip().lower()
        if day_key not in LOGBOOK_DAYS:
            raise InvalidInputError(f"Unknown logbook day: {day}")
        text = self._validate_text(
            content,
            field="Entry content",
            min_length=1,
            max_length=self._settings.entry_max_length,
        )
        if any(pattern.search(text) for pattern in UNSAFE_CONTENT_PATTERNS):
            raise InvalidInputError("Scripts and event handlers are not allowed in entries")
        get_open_session(self._db, week.session_id)
        if week.status == WeekStatus.locked:
            raise InvalidStateError(
                "Cannot edit a locked week. Ask your school supervisor to unlock it.",
                details={"week_id": week.id},
            )

        week.entries = {**(week.entries or {}), day_key: text}
        self._db.flush()
        return week

    def clear_entry(self, week_id: str, caller: Caller, day: str) -> LogbookWeek:
        week = self.get_week(week_id)
        self._require_owner(week, caller)
        day_key = (day or "").strip().lower()
        if day_key not in LOGBOOK_DAYS:
            raise InvalidInputError(f"Unknown logbook day: {day}")
        get_open_session(self._db, week.session_id)
        if week.status == WeekStatus.locked:
            raise InvalidStateError(
                "Cannot edit a locked week. Ask your school supervisor to unlock it.",
                details={"week_id": week.id},
            )

        entries = dict(week.entries or {})
        entries.pop(day_key, None)
        week.entries = entries
        self._db.flush()
        return week

    def request_review(self, week_id: str, caller: Caller) -> LogbookWeek:
        week = self.get_week(week_id)
        self._require_owner(week, caller)
        get_open_session(self._db, week.session_id)
        week.status = next_status(week.status, WeekAction.request_review)
        week.review_requested_at = _utc_now()
        self._db.flush()
        logger.info("Week %s of student %s submitted for review", week.week_number, week.student_id)
        return week

    def add_weekly_comment(self, week_id: str, caller: Caller, text: str) -> WeeklyComment:
        week = self.get_week(week_id)
        body = self._validate_text(
            text,
            field="Comment",
            min_length=self._settings.comment_min_length,
            max_length=self._settings.comment_max_length,
        )
        role = self._require_assigned_supervisor(week, caller)
        get_open_session(self._db, week.session_id)
        target = next_status(week.status, WeekAction.comment)

        comment = WeeklyComment(week_id=week.id, author_id=caller.id, author_role=role, text=body)
        self._db.add(comment)
        self._apply_lock(week, caller, role, target, reason=None)
        self._db.flush()
        logger.info("Week %s commented and locked by %s supervisor %s", week.id, role.value, caller.id)
        return comment

    def lock_week(self, week_id: str, caller: Caller, reason: str | None = None) -> LogbookWeek:
        week = self.get_week(week_id)
        lock_reason = None
        if reason is not None and reason.strip():
            lock_reason = self._validate_text(
                reason,
                field="Lock reason",
                min_length=1,
                max_length=self._settings.lock_reason_max_length,
            )
        role = self._require_assigned_supervisor(week, caller)
        get_open_session(self._db, week.session_id)
        target = next_status(week.status, WeekAction.lock)

        self._apply_lock(week, caller, role, target, reason=lock_reason)
        self._db.flush()
        logger.info("Week %s locked by %s supervisor %s", week.id, role.value, caller.id)
        return week

    def unlock_week(self, week_id: str, caller: Caller) -> LogbookWeek:
        week = self.get_week(week_id)
        if caller.role != CallerRole.school_supervisor:
            raise ForbiddenError("Only the school supervisor can unlock a week")
        self._require_assigned_supervisor(week, caller)
        get_open_session(self._db, week.session_id)

        week.status = next_status(week.status, WeekAction.unlock)
        week.locked_by_id = None
        week.locked_by_role = None
        week.locked_at = None
        week.lock_reason = None
        self._db.flush()
        logger.info("Week %s unlocked by school supervisor %s", week.id, caller.id)
        return week

    @staticmethod
    def _apply_lock(
        week: LogbookWeek,
        caller: Caller,
        role: SupervisorRole,
        target: WeekStatus,
        *,
        reason: str | None,
    ) -> None:
        week.status = target
        week.locked_by_id = caller.id
        week.locked_by_role = role
        week.locked_at = _utc_now()
        week.lock_reason = reason
