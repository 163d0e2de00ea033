from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import CapacityExceededError, NotFoundError
from app.models.assignment import Assignment
from app.models.supervisor import Supervisor, SupervisorLoad

logger = logging.getLogger(__name__)

_UPSERT_INSERTS = {"postgresql": postgresql_insert, "sqlite": sqlite_insert}


class CapacityDirectory:
    """Per-session supervisor load bookkeeping.

    ``supervisor_loads`` is a cache of the assignment count per supervisor and
    session. It is only ever changed through ``reserve``/``release`` inside the
    transaction that writes the matching ``Assignment`` row, and can always be
    recomputed with ``rebuild``. Nothing here commits.
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def _get_supervisor(self, supervisor_id: str) -> Supervisor:
        supervisor = self._db.get(Supervisor, supervisor_id)
        if supervisor is None:
            raise NotFoundError("Supervisor", supervisor_id)
        return supervisor

    def _ensure_row(self, supervisor_id: str, session_id: str) -> None:
        values = {"supervisor_id": supervisor_id, "session_id": session_id, "current_load": 0}
        dialect = self._db.get_bind().dialect.name
        if dialect in _UPSERT_INSERTS:
            statement = _UPSERT_INSERTS[dialect](SupervisorLoad).values(**values)
            self._db.execute(statement.on_conflict_do_nothing(index_elements=["supervisor_id", "session_id"]))
            return

        exists = self._db.execute(
            select(SupervisorLoad.id).where(
                SupervisorLoad.supervisor_id == supervisor_id,
                SupervisorLoad.session_id == session_id,
            )
        ).scalar_one_or_none()
        if exists is not None:
            return
        try:
            with self._db.begin_nested():
                self._db.add(SupervisorLoad(**values))
        except IntegrityError:
            logger.info("Load row for supervisor %s in session %s was created concurrently", supervisor_id, session_id)

    def current_load(self, supervisor_id: str, session_id: str) -> int:
        value = self._db.execute(
            select(SupervisorLoad.current_load).where(
                SupervisorLoad.supervisor_id == supervisor_id,
                SupervisorLoad.session_id == session_id,
            )
        ).scalar_one_or_none()
        return value or 0

    def loads(self, session_id: str, supervisor_ids: Iterable[str]) -> dict[str, int]:
        ids = list(supervisor_ids)
        if not ids:
            return {}
        rows = self._db.execute(
            select(SupervisorLoad.supervisor_id, SupervisorLoad.current_load).where(
                SupervisorLoad.session_id == session_id,
                SupervisorLoad.supervisor_id.in_(ids),
            )
        ).all()
        found = {supervisor_id: load for supervisor_id, load in rows}
        return {supervisor_id: found.get(supervisor_id, 0) for supervisor_id in ids}

    def has_capacity(self, supervisor_id: str, session_id: str) -> bool:
        supervisor = self._get_supervisor(supervisor_id)
        if not supervisor.is_active:
            return False
        return self.current_load(supervisor_id, session_id) < supervisor.capacity

    def reserve(self, supervisor_id: str, session_id: str) -> int:
        supervisor = self._get_supervisor(supervisor_id)
        if not supervisor.is_active:
            raise CapacityExceededError(
                f"Supervisor {supervisor.name} is inactive and cannot take students",
                details={"supervisor_id": supervisor_id},
            )
        self._ensure_row(supervisor_id, session_id)

        capacity = (
            select(Supervisor.capacity)
            .where(Supervisor.id == SupervisorLoad.supervisor_id)
            .correlate(SupervisorLoad)
            .scalar_subquery()
        )
        # Compare-and-write: a concurrent reservation of the last slot makes this a no-op.
        result = self._db.execute(
            update(SupervisorLoad)
            .where(
                SupervisorLoad.supervisor_id == supervisor_id,
                SupervisorLoad.session_id == session_id,
                SupervisorLoad.current_load < capacity,
            )
            .values(current_load=SupervisorLoad.current_load + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise CapacityExceededError(
                f"Supervisor {supervisor.name} has reached capacity ({supervisor.capacity})",
                details={"supervisor_id": supervisor_id, "capacity": supervisor.capacity},
            )
        return self.current_load(supervisor_id, session_id)

    def release(self, supervisor_id: str, session_id: str) -> int:
        result = self._db.execute(
            update(SupervisorLoad)
            .where(
                SupervisorLoad.supervisor_id == supervisor_id,
                SupervisorLoad.session_id == session_id,
                SupervisorLoad.current_load > 0,
            )
            .values(current_load=SupervisorLoad.current_load - 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning(
                "Release for supervisor %s in session %s found no load to release",
                supervisor_id,
                session_id,
            )
        return self.current_load(supervisor_id, session_id)

    def _actual_counts(self, session_id: str) -> dict[str, int]:
        rows = self._db.execute(
            select(Assignment.supervisor_id, func.count(Assignment.id))
            .where(Assignment.session_id == session_id)
            .group_by(Assignment.supervisor_id)
        ).all()
        return {supervisor_id: count for supervisor_id, count in rows}

    def _cached_counts(self, session_id: str) -> dict[str, int]:
        rows = self._db.execute(
            select(SupervisorLoad.supervisor_id, SupervisorLoad.current_load).where(
                SupervisorLoad.session_id == session_id
            )
        ).all()
        return {supervisor_id: load for supervisor_id, load in rows}

    def drift(self, session_id: str) -> list[dict]:
        actual = self._actual_counts(session_id)
        cached = self._cached_counts(session_id)
        mismatches: list[dict] = []
        for supervisor_id in sorted(set(actual) | set(cached)):
            cached_value = cached.get(supervisor_id, 0)
            actual_value = actual.get(supervisor_id, 0)
            if cached_value != actual_value:
                mismatches.append(
                    {"supervisor_id": supervisor_id, "cached": cached_value, "actual": actual_value}
                )
        return mismatches

    def rebuild(self, session_id: str) -> dict[str, int]:
        """Recompute the cache from assignment rows and return the corrected entries."""
        actual = self._actual_counts(session_id)
        corrected: dict[str, int] = {}
        for item in self.drift(session_id):
            supervisor_id = item["supervisor_id"]
            self._ensure_row(supervisor_id, session_id)
            self._db.execute(
                update(SupervisorLoad)
                .where(
                    SupervisorLoad.supervisor_id == supervisor_id,
                    SupervisorLoad.session_id == session_id,
                )
                .values(current_load=actual.get(supervisor_id, 0))
                .execution_options(synchronize_session=False)
            )
            corrected[supervisor_id] = actual.get(supervisor_id, 0)
        if corrected:
            logger.warning("Rebuilt %d supervisor load(s) for session %s", len(corrected), session_id)
        return corrected
