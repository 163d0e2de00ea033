from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import InvalidInputError, InvalidStateError, WorkflowError
from app.models.department import Department
from app.models.supervisor import Supervisor, SupervisorRole
from app.schemas.supervisor import SupervisorCreate
from app.services.lookups import get_supervisor
from app.services.results import BatchManifest

logger = logging.getLogger(__name__)


class SupervisorRegistry:
    def __init__(self, db: Session) -> None:
        self._db = db

    def create_supervisor(self, payload: SupervisorCreate) -> Supervisor:
        email = payload.email.strip().lower()
        if payload.role == SupervisorRole.school:
            if not payload.department_id or self._db.get(Department, payload.department_id) is None:
                raise InvalidInputError(
                    "School supervisors must belong to an existing department",
                    details={"department_id": payload.department_id},
                )
        existing = self._db.execute(select(Supervisor.id).where(Supervisor.email == email)).scalar_one_or_none()
        if existing is not None:
            raise InvalidInputError(f"Supervisor email {email} already exists", details={"email": email})

        supervisor = Supervisor(
            name=payload.name.strip(),
            email=email,
            role=payload.role,
            department_id=payload.department_id if payload.role == SupervisorRole.school else None,
            placement_organization_id=payload.placement_organization_id,
            capacity=payload.capacity,
            is_active=True,
        )
        self._db.add(supervisor)
        try:
            self._db.flush()
        except IntegrityError as exc:
            raise InvalidInputError(f"Supervisor email {email} already exists", details={"email": email}) from exc
        return supervisor

    def bulk_create_supervisors(self, items: Iterable[SupervisorCreate]) -> BatchManifest:
        manifest = BatchManifest()
        for payload in items:
            item = {"email": payload.email, "role": payload.role.value}
            try:
                supervisor = self.create_supervisor(payload)
                supervisor_id = supervisor.id
                self._db.commit()
            except WorkflowError as exc:
                self._db.rollback()
                manifest.record_failure(item, exc.kind, exc.message)
                continue
            manifest.record_success({**item, "supervisor_id": supervisor_id})

        logger.info(
            "Bulk supervisor import: %d created, %d failed",
            manifest.success_count,
            manifest.failure_count,
        )
        return manifest

    def deactivate_supervisor(self, supervisor_id: str) -> Supervisor:
        supervisor = get_supervisor(self._db, supervisor_id)
        if not supervisor.is_active:
            raise InvalidStateError(
                f"Supervisor {supervisor.name} is already inactive",
                details={"supervisor_id": supervisor_id},
            )
        supervisor.is_active = False
        self._db.flush()
        logger.info("Deactivated %s supervisor %s", supervisor.role.value, supervisor.id)
        return supervisor

    def list_supervisors(self, role: SupervisorRole | None = None, include_inactive: bool = False) -> list[Supervisor]:
        query = select(Supervisor)
        if role is not None:
            query = query.where(Supervisor.role == role)
        if not include_inactive:
            query = query.where(Supervisor.is_active.is_(True))
        return list(self._db.execute(query.order_by(Supervisor.name, Supervisor.id)).scalars())
