from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.security import Caller
from app.models.activity_log import ActivityLog


def log_activity(
    db: Session,
    *,
    actor: Caller | None,
    action: str,
    session_id: str | None = None,
    entity_type: str | None = None,
    entity_id: str | None = None,
    details: dict | None = None,
) -> None:
    """Stage an audit row in the caller's transaction; a rollback discards it too.

    ``actor=None`` marks system work such as the start-up load rebuild.
    """
    db.add(
        ActivityLog(
            actor_id=actor.id if actor is not None else None,
            actor_role=actor.role.value if actor is not None else "system",
            action=action,
            session_id=session_id,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details or {},
        )
    )


def list_activity(
    db: Session,
    *,
    session_id: str | None = None,
    actor_id: str | None = None,
    action_prefix: str | None = None,
    entity_type: str | None = None,
    entity_id: str | None = None,
    limit: int = 200,
) -> list[ActivityLog]:
    query = select(ActivityLog)
    if session_id:
        query = query.where(ActivityLog.session_id == session_id)
    if actor_id:
        query = query.where(ActivityLog.actor_id == actor_id)
    if action_prefix:
        query = query.where(ActivityLog.action.startswith(action_prefix, autoescape=True))
    if entity_type:
        query = query.where(ActivityLog.entity_type == entity_type)
    if entity_id:
        query = query.where(ActivityLog.entity_id == entity_id)
    query = query.order_by(ActivityLog.created_at.desc(), ActivityLog.id).limit(limit)
    return list(db.execute(query).scalars())
