import pytest
from sqlalchemy import func, select, update

from app.db import bootstrap
from app.models.activity_log import ActivityLog
from app.models.supervisor import SupervisorLoad, SupervisorRole
from app.services.capacity import CapacityDirectory


def _raise_error(message: str):
    raise RuntimeError(message)


def test_runtime_schema_bootstrap_raises_on_validation_failure(monkeypatch, session_factory):
    monkeypatch.setattr(bootstrap.Base.metadata, "create_all", lambda bind: None)
    monkeypatch.setattr(
        bootstrap,
        "_assert_required_columns",
        lambda bind: _raise_error("missing required schema"),
    )

    with pytest.raises(RuntimeError, match="Runtime schema compatibility bootstrap failed"):
        bootstrap.ensure_runtime_schema_compatibility(session_factory=session_factory)


def test_required_columns_are_present_after_create_all(session_factory):
    bootstrap._assert_required_columns(session_factory.kw["bind"])


def test_bootstrap_rebuilds_drifted_loads_of_open_sessions(db, seed, session_factory):
    department = seed.department()
    supervisor = seed.supervisor(SupervisorRole.school, department=department)
    session = seed.session()
    untouched = seed.session()
    student = seed.student(department)
    seed.enroll(student, session)
    seed.assign(student, session, supervisor)
    db.execute(update(SupervisorLoad).values(current_load=5))
    db.commit()

    corrections = bootstrap.rebuild_open_session_loads(session_factory)

    assert corrections == {session.id: {supervisor.id: 1}}
    db.expire_all()
    assert CapacityDirectory(db).current_load(supervisor.id, session.id) == 1
    assert CapacityDirectory(db).drift(untouched.id) == []
    audit_count = db.execute(
        select(func.count(ActivityLog.id)).where(ActivityLog.action == "capacity.rebuild")
    ).scalar_one()
    assert audit_count == 1
