import pytest
from sqlalchemy import select, update

from app.core.exceptions import CapacityExceededError
from app.models.supervisor import SupervisorLoad, SupervisorRole
from app.services.capacity import CapacityDirectory
from conftest import ADMIN


def test_reserve_increments_until_capacity(db, seed):
    department = seed.department()
    supervisor = seed.supervisor(SupervisorRole.school, department=department, capacity=2)
    session = seed.session()
    directory = CapacityDirectory(db)

    assert directory.current_load(supervisor.id, session.id) == 0
    assert directory.reserve(supervisor.id, session.id) == 1
    assert directory.reserve(supervisor.id, session.id) == 2
    assert directory.has_capacity(supervisor.id, session.id) is False

    with pytest.raises(CapacityExceededError):
        directory.reserve(supervisor.id, session.id)
    assert directory.current_load(supervisor.id, session.id) == 2


def test_zero_capacity_supervisor_cannot_reserve(db, seed):
    department = seed.department()
    supervisor = seed.supervisor(SupervisorRole.school, department=department, capacity=0)
    session = seed.session()

    with pytest.raises(CapacityExceededError):
        CapacityDirectory(db).reserve(supervisor.id, session.id)


def test_inactive_supervisor_has_no_capacity(db, seed):
    department = seed.department()
    supervisor = seed.supervisor(SupervisorRole.school, department=department, capacity=5)
    session = seed.session()
    supervisor.is_active = False
    db.commit()

    directory = CapacityDirectory(db)
    assert directory.has_capacity(supervisor.id, session.id) is False
    with pytest.raises(CapacityExceededError):
        directory.reserve(supervisor.id, session.id)


def test_release_never_goes_below_zero(db, seed):
    department = seed.department()
    supervisor = seed.supervisor(SupervisorRole.school, department=department)
    session = seed.session()
    directory = CapacityDirectory(db)

    assert directory.release(supervisor.id, session.id) == 0
    directory.reserve(supervisor.id, session.id)
    assert directory.release(supervisor.id, session.id) == 0
    assert directory.release(supervisor.id, session.id) == 0


def test_reserve_reuses_load_row_created_by_another_request(db, seed, session_factory):
    department = seed.department()
    supervisor = seed.supervisor(SupervisorRole.school, department=department, capacity=3)
    session = seed.session()
    other = session_factory()
    other.add(SupervisorLoad(supervisor_id=supervisor.id, session_id=session.id, current_load=1))
    other.commit()
    other.close()

    directory = CapacityDirectory(db)
    assert directory.reserve(supervisor.id, session.id) == 2
    db.commit()

    rows = db.execute(select(SupervisorLoad).where(SupervisorLoad.supervisor_id == supervisor.id)).scalars().all()
    assert [row.current_load for row in rows] == [2]


def test_loads_are_scoped_per_session(db, seed):
    department = seed.department()
    supervisor = seed.supervisor(SupervisorRole.school, department=department, capacity=1)
    first = seed.session()
    second = seed.session()
    directory = CapacityDirectory(db)

    directory.reserve(supervisor.id, first.id)
    assert directory.reserve(supervisor.id, second.id) == 1
    assert directory.loads(first.id, [supervisor.id]) == {supervisor.id: 1}


def test_rebuild_corrects_drifted_cache(db, seed):
    department = seed.department()
    supervisor = seed.supervisor(SupervisorRole.school, department=department)
    session = seed.session()
    student = seed.student(department)
    seed.enroll(student, session)
    seed.assign(student, session, supervisor)

    directory = CapacityDirectory(db)
    assert directory.drift(session.id) == []

    db.execute(update(SupervisorLoad).values(current_load=7))
    db.commit()
    assert directory.drift(session.id) == [{"supervisor_id": supervisor.id, "cached": 7, "actual": 1}]

    assert directory.rebuild(session.id) == {supervisor.id: 1}
    db.commit()
    assert directory.drift(session.id) == []
    assert directory.current_load(supervisor.id, session.id) == 1


def test_load_matches_assignments_after_mixed_operations(db, seed, workflow):
    department = seed.department()
    first = seed.supervisor(SupervisorRole.school, department=department, capacity=3)
    second = seed.supervisor(SupervisorRole.school, department=department, capacity=3)
    session = seed.session()
    students = [seed.student(department) for _ in range(5)]
    enrollments = [seed.enroll(student, session) for student in students]

    removed = seed.assign(students[0], session, first)
    seed.assign(students[1], session, first)
    seed.assign(students[2], session, second)
    directory = CapacityDirectory(db)
    assert directory.drift(session.id) == []

    assert workflow.remove_assignment(ADMIN, removed.id).ok
    assert directory.drift(session.id) == []

    assert workflow.withdraw_enrollment(ADMIN, enrollments[1].id).ok
    assert directory.drift(session.id) == []

    manifest = workflow.auto_assign(ADMIN, session_id=session.id, role=SupervisorRole.school).unwrap()
    assert manifest.success_count == 3
    assert directory.drift(session.id) == []
    assert directory.loads(session.id, [first.id, second.id]) == {first.id: 2, second.id: 2}
