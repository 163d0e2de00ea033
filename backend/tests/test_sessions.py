from datetime import date

from sqlalchemy import func, select

from app.core.exceptions import ErrorKind
from app.models.enrollment import EnrollmentStatus
from app.models.logbook import LogbookWeek
from app.models.supervisor import SupervisorRole
from app.schemas.supervisor import SupervisorCreate
from app.services.capacity import CapacityDirectory
from conftest import ADMIN, student_caller


def test_create_session_defaults_to_configured_weeks(workflow):
    result = workflow.create_session(
        ADMIN, label="2026/2027 SIWES", start_date=date(2026, 1, 5), end_date=date(2026, 6, 26)
    )

    assert result.ok
    assert result.value.total_weeks == 24
    assert result.value.status.value == "open"


def test_create_session_validates_input(seed, workflow):
    backwards = workflow.create_session(
        ADMIN, label="Backwards", start_date=date(2026, 6, 1), end_date=date(2026, 1, 1)
    )
    too_long = workflow.create_session(
        ADMIN, label="Too long", start_date=date(2026, 1, 1), end_date=date(2027, 6, 1), total_weeks=53
    )
    not_admin = workflow.create_session(
        student_caller(seed.student(seed.department())), label="Nope", start_date=date(2026, 1, 1), end_date=date(2026, 6, 1)
    )

    assert backwards.error.kind == ErrorKind.invalid_input
    assert too_long.error.kind == ErrorKind.invalid_input
    assert not_admin.error.kind == ErrorKind.forbidden


def test_only_one_open_session_per_date_range(workflow):
    first = workflow.create_session(
        ADMIN, label="First", start_date=date(2026, 1, 5), end_date=date(2026, 6, 26)
    ).unwrap()

    overlapping = workflow.create_session(
        ADMIN, label="Overlap", start_date=date(2026, 6, 1), end_date=date(2026, 12, 1)
    )
    later = workflow.create_session(
        ADMIN, label="Later", start_date=date(2026, 7, 1), end_date=date(2026, 12, 1)
    )
    assert overlapping.error.kind == ErrorKind.invalid_state
    assert later.ok

    assert workflow.close_session(ADMIN, first.id).ok
    after_close = workflow.create_session(
        ADMIN, label="Overlap again", start_date=date(2026, 2, 1), end_date=date(2026, 6, 1)
    )
    assert after_close.ok


def test_closed_is_terminal(seed, workflow):
    session = seed.session()

    assert workflow.close_session(ADMIN, session.id).ok
    again = workflow.close_session(ADMIN, session.id)

    assert again.error.kind == ErrorKind.invalid_state


def test_enroll_twice_is_rejected(seed, workflow):
    department = seed.department()
    session = seed.session()
    student = seed.student(department)
    seed.enroll(student, session)

    result = workflow.enroll_student(ADMIN, student_id=student.id, session_id=session.id)

    assert result.error.kind == ErrorKind.invalid_state


def test_withdrawal_releases_assignments_and_reenrollment_keeps_weeks(db, seed, workflow):
    department = seed.department()
    school = seed.supervisor(SupervisorRole.school, department=department)
    industry = seed.supervisor(SupervisorRole.industry)
    session = seed.session(total_weeks=5)
    student = seed.student(department)
    enrollment = seed.enroll(student, session)
    seed.assign(student, session, school)
    seed.assign(student, session, industry)

    withdrawn = workflow.withdraw_enrollment(ADMIN, enrollment.id)
    assert withdrawn.ok
    assert withdrawn.value.status == EnrollmentStatus.withdrawn
    directory = CapacityDirectory(db)
    assert directory.loads(session.id, [school.id, industry.id]) == {school.id: 0, industry.id: 0}
    assert directory.drift(session.id) == []

    assert workflow.withdraw_enrollment(ADMIN, enrollment.id).error.kind == ErrorKind.invalid_state

    reenrolled = workflow.enroll_student(ADMIN, student_id=student.id, session_id=session.id)
    assert reenrolled.ok
    assert reenrolled.value.id == enrollment.id
    assert reenrolled.value.status == EnrollmentStatus.active
    week_count = db.execute(
        select(func.count(LogbookWeek.id)).where(
            LogbookWeek.student_id == student.id,
            LogbookWeek.session_id == session.id,
        )
    ).scalar_one()
    assert week_count == 5


def test_bulk_enrollment_isolates_failures(seed, workflow):
    department = seed.department()
    session = seed.session()
    first, second = seed.student(department), seed.student(department)

    manifest = workflow.bulk_enroll_students(
        ADMIN, session_id=session.id, student_ids=[first.id, "missing-student", second.id, first.id]
    ).unwrap()

    assert manifest.success_count == 2
    assert [item["student_id"] for item in manifest.succeeded] == [first.id, second.id]
    assert [(item.item["student_id"], item.reason) for item in manifest.failed] == [
        ("missing-student", ErrorKind.not_found),
        (first.id, ErrorKind.invalid_input),
    ]


def test_bulk_supervisor_import_and_deactivation(seed, workflow):
    department = seed.department()
    session = seed.session()
    student = seed.student(department)
    seed.enroll(student, session)

    manifest = workflow.bulk_create_supervisors(
        ADMIN,
        [
            SupervisorCreate(name="Dr Ada Obi", email="ada@example.com", role="school", department_id=department.id),
            SupervisorCreate(name="Dr Ada Twin", email="ADA@example.com", role="school", department_id=department.id),
            SupervisorCreate(name="Eng Bola", email="bola@example.com", role="school", department_id="missing"),
            SupervisorCreate(name="Mr Chidi", email="chidi@example.com", role="industry"),
        ],
    ).unwrap()

    assert manifest.success_count == 2
    assert [item.item["email"] for item in manifest.failed] == ["ADA@example.com", "bola@example.com"]
    assert {item.reason for item in manifest.failed} == {ErrorKind.invalid_input}

    school_id = manifest.succeeded[0]["supervisor_id"]
    assert workflow.deactivate_supervisor(ADMIN, school_id).ok
    assert workflow.deactivate_supervisor(ADMIN, school_id).error.kind == ErrorKind.invalid_state

    auto = workflow.auto_assign(ADMIN, session_id=session.id, role=SupervisorRole.school).unwrap()
    assert auto.failed[0].reason == ErrorKind.no_eligible_supervisor
