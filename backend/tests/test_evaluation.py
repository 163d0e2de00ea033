import pytest

from app.core.exceptions import ErrorKind
from app.models.supervisor import SupervisorRole
from app.services.evaluation import FinalEvaluationTracker
from conftest import ADMIN, student_caller, supervisor_caller

COMMENT = "Consistent attendance and strong technical growth."


@pytest.fixture()
def evaluated(db, seed):
    department = seed.department()
    school = seed.supervisor(SupervisorRole.school, department=department)
    industry = seed.supervisor(SupervisorRole.industry)
    session = seed.session()
    student = seed.student(department)
    seed.enroll(student, session)
    seed.assign(student, session, school)
    seed.assign(student, session, industry)
    return student, session, school, industry


def test_second_evaluation_for_same_role_is_rejected(workflow, evaluated):
    student, session, school, industry = evaluated

    first = workflow.add_final_comment(
        supervisor_caller(school), student_id=student.id, session_id=session.id, comment=COMMENT, rating=4
    )
    second = workflow.add_final_comment(
        supervisor_caller(school), student_id=student.id, session_id=session.id, comment=COMMENT, rating=5
    )
    industry_result = workflow.add_final_comment(
        supervisor_caller(industry), student_id=student.id, session_id=session.id, comment=COMMENT
    )

    assert first.ok
    assert first.value.rating == 4
    assert second.error.kind == ErrorKind.duplicate_evaluation
    assert industry_result.ok
    assert industry_result.value.rating is None

    evaluations = workflow.list_final_comments(ADMIN, student_id=student.id, session_id=session.id).unwrap()
    assert sorted(item.author_role for item in evaluations) == [SupervisorRole.industry, SupervisorRole.school]


def test_concurrent_duplicate_evaluation_is_caught_by_unique_constraint(workflow, evaluated, monkeypatch):
    student, session, school, _ = evaluated
    caller = supervisor_caller(school)
    assert workflow.add_final_comment(caller, student_id=student.id, session_id=session.id, comment=COMMENT).ok

    monkeypatch.setattr(FinalEvaluationTracker, "_find", lambda self, *args: None)
    result = workflow.add_final_comment(caller, student_id=student.id, session_id=session.id, comment=COMMENT)

    assert result.error.kind == ErrorKind.duplicate_evaluation


@pytest.mark.parametrize(
    ("comment", "rating"),
    [
        (COMMENT, 0),
        (COMMENT, 6),
        ("Too short", 3),
        ("x" * 2001, 3),
    ],
)
def test_invalid_evaluation_input_is_rejected(workflow, evaluated, comment, rating):
    student, session, school, _ = evaluated

    result = workflow.add_final_comment(
        supervisor_caller(school), student_id=student.id, session_id=session.id, comment=comment, rating=rating
    )

    assert result.error.kind == ErrorKind.invalid_input


def test_only_assigned_supervisors_can_evaluate(seed, workflow, evaluated):
    student, session, _, _ = evaluated
    stranger = seed.supervisor(SupervisorRole.industry)

    from_student = workflow.add_final_comment(
        student_caller(student), student_id=student.id, session_id=session.id, comment=COMMENT
    )
    from_stranger = workflow.add_final_comment(
        supervisor_caller(stranger), student_id=student.id, session_id=session.id, comment=COMMENT
    )

    assert from_student.error.kind == ErrorKind.forbidden
    assert from_stranger.error.kind == ErrorKind.forbidden


def test_evaluation_is_allowed_after_session_closes(workflow, evaluated):
    student, session, school, _ = evaluated
    assert workflow.close_session(ADMIN, session.id).ok

    result = workflow.add_final_comment(
        supervisor_caller(school), student_id=student.id, session_id=session.id, comment=COMMENT, rating=5
    )

    assert result.ok


def test_student_reads_own_evaluations_only(seed, workflow, evaluated):
    student, session, school, _ = evaluated
    outsider = seed.student(seed.department())
    assert workflow.add_final_comment(
        supervisor_caller(school), student_id=student.id, session_id=session.id, comment=COMMENT
    ).ok

    own = workflow.list_final_comments(student_caller(student), student_id=student.id, session_id=session.id)
    other = workflow.list_final_comments(student_caller(outsider), student_id=student.id, session_id=session.id)

    assert len(own.unwrap()) == 1
    assert other.error.kind == ErrorKind.forbidden


def test_deactivated_supervisor_cannot_evaluate(workflow, evaluated):
    student, session, school, industry = evaluated
    assert workflow.deactivate_supervisor(ADMIN, school.id).ok

    result = workflow.add_final_comment(
        supervisor_caller(school), student_id=student.id, session_id=session.id, comment=COMMENT, rating=4
    )

    assert result.error.kind == ErrorKind.forbidden
    assert workflow.list_final_comments(ADMIN, student_id=student.id, session_id=session.id).unwrap() == []
