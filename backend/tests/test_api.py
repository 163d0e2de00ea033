from datetime import timedelta

from app.core.security import Caller, CallerRole, create_access_token
from app.models.supervisor import SupervisorRole
from app.services.batch_registry import batch_registry
from conftest import ADMIN, auth_headers, student_caller, supervisor_caller

COMMENT = "Solid week, documentation needs more detail."


def test_requests_without_valid_token_are_rejected(client):
    missing = client.get("/api/sessions/")
    garbage = client.get("/api/sessions/", headers={"Authorization": "Bearer not-a-token"})
    expired_token = create_access_token("admin-0001", CallerRole.admin, expires_delta=timedelta(minutes=-5))
    expired = client.get("/api/sessions/", headers={"Authorization": f"Bearer {expired_token}"})

    assert missing.status_code in {401, 403}
    assert garbage.status_code == 401
    assert expired.status_code == 401


def test_role_checks_guard_admin_routes(client):
    student = Caller(id="student-0001", role=CallerRole.student)

    response = client.post(
        "/api/sessions/",
        json={"label": "Nope", "start_date": "2026-01-05", "end_date": "2026-06-26"},
        headers=auth_headers(student),
    )

    assert response.status_code == 403


def test_session_enrollment_and_auto_assign_flow(client, seed):
    headers = auth_headers(ADMIN)
    department = seed.department()
    first = seed.supervisor(SupervisorRole.school, department=department, capacity=1)
    second = seed.supervisor(SupervisorRole.school, department=department, capacity=1)
    students = [seed.student(department) for _ in range(2)]

    created = client.post(
        "/api/sessions/",
        json={"label": "2026 SIWES", "start_date": "2026-01-05", "end_date": "2026-04-03", "total_weeks": 12},
        headers=headers,
    )
    assert created.status_code == 201
    session_id = created.json()["id"]

    enrolled = client.post(
        f"/api/sessions/{session_id}/enrollments/bulk",
        json={"student_ids": [student.id for student in students]},
        headers=headers,
    )
    assert enrolled.status_code == 200
    assert enrolled.json()["successCount"] == 2

    preview = client.post(
        "/api/assignments/auto",
        json={"session_id": session_id, "role": "school", "dry_run": True},
        headers=headers,
    )
    assert preview.status_code == 200
    assert preview.json()["dryRun"] is True
    assert client.get("/api/assignments/", params={"session_id": session_id}, headers=headers).json() == []

    applied = client.post(
        "/api/assignments/auto",
        json={"session_id": session_id, "role": "school", "batch_id": "batch-1"},
        headers=headers,
    )
    body = applied.json()
    assert applied.status_code == 200
    assert body["batchId"] == "batch-1"
    assert body["successCount"] == 2
    assert body["failureCount"] == 0
    assert batch_registry.running() == []

    workload = client.get("/api/assignments/workload", params={"session_id": session_id}, headers=headers)
    assert {item["supervisor_id"]: item["current_load"] for item in workload.json()} == {first.id: 1, second.id: 1}

    rebuilt = client.post("/api/assignments/loads/rebuild", params={"session_id": session_id}, headers=headers)
    assert rebuilt.json() == {"session_id": session_id, "corrected": {}}

    again = client.post(
        "/api/sessions/",
        json={"label": "Overlapping", "start_date": "2026-03-01", "end_date": "2026-05-01"},
        headers=headers,
    )
    assert again.status_code == 409
    assert again.json()["error"] == "InvalidState"


def test_cancel_unknown_batch_returns_not_found(client):
    response = client.post("/api/assignments/auto/unknown/cancel", headers=auth_headers(ADMIN))

    assert response.status_code == 404


def test_logbook_review_flow_over_http(client, seed):
    department = seed.department()
    school = seed.supervisor(SupervisorRole.school, department=department)
    industry = seed.supervisor(SupervisorRole.industry)
    session = seed.session(total_weeks=2)
    student = seed.student(department)
    seed.enroll(student, session)
    seed.assign(student, session, school)
    seed.assign(student, session, industry)
    student_headers = auth_headers(student_caller(student))
    school_headers = auth_headers(supervisor_caller(school))
    industry_headers = auth_headers(supervisor_caller(industry))

    weeks = client.get("/api/logbook/weeks", params={"session_id": session.id}, headers=student_headers).json()
    assert [week["week_number"] for week in weeks] == [1, 2]
    week_id = weeks[0]["id"]

    saved = client.put(
        f"/api/logbook/weeks/{week_id}/entries/monday",
        json={"content": "Installed the rack switches."},
        headers=student_headers,
    )
    assert saved.status_code == 200
    assert saved.json()["entries"] == {"monday": "Installed the rack switches."}

    submitted = client.post(f"/api/logbook/weeks/{week_id}/request-review", headers=student_headers)
    assert submitted.json()["status"] == "submitted"

    commented = client.post(
        f"/api/reviews/weeks/{week_id}/comments",
        json={"text": COMMENT},
        headers=industry_headers,
    )
    assert commented.status_code == 201
    assert commented.json()["author_role"] == "industry"

    detail = client.get(f"/api/reviews/weeks/{week_id}", headers=school_headers).json()
    assert detail["status"] == "locked"
    assert [item["text"] for item in detail["comments"]] == [COMMENT]

    edit_locked = client.put(
        f"/api/logbook/weeks/{week_id}/entries/tuesday",
        json={"content": "Late entry"},
        headers=student_headers,
    )
    assert edit_locked.status_code == 409

    denied = client.post(f"/api/reviews/weeks/{week_id}/unlock", headers=industry_headers)
    assert denied.status_code == 403
    assert denied.json()["error"] == "Forbidden"

    unlocked = client.post(f"/api/reviews/weeks/{week_id}/unlock", headers=school_headers)
    assert unlocked.status_code == 200
    assert unlocked.json()["status"] == "submitted"

    locked = client.post(
        f"/api/reviews/weeks/{week_id}/lock",
        json={"reason": "Week closed"},
        headers=school_headers,
    )
    assert locked.json()["lock_reason"] == "Week closed"

    activity = client.get(
        "/api/activity/logs",
        params={"session_id": session.id, "action": "logbook."},
        headers=auth_headers(ADMIN),
    )
    assert activity.status_code == 200
    assert {item["action"] for item in activity.json()} == {
        "logbook.request_review",
        "logbook.comment",
        "logbook.unlock",
        "logbook.lock",
    }
    assert {item["actor_role"] for item in activity.json()} == {"student", "industry_supervisor", "school_supervisor"}


def test_final_evaluation_over_http(client, seed):
    department = seed.department()
    school = seed.supervisor(SupervisorRole.school, department=department)
    session = seed.session()
    student = seed.student(department)
    seed.enroll(student, session)
    seed.assign(student, session, school)
    payload = {"student_id": student.id, "session_id": session.id, "comment": COMMENT, "rating": 4}

    created = client.post("/api/evaluations/", json=payload, headers=auth_headers(supervisor_caller(school)))
    duplicate = client.post("/api/evaluations/", json=payload, headers=auth_headers(supervisor_caller(school)))
    from_student = client.post("/api/evaluations/", json=payload, headers=auth_headers(student_caller(student)))

    assert created.status_code == 201
    assert created.json()["rating"] == 4
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "DuplicateEvaluation"
    assert from_student.status_code == 403

    listed = client.get(
        "/api/evaluations/",
        params={"student_id": student.id, "session_id": session.id},
        headers=auth_headers(student_caller(student)),
    )
    assert [item["author_role"] for item in listed.json()] == ["school"]


def test_oversized_bodies_are_rejected_and_bulk_routes_get_more_room(client, seed):
    headers = auth_headers(ADMIN)
    session = seed.session()
    padding = "x" * 300_000

    single = client.post(
        f"/api/sessions/{session.id}/enrollments",
        json={"student_id": padding},
        headers=headers,
    )
    bulk = client.post(
        f"/api/sessions/{session.id}/enrollments/bulk",
        json={"student_ids": ["missing", padding[:36]]},
        headers=headers,
    )

    assert single.status_code == 413
    assert single.json()["error"] == "InvalidInput"
    assert bulk.status_code == 200
    assert bulk.json()["failureCount"] == 2


def test_responses_carry_request_id_and_security_headers(client, seed):
    department = seed.department()
    session = seed.session()
    student = seed.student(department)
    seed.enroll(student, session)

    response = client.get(
        "/api/logbook/weeks",
        params={"session_id": session.id},
        headers={**auth_headers(student_caller(student)), "X-Request-ID": "req-42"},
    )

    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == "req-42"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["Cache-Control"] == "no-store"


def test_supervisor_review_queue_over_http(client, seed):
    department = seed.department()
    school = seed.supervisor(SupervisorRole.school, department=department)
    other_school = seed.supervisor(SupervisorRole.school, department=department)
    session = seed.session(total_weeks=2)
    student, other_student = seed.student(department), seed.student(department)
    for enrolled, supervisor in ((student, school), (other_student, other_school)):
        seed.enroll(enrolled, session)
        seed.assign(enrolled, session, supervisor)
    student_headers = auth_headers(student_caller(student))
    school_headers = auth_headers(supervisor_caller(school))

    weeks = client.get("/api/logbook/weeks", params={"session_id": session.id}, headers=student_headers).json()
    client.post(f"/api/logbook/weeks/{weeks[1]['id']}/request-review", headers=student_headers)

    students = client.get("/api/reviews/students", params={"session_id": session.id}, headers=school_headers)
    pending = client.get("/api/reviews/pending", params={"session_id": session.id}, headers=school_headers)
    other_pending = client.get(
        "/api/reviews/pending",
        params={"session_id": session.id},
        headers=auth_headers(supervisor_caller(other_school)),
    )
    from_student = client.get("/api/reviews/pending", params={"session_id": session.id}, headers=student_headers)

    assert students.status_code == 200
    assert [item["id"] for item in students.json()] == [student.id]
    assert [(item["id"], item["status"]) for item in pending.json()] == [(weeks[1]["id"], "submitted")]
    assert other_pending.json() == []
    assert from_student.status_code == 403


def test_duplicate_running_batch_id_is_rejected(client, seed):
    session = seed.session()
    batch_registry.start("nightly")

    response = client.post(
        "/api/assignments/auto",
        json={"session_id": session.id, "role": "school", "batch_id": "nightly"},
        headers=auth_headers(ADMIN),
    )

    assert response.status_code == 409
    assert response.json()["error"] == "InvalidState"
    assert batch_registry.running() == ["nightly"]


def test_evaluation_limits_come_from_settings(client, seed):
    department = seed.department()
    school = seed.supervisor(SupervisorRole.school, department=department)
    session = seed.session()
    student = seed.student(department)
    seed.enroll(student, session)
    seed.assign(student, session, school)
    headers = auth_headers(supervisor_caller(school))
    payload = {"student_id": student.id, "session_id": session.id, "comment": COMMENT}

    bad_rating = client.post("/api/evaluations/", json={**payload, "rating": 9}, headers=headers)
    short_comment = client.post("/api/evaluations/", json={**payload, "comment": "Too short"}, headers=headers)

    assert bad_rating.status_code == 422
    assert bad_rating.json()["error"] == "InvalidInput"
    assert bad_rating.json()["details"] == {"rating": 9}
    assert short_comment.status_code == 422
    assert short_comment.json()["error"] == "InvalidInput"
