import os

# The app module builds its engine at import time; keep it off any real database.
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"

import uuid  # noqa: E402
from datetime import date, timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.api.deps import get_db  # noqa: E402
from app.core.security import Caller, CallerRole, create_access_token  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.main import app  # noqa: E402
from app.models.department import Department, PlacementOrganization  # noqa: E402
from app.models.internship_session import InternshipSession, SessionStatus  # noqa: E402
from app.models.student import Student  # noqa: E402
from app.models.supervisor import Supervisor, SupervisorRole  # noqa: E402
from app.services.batch_registry import batch_registry  # noqa: E402
from app.services.workflow import WorkflowEngine  # noqa: E402

ADMIN = Caller(id="admin-0001", role=CallerRole.admin)


def supervisor_caller(supervisor: Supervisor) -> Caller:
    role = CallerRole.school_supervisor if supervisor.role == SupervisorRole.school else CallerRole.industry_supervisor
    return Caller(id=supervisor.id, role=role)


def student_caller(student: Student) -> Caller:
    return Caller(id=student.id, role=CallerRole.student)


def auth_headers(caller: Caller) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(caller.id, caller.role)}"}


class Seeder:
    """Writes reference rows directly and workflow rows through the engine."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self._counter = 0

    def _next(self) -> int:
        self._counter += 1
        return self._counter

    def department(self, code: str | None = None) -> Department:
        number = self._next()
        department = Department(name=f"Department {number}", code=code or f"D{number:03d}")
        self.db.add(department)
        self.db.commit()
        return department

    def organization(self, name: str | None = None) -> PlacementOrganization:
        organization = PlacementOrganization(name=name or f"Organization {self._next()}")
        self.db.add(organization)
        self.db.commit()
        return organization

    def student(self, department: Department, organization: PlacementOrganization | None = None) -> Student:
        number = self._next()
        student = Student(
            name=f"Student {number}",
            email=f"student{number}@example.com",
            matric_number=f"MAT/{number:05d}",
            department_id=department.id,
            placement_organization_id=organization.id if organization else None,
        )
        self.db.add(student)
        self.db.commit()
        return student

    def supervisor(
        self,
        role: SupervisorRole,
        *,
        department: Department | None = None,
        organization: PlacementOrganization | None = None,
        capacity: int = 10,
        supervisor_id: str | None = None,
    ) -> Supervisor:
        number = self._next()
        supervisor = Supervisor(
            id=supervisor_id or str(uuid.uuid4()),
            name=f"Supervisor {number}",
            email=f"supervisor{number}@example.com",
            role=role,
            department_id=department.id if department else None,
            placement_organization_id=organization.id if organization else None,
            capacity=capacity,
        )
        self.db.add(supervisor)
        self.db.commit()
        return supervisor

    def session(self, *, total_weeks: int = 4, start: date | None = None) -> InternshipSession:
        number = self._next()
        start_date = start or date(2026, 1, 5) + timedelta(days=400 * number)
        session = InternshipSession(
            label=f"SIWES {number}",
            start_date=start_date,
            end_date=start_date + timedelta(weeks=total_weeks),
            total_weeks=total_weeks,
            status=SessionStatus.open,
        )
        self.db.add(session)
        self.db.commit()
        return session

    def enroll(self, student: Student, session: InternshipSession):
        return WorkflowEngine(self.db).enroll_student(ADMIN, student_id=student.id, session_id=session.id).unwrap()

    def assign(self, student: Student, session: InternshipSession, supervisor: Supervisor):
        return (
            WorkflowEngine(self.db)
            .manual_assign(
                ADMIN,
                student_id=student.id,
                session_id=session.id,
                supervisor_id=supervisor.id,
                role=supervisor.role,
            )
            .unwrap()
        )


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def seed(db) -> Seeder:
    return Seeder(db)


@pytest.fixture()
def workflow(db) -> WorkflowEngine:
    return WorkflowEngine(db)


@pytest.fixture()
def client(session_factory):
    batch_registry.clear()

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    batch_registry.clear()
