import pytest
import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SEED_DEFAULT_POLICIES"] = "false"

from leaveflow.database import Base, get_db, init_db
from leaveflow.main import app
from fastapi.testclient import TestClient

# SQLite in-memory database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def engine():
    """Fresh in-memory schema per test."""
    engine = create_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()

@pytest.fixture(scope="function")
def db_session(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()

@pytest.fixture(scope="function")
def policies(db_session):
    """Default annual/sick/personal policies."""
    from leaveflow.core.init_system import seed_default_policies
    seed_default_policies(db_session)
    return db_session

@pytest.fixture(scope="function")
def department(db_session):
    from leaveflow.models.department import Department
    dept = Department(name="Engineering", code="ENG")
    db_session.add(dept)
    db_session.commit()
    return dept

@pytest.fixture(scope="function")
def make_employee(db_session, department):
    from leaveflow.models.employee import Employee
    from leaveflow.services.directory import register_employee

    def _make_employee(role, name=None, manager_id=None):
        role_value = getattr(role, "value", role)
        count = db_session.query(Employee).count()
        employee = register_employee(
            db_session,
            name=name or f"{role_value.title()} {count + 1}",
            email=f"{role_value}{count + 1}@example.com",
            role=role,
            department_id=department.id,
            manager_id=manager_id,
        )
        db_session.commit()
        return employee
    return _make_employee

@pytest.fixture(scope="function")
def staff(make_employee):
    """One employee per role, the regular employee reporting to the line manager."""
    from leaveflow.models.employee import UserRole
    manager = make_employee(UserRole.LINE_MANAGER)
    return {
        "hr": make_employee(UserRole.HR),
        "admin": make_employee(UserRole.ADMIN),
        "manager": manager,
        "employee": make_employee(UserRole.EMPLOYEE, manager_id=manager.id),
    }

@pytest.fixture(scope="function")
def service(db_session):
    from leaveflow.services.leave_service import LeaveWorkflowService
    return LeaveWorkflowService(db_session)

@pytest.fixture(scope="function")
def client(db_session):
    """Get a TestClient that uses the test database session via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass
            
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
