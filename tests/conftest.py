"""
Pytest configuration and shared fixtures for testing the Classroom Reservation API.
"""
import os

# Configure the app before it is imported: in-memory database, no rate
# limiting, no admin bootstrap.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["RATE_LIMIT_DEFAULT"] = "10000/minute"
os.environ.pop("ADMIN_USERNAME", None)
os.environ.pop("ADMIN_PASSWORD", None)

from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base
from app.main import app
from app.deps import get_db, get_password_hash
from app.circuit_breaker import ledger_breaker
from app import models, schemas


# Use an in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def reset_breaker():
    """
    Start every test with the ledger circuit breaker closed.
    """
    ledger_breaker.close()
    yield
    ledger_breaker.close()


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    """
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    """
    Create a test client with the test database.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _make_user(db_session, username, password, role="user", status="active", nickname="使用者"):
    user = models.User(
        username=username,
        password_hash=get_password_hash(password),
        role=role,
        status=status,
        nickname=nickname,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


def _login(client, username, password):
    response = client.post(
        "/api/auth/login",
        json={"username": username, "password": password},
    )
    return response.json()["access_token"]


@pytest.fixture
def admin_user(db_session):
    """
    Create an active admin user for testing.
    """
    return _make_user(db_session, "admin", "adminpass123", role="admin", nickname="系統管理員")


@pytest.fixture
def regular_user(db_session):
    """
    Create an active regular user for testing.
    """
    return _make_user(db_session, "teacher", "teacherpass123", nickname="王老師")


@pytest.fixture
def other_user(db_session):
    """
    Create a second active regular user for testing.
    """
    return _make_user(db_session, "colleague", "colleaguepass123", nickname="李老師")


@pytest.fixture
def pending_user(db_session):
    """
    Create a user whose registration has not been approved yet.
    """
    return _make_user(db_session, "newcomer", "newcomerpass123", status="pending", nickname="新老師")


@pytest.fixture
def admin_token(client, admin_user):
    """
    Get an admin authentication token.
    """
    return _login(client, "admin", "adminpass123")


@pytest.fixture
def regular_token(client, regular_user):
    """
    Get a regular user authentication token.
    """
    return _login(client, "teacher", "teacherpass123")


@pytest.fixture
def other_token(client, other_user):
    """
    Get the second regular user's authentication token.
    """
    return _login(client, "colleague", "colleaguepass123")


@pytest.fixture
def admin_identity(admin_user):
    return schemas.Identity.model_validate(admin_user)


@pytest.fixture
def regular_identity(regular_user):
    return schemas.Identity.model_validate(regular_user)


@pytest.fixture
def other_identity(other_user):
    return schemas.Identity.model_validate(other_user)


@pytest.fixture
def sample_classroom(db_session):
    """
    Create a sample classroom for testing.
    """
    classroom = models.Classroom(name="電腦教室A", capacity=40, color="#3b82f6")
    db_session.add(classroom)
    db_session.commit()
    db_session.refresh(classroom)
    return classroom


@pytest.fixture
def sample_classrooms(db_session):
    """
    Create multiple sample classrooms for testing.
    """
    classrooms = [
        models.Classroom(name="電腦教室A", capacity=40, color="#3b82f6"),
        models.Classroom(name="音樂教室", capacity=30, color="#f59e0b"),
        models.Classroom(name="自然實驗室", capacity=36, color="#10b981"),
    ]
    for classroom in classrooms:
        db_session.add(classroom)
    db_session.commit()
    for classroom in classrooms:
        db_session.refresh(classroom)
    return classrooms


@pytest.fixture
def sample_reservation(db_session, regular_user, sample_classroom):
    """
    Create a sample reservation held by the regular user.
    """
    reservation = models.Reservation(
        user_id=regular_user.id,
        classroom_id=sample_classroom.id,
        purpose="資訊課",
        date=date(2024, 7, 2),
        time_slot="第一節",
    )
    db_session.add(reservation)
    db_session.commit()
    db_session.refresh(reservation)
    return reservation


def get_auth_header(token: str) -> dict:
    """
    Helper function to create authorization header.
    """
    return {"Authorization": f"Bearer {token}"}
