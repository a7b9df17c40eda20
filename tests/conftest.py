import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")
os.environ.setdefault("ESCALATION_SCHEDULER_ENABLED", "false")
os.environ.setdefault("SUPER_ADMIN_EMAILS", "superadmin@nitjsr.ac.in")

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models
from database import Base, get_db
from dependencies import resolve_user
from main import app
from security import JWT_ALGORITHM, JWT_SECRET

# Use in-memory SQLite for testing to ensure isolation and speed
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

STUDENT_EMAIL = "2024ugcs001@nitjsr.ac.in"
OTHER_STUDENT_EMAIL = "2023ugec042@nitjsr.ac.in"
HOSTEL_ADMIN_EMAIL = "hostel.warden@nitjsr.ac.in"
OTHER_HOSTEL_ADMIN_EMAIL = "chiefwarden@nitjsr.ac.in"
MESS_ADMIN_EMAIL = "mess@nitjsr.ac.in"
SUPER_ADMIN_EMAIL = "superadmin@nitjsr.ac.in"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


# Override the application's dependency to use the test database
app.dependency_overrides[get_db] = override_get_db


def make_token(email: str) -> str:
    return jwt.encode({"email": email}, JWT_SECRET, algorithm=JWT_ALGORITHM)


def auth_headers(email: str) -> dict:
    return {"Authorization": f"Bearer {make_token(email)}"}


@pytest.fixture(scope="function")
def test_db():
    # Create the database schema before each test
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    yield db
    db.close()
    # Drop the database schema after each test to ensure a clean state
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function", autouse=True)
def reset_rate_limiter():
    from rate_limiter import limiter

    limiter._storage.reset()


@pytest.fixture(scope="function")
def client(test_db):
    # The test_db fixture is requested to ensure the database is initialized
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_user(test_db):
    def _make(email: str) -> models.User:
        return resolve_user(test_db, email)

    return _make


@pytest.fixture
def student(make_user):
    return make_user(STUDENT_EMAIL)


@pytest.fixture
def hostel_admin(make_user):
    return make_user(HOSTEL_ADMIN_EMAIL)


@pytest.fixture
def other_hostel_admin(make_user):
    return make_user(OTHER_HOSTEL_ADMIN_EMAIL)


@pytest.fixture
def super_admin(make_user):
    return make_user(SUPER_ADMIN_EMAIL)
