import os

# Must be set before the application modules are imported
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = "sqlite:///./test.db"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.main import app
from app.core.database import get_db, get_redis, Base
from app.core.security import UserRole
from app.services.user_service import UserService

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

DEFAULT_PASSWORD = "Password123"

class RedisMock:
    """Dict-backed stand-in for the rate limit counter."""

    def __init__(self):
        self.data = {}

    def setex(self, key, time, value):
        self.data[key] = str(value)
        return True

    def get(self, key):
        return self.data.get(key)

    def incr(self, key):
        self.data[key] = str(int(self.data.get(key, 0)) + 1)
        return int(self.data[key])

def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

@pytest.fixture(scope="function")
def test_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)

@pytest.fixture
def redis_mock():
    return RedisMock()

@pytest.fixture
def client(test_db, redis_mock):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = lambda: redis_mock
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client
    app.dependency_overrides.clear()

@pytest.fixture
def db_session(test_db):
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

@pytest.fixture
def create_user(db_session):
    """Factory inserting users directly, bypassing the register endpoint."""
    counter = {"n": 0}

    def _create(role=UserRole.PATIENT, email=None, full_name=None, password=DEFAULT_PASSWORD, phone=None):
        counter["n"] += 1
        role = UserRole(role)
        email = email or f"{role.value}{counter['n']}@example.com"
        full_name = full_name or f"{role.value.title()} {counter['n']}"
        return UserService(db_session).create_user(
            email=email,
            password=password,
            full_name=full_name,
            role=role,
            phone=phone
        )

    return _create

@pytest.fixture
def auth_headers(client):
    """Log a user in and return the bearer header."""
    def _login(user, password=DEFAULT_PASSWORD):
        response = client.post(
            "/api/auth/login",
            json={"email": user.email, "password": password}
        )
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return _login
