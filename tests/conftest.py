"""
Test configuration and fixtures
"""
import os
import tempfile

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set testing environment before the app reads it
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-jwt-secret-key-for-testing-only-0123456789"
os.environ["JWT_EXPIRE_MINUTES"] = "60"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "S"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="lms-uploads-")
os.environ["SEED_COURSES"] = "false"
os.environ["MAX_UPLOAD_BYTES"] = "1024"
os.environ["CORS_ORIGINS"] = "http://localhost:3000,http://localhost:5173"

from db import Base, get_db  # noqa: E402
from main import app  # noqa: E402
from models import Course, User  # noqa: E402
from payments import get_gateway_client  # noqa: E402
from security import hash_password, issue_token  # noqa: E402

test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(bind=test_engine, autocommit=False, autoflush=False)


class FakeOrders:
    def __init__(self):
        self.created = []
        self.fail = False

    def create(self, data):
        if self.fail:
            raise RuntimeError("gateway down")
        self.created.append(data)
        return {
            "id": f"order_{len(self.created)}",
            "entity": "order",
            "amount": data["amount"],
            "currency": data["currency"],
            "receipt": data.get("receipt"),
            "status": "created",
        }


class FakeGateway:
    """Stands in for razorpay.Client in tests."""

    def __init__(self):
        self.order = FakeOrders()


@pytest.fixture
def db_session():
    """Fresh database for each test"""
    Base.metadata.create_all(bind=test_engine)
    session = TestSessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def session_factory(db_session):
    """Extra sessions for tests that interleave two requests by hand"""
    sessions = []

    def _open():
        session = TestSessionLocal()
        sessions.append(session)
        return session

    yield _open
    for session in sessions:
        session.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(db_session, gateway):
    """Test client with database and payment gateway overrides"""
    def override_get_db():
        db = TestSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway_client] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_course(db_session):
    def _make(price=1000, title="Course"):
        course = Course(
            title=title,
            description=f"{title} description",
            instructor="Instructor",
            duration="4 weeks",
            price=price,
            thumbnail=None,
            content=["lesson-1", "lesson-2"],
        )
        db_session.add(course)
        db_session.commit()
        db_session.refresh(course)
        return course
    return _make


@pytest.fixture
def test_user(db_session):
    user = User(
        username="alice",
        email="alice@example.com",
        hashed_password=hash_password("correct-horse"),
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def auth_headers(test_user):
    return {"Authorization": f"Bearer {issue_token(test_user.id)}"}
