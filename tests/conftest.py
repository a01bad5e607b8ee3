"""Shared fixtures.

The database URL must be set before any satprep module is imported, so
the environment is configured at module import time.
"""

import os
import tempfile
import uuid

TEST_DB_PATH = os.path.join(tempfile.gettempdir(), "test_satprep.db")
if os.path.exists(TEST_DB_PATH):
    os.remove(TEST_DB_PATH)

os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_PATH}"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest


@pytest.fixture(scope="session")
def client():
    from fastapi.testclient import TestClient
    from satprep.index import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db():
    from satprep.database import get_db, init_database

    init_database()
    with get_db() as session:
        yield session


@pytest.fixture
def user(db):
    """A learner stored directly in the database, for service-level tests."""
    from satprep.database import User

    learner = User(
        email=f"service-{uuid.uuid4().hex[:8]}@example.com",
        password_hash="not-a-real-hash",
        current_level=5.0,
        auto_adjust=True,
        adjustment_speed=3,
    )
    db.add(learner)
    db.commit()
    return learner


@pytest.fixture
def auth_headers(client):
    """Register a fresh learner and return their Authorization header."""
    response = client.post(
        "/api/auth/register",
        json={"email": f"student-{uuid.uuid4().hex[:8]}@example.com", "password": "password123"},
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def topic():
    """A topic name no other test uses."""
    return f"topic-{uuid.uuid4().hex[:8]}"


@pytest.fixture
def make_question(client, auth_headers):
    def _make(topic, subject="math", difficulty="medium", correct_answer="B", **extra):
        payload = {
            "subject": subject,
            "difficulty": difficulty,
            "question_text": "Solve for x: 2x + 3 = 7",
            "options": ["A) 1", "B) 2", "C) 3", "D) 4"],
            "correct_answer": correct_answer,
            "explanation": "Subtract 3 from both sides, then divide by 2.",
            "topic": topic,
        }
        payload.update(extra)
        response = client.post("/api/questions", json=payload, headers=auth_headers)
        assert response.status_code == 200, response.text
        return response.json()

    return _make
