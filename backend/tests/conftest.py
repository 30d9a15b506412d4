"""Shared fixtures: an in-memory SQLite store and a TestClient bound to it."""

import os

# Module-level app creation in student_api.main reads these
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.pop("VERCEL_ENV", None)

import pytest
from fastapi.testclient import TestClient

from student_api.config import Settings
from student_api.database import Database
from student_api.main import create_app

TEST_DATABASE_URL = "sqlite:///:memory:"

VALID_STUDENT = {
    "name": "Maria Santos",
    "course": "CS",
    "yearLevel": 2,
    "section": "A",
    "email": "maria.santos@university.edu",
}


@pytest.fixture
def database():
    """A connected store with empty tables, discarded after the test."""
    db = Database(TEST_DATABASE_URL)
    db.connect()
    yield db
    db.dispose()


@pytest.fixture
def app(database):
    return create_app(Settings(database_url=TEST_DATABASE_URL), database)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db_session(database):
    session = database.session()
    yield session
    session.close()


@pytest.fixture
def create_student(client):
    """POST a valid student, with optional field overrides; returns the created record."""

    def _create(**overrides):
        payload = {**VALID_STUDENT, **overrides}
        response = client.post("/api/students", json=payload)
        assert response.status_code == 201, response.text
        return response.json()

    return _create
