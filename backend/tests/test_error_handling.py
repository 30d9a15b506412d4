import pytest
from fastapi.testclient import TestClient
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from student_api.config import Settings
from student_api.database import Database
from student_api.errors import StoreError, conflicting_fields
from student_api.main import create_app
from student_api.services import students as students_service

from tests.conftest import VALID_STUDENT


def drop_students_table(database):
    with database.engine.begin() as connection:
        connection.execute(text("DROP TABLE students"))


class TestStoreFailures:
    """Unexpected store errors map to 500 with an operation-specific message."""

    def test_list_failure(self, client, database):
        drop_students_table(database)

        response = client.get("/api/students")

        assert response.status_code == 500
        body = response.json()
        assert body["message"] == "Error retrieving students from database."
        assert "students" in body["error"]

    def test_filter_failure(self, client, database):
        drop_students_table(database)
        response = client.get("/api/students/filter", params={"course": "CS"})
        assert response.status_code == 500
        assert response.json()["message"] == "Error filtering students from database."

    def test_search_failure(self, client, database):
        drop_students_table(database)
        response = client.get("/api/students/search", params={"q": "maria"})
        assert response.status_code == 500
        assert response.json()["message"] == "Error searching students from database."

    def test_get_failure(self, client, database):
        drop_students_table(database)
        response = client.get("/api/students/12-34567-890")
        assert response.status_code == 500
        assert response.json()["message"] == "Error retrieving student."

    def test_create_failure(self, client, database):
        drop_students_table(database)
        response = client.post("/api/students", json=VALID_STUDENT)
        assert response.status_code == 500
        assert response.json()["message"] == "Error creating student record."

    def test_update_failure(self, client, database):
        drop_students_table(database)
        response = client.patch("/api/students/12-34567-890", json={"section": "B"})
        assert response.status_code == 500
        assert response.json()["message"] == "Error updating student record."

    def test_delete_failure(self, client, database):
        drop_students_table(database)
        response = client.delete("/api/students/12-34567-890")
        assert response.status_code == 500
        body = response.json()
        assert body["message"] == "Internal Server Error during deletion."
        assert body["error"]


class TestUnconfiguredDatabase:
    """Serverless hosting without DATABASE_URL fails per request, not at import."""

    def _client(self):
        app = create_app(Settings(deploy_env="production"), Database(None))
        return TestClient(app)

    def test_store_routes_return_500(self):
        with self._client() as client:
            response = client.get("/api/students")

        assert response.status_code == 500
        assert response.json() == {
            "message": "Database connection is not configured.",
            "error": "DATABASE_URL is not defined in environment variables.",
        }

    def test_validation_runs_before_store_access(self):
        with self._client() as client:
            response = client.post("/api/students", json={"name": "Al"})

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "name"

    def test_root_still_answers(self):
        with self._client() as client:
            assert client.get("/").status_code == 200


class TestHealth:

    def test_liveness(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_readiness_with_store(self, client):
        response = client.get("/health/ready")
        assert response.status_code == 200
        assert response.json() == {"status": "ready", "checks": {"database": "healthy"}}

    def test_readiness_without_store(self):
        app = create_app(Settings(), Database(None))
        with TestClient(app) as client:
            response = client.get("/health/ready")
        assert response.status_code == 503
        assert response.json()["reason"] == "database_unavailable"


def integrity_error(driver_message):
    return IntegrityError("INSERT INTO students", {}, Exception(driver_message))


class TestConflictingFields:
    """Uniqueness conflicts are read from the constraint, never from the offending value."""

    @pytest.mark.parametrize("driver_message, fields", [
        ("UNIQUE constraint failed: students.email", ["email"]),
        ("UNIQUE constraint failed: students.student_no", ["studentNo"]),
        ('duplicate key value violates unique constraint "uq_students_email"\n'
         "DETAIL:  Key (email)=(student_no@university.edu) already exists.", ["email"]),
        ('duplicate key value violates unique constraint "uq_students_student_no"\n'
         "DETAIL:  Key (student_no)=(23-12902-588) already exists.", ["studentNo"]),
        ("CHECK constraint failed: ck_students_course", []),
        ("NOT NULL constraint failed: students.email", []),
    ])
    def test_fields_from_driver_message(self, driver_message, fields):
        assert conflicting_fields(integrity_error(driver_message)) == fields

    def test_fields_from_real_store_violation(self, database):
        insert = text(
            "INSERT INTO students (student_no, name, course, year_level, section, email, created_at, updated_at) "
            "VALUES (:student_no, 'Maria Santos', 'CS', 2, 'A', 'maria@university.edu', "
            "CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)"
        )
        with database.engine.begin() as connection:
            connection.execute(insert, {"student_no": "23-12902-588"})

        with pytest.raises(IntegrityError) as excinfo:
            with database.engine.begin() as connection:
                connection.execute(insert, {"student_no": "11-11111-111"})

        assert conflicting_fields(excinfo.value) == ["email"]


class TestNonUniqueIntegrityFailures:
    """Integrity failures other than uniqueness are server errors, not duplicates."""

    FIELDS = {"name": "Maria Santos", "course": "CS", "yearLevel": 2, "section": "A",
              "email": "maria.santos@university.edu"}

    def _fail_commit(self, db_session, monkeypatch):
        def commit():
            raise integrity_error("CHECK constraint failed: ck_students_course")
        monkeypatch.setattr(db_session, "commit", commit)

    def test_create(self, db_session, monkeypatch):
        self._fail_commit(db_session, monkeypatch)

        with pytest.raises(StoreError) as excinfo:
            students_service.create_student(db_session, self.FIELDS)

        assert excinfo.value.status_code == 500
        assert excinfo.value.to_response() == {
            "message": "Error creating student record.",
            "error": "CHECK constraint failed: ck_students_course",
        }

    def test_update(self, db_session, monkeypatch):
        student = students_service.create_student(db_session, self.FIELDS)
        self._fail_commit(db_session, monkeypatch)

        with pytest.raises(StoreError) as excinfo:
            students_service.update_student(db_session, student.student_no, {"course": "IT"})

        assert excinfo.value.status_code == 500
        assert excinfo.value.message == "Error updating student record."
