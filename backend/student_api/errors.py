"""
Domain exceptions for the student records API.

Services raise these; `student_api.error_handlers` maps each one to an
HTTP status and JSON body.
"""

from contextlib import contextmanager
from typing import List

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

NOT_FOUND_MESSAGE = "The student with the given Student Number was not found."


class StudentApiError(Exception):
    """Base exception for the student records API."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_response(self) -> dict:
        return {"message": self.message}


class RequestValidationFailed(StudentApiError):
    """One or more request-level field rules failed."""
    status_code = 400

    def __init__(self, errors: List[dict]):
        super().__init__("Request validation failed.")
        self.errors = errors

    def to_response(self) -> dict:
        return {"errors": self.errors}


class MalformedBodyError(StudentApiError):
    status_code = 400


class SearchQueryMissingError(StudentApiError):
    status_code = 400


class StoreConstraintError(StudentApiError, ValueError):
    """A value was rejected by the store's own field constraints at write time."""
    status_code = 400

    def __init__(self, field: str, message: str):
        super().__init__("Student record failed store validation.")
        self.field = field
        self.detail = message

    def to_response(self) -> dict:
        return {
            "message": self.message,
            "errors": [{"field": self.field, "message": self.detail}],
        }


class DuplicateStudentError(StudentApiError):
    """A uniqueness constraint (email or studentNo) was violated on write."""
    status_code = 400

    def __init__(self, message: str, fields: List[str], error: str = ""):
        super().__init__(message)
        self.fields = fields
        self.error = error

    def to_response(self) -> dict:
        return {"message": self.message, "fields": self.fields, "error": self.error}


class StudentNotFoundError(StudentApiError):
    status_code = 404

    def __init__(self, message: str = NOT_FOUND_MESSAGE):
        super().__init__(message)


class NoStudentsMatchError(StudentApiError):
    """A filter or search returned an empty result set."""
    status_code = 404


class StudentNoExhaustedError(StudentApiError):
    """No free student number was found within the attempt budget."""
    status_code = 500

    def __init__(self, attempts: int):
        super().__init__("Could not generate a unique student number. Try again.")
        self.attempts = attempts


class StoreError(StudentApiError):
    """Unexpected store or infrastructure failure."""
    status_code = 500

    def __init__(self, message: str, error: str = ""):
        super().__init__(message)
        self.error = error

    def to_response(self) -> dict:
        return {"message": self.message, "error": self.error}


class DatabaseNotConfiguredError(StoreError):
    def __init__(self, error: str):
        super().__init__("Database connection is not configured.", error)


# Column name -> API field name, for reporting uniqueness conflicts
UNIQUE_FIELDS = {"student_no": "studentNo", "email": "email"}

# How each driver names a violated unique column: the constraint name
# (PostgreSQL) or the qualified column (SQLite)
UNIQUE_MARKERS = {
    column: ("uq_students_{}".format(column), "students.{}".format(column))
    for column in UNIQUE_FIELDS
}


def conflicting_fields(exc: IntegrityError) -> List[str]:
    """
    API field names named by a uniqueness violation, in column order.

    Only the first line of the driver message is read; PostgreSQL repeats
    the offending value on its DETAIL line. Empty when the violation is not
    a uniqueness conflict on a known column.
    """
    detail = str(exc.orig) if exc.orig is not None else str(exc)
    lines = detail.splitlines()
    headline = lines[0] if lines else ""
    if "unique" not in headline.lower() and "duplicate" not in headline.lower():
        return []
    return [
        field for column, field in UNIQUE_FIELDS.items()
        if any(marker in headline for marker in UNIQUE_MARKERS[column])
    ]


@contextmanager
def store_errors(message: str):
    """
    Translate SQLAlchemy failures raised inside the block into StoreError.

    Domain errors raised inside the block pass through untouched.
    """
    try:
        yield
    except SQLAlchemyError as e:
        raise StoreError(message, str(e)) from e
