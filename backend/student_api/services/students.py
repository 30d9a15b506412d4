"""
Student Service - store operations behind the /api/students routes.

Every function takes the request's SQLAlchemy session and performs at most
one read or one write (the create flow adds bounded student number lookups
before its insert). Failures surface as `student_api.errors` exceptions:

- store outages and unexpected SQLAlchemy errors -> StoreError
- uniqueness violations on write -> DuplicateStudentError
- other integrity violations on write -> StoreError
- attribute constraint violations on write -> StoreConstraintError
- missing records -> StudentNotFoundError / NoStudentsMatchError
"""

import time
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from student_api.errors import (
    DuplicateStudentError, NoStudentsMatchError, SearchQueryMissingError,
    StoreError, StudentApiError, StudentNotFoundError, conflicting_fields,
    store_errors
)
from student_api.logging_config import get_logger, log_with_context
from student_api.models.student import MAX_YEAR_LEVEL, MIN_YEAR_LEVEL, Student
from student_api.services.student_numbers import allocate_student_no

logger = get_logger("students")
db_logger = get_logger("db")

# API field name -> model attribute
FIELD_COLUMNS = {
    "name": "name",
    "course": "course",
    "yearLevel": "year_level",
    "section": "section",
    "email": "email",
}

CREATE_CONFLICT_MESSAGE = "An email or student number already exists."
UPDATE_CONFLICT_MESSAGE = "An email already exists."
CREATE_FAILURE_MESSAGE = "Error creating student record."
UPDATE_FAILURE_MESSAGE = "Error updating student record."
FILTER_NO_MATCH_MESSAGE = "No students found matching the provided filter criteria."


def list_students(db: Session) -> List[Student]:
    """Every student, in insertion order."""
    with store_errors("Error retrieving students from database."):
        return db.query(Student).order_by(Student.id).all()


def parse_year_level(value: Optional[str]) -> Optional[int]:
    """Query-string year level as int, or None when absent or not an integer."""
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def filter_students(db: Session, course: Optional[str] = None,
                    year_level: Optional[str] = None,
                    section: Optional[str] = None) -> List[Student]:
    """
    Exact-match conjunction over whichever filters were supplied.

    Course and section compare upper-cased on both sides. A year level that
    is not an integer is ignored rather than rejected; an integer outside
    the stored range cannot match and is answered without a query.
    """
    query = db.query(Student)
    applied = {}

    if course:
        query = query.filter(func.upper(Student.course) == course.upper())
        applied["course"] = course.upper()

    level = parse_year_level(year_level)
    if level is not None:
        if not MIN_YEAR_LEVEL <= level <= MAX_YEAR_LEVEL:
            log_with_context(logger, "INFO", "Year level filter out of range",
                             extra_data={"yearLevel": year_level})
            raise NoStudentsMatchError(FILTER_NO_MATCH_MESSAGE)
        query = query.filter(Student.year_level == level)
        applied["yearLevel"] = level

    if section:
        query = query.filter(func.upper(Student.section) == section.upper())
        applied["section"] = section.upper()

    with store_errors("Error filtering students from database."):
        students = query.order_by(Student.id).all()

    log_with_context(logger, "INFO", "Filtered students: {} match".format(len(students)),
                     extra_data={"filters": applied})

    if not students:
        raise NoStudentsMatchError(FILTER_NO_MATCH_MESSAGE)
    return students


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def search_students(db: Session, q: Optional[str]) -> List[Student]:
    """Case-insensitive substring search over name OR email."""
    if not q:
        raise SearchQueryMissingError("Search query (q) is required.")

    pattern = "%{}%".format(_escape_like(q))
    with store_errors("Error searching students from database."):
        students = db.query(Student).filter(
            or_(
                Student.name.ilike(pattern, escape="\\"),
                Student.email.ilike(pattern, escape="\\"),
            )
        ).order_by(Student.id).all()

    if not students:
        raise NoStudentsMatchError(
            "No students found matching '{}' in name or email.".format(q))
    return students


def _find_by_student_no(db: Session, student_no: str) -> Optional[Student]:
    return db.query(Student).filter(Student.student_no == student_no).first()


def get_student(db: Session, student_no: str) -> Student:
    with store_errors("Error retrieving student."):
        student = _find_by_student_no(db, student_no)
    if student is None:
        raise StudentNotFoundError()
    return student


def _student_no_taken(db: Session, student_no: str) -> bool:
    return db.query(Student.id).filter(Student.student_no == student_no).first() is not None


def _integrity_error(db: Session, exc: IntegrityError, conflict_message: str,
                     failure_message: str, context: dict) -> StudentApiError:
    """
    Map a failed write to DuplicateStudentError when a unique column was
    violated, otherwise to StoreError.
    """
    db.rollback()
    fields = conflicting_fields(exc)
    if not fields:
        log_with_context(db_logger, "ERROR", "Integrity error on write",
                         context=context, extra_data={"error": str(exc.orig)})
        return StoreError(failure_message, str(exc.orig))
    log_with_context(logger, "WARNING", "Uniqueness violation: {}".format(", ".join(fields)),
                     context=context, extra_data={"error": str(exc.orig)})
    return DuplicateStudentError(conflict_message, fields, str(exc.orig))


def create_student(db: Session, fields: dict) -> Student:
    """
    Allocate a student number and insert a new record.

    `fields` holds validated API fields (see `validation.extract_fields`).
    """
    start_time = time.time()

    with store_errors(CREATE_FAILURE_MESSAGE):
        student_no = allocate_student_no(lambda candidate: _student_no_taken(db, candidate))

        student = Student(
            student_no=student_no,
            **{FIELD_COLUMNS[name]: value for name, value in fields.items()}
        )
        db.add(student)
        try:
            db.commit()
        except IntegrityError as e:
            raise _integrity_error(db, e, CREATE_CONFLICT_MESSAGE, CREATE_FAILURE_MESSAGE,
                                   {"student_no": student_no}) from e
        db.refresh(student)

    duration_ms = (time.time() - start_time) * 1000
    log_with_context(logger, "INFO", "Created student {}".format(student_no),
                     context={"student_no": student_no},
                     extra_data={"duration_ms": round(duration_ms, 2)})
    return student


def update_student(db: Session, student_no: str, fields: dict) -> Student:
    """
    Apply `fields` to the student identified by `student_no`.

    Used by both PUT (all mutable fields) and PATCH (only those supplied).
    Model validators re-check every assigned value before the write.
    """
    with store_errors(UPDATE_FAILURE_MESSAGE):
        student = _find_by_student_no(db, student_no)
        if student is None:
            raise StudentNotFoundError()

        try:
            for name, value in fields.items():
                setattr(student, FIELD_COLUMNS[name], value)
        except ValueError:
            db.rollback()
            raise

        try:
            db.commit()
        except IntegrityError as e:
            raise _integrity_error(db, e, UPDATE_CONFLICT_MESSAGE, UPDATE_FAILURE_MESSAGE,
                                   {"student_no": student_no}) from e
        db.refresh(student)

    log_with_context(logger, "INFO", "Updated student {}".format(student_no),
                     context={"student_no": student_no},
                     extra_data={"fields": sorted(fields)})
    return student


def delete_student(db: Session, student_no: str) -> None:
    with store_errors("Internal Server Error during deletion."):
        deleted = db.query(Student).filter(Student.student_no == student_no).delete(
            synchronize_session=False)
        db.commit()

    if deleted == 0:
        raise StudentNotFoundError()
    log_with_context(db_logger, "INFO", "Deleted student {}".format(student_no),
                     context={"student_no": student_no})
