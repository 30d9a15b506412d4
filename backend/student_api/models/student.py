"""
Student model - the single record type managed by the API.

Each student is identified by a server-generated student number in the
XX-XXXXX-XXX format. Field constraints are enforced at write time twice:
by the attribute validators below (on every assignment) and by table-level
CHECK/UNIQUE constraints in the database itself.
"""

import re
from datetime import datetime, timezone
from sqlalchemy import (
    CheckConstraint, Column, DateTime, Integer, String, Text, UniqueConstraint
)
from sqlalchemy.orm import validates

from student_api.database import Base
from student_api.errors import StoreConstraintError

STUDENT_NO_PATTERN = re.compile(r"[0-9]{2}-[0-9]{5}-[0-9]{3}")
COURSES = ("CS", "IT", "BA", "ENG")
MIN_YEAR_LEVEL = 1
MAX_YEAR_LEVEL = 4
MIN_NAME_LENGTH = 3
MIN_SECTION_LENGTH = 1
MAX_SECTION_LENGTH = 10


def _utcnow():
    return datetime.now(timezone.utc)


class Student(Base):
    """
    SQLAlchemy model for the students table.

    `student_no` and `email` are each unique across the table; emails are
    stored trimmed and lowercased so uniqueness is case-insensitive.
    """
    __tablename__ = "students"
    __table_args__ = (
        UniqueConstraint("student_no", name="uq_students_student_no"),
        UniqueConstraint("email", name="uq_students_email"),
        CheckConstraint(
            "course IN ({})".format(", ".join("'{}'".format(c) for c in COURSES)),
            name="ck_students_course"),
        CheckConstraint(
            "year_level BETWEEN {} AND {}".format(MIN_YEAR_LEVEL, MAX_YEAR_LEVEL),
            name="ck_students_year_level"),
        CheckConstraint(
            "length(section) BETWEEN {} AND {}".format(MIN_SECTION_LENGTH, MAX_SECTION_LENGTH),
            name="ck_students_section"),
        CheckConstraint(
            "length(name) >= {}".format(MIN_NAME_LENGTH),
            name="ck_students_name"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True,
                doc="Surrogate key; gives list results a stable insertion order")
    student_no = Column(String(12), nullable=False, index=True,
                        doc="Server-generated student number, XX-XXXXX-XXX")
    name = Column(Text, nullable=False)
    course = Column(String(3), nullable=False)
    year_level = Column(Integer, nullable=False)
    section = Column(String(10), nullable=False)
    email = Column(Text, nullable=False, doc="Trimmed, lowercased email address")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    @validates("student_no")
    def _validate_student_no(self, key, value):
        if self.student_no is not None and value != self.student_no:
            raise StoreConstraintError("studentNo", "Student Number is immutable.")
        if not isinstance(value, str) or not STUDENT_NO_PATTERN.fullmatch(value):
            raise StoreConstraintError(
                "studentNo", "Student Number must match the format XX-XXXXX-XXX.")
        return value

    @validates("name")
    def _validate_name(self, key, value):
        if not isinstance(value, str) or len(value) < MIN_NAME_LENGTH:
            raise StoreConstraintError(
                "name", "Name must be at least {} characters long.".format(MIN_NAME_LENGTH))
        return value

    @validates("course")
    def _validate_course(self, key, value):
        if value not in COURSES:
            raise StoreConstraintError(
                "course", "Course `{}` is not a valid enum value.".format(value))
        return value

    @validates("year_level")
    def _validate_year_level(self, key, value):
        if isinstance(value, bool) or not isinstance(value, int) \
                or not MIN_YEAR_LEVEL <= value <= MAX_YEAR_LEVEL:
            raise StoreConstraintError(
                "yearLevel", "Year level must be between {} and {}.".format(
                    MIN_YEAR_LEVEL, MAX_YEAR_LEVEL))
        return value

    @validates("section")
    def _validate_section(self, key, value):
        if not isinstance(value, str) \
                or not MIN_SECTION_LENGTH <= len(value) <= MAX_SECTION_LENGTH:
            raise StoreConstraintError(
                "section", "Section must be between {} and {} characters.".format(
                    MIN_SECTION_LENGTH, MAX_SECTION_LENGTH))
        return value

    @validates("email")
    def _validate_email(self, key, value):
        if not isinstance(value, str) or not value.strip():
            raise StoreConstraintError("email", "Email is required.")
        return value.strip().lower()

    def __repr__(self):
        return f"<Student(student_no={self.student_no}, name='{self.name}', email='{self.email}')>"
