"""
Students API routes - CRUD over student records.

Provides endpoints for:
- Listing, filtering and searching students
- Fetching one student by student number
- Creating students with a server-generated student number
- Full (PUT) and partial (PATCH) updates
- Deleting students

Request bodies pass through the rule-based validation in
`services.validation` before any handler runs; failures short-circuit with
400 and the full list of field errors.
"""

import json
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from student_api.database import get_db
from student_api.errors import MalformedBodyError, RequestValidationFailed
from student_api.logging_config import get_logger, log_with_context
from student_api.services import students as student_service
from student_api.services.validation import (
    FULL_RULES, PARTIAL_RULES, FieldRule, extract_fields, validate
)

router = APIRouter(prefix="/api/students")
logger = get_logger("validation")

STUDENT_NO_IMMUTABLE_MESSAGE = "Student Number cannot be changed."


# ── Pydantic schemas ─────────────────────────────────────────

class StudentOut(BaseModel):
    """A student record as returned by every endpoint."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True,
                              from_attributes=True)

    student_no: str
    name: str
    course: str
    year_level: int
    section: str
    email: str
    created_at: datetime
    updated_at: datetime


class MessageResponse(BaseModel):
    message: str


def serialize_student(student) -> StudentOut:
    return StudentOut.model_validate(student)


# ── Body parsing and validation ──────────────────────────────

async def read_json_body(request: Request) -> dict:
    """Parse the request body as a JSON object; empty or non-object bodies become {}."""
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        body = json.loads(raw)
    except ValueError as e:
        raise MalformedBodyError("Request body must be valid JSON.") from e
    return body if isinstance(body, dict) else {}


def validated_body(rules: List[FieldRule]):
    """Dependency factory: run `rules` over the body, 400 on any failure."""

    async def dependency(body: dict = Depends(read_json_body)) -> dict:
        failures = validate(body, rules)
        if failures:
            log_with_context(logger, "INFO",
                "Request validation failed: {}".format(", ".join(f["field"] for f in failures)),
                extra_data={"errors": failures})
            raise RequestValidationFailed(failures)
        return body

    return dependency


def ensure_student_no_unchanged(body: dict, student_no: str) -> None:
    """A body may repeat the path's student number, never change it."""
    if "studentNo" in body and body["studentNo"] != student_no:
        raise RequestValidationFailed(
            [{"field": "studentNo", "message": STUDENT_NO_IMMUTABLE_MESSAGE}])


# ── Routes ───────────────────────────────────────────────────

@router.get("", response_model=List[StudentOut])
def list_students(db: Session = Depends(get_db)):
    """Every student record, unfiltered."""
    return [serialize_student(s) for s in student_service.list_students(db)]


@router.get("/filter", response_model=List[StudentOut])
def filter_students(
    course: Optional[str] = Query(None, description="Course code, case-insensitive"),
    year_level: Optional[str] = Query(None, alias="yearLevel", description="Year level 1-4"),
    section: Optional[str] = Query(None, description="Section, case-insensitive"),
    db: Session = Depends(get_db)
):
    """Students matching all supplied filters; 404 when none match."""
    students = student_service.filter_students(db, course=course, year_level=year_level,
                                               section=section)
    return [serialize_student(s) for s in students]


@router.get("/search", response_model=List[StudentOut])
def search_students(
    q: Optional[str] = Query(None, description="Text to find in name or email"),
    db: Session = Depends(get_db)
):
    """Students whose name or email contains `q`, ignoring case."""
    return [serialize_student(s) for s in student_service.search_students(db, q)]


@router.get("/{student_no}", response_model=StudentOut)
def get_student(student_no: str, db: Session = Depends(get_db)):
    return serialize_student(student_service.get_student(db, student_no))


@router.post("", response_model=StudentOut, status_code=status.HTTP_201_CREATED)
def create_student(body: dict = Depends(validated_body(FULL_RULES)),
                   db: Session = Depends(get_db)):
    """
    Create a student.

    Any `studentNo` in the body is format-checked and then ignored; the
    student number is always generated server-side.
    """
    student = student_service.create_student(db, extract_fields(body))
    return serialize_student(student)


@router.put("/{student_no}", response_model=StudentOut)
def replace_student(student_no: str,
                    body: dict = Depends(validated_body(FULL_RULES)),
                    db: Session = Depends(get_db)):
    """Overwrite every mutable field of a student."""
    ensure_student_no_unchanged(body, student_no)
    student = student_service.update_student(db, student_no, extract_fields(body))
    return serialize_student(student)


@router.patch("/{student_no}", response_model=StudentOut)
def patch_student(student_no: str,
                  body: dict = Depends(validated_body(PARTIAL_RULES)),
                  db: Session = Depends(get_db)):
    """Overwrite only the mutable fields present in the body."""
    ensure_student_no_unchanged(body, student_no)
    student = student_service.update_student(db, student_no, extract_fields(body))
    return serialize_student(student)


@router.delete("/{student_no}", response_model=MessageResponse)
def delete_student(student_no: str, db: Session = Depends(get_db)):
    student_service.delete_student(db, student_no)
    return MessageResponse(message="The student record was successfully removed.")
