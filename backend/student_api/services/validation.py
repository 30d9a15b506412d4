"""
Request-level validation rules for student payloads.

Each rule pairs a body field with a predicate and the message reported when
the predicate fails. `validate` runs every rule against a parsed JSON body
and returns all failures in rule order; it never raises and never touches
the store.

Two rule sets exist:
- FULL_RULES for POST and PUT, where every mutable field is required
- PARTIAL_RULES for PATCH, where fields are checked only when present

A rule marked optional is skipped when its field is absent from the body.
A field present with a null value is still checked.
"""

import re
from typing import Any, Callable, List, NamedTuple

from email_validator import EmailNotValidError, validate_email

from student_api.models.student import (
    COURSES, MAX_SECTION_LENGTH, MAX_YEAR_LEVEL, MIN_NAME_LENGTH,
    MIN_SECTION_LENGTH, MIN_YEAR_LEVEL, STUDENT_NO_PATTERN
)

INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")

STUDENT_NO_MESSAGE = (
    "Student Number must be a string in the format XX-XXXXX-XXX (e.g., 23-12902-588)."
)
NAME_MESSAGE = "Name must be at least 3 characters long."
COURSE_MESSAGE = "Course must be one of: CS, IT, BA, or ENG."
YEAR_LEVEL_MESSAGE = "Year level must be an integer between 1 and 4."
SECTION_REQUIRED_MESSAGE = "Section is required and must be between 1 and 10 characters."
SECTION_MESSAGE = "Section must be between 1 and 10 characters."
EMAIL_MESSAGE = "Must be a valid email address."

MUTABLE_FIELDS = ("name", "course", "yearLevel", "section", "email")


class FieldRule(NamedTuple):
    field: str
    check: Callable[[Any], bool]
    message: str
    optional: bool = False


# ── Predicates ───────────────────────────────────────────────

def is_student_no(value) -> bool:
    return isinstance(value, str) and STUDENT_NO_PATTERN.fullmatch(value) is not None


def has_length(min_length: int, max_length: int = None) -> Callable[[Any], bool]:
    def check(value) -> bool:
        if not isinstance(value, str):
            return False
        if len(value) < min_length:
            return False
        return max_length is None or len(value) <= max_length
    return check


def is_one_of(choices) -> Callable[[Any], bool]:
    def check(value) -> bool:
        return isinstance(value, str) and value in choices
    return check


def parse_int(value):
    """
    Interpret an int, integral float or integer string as an int.

    Returns None for anything else, including booleans.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str) and INTEGER_PATTERN.fullmatch(value):
        return int(value)
    return None


def is_int_between(low: int, high: int) -> Callable[[Any], bool]:
    def check(value) -> bool:
        number = parse_int(value)
        return number is not None and low <= number <= high
    return check


def is_email(value) -> bool:
    if not isinstance(value, str):
        return False
    try:
        validate_email(value.strip(), check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


# ── Rule sets ────────────────────────────────────────────────

FULL_RULES: List[FieldRule] = [
    # Server-generated on create; checked only when a client sends one anyway
    FieldRule("studentNo", is_student_no, STUDENT_NO_MESSAGE, optional=True),
    FieldRule("name", has_length(MIN_NAME_LENGTH), NAME_MESSAGE),
    FieldRule("course", is_one_of(COURSES), COURSE_MESSAGE),
    FieldRule("yearLevel", is_int_between(MIN_YEAR_LEVEL, MAX_YEAR_LEVEL), YEAR_LEVEL_MESSAGE),
    FieldRule("section", has_length(MIN_SECTION_LENGTH, MAX_SECTION_LENGTH), SECTION_REQUIRED_MESSAGE),
    FieldRule("email", is_email, EMAIL_MESSAGE),
]

PARTIAL_RULES: List[FieldRule] = [
    FieldRule("name", has_length(MIN_NAME_LENGTH), NAME_MESSAGE, optional=True),
    FieldRule("course", is_one_of(COURSES), COURSE_MESSAGE, optional=True),
    FieldRule("yearLevel", is_int_between(MIN_YEAR_LEVEL, MAX_YEAR_LEVEL), YEAR_LEVEL_MESSAGE, optional=True),
    FieldRule("section", has_length(MIN_SECTION_LENGTH, MAX_SECTION_LENGTH), SECTION_MESSAGE, optional=True),
    FieldRule("email", is_email, EMAIL_MESSAGE, optional=True),
]


def validate(body: dict, rules: List[FieldRule]) -> List[dict]:
    """Run every rule against `body`; return the `{field, message}` failures."""
    failures = []
    for rule in rules:
        if rule.field not in body:
            if rule.optional:
                continue
            value = None
        else:
            value = body[rule.field]
        if not rule.check(value):
            failures.append({"field": rule.field, "message": rule.message})
    return failures


def extract_fields(body: dict, fields=MUTABLE_FIELDS) -> dict:
    """
    Pick the mutable fields present in an already validated body.

    `yearLevel` is converted to int; every other value is passed through
    for the model to normalize.
    """
    values = {}
    for field in fields:
        if field not in body:
            continue
        value = body[field]
        if field == "yearLevel":
            value = parse_int(value)
        values[field] = value
    return values
