"""
Student number generation.

Student numbers look like 23-12902-588: three blocks of 2, 5 and 3 digits,
each digit drawn independently. Collisions are possible; callers allocate
through `allocate_student_no`, which retries a bounded number of times.

Not cryptographically secure.
"""

import random
from typing import Callable

from student_api.errors import StudentNoExhaustedError
from student_api.logging_config import get_logger, log_with_context

logger = get_logger("students")

STUDENT_NO_BLOCKS = (2, 5, 3)
MAX_STUDENT_NO_ATTEMPTS = 10


def generate_random_digits(length: int, rng: random.Random = None) -> str:
    """Return `length` random decimal digits."""
    rng = rng or random
    return "".join(str(rng.randint(0, 9)) for _ in range(length))


def generate_student_no(rng: random.Random = None) -> str:
    """Generate a candidate student number in XX-XXXXX-XXX format."""
    return "-".join(generate_random_digits(length, rng) for length in STUDENT_NO_BLOCKS)


def allocate_student_no(is_taken: Callable[[str], bool],
                        max_attempts: int = MAX_STUDENT_NO_ATTEMPTS,
                        generator: Callable[[], str] = None) -> str:
    """
    Draw candidates until one is not taken.

    Args:
        is_taken: Store lookup, True when a record already uses the number
        max_attempts: Upper bound on candidates drawn
        generator: Candidate source, defaults to generate_student_no

    Raises:
        StudentNoExhaustedError: every candidate drawn was taken

    The check is not atomic with the later insert; a concurrent creator
    can still claim the same number, which then fails as a uniqueness
    violation at persistence time.
    """
    generator = generator or generate_student_no
    for attempt in range(1, max_attempts + 1):
        candidate = generator()
        if not is_taken(candidate):
            return candidate
        log_with_context(logger, "WARNING", "Student number collision, retrying",
                         context={"student_no": candidate},
                         extra_data={"attempt": attempt, "max_attempts": max_attempts})

    log_with_context(logger, "ERROR",
                     "Could not allocate a student number after {} attempts".format(max_attempts))
    raise StudentNoExhaustedError(max_attempts)
