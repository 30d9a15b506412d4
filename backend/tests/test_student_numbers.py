import random
import re

import pytest

from student_api.errors import StudentNoExhaustedError
from student_api.services import student_numbers
from student_api.services.student_numbers import (
    MAX_STUDENT_NO_ATTEMPTS, allocate_student_no, generate_random_digits,
    generate_student_no
)

STUDENT_NO_FORMAT = re.compile(r"^\d{2}-\d{5}-\d{3}$")


class TestGenerateStudentNo:
    """Candidate student numbers."""

    def test_every_generated_number_matches_format(self):
        for _ in range(500):
            assert STUDENT_NO_FORMAT.match(generate_student_no())

    def test_digits_block_has_requested_length(self):
        digits = generate_random_digits(7)
        assert len(digits) == 7
        assert digits.isdigit()

    def test_seeded_generator_is_reproducible(self):
        first = generate_student_no(random.Random(42))
        second = generate_student_no(random.Random(42))
        assert first == second

    def test_leading_zeros_are_kept(self):
        class ZeroRandom:
            def randint(self, low, high):
                return 0

        assert generate_student_no(ZeroRandom()) == "00-00000-000"


class TestAllocateStudentNo:
    """Bounded retry until a free number is drawn."""

    def test_returns_first_free_candidate(self):
        candidates = iter(["11-11111-111", "22-22222-222", "33-33333-333"])
        taken = {"11-11111-111", "22-22222-222"}

        result = allocate_student_no(lambda no: no in taken, generator=lambda: next(candidates))

        assert result == "33-33333-333"

    def test_gives_up_after_max_attempts(self):
        calls = []

        def always_taken(candidate):
            calls.append(candidate)
            return True

        with pytest.raises(StudentNoExhaustedError) as exc_info:
            allocate_student_no(always_taken)

        assert len(calls) == MAX_STUDENT_NO_ATTEMPTS
        assert exc_info.value.attempts == MAX_STUDENT_NO_ATTEMPTS
        assert exc_info.value.status_code == 500

    def test_free_on_last_attempt_succeeds(self):
        lookups = []

        def taken_until_last(candidate):
            lookups.append(candidate)
            return len(lookups) < MAX_STUDENT_NO_ATTEMPTS

        result = allocate_student_no(taken_until_last)

        assert STUDENT_NO_FORMAT.match(result)
        assert len(lookups) == MAX_STUDENT_NO_ATTEMPTS

    def test_default_generator_is_looked_up_at_call_time(self, monkeypatch):
        monkeypatch.setattr(student_numbers, "generate_student_no", lambda: "44-44444-444")
        assert allocate_student_no(lambda no: False) == "44-44444-444"
