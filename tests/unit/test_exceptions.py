"""Unit tests for custom exception classes (src/exceptions.py).

Tests verify that each exception class:
1. Stores its constructor arguments as instance attributes.
2. Sits in the right place of the hierarchy, because the FastAPI handlers
   in ``src.main`` dispatch on the base classes.
3. Has a string representation equal to the message.

No database or external services are used.
"""

from __future__ import annotations

import pytest

from src.exceptions import (
    ConflictError,
    EnrollmentError,
    EnrollmentNotFoundError,
    GradeNotFoundError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
)


# ---------------------------------------------------------------------------
# EnrollmentError base
# ---------------------------------------------------------------------------


def test_enrollment_error_stores_message():
    """EnrollmentError keeps the message on ``.message`` and as ``str(exc)``.

    Exception handlers render ``exc.message`` into the JSON body, so the two
    must never diverge.
    """
    exc = EnrollmentError("Student ID must be positive")

    assert isinstance(exc, Exception), "EnrollmentError must inherit from Exception"
    assert exc.message == "Student ID must be positive"
    assert str(exc) == "Student ID must be positive", (
        f"str(exc) must equal the message, got {str(exc)!r}"
    )


@pytest.mark.parametrize(
    "exc_class",
    [InvalidArgumentError, NotFoundError, EnrollmentNotFoundError, ConflictError],
)
def test_subclasses_inherit_from_enrollment_error(exc_class):
    """Every domain exception can be caught as EnrollmentError."""
    exc = exc_class("boom")

    assert isinstance(exc, EnrollmentError), (
        f"{exc_class.__name__} must inherit from EnrollmentError"
    )
    assert exc.message == "boom"


# ---------------------------------------------------------------------------
# GradeNotFoundError
# ---------------------------------------------------------------------------


def test_grade_not_found_error_stores_grade_id_and_default_message():
    """GradeNotFoundError defaults to the stable 'Grade not found' message."""
    exc = GradeNotFoundError(grade_id=42)

    assert isinstance(exc, NotFoundError), "GradeNotFoundError must be a NotFoundError (404)"
    assert exc.grade_id == 42, f"grade_id not stored correctly: {exc.grade_id}"
    assert exc.message == "Grade not found"


def test_grade_not_found_error_accepts_message_override():
    """Transfer distinguishes the source and destination grade in its message."""
    exc = GradeNotFoundError(7, "To grade not found")

    assert exc.grade_id == 7
    assert str(exc) == "To grade not found"


# ---------------------------------------------------------------------------
# InvalidStateError
# ---------------------------------------------------------------------------


def test_invalid_state_error_is_a_conflict():
    """InvalidStateError maps to 409 through the ConflictError handler."""
    exc = InvalidStateError("Cannot remove active enrollment. End it first.", enrollment_id=5)

    assert isinstance(exc, ConflictError), "InvalidStateError must inherit from ConflictError"
    assert exc.enrollment_id == 5
    assert exc.message == "Cannot remove active enrollment. End it first."


def test_invalid_state_error_enrollment_id_defaults_to_none():
    exc = InvalidStateError("not allowed")

    assert exc.enrollment_id is None, (
        f"Default enrollment_id must be None, got {exc.enrollment_id}"
    )


def test_not_found_is_not_a_conflict():
    """The handler dispatch relies on the two families being disjoint."""
    assert not issubclass(NotFoundError, ConflictError)
    assert not issubclass(ConflictError, NotFoundError)
    assert not issubclass(InvalidArgumentError, (NotFoundError, ConflictError))
