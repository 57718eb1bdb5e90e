"""
Enrollment validation rules.

Every rule is a small pure function returning a :class:`ValidationResult`:
a tagged success/failure value carrying the message of the violated rule.
Rules never raise for expected business-rule violations; the policy engine
decides how a failure is surfaced (see ``EnrollmentPolicy._require``).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

# ---------------------------------------------------------------------------
# Academic constants
# ---------------------------------------------------------------------------

# Clock-skew / same-day backdating tolerance for "future" dates.
FUTURE_TOLERANCE = timedelta(days=1)
MAX_HISTORY_YEARS = 10
MAX_RANGE_DAYS = 365 * MAX_HISTORY_YEARS

ERROR_GRADE_NOT_FOUND = "Grade not found"
ERROR_ENROLLMENT_NOT_FOUND = "Student grade enrollment not found"
ERROR_ALREADY_ENROLLED = "Student is already enrolled in this grade"
ERROR_ALREADY_ENROLLED_ELSEWHERE = "Student is already enrolled in another grade"
ERROR_NOT_ENROLLED_ANYWHERE = "Student is not enrolled in any grade"
ERROR_NOT_ENROLLED_IN_GRADE = "Student is not enrolled in the specified grade"
ERROR_GRADE_INACTIVE = "Grade is not active for enrollment"
ERROR_REMOVE_ACTIVE = "Cannot remove active enrollment. End it first."


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a single validation rule."""

    is_valid: bool
    error_message: str | None = None

    @classmethod
    def success(cls) -> ValidationResult:
        return cls(True)

    @classmethod
    def error(cls, message: str) -> ValidationResult:
        return cls(False, message)


def first_failure(*results: ValidationResult) -> ValidationResult | None:
    """Return the first failed result, or ``None`` if every rule passed."""
    for result in results:
        if not result.is_valid:
            return result
    return None


def years_before(moment: datetime, years: int) -> datetime:
    """Subtract calendar years, clamping Feb 29 to Feb 28."""
    try:
        return moment.replace(year=moment.year - years)
    except ValueError:
        return moment.replace(year=moment.year - years, day=28)


# ---------------------------------------------------------------------------
# Identifier rules
# ---------------------------------------------------------------------------


def validate_positive_id(value: int, label: str) -> ValidationResult:
    if value <= 0:
        return ValidationResult.error(f"{label} must be positive")
    return ValidationResult.success()


def validate_student_id(student_id: int) -> ValidationResult:
    return validate_positive_id(student_id, "Student ID")


def validate_grade_id(grade_id: int) -> ValidationResult:
    return validate_positive_id(grade_id, "Grade ID")


def validate_enrollment_id(enrollment_id: int) -> ValidationResult:
    return validate_positive_id(enrollment_id, "Enrollment ID")


# ---------------------------------------------------------------------------
# Temporal rules
# ---------------------------------------------------------------------------


def validate_not_future(date: datetime, now: datetime, label: str) -> ValidationResult:
    """*date* may be at most one day ahead of *now*."""
    if date > now + FUTURE_TOLERANCE:
        return ValidationResult.error(f"{label} cannot be more than 1 day in the future")
    return ValidationResult.success()


def validate_enrollment_date(date: datetime, now: datetime, label: str = "Start date") -> ValidationResult:
    """*date* must lie within ``[now - 10 years, now + 1 day]``."""
    future = validate_not_future(date, now, label)
    if not future.is_valid:
        return future
    if date < years_before(now, MAX_HISTORY_YEARS):
        return ValidationResult.error(
            f"{label} cannot be more than {MAX_HISTORY_YEARS} years in the past"
        )
    return ValidationResult.success()


def validate_end_after_start(start_date: datetime, end_date: datetime) -> ValidationResult:
    if end_date < start_date:
        return ValidationResult.error("End date cannot be before start date")
    return ValidationResult.success()


def validate_query_date(date: datetime, now: datetime) -> ValidationResult:
    if date > now:
        return ValidationResult.error("Date cannot be in the future")
    return ValidationResult.success()


def validate_date_range(start_date: datetime, end_date: datetime, now: datetime) -> ValidationResult:
    if start_date > end_date:
        return ValidationResult.error("Start date cannot be after end date")
    if (end_date - start_date).days > MAX_RANGE_DAYS:
        return ValidationResult.error(f"Date range cannot exceed {MAX_HISTORY_YEARS} years")
    return validate_not_future(start_date, now, "Start date")


def validate_distinct_grades(from_grade_id: int, to_grade_id: int) -> ValidationResult:
    if from_grade_id == to_grade_id:
        return ValidationResult.error("Cannot transfer to the same grade")
    return ValidationResult.success()
