"""
Immutable domain records for grades and enrollments.

These are plain frozen dataclasses, independent of the ORM.  A "mutation"
is expressed as an explicit update method that returns a new value; the
store persists the new value under the same identity.  Identity fields
(``id``, ``student_id``, ``grade_id``, ``created_at``) never change.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return the current UTC time as a naive datetime (DB column convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class CatalogGrade:
    """Read-only view of a grade from the grade catalog."""

    id: int
    name: str
    level: int
    description: str | None = None
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def is_valid_for_enrollment(self) -> bool:
        return self.is_active

    def display_name(self) -> str:
        return self.name.strip()


@dataclass(frozen=True)
class Enrollment:
    """One contiguous span of a student's membership in one grade.

    Attributes:
        id: Store-assigned identity; ``None`` until persisted.
        student_id: External student identifier (positive).
        grade_id: Enrolled grade (positive).
        start_date: Enrollment start.
        end_date: Enrollment end, ``None`` while open.
        is_active: Active flag, tracked independently of ``end_date``.
        created_at: Creation timestamp.
        updated_at: Last modification timestamp.

    Raises:
        ValueError: If an ID is not positive or ``end_date`` precedes
            ``start_date``.  Start-date window checks belong to the policy
            engine because they depend on the evaluation time.
    """

    id: int | None
    student_id: int
    grade_id: int
    start_date: datetime
    end_date: datetime | None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    def __post_init__(self) -> None:
        if self.student_id <= 0:
            raise ValueError("Student ID must be positive")
        if self.grade_id <= 0:
            raise ValueError("Grade ID must be positive")
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")

    @classmethod
    def new(cls, student_id: int, grade_id: int, start_date: datetime, now: datetime) -> Enrollment:
        """Build an unsaved, open enrollment starting at *start_date*."""
        return cls(
            id=None,
            student_id=student_id,
            grade_id=grade_id,
            start_date=start_date,
            end_date=None,
            is_active=True,
            created_at=now,
            updated_at=now,
        )

    # -- derived properties --------------------------------------------------

    def is_currently_active(self) -> bool:
        return self.is_active and self.end_date is None

    def has_ended(self) -> bool:
        return self.end_date is not None

    def enrollment_duration(self, now: datetime | None = None) -> int:
        """Whole days between ``start_date`` and ``end_date`` (or *now*)."""
        end = self.end_date if self.end_date is not None else (now or utc_now())
        return (end - self.start_date).days

    def is_valid_for_date(self, date: datetime) -> bool:
        """True when *date* falls strictly inside the enrollment span."""
        return date > self.start_date and (self.end_date is None or date < self.end_date)

    # -- updates -------------------------------------------------------------

    def ended(self, end_date: datetime, now: datetime) -> Enrollment:
        """Return a copy closed at *end_date* and marked inactive."""
        return dataclasses.replace(self, end_date=end_date, is_active=False, updated_at=now)

    def with_id(self, enrollment_id: int) -> Enrollment:
        """Return a copy carrying the store-assigned identity.

        Only valid for records that have not been persisted yet.
        """
        if self.id is not None and self.id != enrollment_id:
            raise ValueError("Enrollment identity cannot change once assigned")
        return dataclasses.replace(self, id=enrollment_id)
