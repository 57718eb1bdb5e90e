"""
Store interfaces consumed by the enrollment policy engine.

The policy engine only ever talks to these protocols; concrete backends are
``src.services.sql_store`` (PostgreSQL via async SQLAlchemy) and
``src.services.memory_store`` (process-local, for tests and local runs).

Temporal query contract shared by every backend:

* current enrollment      -> ``Enrollment.is_currently_active()``
* active on date ``d``    -> ``Enrollment.is_valid_for_date(d)``
* student date range      -> span overlaps ``[start, end]``:
  ``start_date <= end and (end_date is None or end_date >= start)``
* pairing check           -> a currently active record for (student, grade)
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Protocol

from src.services.records import CatalogGrade, Enrollment


class GradeLookup(Protocol):
    """Read access to the grade catalog."""

    async def find_grade_by_id(self, grade_id: int) -> CatalogGrade | None: ...


class EnrollmentStore(Protocol):
    """Atomic CRUD and temporal queries over enrollment records."""

    def atomic(self, student_id: int) -> AbstractAsyncContextManager[None]:
        """Scope a unit of work for one student.

        Everything written inside the block becomes visible to other readers
        together on clean exit, or not at all if the block raises.
        """
        ...

    async def save(self, enrollment: Enrollment) -> Enrollment:
        """Insert an unsaved enrollment and return it with its assigned id."""
        ...

    async def find_by_id(
        self, enrollment_id: int, for_update: bool = False
    ) -> Enrollment | None:
        """Fetch one enrollment.

        With *for_update* the read bypasses any cached state and locks the
        row until the unit of work ends.
        """
        ...

    async def find_by_student_id(self, student_id: int) -> list[Enrollment]: ...

    async def find_by_grade_id(self, grade_id: int) -> list[Enrollment]: ...

    async def find_current_enrollment_by_student_id(self, student_id: int) -> Enrollment | None: ...

    async def find_active_enrollments_by_grade_id(self, grade_id: int) -> list[Enrollment]: ...

    async def find_all_active_enrollments(self) -> list[Enrollment]: ...

    async def find_enrollments_active_on_date(self, date: datetime) -> list[Enrollment]: ...

    async def find_enrollments_by_student_id_and_date_range(
        self, student_id: int, start_date: datetime, end_date: datetime
    ) -> list[Enrollment]: ...

    async def is_student_enrolled_in_grade(self, student_id: int, grade_id: int) -> bool: ...

    async def has_active_enrollment(self, student_id: int) -> bool: ...

    async def end_enrollment(
        self, student_id: int, grade_id: int, end_date: datetime
    ) -> Enrollment | None: ...

    async def delete_by_id(self, enrollment_id: int) -> bool: ...

    async def count_active_enrollments_by_grade_id(self, grade_id: int) -> int: ...

    async def count_enrollments_by_student_id(self, student_id: int) -> int: ...
