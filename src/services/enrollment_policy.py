"""
Enrollment Policy Engine: the student enrollment lifecycle.

Per student the lifecycle is a two-state machine::

    Unenrolled --enroll(g)-----------> EnrolledIn(g)
    EnrolledIn(g) --end / graduate---> Unenrolled
    EnrolledIn(g1) --transfer(g1,g2)-> EnrolledIn(g2)      (g1 != g2)

There is no terminal state: a graduated student is ``Unenrolled`` again and
may be re-enrolled.  Ended records are kept for history and never re-enter
the machine.

Every mutating operation:

1. validates its arguments eagerly (tagged ``ValidationResult`` rules,
   surfaced as :class:`~src.exceptions.InvalidArgumentError`);
2. takes the per-student lock and opens one store unit of work;
3. re-checks the state preconditions inside that critical section;
4. issues store writes and returns the resulting record.

The engine keeps no state besides the lock table and is safe to share
between concurrent requests.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from src.exceptions import (
    ConflictError,
    EnrollmentNotFoundError,
    GradeNotFoundError,
    InvalidArgumentError,
    InvalidStateError,
)
from src.services import rules
from src.services.locks import StudentLocks
from src.services.records import CatalogGrade, Enrollment, utc_now
from src.services.rules import ValidationResult
from src.services.store import EnrollmentStore, GradeLookup

logger = logging.getLogger(__name__)


def _require(*results: ValidationResult) -> None:
    """Raise ``InvalidArgumentError`` for the first failed rule, if any."""
    failure = rules.first_failure(*results)
    if failure is not None:
        raise InvalidArgumentError(failure.error_message or "Invalid argument")


class EnrollmentPolicy:
    """Business rules and orchestration for student grade enrollments.

    Args:
        store: Enrollment persistence backend.
        grades: Grade catalog lookup.
        locks: Shared per-student lock table.  Must be the same instance for
            every policy serving one process.
        clock: Source of "now" (naive UTC).  Injected for tests.
    """

    def __init__(
        self,
        store: EnrollmentStore,
        grades: GradeLookup,
        locks: StudentLocks | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._grades = grades
        self._locks = locks if locks is not None else StudentLocks()
        self._clock = clock

    # =======================================================================
    # Mutating operations
    # =======================================================================

    async def enroll(
        self, student_id: int, grade_id: int, start_date: datetime | None = None
    ) -> Enrollment:
        """Enroll *student_id* in *grade_id* starting at *start_date* (default now).

        Raises:
            InvalidArgumentError: Bad IDs, start date outside the allowed
                window, or grade not active for enrollment.
            GradeNotFoundError: Grade does not exist.
            ConflictError: Already enrolled in this grade, or in another one.
        """
        now = self._clock()
        if start_date is None:
            start_date = now
        _require(
            rules.validate_student_id(student_id),
            rules.validate_grade_id(grade_id),
            rules.validate_enrollment_date(start_date, now),
        )
        grade = await self._require_enrollable_grade(grade_id)

        async with self._locks.hold(student_id):
            async with self._store.atomic(student_id):
                enrollment = await self._create_enrollment(student_id, grade_id, start_date, now)

        logger.info(
            "Enrolled student %d in %s (enrollment %s, start %s)",
            student_id,
            grade.display_name(),
            enrollment.id,
            start_date.isoformat(),
        )
        return enrollment

    async def transfer(
        self,
        student_id: int,
        from_grade_id: int,
        to_grade_id: int,
        transfer_date: datetime | None = None,
    ) -> Enrollment:
        """Move *student_id* from one grade to another at *transfer_date*.

        The source enrollment is ended and the destination enrollment created
        in a single store unit of work.

        Returns:
            The new enrollment in *to_grade_id*.

        Raises:
            InvalidArgumentError: Bad IDs, same-grade transfer, date outside
                the window or before the current enrollment started, or
                destination grade inactive.
            GradeNotFoundError: Either grade does not exist.
            EnrollmentNotFoundError: No active enrollment in *from_grade_id*.
        """
        now = self._clock()
        if transfer_date is None:
            transfer_date = now
        _require(
            rules.validate_student_id(student_id),
            rules.validate_positive_id(from_grade_id, "From grade ID"),
            rules.validate_positive_id(to_grade_id, "To grade ID"),
            rules.validate_distinct_grades(from_grade_id, to_grade_id),
            rules.validate_enrollment_date(transfer_date, now, "Transfer date"),
        )
        from_grade = await self._grades.find_grade_by_id(from_grade_id)
        if from_grade is None:
            raise GradeNotFoundError(from_grade_id, "From grade not found")
        to_grade = await self._grades.find_grade_by_id(to_grade_id)
        if to_grade is None:
            raise GradeNotFoundError(to_grade_id, "To grade not found")
        if not to_grade.is_valid_for_enrollment():
            raise InvalidArgumentError("To grade is not active for enrollment")

        async with self._locks.hold(student_id):
            async with self._store.atomic(student_id):
                current = await self._require_active_in(student_id, from_grade_id)
                _require(rules.validate_end_after_start(current.start_date, transfer_date))
                ended = await self._store.end_enrollment(student_id, from_grade_id, transfer_date)
                if ended is None:
                    raise EnrollmentNotFoundError(rules.ERROR_NOT_ENROLLED_IN_GRADE)
                enrollment = await self._create_enrollment(
                    student_id, to_grade_id, transfer_date, now
                )

        logger.info(
            "Transferred student %d from %s to %s at %s (enrollment %s -> %s)",
            student_id,
            from_grade.display_name(),
            to_grade.display_name(),
            transfer_date.isoformat(),
            ended.id,
            enrollment.id,
        )
        return enrollment

    async def end_enrollment(
        self, student_id: int, grade_id: int, end_date: datetime | None = None
    ) -> Enrollment:
        """Close the active enrollment of *student_id* in *grade_id*.

        Raises:
            InvalidArgumentError: Bad IDs, end date too far in the future or
                before the enrollment started.
            EnrollmentNotFoundError: No active enrollment for the pair.
        """
        now = self._clock()
        if end_date is None:
            end_date = now
        _require(
            rules.validate_student_id(student_id),
            rules.validate_grade_id(grade_id),
            rules.validate_not_future(end_date, now, "End date"),
        )

        async with self._locks.hold(student_id):
            async with self._store.atomic(student_id):
                ended = await self._end_active(student_id, grade_id, end_date)

        logger.info(
            "Ended enrollment %s of student %d in grade %d at %s",
            ended.id,
            student_id,
            grade_id,
            end_date.isoformat(),
        )
        return ended

    async def graduate(
        self, student_id: int, graduation_date: datetime | None = None
    ) -> Enrollment:
        """End whatever enrollment *student_id* currently holds.

        Raises:
            InvalidArgumentError: Bad ID or graduation date out of range.
            EnrollmentNotFoundError: Student is not enrolled in any grade.
        """
        now = self._clock()
        if graduation_date is None:
            graduation_date = now
        _require(
            rules.validate_student_id(student_id),
            rules.validate_not_future(graduation_date, now, "Graduation date"),
        )

        async with self._locks.hold(student_id):
            async with self._store.atomic(student_id):
                current = await self._store.find_current_enrollment_by_student_id(student_id)
                if current is None:
                    raise EnrollmentNotFoundError(rules.ERROR_NOT_ENROLLED_ANYWHERE)
                ended = await self._end_active(student_id, current.grade_id, graduation_date)

        logger.info(
            "Graduated student %d from grade %d at %s",
            student_id,
            ended.grade_id,
            graduation_date.isoformat(),
        )
        return ended

    async def remove_enrollment(self, enrollment_id: int) -> bool:
        """Permanently delete an enrollment that is no longer active.

        Raises:
            InvalidArgumentError: Non-positive ID.
            EnrollmentNotFoundError: No such enrollment.
            InvalidStateError: The enrollment is still currently active.
        """
        _require(rules.validate_enrollment_id(enrollment_id))
        enrollment = await self._store.find_by_id(enrollment_id)
        if enrollment is None:
            raise EnrollmentNotFoundError(rules.ERROR_ENROLLMENT_NOT_FOUND)

        async with self._locks.hold(enrollment.student_id):
            async with self._store.atomic(enrollment.student_id):
                enrollment = await self._store.find_by_id(enrollment_id, for_update=True)
                if enrollment is None:
                    raise EnrollmentNotFoundError(rules.ERROR_ENROLLMENT_NOT_FOUND)
                if enrollment.is_currently_active():
                    raise InvalidStateError(rules.ERROR_REMOVE_ACTIVE, enrollment_id)
                removed = await self._store.delete_by_id(enrollment_id)

        logger.info("Removed enrollment %d (student %d)", enrollment_id, enrollment.student_id)
        return removed

    # =======================================================================
    # Query helpers
    # =======================================================================

    async def get_enrollment_by_id(self, enrollment_id: int) -> Enrollment | None:
        _require(rules.validate_enrollment_id(enrollment_id))
        return await self._store.find_by_id(enrollment_id)

    async def get_enrollments_by_student_id(self, student_id: int) -> list[Enrollment]:
        _require(rules.validate_student_id(student_id))
        return await self._store.find_by_student_id(student_id)

    async def get_enrollments_by_grade_id(self, grade_id: int) -> list[Enrollment]:
        _require(rules.validate_grade_id(grade_id))
        return await self._store.find_by_grade_id(grade_id)

    async def get_current_enrollment_by_student_id(self, student_id: int) -> Enrollment | None:
        _require(rules.validate_student_id(student_id))
        return await self._store.find_current_enrollment_by_student_id(student_id)

    async def get_active_enrollments_by_grade_id(self, grade_id: int) -> list[Enrollment]:
        _require(rules.validate_grade_id(grade_id))
        return await self._store.find_active_enrollments_by_grade_id(grade_id)

    async def get_all_active_enrollments(self) -> list[Enrollment]:
        return await self._store.find_all_active_enrollments()

    async def get_enrollments_active_on_date(self, date: datetime) -> list[Enrollment]:
        _require(rules.validate_query_date(date, self._clock()))
        return await self._store.find_enrollments_active_on_date(date)

    async def get_enrollments_by_student_id_and_date_range(
        self, student_id: int, start_date: datetime, end_date: datetime
    ) -> list[Enrollment]:
        _require(
            rules.validate_student_id(student_id),
            rules.validate_date_range(start_date, end_date, self._clock()),
        )
        return await self._store.find_enrollments_by_student_id_and_date_range(
            student_id, start_date, end_date
        )

    async def is_student_enrolled_in_grade(self, student_id: int, grade_id: int) -> bool:
        _require(rules.validate_student_id(student_id), rules.validate_grade_id(grade_id))
        return await self._store.is_student_enrolled_in_grade(student_id, grade_id)

    async def has_active_enrollment(self, student_id: int) -> bool:
        _require(rules.validate_student_id(student_id))
        return await self._store.has_active_enrollment(student_id)

    async def get_active_enrollment_count_by_grade_id(self, grade_id: int) -> int:
        _require(rules.validate_grade_id(grade_id))
        return await self._store.count_active_enrollments_by_grade_id(grade_id)

    async def get_enrollment_count_by_student_id(self, student_id: int) -> int:
        _require(rules.validate_student_id(student_id))
        return await self._store.count_enrollments_by_student_id(student_id)

    # =======================================================================
    # Internals (callers hold the student lock and an open unit of work)
    # =======================================================================

    async def _require_enrollable_grade(self, grade_id: int) -> CatalogGrade:
        grade = await self._grades.find_grade_by_id(grade_id)
        if grade is None:
            raise GradeNotFoundError(grade_id, rules.ERROR_GRADE_NOT_FOUND)
        if not grade.is_valid_for_enrollment():
            raise InvalidArgumentError(rules.ERROR_GRADE_INACTIVE)
        return grade

    async def _require_active_in(self, student_id: int, grade_id: int) -> Enrollment:
        current = await self._store.find_current_enrollment_by_student_id(student_id)
        if current is None or current.grade_id != grade_id:
            raise EnrollmentNotFoundError(rules.ERROR_NOT_ENROLLED_IN_GRADE)
        return current

    async def _create_enrollment(
        self, student_id: int, grade_id: int, start_date: datetime, now: datetime
    ) -> Enrollment:
        if await self._store.is_student_enrolled_in_grade(student_id, grade_id):
            raise ConflictError(rules.ERROR_ALREADY_ENROLLED)
        if await self._store.has_active_enrollment(student_id):
            raise ConflictError(rules.ERROR_ALREADY_ENROLLED_ELSEWHERE)
        return await self._store.save(Enrollment.new(student_id, grade_id, start_date, now))

    async def _end_active(self, student_id: int, grade_id: int, end_date: datetime) -> Enrollment:
        current = await self._require_active_in(student_id, grade_id)
        _require(rules.validate_end_after_start(current.start_date, end_date))
        ended = await self._store.end_enrollment(student_id, grade_id, end_date)
        if ended is None:
            raise EnrollmentNotFoundError(rules.ERROR_NOT_ENROLLED_IN_GRADE)
        return ended
