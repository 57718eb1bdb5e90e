"""
Process-local enrollment store and grade lookup.

Used by the test suite and for running the API without PostgreSQL.  Writes
made inside :meth:`InMemoryEnrollmentStore.atomic` are staged per task and
published together on clean exit, so other tasks never observe a
half-finished transfer.  Every call yields to the event loop once, like a
network round-trip would, which lets concurrency tests interleave callers.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import datetime
from typing import AsyncIterator, Callable, Iterable

from src.services.records import CatalogGrade, Enrollment, utc_now

logger = logging.getLogger(__name__)


class InMemoryGradeLookup:
    """Grade catalog backed by a dict keyed on grade id."""

    def __init__(self, grades: Iterable[CatalogGrade] = ()) -> None:
        self._grades: dict[int, CatalogGrade] = {g.id: g for g in grades}

    def put(self, grade: CatalogGrade) -> None:
        self._grades[grade.id] = grade

    async def find_grade_by_id(self, grade_id: int) -> CatalogGrade | None:
        await asyncio.sleep(0)
        return self._grades.get(grade_id)


class InMemoryEnrollmentStore:
    """Dict-backed :class:`~src.services.store.EnrollmentStore`."""

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock
        self._rows: dict[int, Enrollment] = {}
        self._ids = itertools.count(1)
        self._staged: ContextVar[dict[int, Enrollment | None] | None] = ContextVar(
            f"enrollment_store_staged_{id(self)}", default=None
        )

    # -- transaction scope ---------------------------------------------------

    @asynccontextmanager
    async def atomic(self, student_id: int) -> AsyncIterator[None]:
        if self._staged.get() is not None:
            # Nested scope joins the outer unit of work.
            yield
            return
        staged: dict[int, Enrollment | None] = {}
        token = self._staged.set(staged)
        try:
            yield
        except BaseException:
            logger.debug(
                "Discarding %d staged enrollment write(s) for student %d",
                len(staged),
                student_id,
            )
            raise
        else:
            self._publish(staged)
        finally:
            self._staged.reset(token)

    def _publish(self, staged: dict[int, Enrollment | None]) -> None:
        for enrollment_id, record in staged.items():
            if record is None:
                self._rows.pop(enrollment_id, None)
            else:
                self._rows[enrollment_id] = record

    def _view(self) -> dict[int, Enrollment]:
        staged = self._staged.get()
        if not staged:
            return self._rows
        merged = dict(self._rows)
        for enrollment_id, record in staged.items():
            if record is None:
                merged.pop(enrollment_id, None)
            else:
                merged[enrollment_id] = record
        return merged

    def _write(self, enrollment_id: int, record: Enrollment | None) -> None:
        staged = self._staged.get()
        if staged is None:
            self._publish({enrollment_id: record})
        else:
            staged[enrollment_id] = record

    def _select(self, predicate: Callable[[Enrollment], bool]) -> list[Enrollment]:
        return sorted(
            (e for e in self._view().values() if predicate(e)),
            key=lambda e: (e.start_date, e.id or 0),
        )

    # -- commands ------------------------------------------------------------

    async def save(self, enrollment: Enrollment) -> Enrollment:
        await asyncio.sleep(0)
        if enrollment.id is not None:
            raise ValueError(f"Enrollment id={enrollment.id} is already saved")
        enrollment = enrollment.with_id(next(self._ids))
        self._write(enrollment.id, enrollment)
        return enrollment

    async def end_enrollment(
        self, student_id: int, grade_id: int, end_date: datetime
    ) -> Enrollment | None:
        await asyncio.sleep(0)
        for record in self._select(
            lambda e: e.student_id == student_id
            and e.grade_id == grade_id
            and e.is_currently_active()
        ):
            ended = record.ended(end_date, self._clock())
            self._write(ended.id, ended)
            return ended
        return None

    async def delete_by_id(self, enrollment_id: int) -> bool:
        await asyncio.sleep(0)
        if enrollment_id not in self._view():
            return False
        self._write(enrollment_id, None)
        return True

    # -- queries -------------------------------------------------------------

    async def find_by_id(
        self, enrollment_id: int, for_update: bool = False
    ) -> Enrollment | None:
        await asyncio.sleep(0)
        return self._view().get(enrollment_id)

    async def find_by_student_id(self, student_id: int) -> list[Enrollment]:
        await asyncio.sleep(0)
        return self._select(lambda e: e.student_id == student_id)

    async def find_by_grade_id(self, grade_id: int) -> list[Enrollment]:
        await asyncio.sleep(0)
        return self._select(lambda e: e.grade_id == grade_id)

    async def find_current_enrollment_by_student_id(self, student_id: int) -> Enrollment | None:
        await asyncio.sleep(0)
        current = self._select(
            lambda e: e.student_id == student_id and e.is_currently_active()
        )
        return current[-1] if current else None

    async def find_active_enrollments_by_grade_id(self, grade_id: int) -> list[Enrollment]:
        await asyncio.sleep(0)
        return self._select(lambda e: e.grade_id == grade_id and e.is_currently_active())

    async def find_all_active_enrollments(self) -> list[Enrollment]:
        await asyncio.sleep(0)
        return self._select(lambda e: e.is_currently_active())

    async def find_enrollments_active_on_date(self, date: datetime) -> list[Enrollment]:
        await asyncio.sleep(0)
        return self._select(lambda e: e.is_valid_for_date(date))

    async def find_enrollments_by_student_id_and_date_range(
        self, student_id: int, start_date: datetime, end_date: datetime
    ) -> list[Enrollment]:
        await asyncio.sleep(0)
        return self._select(
            lambda e: e.student_id == student_id
            and e.start_date <= end_date
            and (e.end_date is None or e.end_date >= start_date)
        )

    async def is_student_enrolled_in_grade(self, student_id: int, grade_id: int) -> bool:
        await asyncio.sleep(0)
        return bool(
            self._select(
                lambda e: e.student_id == student_id
                and e.grade_id == grade_id
                and e.is_currently_active()
            )
        )

    async def has_active_enrollment(self, student_id: int) -> bool:
        await asyncio.sleep(0)
        return bool(
            self._select(lambda e: e.student_id == student_id and e.is_currently_active())
        )

    async def count_active_enrollments_by_grade_id(self, grade_id: int) -> int:
        return len(await self.find_active_enrollments_by_grade_id(grade_id))

    async def count_enrollments_by_student_id(self, student_id: int) -> int:
        return len(await self.find_by_student_id(student_id))
