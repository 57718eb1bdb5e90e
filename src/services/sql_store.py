"""
PostgreSQL-backed enrollment store and grade lookup (async SQLAlchemy).

One store instance wraps one request-scoped ``AsyncSession``.  Mutating
policy operations run inside :meth:`SqlEnrollmentStore.atomic`, which takes a
transaction-scoped advisory lock keyed on the student id (PostgreSQL only)
and commits before returning, so the per-student critical section always
covers the commit.  The partial unique index
``uq_student_grades_one_active_per_student`` is the last line of defence
and surfaces as ``sqlalchemy.exc.IntegrityError``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Callable

from sqlalchemy import and_, delete, func, or_, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.grade import Grade
from src.models.student_grade import StudentGrade
from src.services.records import CatalogGrade, Enrollment, utc_now

logger = logging.getLogger(__name__)

# Namespace for pg_advisory_xact_lock(int, int) so student locks cannot
# collide with advisory locks taken by other components.
ENROLLMENT_LOCK_NAMESPACE = 7301


# ---------------------------------------------------------------------------
# Row <-> record mapping
# ---------------------------------------------------------------------------


def to_catalog_grade(row: Grade) -> CatalogGrade:
    return CatalogGrade(
        id=row.id,
        name=row.name,
        level=row.level,
        description=row.description,
        is_active=row.is_active,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def to_enrollment(row: StudentGrade) -> Enrollment:
    return Enrollment(
        id=row.id,
        student_id=row.student_id,
        grade_id=row.grade_id,
        start_date=row.start_date,
        end_date=row.end_date,
        is_active=row.is_active,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _currently_active():
    return and_(StudentGrade.is_active.is_(True), StudentGrade.end_date.is_(None))


class SqlGradeLookup:
    """Read the ``grades`` table owned by the grade catalog."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_grade_by_id(self, grade_id: int) -> CatalogGrade | None:
        row = await self._session.get(Grade, grade_id)
        return to_catalog_grade(row) if row is not None else None


class SqlEnrollmentStore:
    """:class:`~src.services.store.EnrollmentStore` over the ``student_grades`` table."""

    def __init__(self, session: AsyncSession, clock: Callable[[], datetime] = utc_now) -> None:
        self._session = session
        self._clock = clock

    # -- transaction scope ---------------------------------------------------

    @asynccontextmanager
    async def atomic(self, student_id: int) -> AsyncIterator[None]:
        """Serialise writers for *student_id* and commit on clean exit."""
        session = self._session
        try:
            await self._lock_student(student_id)
            yield
            await session.commit()
        except Exception:
            await session.rollback()
            raise

    async def _lock_student(self, student_id: int) -> None:
        bind = self._session.get_bind()
        if bind.dialect.name != "postgresql":
            return
        await self._session.execute(
            text("SELECT pg_advisory_xact_lock(:namespace, :key)"),
            {"namespace": ENROLLMENT_LOCK_NAMESPACE, "key": student_id % 2**31},
        )

    async def _all(self, stmt) -> list[Enrollment]:
        result = await self._session.execute(stmt)
        return [to_enrollment(row) for row in result.scalars().all()]

    # -- commands ------------------------------------------------------------

    async def save(self, enrollment: Enrollment) -> Enrollment:
        if enrollment.id is not None:
            raise ValueError(f"Enrollment id={enrollment.id} is already saved")
        row = StudentGrade(
            student_id=enrollment.student_id,
            grade_id=enrollment.grade_id,
            start_date=enrollment.start_date,
            end_date=enrollment.end_date,
            is_active=enrollment.is_active,
            created_at=enrollment.created_at,
            updated_at=enrollment.updated_at,
        )
        self._session.add(row)
        await self._session.flush()
        return to_enrollment(row)

    async def end_enrollment(
        self, student_id: int, grade_id: int, end_date: datetime
    ) -> Enrollment | None:
        stmt = (
            select(StudentGrade)
            .where(
                StudentGrade.student_id == student_id,
                StudentGrade.grade_id == grade_id,
                _currently_active(),
            )
            .with_for_update()
        )
        result = await self._session.execute(stmt)
        row = result.scalars().first()
        if row is None:
            return None
        row.end_date = end_date
        row.is_active = False
        row.updated_at = self._clock()
        await self._session.flush()
        return to_enrollment(row)

    async def delete_by_id(self, enrollment_id: int) -> bool:
        result = await self._session.execute(
            delete(StudentGrade).where(StudentGrade.id == enrollment_id)
        )
        return result.rowcount > 0

    # -- queries -------------------------------------------------------------

    async def find_by_id(
        self, enrollment_id: int, for_update: bool = False
    ) -> Enrollment | None:
        if for_update:
            row = await self._session.get(
                StudentGrade, enrollment_id, populate_existing=True, with_for_update=True
            )
        else:
            row = await self._session.get(StudentGrade, enrollment_id)
        return to_enrollment(row) if row is not None else None

    async def find_by_student_id(self, student_id: int) -> list[Enrollment]:
        return await self._all(
            select(StudentGrade)
            .where(StudentGrade.student_id == student_id)
            .order_by(StudentGrade.start_date, StudentGrade.id)
        )

    async def find_by_grade_id(self, grade_id: int) -> list[Enrollment]:
        return await self._all(
            select(StudentGrade)
            .where(StudentGrade.grade_id == grade_id)
            .order_by(StudentGrade.start_date, StudentGrade.id)
        )

    async def find_current_enrollment_by_student_id(self, student_id: int) -> Enrollment | None:
        result = await self._session.execute(
            select(StudentGrade)
            .where(StudentGrade.student_id == student_id, _currently_active())
            .order_by(StudentGrade.start_date.desc(), StudentGrade.id.desc())
            .limit(1)
        )
        row = result.scalars().first()
        return to_enrollment(row) if row is not None else None

    async def find_active_enrollments_by_grade_id(self, grade_id: int) -> list[Enrollment]:
        return await self._all(
            select(StudentGrade)
            .where(StudentGrade.grade_id == grade_id, _currently_active())
            .order_by(StudentGrade.start_date, StudentGrade.id)
        )

    async def find_all_active_enrollments(self) -> list[Enrollment]:
        return await self._all(
            select(StudentGrade)
            .where(_currently_active())
            .order_by(StudentGrade.start_date, StudentGrade.id)
        )

    async def find_enrollments_active_on_date(self, date: datetime) -> list[Enrollment]:
        return await self._all(
            select(StudentGrade)
            .where(
                StudentGrade.start_date < date,
                or_(StudentGrade.end_date.is_(None), StudentGrade.end_date > date),
            )
            .order_by(StudentGrade.start_date, StudentGrade.id)
        )

    async def find_enrollments_by_student_id_and_date_range(
        self, student_id: int, start_date: datetime, end_date: datetime
    ) -> list[Enrollment]:
        return await self._all(
            select(StudentGrade)
            .where(
                StudentGrade.student_id == student_id,
                StudentGrade.start_date <= end_date,
                or_(StudentGrade.end_date.is_(None), StudentGrade.end_date >= start_date),
            )
            .order_by(StudentGrade.start_date, StudentGrade.id)
        )

    async def is_student_enrolled_in_grade(self, student_id: int, grade_id: int) -> bool:
        result = await self._session.execute(
            select(func.count())
            .select_from(StudentGrade)
            .where(
                StudentGrade.student_id == student_id,
                StudentGrade.grade_id == grade_id,
                _currently_active(),
            )
        )
        return result.scalar_one() > 0

    async def has_active_enrollment(self, student_id: int) -> bool:
        result = await self._session.execute(
            select(func.count())
            .select_from(StudentGrade)
            .where(StudentGrade.student_id == student_id, _currently_active())
        )
        return result.scalar_one() > 0

    async def count_active_enrollments_by_grade_id(self, grade_id: int) -> int:
        result = await self._session.execute(
            select(func.count())
            .select_from(StudentGrade)
            .where(StudentGrade.grade_id == grade_id, _currently_active())
        )
        return int(result.scalar_one())

    async def count_enrollments_by_student_id(self, student_id: int) -> int:
        result = await self._session.execute(
            select(func.count())
            .select_from(StudentGrade)
            .where(StudentGrade.student_id == student_id)
        )
        return int(result.scalar_one())
