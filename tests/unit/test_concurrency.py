"""Concurrency tests for the enrollment lifecycle.

The in-memory store yields to the event loop on every call and has no
unique-index backstop, so these tests only pass when the per-student lock
table and the store unit of work actually serialise writers.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta

from src.exceptions import ConflictError, EnrollmentNotFoundError
from src.services.enrollment_policy import EnrollmentPolicy
from src.services.memory_store import InMemoryEnrollmentStore

from tests.fixtures.enrollment_data import T0

STUDENT = 500


async def test_concurrent_enrolls_for_one_student_admit_exactly_one(
    policy: EnrollmentPolicy, store: InMemoryEnrollmentStore
):
    """N parallel enrolls in different grades: one wins, the rest conflict."""
    results = await asyncio.gather(
        *(policy.enroll(STUDENT, grade_id, T0) for grade_id in (1, 2, 3, 1, 2, 3)),
        return_exceptions=True,
    )

    successes = [r for r in results if not isinstance(r, BaseException)]
    failures = [r for r in results if isinstance(r, BaseException)]
    assert len(successes) == 1, f"Expected exactly one winner, got {len(successes)}"
    assert all(isinstance(f, ConflictError) for f in failures), failures
    assert len(await store.find_by_student_id(STUDENT)) == 1


async def test_concurrent_enrolls_for_different_students_all_succeed(policy: EnrollmentPolicy):
    results = await asyncio.gather(
        *(policy.enroll(student_id, 1, T0) for student_id in range(1, 21))
    )

    assert len({r.id for r in results}) == 20
    assert await policy.get_active_enrollment_count_by_grade_id(1) == 20


async def test_concurrent_transfers_apply_once(policy: EnrollmentPolicy):
    """Two racing transfers out of grade 1: the loser finds no source enrollment."""
    await policy.enroll(STUDENT, 1, T0 - timedelta(days=10))

    results = await asyncio.gather(
        policy.transfer(STUDENT, 1, 2, T0),
        policy.transfer(STUDENT, 1, 3, T0),
        return_exceptions=True,
    )

    successes = [r for r in results if not isinstance(r, BaseException)]
    assert len(successes) == 1
    assert isinstance(
        next(r for r in results if isinstance(r, BaseException)), EnrollmentNotFoundError
    )
    history = await policy.get_enrollments_by_student_id(STUDENT)
    assert len(history) == 2
    assert sum(e.is_currently_active() for e in history) == 1


async def test_readers_never_see_transfer_midway(
    policy: EnrollmentPolicy, store: InMemoryEnrollmentStore
):
    """While a transfer is in flight every snapshot shows exactly one active record."""
    await policy.enroll(STUDENT, 1, T0 - timedelta(days=10))
    observed: list[int] = []
    done = asyncio.Event()

    async def watch() -> None:
        while not done.is_set():
            active = await store.find_all_active_enrollments()
            observed.append(sum(1 for e in active if e.student_id == STUDENT))

    async def move() -> None:
        try:
            await policy.transfer(STUDENT, 1, 2, T0)
        finally:
            done.set()

    await asyncio.gather(watch(), move())

    assert observed, "Watcher never ran"
    assert set(observed) == {1}, f"Observed active counts {sorted(set(observed))}"


async def test_enroll_racing_graduate_keeps_single_active(
    policy: EnrollmentPolicy, store: InMemoryEnrollmentStore
):
    await policy.enroll(STUDENT, 1, T0 - timedelta(days=10))

    await asyncio.gather(
        policy.graduate(STUDENT, T0),
        policy.enroll(STUDENT, 2, T0),
        return_exceptions=True,
    )

    active = [e for e in await store.find_by_student_id(STUDENT) if e.is_currently_active()]
    assert len(active) <= 1
