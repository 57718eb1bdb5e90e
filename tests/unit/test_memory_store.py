"""Unit tests for the in-memory store unit of work (src/services/memory_store.py).

The policy engine relies on ``atomic`` to publish a transfer's two writes
together or not at all; these tests pin that behaviour directly.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from src.services.memory_store import InMemoryEnrollmentStore, InMemoryGradeLookup
from src.services.records import Enrollment

from tests.fixtures.enrollment_data import FIRST_GRADE, T0, FakeClock


def _new(student_id: int = 1, grade_id: int = 1) -> Enrollment:
    return Enrollment.new(student_id, grade_id, T0, T0)


async def test_save_assigns_sequential_ids(store: InMemoryEnrollmentStore):
    first = await store.save(_new(1))
    second = await store.save(_new(2))

    assert (first.id, second.id) == (1, 2)
    assert await store.find_by_id(2) == second


async def test_atomic_publishes_on_clean_exit(store: InMemoryEnrollmentStore):
    async with store.atomic(1):
        saved = await store.save(_new())
        assert await store.find_by_id(saved.id) == saved, "Own writes are visible inside"

    assert await store.find_by_id(saved.id) == saved


async def test_atomic_discards_writes_on_error(store: InMemoryEnrollmentStore):
    existing = await store.save(_new())

    with pytest.raises(RuntimeError):
        async with store.atomic(1):
            await store.end_enrollment(1, 1, T0 + timedelta(days=1))
            await store.save(_new(grade_id=2))
            raise RuntimeError("abort")

    assert await store.find_by_student_id(1) == [existing]


async def test_staged_writes_are_invisible_to_other_tasks(store: InMemoryEnrollmentStore):
    staged = asyncio.Event()
    proceed = asyncio.Event()
    seen: list[int] = []

    async def writer() -> None:
        async with store.atomic(1):
            await store.save(_new())
            staged.set()
            await proceed.wait()

    async def reader() -> None:
        await staged.wait()
        seen.append(await store.count_enrollments_by_student_id(1))
        proceed.set()

    await asyncio.gather(writer(), reader())

    assert seen == [0]
    assert await store.count_enrollments_by_student_id(1) == 1


async def test_nested_atomic_joins_outer_scope(store: InMemoryEnrollmentStore):
    with pytest.raises(RuntimeError):
        async with store.atomic(1):
            async with store.atomic(1):
                await store.save(_new())
            raise RuntimeError("abort outer")

    assert await store.count_enrollments_by_student_id(1) == 0


async def test_end_enrollment_uses_store_clock():
    clock = FakeClock(T0 + timedelta(days=2))
    store = InMemoryEnrollmentStore(clock=clock)
    saved = await store.save(_new())

    ended = await store.end_enrollment(1, 1, T0 + timedelta(days=1))

    assert ended is not None and ended.id == saved.id
    assert ended.updated_at == clock.now
    assert await store.end_enrollment(1, 1, T0 + timedelta(days=1)) is None


async def test_save_rejects_already_saved_record(store: InMemoryEnrollmentStore):
    saved = await store.save(_new())

    with pytest.raises(ValueError, match="already saved"):
        await store.save(saved)

    assert await store.count_enrollments_by_student_id(1) == 1


async def test_delete_by_id(store: InMemoryEnrollmentStore):
    saved = await store.save(_new())

    assert await store.delete_by_id(saved.id) is True
    assert await store.delete_by_id(saved.id) is False


async def test_grade_lookup_put_and_find():
    grades = InMemoryGradeLookup()
    grades.put(FIRST_GRADE)

    assert await grades.find_grade_by_id(1) == FIRST_GRADE
    assert await grades.find_grade_by_id(2) is None
