"""Unit tests for the per-student lock table (src/services/locks.py)."""

from __future__ import annotations

import asyncio

import pytest

from src.services.locks import StudentLocks


async def test_same_student_is_serialised():
    locks = StudentLocks()
    events: list[str] = []

    async def critical(name: str) -> None:
        async with locks.hold(7):
            events.append(f"{name}:in")
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            events.append(f"{name}:out")

    await asyncio.gather(critical("a"), critical("b"))

    assert events == ["a:in", "a:out", "b:in", "b:out"], f"Sections overlapped: {events}"


async def test_different_students_run_concurrently():
    locks = StudentLocks()
    inside = asyncio.Event()
    release = asyncio.Event()

    async def first() -> None:
        async with locks.hold(1):
            inside.set()
            await release.wait()

    async def second() -> None:
        await inside.wait()
        async with locks.hold(2):
            release.set()

    await asyncio.wait_for(asyncio.gather(first(), second()), timeout=1)


async def test_lock_table_is_emptied_after_use():
    locks = StudentLocks()

    async with locks.hold(3):
        assert len(locks) == 1

    assert len(locks) == 0, "Unused locks must be discarded"


async def test_lock_is_released_when_block_raises():
    locks = StudentLocks()

    with pytest.raises(RuntimeError):
        async with locks.hold(3):
            raise RuntimeError("boom")

    assert len(locks) == 0
    async with locks.hold(3):
        pass


async def test_waiters_keep_lock_alive():
    """A lock with queued waiters survives its first holder leaving."""
    locks = StudentLocks()
    order: list[int] = []

    async def worker(n: int) -> None:
        async with locks.hold(9):
            order.append(n)
            await asyncio.sleep(0)

    await asyncio.gather(*(worker(n) for n in range(5)))

    assert order == [0, 1, 2, 3, 4]
    assert len(locks) == 0
