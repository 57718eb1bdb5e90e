"""Keyed per-student lock table.

Serialises mutating enrollment operations for one ``student_id`` inside a
single process.  Locks are created on first use and discarded once no
coroutine holds or waits for them, so the table only grows with the number
of students being mutated concurrently.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

logger = logging.getLogger(__name__)


class StudentLocks:
    """Map ``student_id`` to an ``asyncio.Lock`` created on demand."""

    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}
        self._users: dict[int, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, student_id: int) -> AsyncIterator[None]:
        """Hold the lock for *student_id* for the duration of the block."""
        lock = self._locks.get(student_id)
        if lock is None:
            lock = self._locks[student_id] = asyncio.Lock()
        self._users[student_id] = self._users.get(student_id, 0) + 1
        try:
            if lock.locked():
                logger.debug("Waiting for enrollment lock on student %d", student_id)
            async with lock:
                yield
        finally:
            self._users[student_id] -= 1
            if self._users[student_id] == 0:
                del self._users[student_id]
                del self._locks[student_id]
