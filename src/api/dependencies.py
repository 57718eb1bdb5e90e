"""FastAPI dependency injection helpers.

Provides reusable ``Depends``-compatible callables for:
- ``get_db()``                 → async database session
- ``get_student_locks()``      → process-wide per-student lock table (app.state)
- ``get_enrollment_policy()``  → EnrollmentPolicy bound to the request session
"""

import logging
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.database import get_async_db
from src.services.enrollment_policy import EnrollmentPolicy
from src.services.locks import StudentLocks
from src.services.sql_store import SqlEnrollmentStore, SqlGradeLookup

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Database session
# ---------------------------------------------------------------------------


async def get_db(
    db: AsyncSession = Depends(get_async_db),
) -> AsyncSession:
    """Provide an async database session to route handlers.

    Thin wrapper around :func:`src.database.get_async_db` that adds a
    typed annotation so handlers can use ``Annotated[AsyncSession, Depends(get_db)]``.
    """
    return db


DBDep = Annotated[AsyncSession, Depends(get_db)]


# ---------------------------------------------------------------------------
# Enrollment policy
# ---------------------------------------------------------------------------


def get_student_locks(request: Request) -> StudentLocks:
    """Return the application-wide lock table from ``app.state``.

    The table is created during lifespan startup.  If it is missing (e.g.
    the app was mounted without running its lifespan) one is created and
    stored so that every request still shares a single instance.
    """
    locks: StudentLocks | None = getattr(request.app.state, "student_locks", None)
    if locks is None:
        logger.warning("Student lock table missing from app.state; creating one")
        locks = StudentLocks()
        request.app.state.student_locks = locks
    return locks


def get_enrollment_policy(
    db: DBDep,
    locks: Annotated[StudentLocks, Depends(get_student_locks)],
) -> EnrollmentPolicy:
    """Build an :class:`EnrollmentPolicy` over the request-scoped session."""
    return EnrollmentPolicy(
        store=SqlEnrollmentStore(db),
        grades=SqlGradeLookup(db),
        locks=locks,
    )


PolicyDep = Annotated[EnrollmentPolicy, Depends(get_enrollment_policy)]
