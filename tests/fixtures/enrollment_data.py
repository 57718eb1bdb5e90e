"""Shared test data for enrollment tests.

Grades mirror a small slice of the catalog (levels 1-4, level 4 inactive)
and ``FakeClock`` gives tests full control over "now".
"""

from __future__ import annotations

from datetime import datetime, timedelta

from src.services.records import CatalogGrade

# Fixed reference instant used as T0 across the suite.
T0 = datetime(2026, 3, 2, 8, 0, 0)

FIRST_GRADE = CatalogGrade(
    id=1,
    name="First Grade",
    level=1,
    description="First year of primary school",
    is_active=True,
)
SECOND_GRADE = CatalogGrade(id=2, name="Second Grade", level=2, is_active=True)
THIRD_GRADE = CatalogGrade(id=3, name="Third Grade", level=3, is_active=True)
FOURTH_GRADE_CLOSED = CatalogGrade(
    id=4,
    name="Fourth Grade",
    level=4,
    description="Closed for new enrollments",
    is_active=False,
)

ALL_GRADES = [FIRST_GRADE, SECOND_GRADE, THIRD_GRADE, FOURTH_GRADE_CLOSED]


class FakeClock:
    """Callable clock returning a settable naive-UTC ``now``."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now += timedelta(**delta)
        return self.now
