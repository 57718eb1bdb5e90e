"""SQLAlchemy ORM model for the grades table."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, List

from sqlalchemy import Boolean, CheckConstraint, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base

if TYPE_CHECKING:
    from src.models.student_grade import StudentGrade


class Grade(Base):
    """School grade levels 1-12.

    Rows are owned by the grade catalog; this service only reads them to
    check existence and whether a grade accepts enrollments.

    Attributes:
        id: Auto-incrementing primary key.
        name: Unique display name (e.g. 'First Grade').
        description: Optional free-text description.
        level: Unique numeric level, 1 to 12.
        is_active: Whether the grade currently accepts enrollments.
        created_at: Timestamp of record creation.
        updated_at: Timestamp of last modification.
        enrollments: Relationship to student enrollments in this grade.
    """

    __tablename__ = "grades"
    __table_args__ = (
        CheckConstraint("level BETWEEN 1 AND 12", name="ck_grades_level_range"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    level: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )
    created_at: Mapped[datetime] = mapped_column(
        nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    enrollments: Mapped[List[StudentGrade]] = relationship(
        "StudentGrade", back_populates="grade"
    )

    def __repr__(self) -> str:
        return f"<Grade(id={self.id}, level={self.level}, name='{self.name}')>"
