"""SQLAlchemy ORM model for the student_grades table."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, Boolean, CheckConstraint, ForeignKey, Index, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base

if TYPE_CHECKING:
    from src.models.grade import Grade


class StudentGrade(Base):
    """One contiguous span of a student's membership in one grade.

    Attributes:
        id: Auto-incrementing bigint primary key.
        student_id: External student identifier (not a foreign key here).
        grade_id: Foreign key to grades table.
        start_date: When the enrollment started.
        end_date: When the enrollment ended, NULL while open.
        is_active: Active flag, tracked independently of end_date.
        created_at: Timestamp of record creation.
        updated_at: Timestamp of last modification.
        grade: Relationship to the enrolled grade.
    """

    __tablename__ = "student_grades"
    __table_args__ = (
        CheckConstraint(
            "end_date IS NULL OR end_date >= start_date",
            name="ck_student_grades_end_after_start",
        ),
        # At most one open enrollment per student.
        Index(
            "uq_student_grades_one_active_per_student",
            "student_id",
            unique=True,
            postgresql_where=text("is_active AND end_date IS NULL"),
            sqlite_where=text("is_active AND end_date IS NULL"),
        ),
        Index("idx_student_grades_grade_active", "grade_id", "is_active"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    grade_id: Mapped[int] = mapped_column(
        ForeignKey("grades.id", ondelete="RESTRICT"), nullable=False
    )
    start_date: Mapped[datetime] = mapped_column(nullable=False)
    end_date: Mapped[datetime | None] = mapped_column(nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)

    grade: Mapped[Grade] = relationship("Grade", back_populates="enrollments")

    def __repr__(self) -> str:
        return (
            f"<StudentGrade(id={self.id}, student_id={self.student_id}, "
            f"grade_id={self.grade_id}, active={self.is_active})>"
        )
