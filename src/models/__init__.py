"""SQLAlchemy ORM models for the academic records service."""

from src.models.base import Base
from src.models.grade import Grade
from src.models.student_grade import StudentGrade

__all__ = [
    "Base",
    "Grade",
    "StudentGrade",
]
