"""Initial schema: grades and student_grades.

Revision ID: 001_initial_schema
Revises: None
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # -- grades (owned by the grade catalog, read here) --
    op.create_table(
        "grades",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
        sa.UniqueConstraint("level"),
        sa.CheckConstraint("level BETWEEN 1 AND 12", name="ck_grades_level_range"),
    )

    # -- student_grades --
    op.create_table(
        "student_grades",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("student_id", sa.BigInteger(), nullable=False),
        sa.Column("grade_id", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.TIMESTAMP(), nullable=False),
        sa.Column("end_date", sa.TIMESTAMP(), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(), nullable=False),
        sa.ForeignKeyConstraint(["grade_id"], ["grades.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "end_date IS NULL OR end_date >= start_date",
            name="ck_student_grades_end_after_start",
        ),
    )
    op.create_index("ix_student_grades_student_id", "student_grades", ["student_id"])
    op.create_index(
        "idx_student_grades_grade_active", "student_grades", ["grade_id", "is_active"]
    )
    # At most one open enrollment per student.
    op.create_index(
        "uq_student_grades_one_active_per_student",
        "student_grades",
        ["student_id"],
        unique=True,
        postgresql_where=sa.text("is_active AND end_date IS NULL"),
    )


def downgrade() -> None:
    op.drop_index("uq_student_grades_one_active_per_student", table_name="student_grades")
    op.drop_index("idx_student_grades_grade_active", table_name="student_grades")
    op.drop_index("ix_student_grades_student_id", table_name="student_grades")
    op.drop_table("student_grades")
    op.drop_table("grades")
