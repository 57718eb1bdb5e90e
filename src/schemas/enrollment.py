"""Pydantic v2 schemas for the student-grade enrollment endpoints."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator

from src.services.records import Enrollment


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Normalise timezone-aware datetimes to naive UTC (DB convention)."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class _DatedRequest(BaseModel):
    student_id: int = Field(..., description="ID of the student")

    @field_validator("*")
    @classmethod
    def normalise_datetimes(cls, value):
        if isinstance(value, datetime):
            return to_naive_utc(value)
        return value


class EnrollStudentRequest(_DatedRequest):
    """Request payload for POST /api/v1/student-grades/enroll."""

    grade_id: int = Field(..., description="Grade to enroll the student in")
    start_date: datetime | None = Field(
        default=None, description="Enrollment start (defaults to now)"
    )


class TransferStudentRequest(_DatedRequest):
    """Request payload for POST /api/v1/student-grades/transfer."""

    from_grade_id: int = Field(..., description="Grade the student is leaving")
    to_grade_id: int = Field(..., description="Grade the student is joining")
    transfer_date: datetime | None = Field(
        default=None, description="Effective date (defaults to now)"
    )


class EndEnrollmentRequest(_DatedRequest):
    """Request payload for POST /api/v1/student-grades/end."""

    grade_id: int = Field(..., description="Grade whose enrollment is ended")
    end_date: datetime | None = Field(default=None, description="End date (defaults to now)")


class GraduateStudentRequest(_DatedRequest):
    """Request payload for POST /api/v1/student-grades/graduate."""

    graduation_date: datetime | None = Field(
        default=None, description="Graduation date (defaults to now)"
    )


class EnrollmentResponse(BaseModel):
    """One enrollment record plus its derived lifecycle fields."""

    id: int
    student_id: int
    grade_id: int
    start_date: datetime
    end_date: datetime | None
    is_active: bool
    is_currently_active: bool
    has_ended: bool
    enrollment_duration_days: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: Enrollment, now: datetime | None = None) -> EnrollmentResponse:
        return cls(
            id=record.id,
            student_id=record.student_id,
            grade_id=record.grade_id,
            start_date=record.start_date,
            end_date=record.end_date,
            is_active=record.is_active,
            is_currently_active=record.is_currently_active(),
            has_ended=record.has_ended(),
            enrollment_duration_days=record.enrollment_duration(now),
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class MessageResponse(BaseModel):
    message: str


class EnrolledResponse(BaseModel):
    enrolled: bool


class HasActiveEnrollmentResponse(BaseModel):
    has_active_enrollment: bool


class CountResponse(BaseModel):
    count: int
