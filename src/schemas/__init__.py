"""Pydantic v2 request/response schemas for the academic records API."""

from src.schemas.enrollment import (
    CountResponse,
    EndEnrollmentRequest,
    EnrolledResponse,
    EnrollmentResponse,
    EnrollStudentRequest,
    GraduateStudentRequest,
    HasActiveEnrollmentResponse,
    MessageResponse,
    TransferStudentRequest,
)

__all__ = [
    "EnrollStudentRequest",
    "TransferStudentRequest",
    "EndEnrollmentRequest",
    "GraduateStudentRequest",
    "EnrollmentResponse",
    "MessageResponse",
    "EnrolledResponse",
    "HasActiveEnrollmentResponse",
    "CountResponse",
]
