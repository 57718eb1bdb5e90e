"""Student-grade enrollment API routes.

Provides (prefix ``/api/v1/student-grades``):
    POST   /enroll                                     enroll a student in a grade
    POST   /transfer                                   move a student between grades
    POST   /end                                        end an active enrollment
    POST   /graduate                                   end the student's current enrollment
    DELETE /{enrollment_id}                            remove an ended enrollment
    GET    /active                                     all active enrollments
    GET    /active-on-date                             enrollments spanning a date
    GET    /{enrollment_id}                            one enrollment
    GET    /student/{student_id}                       a student's history
    GET    /student/{student_id}/current               the student's active enrollment
    GET    /student/{student_id}/date-range            history overlapping a range
    GET    /student/{student_id}/grade/{grade_id}/enrolled
    GET    /student/{student_id}/has-active
    GET    /student/{student_id}/enrollment-count
    GET    /grade/{grade_id}                           a grade's history
    GET    /grade/{grade_id}/active                    a grade's active roster
    GET    /grade/{grade_id}/active-count

Business-rule failures are raised by the policy engine as typed exceptions
and rendered by the handlers registered in ``src.main``.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, HTTPException, Query, status

from src.api.dependencies import PolicyDep
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
    to_naive_utc,
)
from src.services.records import Enrollment

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/student-grades", tags=["student-grades"])


def _many(records: list[Enrollment]) -> list[EnrollmentResponse]:
    return [EnrollmentResponse.from_record(r) for r in records]


# ---------------------------------------------------------------------------
# Lifecycle operations
# ---------------------------------------------------------------------------


@router.post(
    "/enroll",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll student in grade",
    responses={
        400: {"description": "Invalid input data or grade inactive"},
        404: {"description": "Grade not found"},
        409: {"description": "Student already enrolled"},
    },
)
async def enroll_student(body: EnrollStudentRequest, policy: PolicyDep) -> EnrollmentResponse:
    record = await policy.enroll(body.student_id, body.grade_id, body.start_date)
    return EnrollmentResponse.from_record(record)


@router.post(
    "/transfer",
    response_model=EnrollmentResponse,
    summary="Transfer student between grades",
    description="Ends the enrollment in the source grade and opens one in the destination grade atomically.",
    responses={
        400: {"description": "Invalid input data, same grade, or destination inactive"},
        404: {"description": "Grade missing or student not enrolled in source grade"},
    },
)
async def transfer_student(body: TransferStudentRequest, policy: PolicyDep) -> EnrollmentResponse:
    record = await policy.transfer(
        body.student_id, body.from_grade_id, body.to_grade_id, body.transfer_date
    )
    return EnrollmentResponse.from_record(record)


@router.post(
    "/end",
    response_model=EnrollmentResponse,
    summary="End student enrollment",
    responses={
        400: {"description": "Invalid input data"},
        404: {"description": "Student not enrolled in grade"},
    },
)
async def end_enrollment(body: EndEnrollmentRequest, policy: PolicyDep) -> EnrollmentResponse:
    record = await policy.end_enrollment(body.student_id, body.grade_id, body.end_date)
    return EnrollmentResponse.from_record(record)


@router.post(
    "/graduate",
    response_model=EnrollmentResponse,
    summary="Graduate student",
    description="Ends the student's current enrollment, whichever grade it is in.",
    responses={
        400: {"description": "Invalid input data"},
        404: {"description": "Student not enrolled"},
    },
)
async def graduate_student(body: GraduateStudentRequest, policy: PolicyDep) -> EnrollmentResponse:
    record = await policy.graduate(body.student_id, body.graduation_date)
    return EnrollmentResponse.from_record(record)


@router.delete(
    "/{enrollment_id}",
    response_model=MessageResponse,
    summary="Remove enrollment",
    responses={
        404: {"description": "Enrollment not found"},
        409: {"description": "Cannot remove active enrollment"},
    },
)
async def remove_enrollment(enrollment_id: int, policy: PolicyDep) -> MessageResponse:
    if not await policy.remove_enrollment(enrollment_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Enrollment with id={enrollment_id} not found",
        )
    return MessageResponse(message="Enrollment removed successfully")


# ---------------------------------------------------------------------------
# Queries (static paths first so they are not captured by /{enrollment_id})
# ---------------------------------------------------------------------------


@router.get("/active", response_model=list[EnrollmentResponse], summary="All active enrollments")
async def get_all_active_enrollments(policy: PolicyDep) -> list[EnrollmentResponse]:
    return _many(await policy.get_all_active_enrollments())


@router.get(
    "/active-on-date",
    response_model=list[EnrollmentResponse],
    summary="Enrollments active on a date",
)
async def get_enrollments_active_on_date(
    policy: PolicyDep,
    date: datetime = Query(..., description="Instant to test (ISO 8601)"),
) -> list[EnrollmentResponse]:
    return _many(await policy.get_enrollments_active_on_date(to_naive_utc(date)))


@router.get(
    "/{enrollment_id}",
    response_model=EnrollmentResponse,
    summary="Get enrollment by ID",
    responses={404: {"description": "Enrollment not found"}},
)
async def get_enrollment(enrollment_id: int, policy: PolicyDep) -> EnrollmentResponse:
    record = await policy.get_enrollment_by_id(enrollment_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Enrollment with id={enrollment_id} not found",
        )
    return EnrollmentResponse.from_record(record)


@router.get(
    "/student/{student_id}",
    response_model=list[EnrollmentResponse],
    summary="Enrollments for a student",
)
async def get_enrollments_by_student(student_id: int, policy: PolicyDep) -> list[EnrollmentResponse]:
    return _many(await policy.get_enrollments_by_student_id(student_id))


@router.get(
    "/student/{student_id}/current",
    response_model=EnrollmentResponse,
    summary="Current enrollment for a student",
    responses={404: {"description": "No active enrollment found"}},
)
async def get_current_enrollment(student_id: int, policy: PolicyDep) -> EnrollmentResponse:
    record = await policy.get_current_enrollment_by_student_id(student_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Student {student_id} has no active enrollment",
        )
    return EnrollmentResponse.from_record(record)


@router.get(
    "/student/{student_id}/date-range",
    response_model=list[EnrollmentResponse],
    summary="Student enrollments overlapping a date range",
)
async def get_enrollments_in_range(
    student_id: int,
    policy: PolicyDep,
    start_date: datetime = Query(..., description="Range start (ISO 8601)"),
    end_date: datetime = Query(..., description="Range end (ISO 8601)"),
) -> list[EnrollmentResponse]:
    return _many(
        await policy.get_enrollments_by_student_id_and_date_range(
            student_id, to_naive_utc(start_date), to_naive_utc(end_date)
        )
    )


@router.get(
    "/student/{student_id}/grade/{grade_id}/enrolled",
    response_model=EnrolledResponse,
    summary="Is the student actively enrolled in the grade",
)
async def is_student_enrolled_in_grade(
    student_id: int, grade_id: int, policy: PolicyDep
) -> EnrolledResponse:
    return EnrolledResponse(enrolled=await policy.is_student_enrolled_in_grade(student_id, grade_id))


@router.get(
    "/student/{student_id}/has-active",
    response_model=HasActiveEnrollmentResponse,
    summary="Does the student have any active enrollment",
)
async def has_active_enrollment(student_id: int, policy: PolicyDep) -> HasActiveEnrollmentResponse:
    return HasActiveEnrollmentResponse(
        has_active_enrollment=await policy.has_active_enrollment(student_id)
    )


@router.get(
    "/student/{student_id}/enrollment-count",
    response_model=CountResponse,
    summary="Number of enrollments (any state) for a student",
)
async def get_enrollment_count(student_id: int, policy: PolicyDep) -> CountResponse:
    return CountResponse(count=await policy.get_enrollment_count_by_student_id(student_id))


@router.get(
    "/grade/{grade_id}",
    response_model=list[EnrollmentResponse],
    summary="Enrollments for a grade",
)
async def get_enrollments_by_grade(grade_id: int, policy: PolicyDep) -> list[EnrollmentResponse]:
    return _many(await policy.get_enrollments_by_grade_id(grade_id))


@router.get(
    "/grade/{grade_id}/active",
    response_model=list[EnrollmentResponse],
    summary="Active enrollments for a grade",
)
async def get_active_enrollments_by_grade(grade_id: int, policy: PolicyDep) -> list[EnrollmentResponse]:
    return _many(await policy.get_active_enrollments_by_grade_id(grade_id))


@router.get(
    "/grade/{grade_id}/active-count",
    response_model=CountResponse,
    summary="Number of active enrollments in a grade",
)
async def get_active_enrollment_count(grade_id: int, policy: PolicyDep) -> CountResponse:
    return CountResponse(count=await policy.get_active_enrollment_count_by_grade_id(grade_id))
